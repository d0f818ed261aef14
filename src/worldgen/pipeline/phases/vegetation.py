"""Detail-layer density painting."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import numpy as np

from ...biomes.catalog import VegetationLayer
from ...noise import NoiseField
from ..phase import GenerationPhase
from ..registry import phase
from ..visualization import render_detail

if TYPE_CHECKING:
    from PIL import Image

    from ..context import GenerationContext

logger = logging.getLogger(__name__)

MASK_SEED_STEP = 1009


def resample_nearest(grid: np.ndarray, resolution: int) -> np.ndarray:
    """Nearest-index resample of a square grid's first two axes."""
    source = grid.shape[0]
    index = np.rint(np.arange(resolution) / max(resolution - 1, 1) * (source - 1)).astype(np.int64)
    return grid[np.ix_(index, index)]


@phase("vegetation", order=3)
class VegetationPhase(GenerationPhase):
    """Per-cell draws against each vegetation layer's density.

    Draws come from a stream keyed by ``(layer, row)``, so a row's output
    does not depend on the rows processed before it. A layer's density is
    scaled by its noise mask, slope and height modifiers and edge falloff
    before the draw; the painted value is that density times
    ``max_detail_density``.
    """

    name = "vegetation"
    description = "Grass and detail densities per biome"

    def validate_context(self, ctx: "GenerationContext") -> Optional[str]:
        if not ctx.config.paint_vegetation:
            return "paint_vegetation is disabled"
        if ctx.biome_map is None or ctx.biome_map.is_empty:
            return "biome map has not been generated"
        return None

    def _dominant_layers(self, ctx: "GenerationContext", resolution: int) -> np.ndarray:
        """Dominant splat layer resampled onto the detail grid."""
        return resample_nearest(np.argmax(ctx.splat, axis=2), resolution)

    def _terrain_samples(self, ctx: "GenerationContext", resolution: int) -> Tuple[np.ndarray, np.ndarray]:
        """World heights and slope angles in degrees on the detail grid."""
        heights = np.asarray(ctx.heights, dtype=np.float64) * float(ctx.terrain.size[1])
        footprint = ctx.terrain.footprint()
        res = heights.shape[0]
        if res < 2:
            slopes = np.zeros_like(heights)
        else:
            grad_z, grad_x = np.gradient(heights, footprint.size_z / (res - 1), footprint.size_x / (res - 1))
            slopes = np.degrees(np.arctan(np.hypot(grad_x, grad_z)))
        return resample_nearest(heights, resolution), resample_nearest(slopes, resolution)

    def _layer_density(
        self,
        veg: VegetationLayer,
        mask: Optional[np.ndarray],
        heights: Optional[np.ndarray],
        slopes: Optional[np.ndarray],
        edge: Optional[np.ndarray],
        count: int,
    ) -> np.ndarray:
        density = np.full(count, veg.density, dtype=np.float64)
        if mask is not None:
            density *= np.where(mask > veg.noise_threshold, mask, 0.0)
        if veg.slope_falloff is not None:
            density *= np.clip(1.0 - slopes / veg.slope_falloff, 0.0, 1.0)
        if veg.height_range is not None:
            low, high = veg.height_range
            density *= (heights >= low) & (heights <= high)
        if veg.edge_falloff > 0.0:
            density *= 1.0 - veg.edge_falloff * edge
        return density

    def execute_internal(self, ctx: "GenerationContext") -> None:
        config = ctx.config
        biome_map = ctx.biome_map
        detail_layers, resolution, _ = ctx.grid_shape("detail")
        max_density = config.max_detail_density
        biomes = list(config.catalog)
        cell_biome = np.array([cell.biome_index for cell in biome_map.cells], dtype=np.int64)

        skipped = sorted(
            {layer.layer for biome in biomes for layer in biome.vegetation if layer.layer >= detail_layers}
        )
        if skipped:
            logger.warning("Vegetation layers %s exceed the %d detail layers and are ignored", skipped, detail_layers)
        layers = [veg for biome in biomes for veg in biome.vegetation]
        needs_splat = any(veg.allowed_layers for veg in layers)
        dominant_splat = self._dominant_layers(ctx, resolution) if needs_splat else None
        if any(veg.uses_terrain for veg in layers):
            terrain_heights, terrain_slopes = self._terrain_samples(ctx, resolution)
        else:
            terrain_heights = terrain_slopes = None
        needs_edge = any(veg.edge_falloff > 0.0 for veg in layers)
        masks: Dict[Tuple[int, int], NoiseField] = {}
        for biome_index, biome in enumerate(biomes):
            for position, veg in enumerate(biome.vegetation):
                if veg.noise is not None:
                    seed = ctx.seed + MASK_SEED_STEP * (biome_index + 1) + position
                    masks[(biome_index, position)] = NoiseField(veg.noise, seed=seed)

        detail = np.zeros((detail_layers, resolution, resolution), dtype=ctx.detail.dtype)
        xs = ctx.world_x(np.arange(resolution), resolution)
        for row in range(resolution):
            ctx.check_cancelled()
            zs = np.full(resolution, ctx.world_z(row, resolution), dtype=np.float64)
            row_biome = cell_biome[biome_map.classify(xs, zs)]
            row_heights = terrain_heights[row] if terrain_heights is not None else None
            row_slopes = terrain_slopes[row] if terrain_slopes is not None else None
            edge = biome_map.normalized_distances_to_center(xs, zs) if needs_edge else None
            for biome_index in np.unique(row_biome):
                biome = biomes[int(biome_index)]
                in_biome = row_biome == biome_index
                for position, veg in enumerate(biome.vegetation):
                    if veg.layer >= detail_layers or veg.density <= 0.0:
                        continue
                    draws = ctx.rng(self.name, veg.layer, row).random(resolution)
                    field = masks.get((int(biome_index), position))
                    mask = field.sample_many(xs, zs) if field is not None else None
                    density = self._layer_density(veg, mask, row_heights, row_slopes, edge, resolution)
                    hit = in_biome & (draws < density)
                    if veg.allowed_layers and dominant_splat is not None:
                        hit &= np.isin(dominant_splat[row], veg.allowed_layers)
                    values = np.clip(np.rint(density * max_density), 0, max_density).astype(detail.dtype)
                    target = detail[veg.layer, row]
                    target[hit] = np.maximum(target[hit], values[hit])
            self.report_progress((row + 1) / resolution)

        ctx.detail = detail
        ctx.commit_detail()

    def rollback_internal(self, ctx: "GenerationContext") -> None:
        ctx.restore_detail()

    def create_debug_overlay(self, ctx: "GenerationContext") -> Optional["Image.Image"]:
        return render_detail(ctx.detail, ctx.config.max_detail_density)
