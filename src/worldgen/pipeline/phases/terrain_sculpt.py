"""Write biome-driven heights into the height grid."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Optional

import numpy as np

from ...biomes.biome_map import BiomeMap, smootherstep
from ...noise import NoiseConfig, NoiseField
from ..phase import GenerationPhase
from ..registry import phase
from ..visualization import render_heightmap

if TYPE_CHECKING:
    from PIL import Image

    from ..context import GenerationContext

DETAIL_NOISE_SEED_OFFSET = 12345
RIVER_NOISE_SEED_OFFSET = 4099
# Normalised offsets around the waterline.
LAKE_SHORE_DROP = 0.01
LAKE_MIN_HEIGHT = 0.001
SHORE_MIN_ABOVE_WATER = 0.001
RIVER_SURFACE_DROP = 0.005
RIVER_BED_DROP = 0.002
RIVER_CHANNEL_PROFILE = 0.3
# World units of beach left above the waterline.
SHORE_CLEARANCE = 0.1


def limit_slopes(
    heights: np.ndarray,
    max_slope_angle: float,
    cell_size: tuple[float, float],
    height_scale: float,
    passes: int,
) -> np.ndarray:
    """Relax interior cells towards the band their four neighbours allow.

    Each pass moves an out-of-band cell halfway to the nearest allowed value;
    ``passes + 1`` passes run in total. Border cells are left untouched.
    """
    heights = np.array(heights, dtype=np.float64, copy=True)
    if heights.shape[0] < 3 or heights.shape[1] < 3 or height_scale <= 0.0:
        return heights
    max_slope = math.tan(math.radians(max_slope_angle))
    max_dx = max_slope * cell_size[0] / height_scale
    max_dz = max_slope * cell_size[1] / height_scale
    for _ in range(passes + 1):
        centre = heights[1:-1, 1:-1]
        left = heights[1:-1, :-2]
        right = heights[1:-1, 2:]
        down = heights[:-2, 1:-1]
        up = heights[2:, 1:-1]
        low = np.maximum.reduce([left - max_dx, right - max_dx, down - max_dz, up - max_dz])
        high = np.minimum.reduce([left + max_dx, right + max_dx, down + max_dz, up + max_dz])
        relaxed = centre.copy()
        below = centre < low
        above = centre > high
        relaxed[below] = (centre[below] + low[below]) * 0.5
        relaxed[above] = (centre[above] + high[above]) * 0.5
        heights[1:-1, 1:-1] = relaxed
    return heights


@phase("terrain_sculpt", order=1)
class TerrainSculptPhase(GenerationPhase):
    """Biome base height plus per-biome noise, in normalised units.

    Land heights are ``(base_height + noise * height_variation) / height``.
    With a positive ``water_level`` land is floored at
    ``water_level + min_clearance_above_water``, shores next to water bodies
    slope down to the waterline and water bodies dip below it. A
    ``water_level`` of zero leaves the plain formula untouched. Rivers are
    carved along land borders afterwards, then slopes are limited.
    """

    name = "terrain_sculpt"
    description = "Biome base height plus per-biome noise"

    def validate_context(self, ctx: "GenerationContext") -> Optional[str]:
        if not ctx.config.sculpt_terrain:
            return "sculpt_terrain is disabled"
        if ctx.biome_map is None or ctx.biome_map.is_empty:
            return "biome map has not been generated"
        return None

    def _noise_fields(self, ctx: "GenerationContext") -> Dict[int, NoiseField]:
        return {
            index: NoiseField(biome.height_noise, seed=ctx.seed)
            for index, biome in enumerate(ctx.config.catalog)
        }

    def _biome_heights(
        self,
        biome_index: np.ndarray,
        xs: np.ndarray,
        zs: np.ndarray,
        ctx: "GenerationContext",
        fields: Dict[int, NoiseField],
        scale: float,
    ) -> np.ndarray:
        """Normalised height of each point's biome in ``biome_index``."""
        out = np.zeros(xs.shape, dtype=np.float64)
        biomes = list(ctx.config.catalog)
        for index in np.unique(biome_index):
            mask = biome_index == index
            biome = biomes[int(index)]
            noise = fields[int(index)].sample_many(xs[mask], zs[mask])
            out[mask] = (biome.base_height + noise * biome.height_variation) / scale
        return out

    def _lake_heights(
        self, biome_index: np.ndarray, border: np.ndarray, ctx: "GenerationContext", scale: float
    ) -> np.ndarray:
        """Bowl profile: just under the waterline at the shore, full depth inward."""
        config = ctx.config
        biomes = list(config.catalog)
        depth = np.array([biomes[int(index)].water_depth for index in biome_index])
        steepness = np.array([biomes[int(index)].shore_steepness for index in biome_index])
        water = config.water_level / scale
        shore = water - LAKE_SHORE_DROP
        floor = np.maximum(0.0, (config.water_level - depth) / scale)
        t = np.clip(border / max(config.blend_width, 1e-6), 0.0, 1.0)
        t = t + (t * t - t) * (1.0 - steepness)
        return np.maximum(LAKE_MIN_HEIGHT, shore + (floor - shore) * smootherstep(t))

    def _shore_heights(
        self, land: np.ndarray, border: np.ndarray, ctx: "GenerationContext", scale: float
    ) -> np.ndarray:
        """Ease land down to just above the waterline inside ``blend_width``."""
        config = ctx.config
        water = config.water_level / scale
        target = (config.water_level + SHORE_CLEARANCE) / scale
        t = np.clip(border / max(config.blend_width, 1e-6), 0.0, 1.0)
        t = smootherstep(smootherstep(smootherstep(t)))
        return np.maximum(target + (land - target) * t, water + SHORE_MIN_ABOVE_WATER)

    def _carve_rivers(
        self,
        heights: np.ndarray,
        border: np.ndarray,
        on_land: np.ndarray,
        presence: np.ndarray,
        ctx: "GenerationContext",
        scale: float,
    ) -> np.ndarray:
        rivers = ctx.config.rivers
        water = ctx.config.water_level / scale
        river_floor = (ctx.config.water_level - rivers.depth) / scale
        profile = 1.0 - smootherstep(np.clip(border / rivers.width, 0.0, 1.0))
        profile = np.where(on_land & presence & (border < rivers.width), profile, 0.0)
        target = (water - RIVER_SURFACE_DROP) + (river_floor - (water - RIVER_SURFACE_DROP)) * profile
        blend = np.clip(profile * 1.5, 0.0, 1.0)
        carved = heights + (target - heights) * blend
        channel = profile > RIVER_CHANNEL_PROFILE
        carved[channel] = np.minimum(carved[channel], water - RIVER_BED_DROP)
        return np.clip(carved, 0.0, 1.0)

    def execute_internal(self, ctx: "GenerationContext") -> None:
        config = ctx.config
        biome_map: BiomeMap = ctx.biome_map
        scale = float(ctx.terrain.size[1])
        if scale <= 0.0:
            raise ValueError(f"Terrain height must be positive, got {scale}")
        resolution = ctx.grid_shape("heights")[0]
        heights = np.zeros(ctx.grid_shape("heights"), dtype=np.float64)
        fields = self._noise_fields(ctx)
        cell_biome = np.array([cell.biome_index for cell in biome_map.cells], dtype=np.int64)
        is_water = np.array([biome.is_water_body for biome in config.catalog], dtype=bool)
        has_water = bool(config.water_level > 0.0 and is_water[cell_biome].any())
        carve_rivers = config.rivers.enabled
        clearance = np.array(
            [(config.water_level + biome.min_clearance_above_water) / scale for biome in config.catalog]
        )
        global_noise = config.global_noise
        if global_noise.enabled:
            large = NoiseField(NoiseConfig(frequency=global_noise.scale, use_fbm=False), seed=ctx.seed)
            detail = NoiseField(
                NoiseConfig(frequency=global_noise.detail_scale, use_fbm=False),
                seed=ctx.seed + DETAIL_NOISE_SEED_OFFSET,
            )
        if carve_rivers and config.rivers.border_chance < 1.0:
            river_noise = NoiseField(
                NoiseConfig(frequency=config.rivers.noise_scale, use_fbm=False),
                seed=ctx.seed + RIVER_NOISE_SEED_OFFSET,
            )
        else:
            river_noise = None

        xs = ctx.world_x(np.arange(resolution), resolution)
        for row in range(resolution):
            ctx.check_cancelled()
            zs = np.full(resolution, ctx.world_z(row, resolution), dtype=np.float64)
            if config.blend_aware_sampling:
                batch = biome_map.query_many(xs, zs)
                primary_biome = cell_biome[batch.primary_cell]
                value = batch.primary_weight * self._biome_heights(primary_biome, xs, zs, ctx, fields, scale)
                blending = batch.secondary_weight > 0.0
                if np.any(blending):
                    secondary_biome = cell_biome[batch.secondary_cell[blending]]
                    value[blending] += batch.secondary_weight[blending] * self._biome_heights(
                        secondary_biome, xs[blending], zs[blending], ctx, fields, scale
                    )
            else:
                primary_biome = cell_biome[biome_map.classify(xs, zs)]
                value = self._biome_heights(primary_biome, xs, zs, ctx, fields, scale)
            on_land = ~is_water[primary_biome] if has_water else np.ones(resolution, dtype=bool)
            if has_water or carve_rivers:
                foreign, border = biome_map.border_distances(xs, zs)
            if has_water:
                water_side = np.zeros(resolution, dtype=bool)
                has_foreign = foreign >= 0
                water_side[has_foreign] = is_water[cell_biome[foreign[has_foreign]]]
                shore = on_land & water_side & (border < config.blend_width)
                if np.any(shore):
                    value[shore] = self._shore_heights(value[shore], border[shore], ctx, scale)
            if global_noise.enabled:
                value[on_land] += (large.sample_many(xs, zs)[on_land] - 0.5) * (global_noise.amplitude / scale)
                value[on_land] += (detail.sample_many(xs, zs)[on_land] - 0.5) * (
                    global_noise.detail_amplitude / scale
                )
            if config.water_level > 0.0:
                value[on_land] = np.maximum(value[on_land], clearance[primary_biome[on_land]])
            if has_water and not np.all(on_land):
                lake = ~on_land
                value[lake] = self._lake_heights(primary_biome[lake], border[lake], ctx, scale)
            value = np.clip(value, 0.0, 1.0)
            if carve_rivers:
                if river_noise is not None:
                    presence = river_noise.sample_many(xs, zs) < config.rivers.border_chance
                else:
                    presence = np.ones(resolution, dtype=bool)
                value = self._carve_rivers(value, border, on_land, presence, ctx, scale)
            heights[row] = value
            self.report_progress((row + 1) / resolution * 0.9)

        if config.limit_slopes:
            with ctx.timed("limit_slopes"):
                footprint = ctx.terrain.footprint()
                cell_size = (footprint.size_x / (resolution - 1), footprint.size_z / (resolution - 1))
                heights = limit_slopes(
                    heights, config.max_slope_angle, cell_size, scale, config.slope_smoothing_passes
                )
        ctx.heights = heights.astype(ctx.heights.dtype)
        ctx.commit_heights()
        ctx.log_info(
            "Sculpted %dx%d heights in [%.3f, %.3f]", resolution, resolution, heights.min(), heights.max()
        )

    def rollback_internal(self, ctx: "GenerationContext") -> None:
        ctx.restore_heights()

    def create_debug_overlay(self, ctx: "GenerationContext") -> Optional["Image.Image"]:
        return render_heightmap(ctx.heights)
