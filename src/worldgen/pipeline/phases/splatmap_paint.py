"""Paint texture-layer weights from the biome layout."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from ..phase import GenerationPhase
from ..registry import phase
from ..visualization import render_splatmap

if TYPE_CHECKING:
    from PIL import Image

    from ..context import GenerationContext

logger = logging.getLogger(__name__)


@phase("splatmap_paint", order=2)
class SplatmapPaintPhase(GenerationPhase):
    name = "splatmap_paint"
    description = "Texture weights from each biome's base layer"

    def validate_context(self, ctx: "GenerationContext") -> Optional[str]:
        if not ctx.config.paint_splatmap:
            return "paint_splatmap is disabled"
        if ctx.biome_map is None or ctx.biome_map.is_empty:
            return "biome map has not been generated"
        return None

    def execute_internal(self, ctx: "GenerationContext") -> None:
        config = ctx.config
        biome_map = ctx.biome_map
        resolution, _, layers = ctx.grid_shape("splat")
        base_layers = np.array([biome.base_layer for biome in config.catalog], dtype=np.int64)
        out_of_range = base_layers >= layers
        if np.any(out_of_range):
            names = [biome.name for biome, bad in zip(config.catalog, out_of_range) if bad]
            logger.warning("Biomes %s use a base layer beyond the %d terrain layers; using layer 0", names, layers)
            base_layers[out_of_range] = 0
        cell_layer = np.array([base_layers[cell.biome_index] for cell in biome_map.cells], dtype=np.int64)

        splat = np.zeros((resolution, resolution, layers), dtype=np.float32)
        xs = ctx.world_x(np.arange(resolution), resolution)
        cols = np.arange(resolution)
        for row in range(resolution):
            ctx.check_cancelled()
            zs = np.full(resolution, ctx.world_z(row, resolution), dtype=np.float64)
            if config.blend_aware_sampling:
                batch = biome_map.query_many(xs, zs)
                primary = cell_layer[batch.primary_cell]
                np.add.at(splat[row], (cols, primary), batch.primary_weight)
                blending = batch.secondary_weight > 0.0
                secondary = cell_layer[batch.secondary_cell[blending]]
                np.add.at(splat[row], (cols[blending], secondary), batch.secondary_weight[blending])
            else:
                splat[row, cols, cell_layer[biome_map.classify(xs, zs)]] = 1.0
            self.report_progress((row + 1) / resolution)

        ctx.splat = splat
        ctx.commit_splat()

    def rollback_internal(self, ctx: "GenerationContext") -> None:
        ctx.restore_splat()

    def create_debug_overlay(self, ctx: "GenerationContext") -> Optional["Image.Image"]:
        return render_splatmap(ctx.splat)
