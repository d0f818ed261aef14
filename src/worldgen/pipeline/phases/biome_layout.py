"""Partition the generation bounds into biome cells."""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Optional

from ...biomes.voronoi import VoronoiBiomeGenerator
from ...errors import DegenerateInputWarning
from ..phase import GenerationPhase
from ..registry import phase
from ..visualization import render_biome_map

if TYPE_CHECKING:
    from PIL import Image

    from ..context import GenerationContext

logger = logging.getLogger(__name__)

PREVIEW_RESOLUTION = 128


def log_degenerate(ctx: "GenerationContext", phase_name: str, reason: str) -> None:
    logger.warning("Degenerate input in '%s': %s", phase_name, reason)
    warnings.warn(f"Degenerate input in '{phase_name}': {reason}", DegenerateInputWarning, stacklevel=3)
    ctx.logger.log_event({"type": "degenerate_input", "phase": phase_name, "reason": reason})


@phase("biome_layout", order=0)
class BiomeLayoutPhase(GenerationPhase):
    name = "biome_layout"
    description = "Voronoi biome cells with weighted type assignment"

    def __init__(self, generator: VoronoiBiomeGenerator | None = None) -> None:
        super().__init__()
        self.generator = generator or VoronoiBiomeGenerator()

    def validate_context(self, ctx: "GenerationContext") -> Optional[str]:
        reason = None
        if len(ctx.config.catalog) == 0:
            reason = "biome catalog is empty"
        elif ctx.config.max_cells <= 0:
            reason = "max_cells is zero"
        elif ctx.bounds.area <= 0.0:
            reason = "generation bounds have no area"
        if reason is not None:
            log_degenerate(ctx, self.name, reason)
        return reason

    def execute_internal(self, ctx: "GenerationContext") -> None:
        config = ctx.config
        self.report_progress(0.1)
        with ctx.timed("voronoi"):
            biome_map = self.generator.generate(
                ctx.bounds,
                config.catalog,
                config.blend_width,
                ctx.seed,
                config.min_cells,
                config.max_cells,
                warp=config.warp,
            )
        ctx.check_cancelled()
        if biome_map.is_empty:
            # min_cells of zero can draw an empty layout; later phases then skip.
            log_degenerate(ctx, self.name, "no cells were generated")
            ctx.biome_map = None
            return
        ctx.biome_map = biome_map
        counts: dict = {}
        for biome_type in biome_map.cell_types():
            counts[biome_type] = counts.get(biome_type, 0) + 1
        ctx.log_info("Generated %d biome cells: %s", len(biome_map), counts)

    def rollback_internal(self, ctx: "GenerationContext") -> None:
        ctx.biome_map = None

    def create_debug_overlay(self, ctx: "GenerationContext") -> Optional["Image.Image"]:
        if ctx.biome_map is None:
            return None
        return render_biome_map(ctx.biome_map, ctx.bounds, PREVIEW_RESOLUTION)
