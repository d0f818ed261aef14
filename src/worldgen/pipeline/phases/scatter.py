"""Discrete object placement producing spawn records."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, List, Optional, Tuple

from ...scatter import PlacedPoint, PlacementValidator, PositionGenerator, TerrainFeatureMap
from ...terrain import Bounds
from ..models import SpawnRecord
from ..phase import GenerationPhase
from ..registry import phase

if TYPE_CHECKING:
    from ..context import GenerationContext


def scatter_group_id(biome_type: Optional[str], x: float, z: float, bounds: Bounds, bucket_size: float) -> str:
    """``Biome_<type>_<bucket>`` where the bucket is a row-major chunk index."""
    per_row = max(1, int(math.ceil(bounds.size_x / bucket_size)))
    bx = min(max(int((x - bounds.min_x) // bucket_size), 0), per_row - 1)
    bz = max(int((z - bounds.min_z) // bucket_size), 0)
    return f"Biome_{biome_type}_{bx + bz * per_row}"


@phase("scatter", order=4)
class ScatterPhase(GenerationPhase):
    """Runs every biome's scatter rules and records the accepted points.

    Grids are left untouched; the output is ``ctx.spawn_records``, in
    acceptance order.
    """

    name = "scatter"
    description = "Trees, rocks and props as spawn records"

    def __init__(self) -> None:
        super().__init__()
        self.feature_map: Optional[TerrainFeatureMap] = None

    def validate_context(self, ctx: "GenerationContext") -> Optional[str]:
        if not ctx.config.scatter_objects:
            return "scatter_objects is disabled"
        if ctx.biome_map is None or ctx.biome_map.is_empty:
            return "biome map has not been generated"
        return None

    def _make_record(self, point: PlacedPoint, ctx: "GenerationContext", rotation: float, scale: float) -> SpawnRecord:
        return SpawnRecord(
            object_key=point.object_key,
            position=(point.x, 0.0, point.z),
            rotation=rotation,
            scale=scale,
            group_id=scatter_group_id(point.biome_type, point.x, point.z, ctx.bounds, ctx.config.scatter_bucket_size),
        )

    def execute_internal(self, ctx: "GenerationContext") -> None:
        config = ctx.config
        scatters = [(biome, scatter) for biome in config.catalog for scatter in biome.scatters]
        ctx.spawn_records = []
        if not scatters:
            return

        self.feature_map = None
        if any(scatter.requires_feature_map for _, scatter in scatters):
            with ctx.timed("feature_map"):
                self.feature_map = TerrainFeatureMap.from_terrain(ctx.terrain)
        splat = ctx.splat if config.paint_splatmap else None
        validator = PlacementValidator(ctx.bounds, terrain=ctx.terrain, splat=splat, feature_map=self.feature_map)
        generator = PositionGenerator(validator, ctx.world_random(self.name), biome_map=ctx.biome_map)
        transform_random = ctx.world_random(self.name, "transform")

        spawned: List[Tuple[float, float]] = []
        for done, (biome, scatter) in enumerate(scatters, start=1):
            ctx.check_cancelled()
            placed: List[PlacedPoint] = []
            stats = generator.generate(scatter, biome.name, ctx.bounds, placed, spawned)
            for point in placed:
                rule = point.rule
                rotation = transform_random.range(0.0, 360.0) if rule.random_rotation else 0.0
                scale = transform_random.range(rule.scale_range[0], rule.scale_range[1])
                ctx.spawn_records.append(self._make_record(point, ctx, rotation, scale))
            ctx.log_info(
                "Scatter %s/%s: %d of %d placed (%d with children) in %d attempts",
                biome.name,
                scatter.rule.object_key,
                stats.placed,
                stats.requested,
                len(placed),
                stats.attempts,
            )
            self.report_progress(done / len(scatters))

    def rollback_internal(self, ctx: "GenerationContext") -> None:
        ctx.spawn_records = []
        self.feature_map = None
