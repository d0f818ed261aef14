"""Uniform, clustered and hierarchical point sampling for scatter rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..rng import WorldRandom
from ..terrain import Bounds
from .rules import BiomeScatter, ScatterRule
from .validator import PlacementValidator

if TYPE_CHECKING:
    from ..biomes.biome_map import BiomeMap

Point = Tuple[float, float]

MAX_CHILD_DEPTH = 3
CLUSTER_ATTEMPT_FACTOR = 10
CLUSTER_LOCAL_SPACING = 0.3


@dataclass(frozen=True)
class PlacedPoint:
    object_key: str
    x: float
    z: float
    rule: ScatterRule
    biome_type: Optional[str]
    depth: int = 0


@dataclass
class PlacementStats:
    requested: int
    placed: int = 0
    attempts: int = 0

    def to_dict(self) -> dict:
        return {"requested": self.requested, "placed": self.placed, "attempts": self.attempts}


class PositionGenerator:
    """Draws candidate points and keeps those the validator accepts.

    Every loop is bounded: uniform sampling by ``target * max_attempts``,
    clustering by ``target * 10`` cluster centres, and child rules by a
    recursion depth of three whatever the rule tree looks like.
    """

    def __init__(
        self,
        validator: PlacementValidator,
        random: WorldRandom,
        biome_map: Optional["BiomeMap"] = None,
    ) -> None:
        self.validator = validator
        self.random = random
        self.biome_map = biome_map

    @staticmethod
    def target_count(rule: ScatterRule, bounds: Bounds) -> int:
        return rule.target_count(bounds)

    def _in_biome(self, x: float, z: float, biome_type: Optional[str]) -> bool:
        if self.biome_map is None or biome_type is None:
            return True
        return self.biome_map.get_biome_at(x, z) == biome_type

    def generate(
        self,
        scatter: BiomeScatter,
        biome_type: Optional[str],
        bounds: Bounds,
        output: List[PlacedPoint],
        spawned: List[Point],
        target_count: Optional[int] = None,
    ) -> PlacementStats:
        target = scatter.rule.target_count(bounds) if target_count is None else target_count
        if scatter.rule.use_clustering:
            return self.generate_clustered(scatter, biome_type, bounds, target, output, spawned)
        return self.generate_uniform(scatter, biome_type, bounds, target, output, spawned)

    def generate_uniform(
        self,
        scatter: BiomeScatter,
        biome_type: Optional[str],
        bounds: Bounds,
        target_count: int,
        output: List[PlacedPoint],
        spawned: List[Point],
    ) -> PlacementStats:
        rule = scatter.rule
        stats = PlacementStats(requested=target_count)
        max_attempts = target_count * rule.max_attempts
        while stats.placed < target_count and stats.attempts < max_attempts:
            stats.attempts += 1
            x, z = self.random.point_in_bounds(bounds)
            if not self._in_biome(x, z, biome_type):
                continue
            if not self.validator.validate_placement(scatter, x, z, spawned):
                continue
            self._accept(rule, x, z, biome_type, 0, output, spawned)
            stats.placed += 1
            if rule.has_children:
                self.generate_children(rule, biome_type, (x, z), output, spawned)
        return stats

    def generate_clustered(
        self,
        scatter: BiomeScatter,
        biome_type: Optional[str],
        bounds: Bounds,
        target_count: int,
        output: List[PlacedPoint],
        spawned: List[Point],
    ) -> PlacementStats:
        rule = scatter.rule
        stats = PlacementStats(requested=target_count)
        remaining = target_count
        max_cluster_attempts = target_count * CLUSTER_ATTEMPT_FACTOR
        local_spacing = rule.min_spacing * CLUSTER_LOCAL_SPACING
        while remaining > 0 and stats.attempts < max_cluster_attempts:
            stats.attempts += 1
            cx, cz = self.random.point_in_bounds(bounds)
            if not self._in_biome(cx, cz, biome_type):
                continue
            if not self.validator.validate_terrain(scatter, cx, cz):
                continue

            members = min(self.random.range_int(rule.cluster_size[0], rule.cluster_size[1]), remaining)
            cluster_start = len(spawned)
            cluster_points: List[Point] = []
            for _ in range(members):
                ox, oz = self.random.inside_unit_circle()
                x = cx + ox * rule.cluster_spread
                z = cz + oz * rule.cluster_spread
                if not self._in_biome(x, z, biome_type):
                    continue
                if not self.validator.validate_terrain(scatter, x, z):
                    continue
                if not self.validator.validate_features(scatter, x, z):
                    continue
                if not self.validator.validate_spacing(rule.min_spacing, x, z, spawned, 0, cluster_start):
                    continue
                if not self.validator.validate_spacing(local_spacing, x, z, cluster_points):
                    continue
                self._accept(rule, x, z, biome_type, 0, output, spawned)
                cluster_points.append((x, z))
                stats.placed += 1
                remaining -= 1
                if rule.has_children:
                    self.generate_children(rule, biome_type, (x, z), output, spawned)
        return stats

    def generate_children(
        self,
        parent_rule: ScatterRule,
        biome_type: Optional[str],
        parent: Point,
        output: List[PlacedPoint],
        spawned: List[Point],
        depth: int = 0,
    ) -> int:
        if depth >= MAX_CHILD_DEPTH or not parent_rule.children:
            return 0
        placed = 0
        for child in parent_rule.children:
            child_rule = child.rule
            count = self.random.range_int(child.count_per_parent[0], child.count_per_parent[1])
            siblings: List[Point] = []
            for _ in range(count):
                for _attempt in range(child_rule.max_attempts):
                    x, z = self.random.point_in_annulus(parent, child.radius_min, child.radius_max)
                    if not self.validator.validate_terrain_rule(child_rule, x, z):
                        continue
                    if child.inherit_terrain_filter and not self.validator.validate_terrain_rule(parent_rule, x, z):
                        continue
                    neighbours = siblings if child.local_spacing_only else spawned
                    if not self.validator.validate_spacing(child_rule.min_spacing, x, z, neighbours):
                        continue
                    self._accept(child_rule, x, z, biome_type, depth + 1, output, spawned)
                    siblings.append((x, z))
                    placed += 1
                    if child_rule.has_children:
                        placed += self.generate_children(child_rule, biome_type, (x, z), output, spawned, depth + 1)
                    break
        return placed

    @staticmethod
    def _accept(
        rule: ScatterRule,
        x: float,
        z: float,
        biome_type: Optional[str],
        depth: int,
        output: List[PlacedPoint],
        spawned: List[Point],
    ) -> None:
        output.append(PlacedPoint(rule.object_key, x, z, rule, biome_type, depth))
        spawned.append((x, z))


__all__ = [
    "CLUSTER_ATTEMPT_FACTOR",
    "CLUSTER_LOCAL_SPACING",
    "MAX_CHILD_DEPTH",
    "PlacedPoint",
    "PlacementStats",
    "PositionGenerator",
]
