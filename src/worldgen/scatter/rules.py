"""Declarative scatter rules and their config parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..terrain import Bounds

FloatRange = Tuple[float, float]


class Placement(str, Enum):
    """Terrain category a scatter entry is restricted to."""

    ANY = "any"
    FLAT = "flat"
    SLOPE = "slope"
    CLIFF = "cliff"
    CLIFF_EDGE = "cliff_edge"
    CLIFF_BASE = "cliff_base"
    VALLEY = "valley"


PLACEMENT_SLOPES: Dict[Placement, FloatRange] = {
    Placement.FLAT: (0.0, 15.0),
    Placement.SLOPE: (15.0, 45.0),
    Placement.CLIFF: (45.0, 90.0),
}

FEATURE_PLACEMENTS = frozenset({Placement.CLIFF_EDGE, Placement.CLIFF_BASE, Placement.VALLEY})


def _float_range(value: Any, name: str) -> FloatRange:
    if not isinstance(value, Sequence) or isinstance(value, str) or len(value) != 2:
        raise ValueError(f"'{name}' must be a [min, max] pair, got {value!r}")
    low, high = float(value[0]), float(value[1])
    if high < low:
        raise ValueError(f"'{name}' has min {low} greater than max {high}")
    return low, high


def _int_range(value: Any, name: str) -> Tuple[int, int]:
    low, high = _float_range(value, name)
    return int(low), int(high)


@dataclass(eq=False)
class ScatterRule:
    """Density, spacing and terrain constraints for one kind of object.

    Rules form a tree through ``children``. The tree may contain cycles when
    configured that way; placement caps recursion depth instead of relying on
    an acyclic configuration.
    """

    object_key: str
    fixed_count: int = 0
    density: float = 0.5
    min_spacing: float = 5.0
    max_attempts: int = 30
    cluster_size: Tuple[int, int] = (1, 1)
    cluster_spread: float = 5.0
    slope_range: FloatRange = (0.0, 30.0)
    height_range: FloatRange = (0.0, 100.0)
    allowed_layers: Tuple[int, ...] = ()
    scale_range: FloatRange = (0.9, 1.1)
    random_rotation: bool = True
    children: List["ChildScatter"] = field(default_factory=list)

    @property
    def use_clustering(self) -> bool:
        return self.cluster_size[1] > 1

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def target_count(self, bounds: Bounds) -> int:
        if self.fixed_count > 0:
            return self.fixed_count
        return int(round(bounds.area / 100.0 * self.density))

    def __repr__(self) -> str:
        return f"ScatterRule({self.object_key!r}, children={[child.rule.object_key for child in self.children]})"


@dataclass(frozen=True)
class ChildScatter:
    """Child rule placed in an annulus around every accepted parent."""

    rule: ScatterRule
    count_per_parent: Tuple[int, int] = (2, 5)
    radius_min: float = 2.0
    radius_max: float = 8.0
    inherit_terrain_filter: bool = True
    local_spacing_only: bool = True


@dataclass(frozen=True)
class BiomeScatter:
    """A scatter rule as used by one biome, with terrain overrides."""

    rule: ScatterRule
    placement: Placement = Placement.ANY
    slope_override: Optional[FloatRange] = None
    height_override: Optional[FloatRange] = None

    @property
    def requires_feature_map(self) -> bool:
        return self.placement in FEATURE_PLACEMENTS

    def slope_range(self) -> FloatRange:
        if self.placement in PLACEMENT_SLOPES:
            return PLACEMENT_SLOPES[self.placement]
        if self.slope_override is not None:
            return self.slope_override
        return self.rule.slope_range

    def height_range(self) -> FloatRange:
        if self.height_override is not None:
            return self.height_override
        return self.rule.height_range


def parse_scatter_rules(
    mapping: Mapping[str, Any] | None, layer_lookup: Mapping[str, int] | None = None
) -> Dict[str, ScatterRule]:
    """Build named rules, then link their children by name."""
    if not mapping:
        return {}
    if not isinstance(mapping, Mapping):
        raise TypeError(f"scatter_rules must be a mapping of rule names, got {type(mapping)!r}")
    rules: Dict[str, ScatterRule] = {}
    for name, entry in mapping.items():
        entry = entry or {}
        if not isinstance(entry, Mapping):
            raise TypeError(f"Scatter rule '{name}' must be a mapping, got {type(entry)!r}")
        rules[str(name)] = ScatterRule(
            object_key=str(entry.get("object_key", name)),
            fixed_count=int(entry.get("fixed_count", 0)),
            density=float(entry.get("density", ScatterRule.density)),
            min_spacing=float(entry.get("min_spacing", ScatterRule.min_spacing)),
            max_attempts=int(entry.get("max_attempts", ScatterRule.max_attempts)),
            cluster_size=_int_range(entry.get("cluster_size", ScatterRule.cluster_size), f"{name}.cluster_size"),
            cluster_spread=float(entry.get("cluster_spread", ScatterRule.cluster_spread)),
            slope_range=_float_range(entry.get("slope_range", ScatterRule.slope_range), f"{name}.slope_range"),
            height_range=_float_range(entry.get("height_range", ScatterRule.height_range), f"{name}.height_range"),
            allowed_layers=resolve_layers(entry.get("allowed_layers", ()), layer_lookup, f"{name}.allowed_layers"),
            scale_range=_float_range(entry.get("scale_range", ScatterRule.scale_range), f"{name}.scale_range"),
            random_rotation=bool(entry.get("random_rotation", ScatterRule.random_rotation)),
        )

    for name, entry in mapping.items():
        for child in (entry or {}).get("children", ()) or ():
            rules[str(name)].children.append(_parse_child(child, rules, str(name)))
    return rules


def _parse_child(entry: Any, rules: Mapping[str, ScatterRule], parent: str) -> ChildScatter:
    if isinstance(entry, str):
        entry = {"rule": entry}
    if not isinstance(entry, Mapping) or "rule" not in entry:
        raise ValueError(f"Child of scatter rule '{parent}' must name a 'rule'")
    rule_name = str(entry["rule"])
    if rule_name not in rules:
        raise ValueError(f"Scatter rule '{parent}' references unknown child rule '{rule_name}'")
    radius_min = float(entry.get("radius_min", ChildScatter.radius_min))
    radius_max = float(entry.get("radius_max", ChildScatter.radius_max))
    if radius_max < radius_min:
        raise ValueError(f"Child '{rule_name}' of '{parent}' has radius_max < radius_min")
    return ChildScatter(
        rule=rules[rule_name],
        count_per_parent=_int_range(entry.get("count_per_parent", ChildScatter.count_per_parent), f"{parent}.count_per_parent"),
        radius_min=radius_min,
        radius_max=radius_max,
        inherit_terrain_filter=bool(entry.get("inherit_terrain_filter", ChildScatter.inherit_terrain_filter)),
        local_spacing_only=bool(entry.get("local_spacing_only", ChildScatter.local_spacing_only)),
    )


def parse_biome_scatter(entry: Any, rules: Mapping[str, ScatterRule], biome: str) -> BiomeScatter:
    if isinstance(entry, str):
        entry = {"rule": entry}
    if not isinstance(entry, Mapping) or "rule" not in entry:
        raise ValueError(f"Scatter entry of biome '{biome}' must name a 'rule'")
    rule_name = str(entry["rule"])
    if rule_name not in rules:
        raise ValueError(f"Biome '{biome}' references unknown scatter rule '{rule_name}'")
    try:
        placement = Placement(str(entry.get("placement", Placement.ANY.value)))
    except ValueError as exc:
        raise ValueError(f"Biome '{biome}' uses unknown placement {entry.get('placement')!r}") from exc
    slope = entry.get("slope_range")
    height = entry.get("height_range")
    return BiomeScatter(
        rule=rules[rule_name],
        placement=placement,
        slope_override=_float_range(slope, f"{biome}.{rule_name}.slope_range") if slope is not None else None,
        height_override=_float_range(height, f"{biome}.{rule_name}.height_range") if height is not None else None,
    )


def resolve_layers(values: Any, layer_lookup: Mapping[str, int] | None, name: str) -> Tuple[int, ...]:
    """Turn a list of layer names or indices into indices."""
    if not values:
        return ()
    resolved = []
    for value in values:
        if isinstance(value, int):
            resolved.append(value)
        elif layer_lookup is not None and str(value) in layer_lookup:
            resolved.append(layer_lookup[str(value)])
        else:
            raise ValueError(f"'{name}' references unknown texture layer {value!r}")
    return tuple(resolved)


__all__ = [
    "BiomeScatter",
    "ChildScatter",
    "FEATURE_PLACEMENTS",
    "PLACEMENT_SLOPES",
    "Placement",
    "ScatterRule",
    "parse_biome_scatter",
    "parse_scatter_rules",
    "resolve_layers",
]
