"""Scatter rules and constrained point placement."""

from .features import TerrainFeatureMap
from .positions import MAX_CHILD_DEPTH, PlacedPoint, PlacementStats, PositionGenerator
from .rules import BiomeScatter, ChildScatter, Placement, ScatterRule, parse_scatter_rules
from .validator import PlacementValidator

__all__ = [
    "BiomeScatter",
    "ChildScatter",
    "MAX_CHILD_DEPTH",
    "Placement",
    "PlacedPoint",
    "PlacementStats",
    "PlacementValidator",
    "PositionGenerator",
    "ScatterRule",
    "TerrainFeatureMap",
    "parse_scatter_rules",
]
