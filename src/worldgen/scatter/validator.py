"""Per-candidate placement checks."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from ..terrain import Bounds, TerrainResource
from .features import TerrainFeatureMap
from .rules import BiomeScatter, FloatRange, ScatterRule

Point = Tuple[float, float]


class PlacementValidator:
    """Checks bounds, height, slope, texture layer, spacing and terrain features.

    Without a terrain every point reads as flat ground at height zero; without
    a splat grid the texture-layer whitelist is not enforced.
    """

    def __init__(
        self,
        bounds: Bounds,
        terrain: Optional[TerrainResource] = None,
        splat: Optional[np.ndarray] = None,
        feature_map: Optional[TerrainFeatureMap] = None,
    ) -> None:
        self.bounds = bounds
        self.terrain = terrain
        self.feature_map = feature_map
        self._dominant = np.argmax(splat, axis=2) if splat is not None else None

    def height_at(self, x: float, z: float) -> float:
        return self.terrain.sample_height(x, z) if self.terrain is not None else 0.0

    def slope_at(self, x: float, z: float) -> float:
        return self.terrain.steepness(x, z) if self.terrain is not None else 0.0

    def dominant_layer_at(self, x: float, z: float) -> Optional[int]:
        if self._dominant is None or self.terrain is None:
            return None
        footprint = self.terrain.footprint()
        res = self._dominant.shape[0]
        col = int(round((x - footprint.min_x) / footprint.size_x * (res - 1)))
        row = int(round((z - footprint.min_z) / footprint.size_z * (res - 1)))
        col = min(max(col, 0), res - 1)
        row = min(max(row, 0), res - 1)
        return int(self._dominant[row, col])

    def _check_terrain(
        self,
        x: float,
        z: float,
        height_range: FloatRange,
        slope_range: FloatRange,
        allowed_layers: Sequence[int],
    ) -> bool:
        if not self.bounds.contains(x, z):
            return False
        height = self.height_at(x, z)
        if height < height_range[0] or height > height_range[1]:
            return False
        slope = self.slope_at(x, z)
        if slope < slope_range[0] or slope > slope_range[1]:
            return False
        if allowed_layers:
            layer = self.dominant_layer_at(x, z)
            if layer is not None and layer not in allowed_layers:
                return False
        return True

    def validate_terrain(self, scatter: BiomeScatter, x: float, z: float) -> bool:
        return self._check_terrain(
            x, z, scatter.height_range(), scatter.slope_range(), scatter.rule.allowed_layers
        )

    def validate_terrain_rule(self, rule: ScatterRule, x: float, z: float) -> bool:
        return self._check_terrain(x, z, rule.height_range, rule.slope_range, rule.allowed_layers)

    def validate_features(self, scatter: BiomeScatter, x: float, z: float) -> bool:
        if not scatter.requires_feature_map or self.feature_map is None:
            return True
        return self.feature_map.check_placement(x, z, scatter.placement)

    @staticmethod
    def validate_spacing(
        min_spacing: float,
        x: float,
        z: float,
        points: Sequence[Point],
        start: int = 0,
        end: Optional[int] = None,
    ) -> bool:
        """True if no point in ``points[start:end]`` is closer than ``min_spacing``."""
        min_sqr = min_spacing * min_spacing
        stop = len(points) if end is None else min(end, len(points))
        for idx in range(start, stop):
            px, pz = points[idx]
            if (px - x) ** 2 + (pz - z) ** 2 < min_sqr:
                return False
        return True

    def validate_placement(self, scatter: BiomeScatter, x: float, z: float, spawned: Sequence[Point]) -> bool:
        if not self.validate_terrain(scatter, x, z):
            return False
        if not self.validate_spacing(scatter.rule.min_spacing, x, z, spawned):
            return False
        return self.validate_features(scatter, x, z)


__all__ = ["PlacementValidator"]
