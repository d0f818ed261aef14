"""Cliff and valley classification of a height grid."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .rules import Placement

CLIFF_THRESHOLD = 0.10
HEIGHT_DIFF_THRESHOLD = 0.015
VALLEY_HEIGHT_THRESHOLD = 0.3
SEARCH_RADIUS = 3


def sobel_magnitude(grid: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude; the one-cell border is left at zero."""
    grid = np.asarray(grid, dtype=np.float64)
    out = np.zeros_like(grid)
    if grid.shape[0] < 3 or grid.shape[1] < 3:
        return out
    tl = grid[:-2, :-2]
    tc = grid[:-2, 1:-1]
    tr = grid[:-2, 2:]
    ml = grid[1:-1, :-2]
    mr = grid[1:-1, 2:]
    bl = grid[2:, :-2]
    bc = grid[2:, 1:-1]
    br = grid[2:, 2:]
    gx = (tr + 2.0 * mr + br) - (tl + 2.0 * ml + bl)
    gz = (bl + 2.0 * bc + br) - (tl + 2.0 * tc + tr)
    out[1:-1, 1:-1] = np.hypot(gx, gz)
    return out


class TerrainFeatureMap:
    """Classifies world points as cliff edge, cliff base or valley."""

    def __init__(
        self,
        heights: np.ndarray,
        size: Tuple[float, float, float],
        origin: Tuple[float, float] = (0.0, 0.0),
    ) -> None:
        heights = np.asarray(heights, dtype=np.float64)
        if heights.ndim != 2 or heights.shape[0] != heights.shape[1]:
            raise ValueError(f"Feature map needs a square height grid, got {heights.shape}")
        self.resolution = heights.shape[0]
        self.size = size
        self.origin = origin
        self.normalized_height = heights
        strength = sobel_magnitude(heights * size[1])
        self.max_edge_strength = float(strength.max()) if strength.size else 0.0
        if self.max_edge_strength > 1e-3:
            strength /= self.max_edge_strength
        self.edge_strength = strength

    @classmethod
    def from_terrain(cls, terrain) -> "TerrainFeatureMap":
        return cls(terrain.get_heights(), terrain.size, terrain.origin)

    def world_to_grid(self, x: float, z: float) -> Tuple[int, int]:
        col = int(round((x - self.origin[0]) / self.size[0] * (self.resolution - 1)))
        row = int(round((z - self.origin[1]) / self.size[2] * (self.resolution - 1)))
        return col, row

    def _window(self, col: int, row: int) -> Tuple[slice, slice]:
        return (
            slice(row - SEARCH_RADIUS, row + SEARCH_RADIUS + 1),
            slice(col - SEARCH_RADIUS, col + SEARCH_RADIUS + 1),
        )

    def _interior(self, col: int, row: int, margin: int) -> bool:
        limit = self.resolution - margin
        return margin <= col < limit and margin <= row < limit

    def edge_strength_at(self, x: float, z: float) -> float:
        col, row = self.world_to_grid(x, z)
        if not self._interior(col, row, 0):
            return 0.0
        return float(self.edge_strength[row, col])

    def is_cliff_edge(self, x: float, z: float) -> bool:
        """Calm ground with a steep drop nearby."""
        col, row = self.world_to_grid(x, z)
        if not self._interior(col, row, SEARCH_RADIUS):
            return False
        if self.edge_strength[row, col] > CLIFF_THRESHOLD * 0.5:
            return False
        window = self._window(col, row)
        own = self.normalized_height[row, col]
        mask = (self.edge_strength[window] > CLIFF_THRESHOLD) & (
            self.normalized_height[window] < own - HEIGHT_DIFF_THRESHOLD
        )
        return bool(mask.any())

    def is_cliff_base(self, x: float, z: float) -> bool:
        """Calm ground with a steep rise nearby."""
        col, row = self.world_to_grid(x, z)
        if not self._interior(col, row, SEARCH_RADIUS):
            return False
        if self.edge_strength[row, col] > CLIFF_THRESHOLD * 0.5:
            return False
        window = self._window(col, row)
        own = self.normalized_height[row, col]
        mask = (self.edge_strength[window] > CLIFF_THRESHOLD) & (
            self.normalized_height[window] > own + HEIGHT_DIFF_THRESHOLD
        )
        return bool(mask.any())

    def is_valley(self, x: float, z: float) -> bool:
        col, row = self.world_to_grid(x, z)
        if not self._interior(col, row, 1):
            return False
        h = self.normalized_height
        own = h[row, col]
        if own > VALLEY_HEIGHT_THRESHOLD:
            return False
        neighbours = (h[row - 1, col] + h[row + 1, col] + h[row, col - 1] + h[row, col + 1]) / 4.0
        return bool(own <= neighbours)

    def check_placement(self, x: float, z: float, placement: Placement) -> bool:
        if placement is Placement.CLIFF_EDGE:
            return self.is_cliff_edge(x, z)
        if placement is Placement.CLIFF_BASE:
            return self.is_cliff_base(x, z)
        if placement is Placement.VALLEY:
            return self.is_valley(x, z)
        return True


__all__ = [
    "CLIFF_THRESHOLD",
    "HEIGHT_DIFF_THRESHOLD",
    "SEARCH_RADIUS",
    "TerrainFeatureMap",
    "VALLEY_HEIGHT_THRESHOLD",
    "sobel_magnitude",
]
