"""Terrain resource interface and an in-memory grid implementation."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Dict, Protocol, Tuple, runtime_checkable

import numpy as np

from .memory import ArrayHandle, MemoryArena


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle in world XZ space."""

    min_x: float
    min_z: float
    size_x: float
    size_z: float

    @property
    def max_x(self) -> float:
        return self.min_x + self.size_x

    @property
    def max_z(self) -> float:
        return self.min_z + self.size_z

    @property
    def area(self) -> float:
        return self.size_x * self.size_z

    @property
    def center(self) -> Tuple[float, float]:
        return self.min_x + self.size_x * 0.5, self.min_z + self.size_z * 0.5

    def contains(self, x: float, z: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_z <= z <= self.max_z

    def shrink(self, margin: float) -> "Bounds":
        """Inset every side by ``margin``; size never goes negative."""
        size_x = max(0.0, self.size_x - 2.0 * margin)
        size_z = max(0.0, self.size_z - 2.0 * margin)
        return Bounds(
            min_x=self.min_x + (self.size_x - size_x) * 0.5,
            min_z=self.min_z + (self.size_z - size_z) * 0.5,
            size_x=size_x,
            size_z=size_z,
        )

    def index_to_world(self, index: np.ndarray | float, resolution: int, axis: str = "x") -> np.ndarray | float:
        """``world = min + index / (resolution - 1) * size`` along one axis."""
        denom = max(resolution - 1, 1)
        if axis == "x":
            return self.min_x + (np.asarray(index, dtype=np.float64) / denom) * self.size_x
        return self.min_z + (np.asarray(index, dtype=np.float64) / denom) * self.size_z

    def to_dict(self) -> Dict[str, float]:
        return {"min_x": self.min_x, "min_z": self.min_z, "size_x": self.size_x, "size_z": self.size_z}


@runtime_checkable
class TerrainResource(Protocol):
    """Grid-bearing resource the pipeline generates into."""

    size: Tuple[float, float, float]
    origin: Tuple[float, float]
    heightmap_resolution: int
    alphamap_resolution: int
    alphamap_layers: int
    detail_resolution: int
    detail_layers: int

    def footprint(self) -> Bounds: ...
    def get_heights(self) -> np.ndarray: ...
    def set_heights(self, heights: np.ndarray) -> None: ...
    def get_alphamaps(self) -> np.ndarray: ...
    def set_alphamaps(self, alphamaps: np.ndarray) -> None: ...
    def get_details(self) -> np.ndarray: ...
    def set_details(self, details: np.ndarray) -> None: ...
    def sample_height(self, x: float, z: float) -> float: ...
    def steepness(self, x: float, z: float) -> float: ...


class GridTerrain:
    """Terrain held entirely in numpy buffers.

    Height values are normalised to ``[0, 1]`` and scaled by ``size[1]`` when
    sampled. Grids are indexed ``[row, col]`` with rows along Z and columns
    along X.
    """

    def __init__(
        self,
        size: Tuple[float, float, float] = (500.0, 100.0, 500.0),
        origin: Tuple[float, float] = (0.0, 0.0),
        heightmap_resolution: int = 129,
        alphamap_resolution: int | None = None,
        alphamap_layers: int = 4,
        detail_resolution: int | None = None,
        detail_layers: int = 2,
        arena: MemoryArena | None = None,
    ) -> None:
        if heightmap_resolution < 2:
            raise ValueError("heightmap_resolution must be >= 2")
        if alphamap_layers < 1:
            raise ValueError("alphamap_layers must be >= 1")
        if detail_layers < 1:
            raise ValueError("detail_layers must be >= 1")
        self.size = (float(size[0]), float(size[1]), float(size[2]))
        self.origin = (float(origin[0]), float(origin[1]))
        self.heightmap_resolution = int(heightmap_resolution)
        self.alphamap_resolution = int(alphamap_resolution or heightmap_resolution)
        self.alphamap_layers = int(alphamap_layers)
        self.detail_resolution = int(detail_resolution or heightmap_resolution)
        self.detail_layers = int(detail_layers)
        self.arena = arena or MemoryArena()

        self._heights = self.arena.allocate("heights", (self.heightmap_resolution,) * 2, np.float32)
        self._alphamaps = self.arena.allocate(
            "alphamaps", (self.alphamap_resolution, self.alphamap_resolution, self.alphamap_layers), np.float32
        )
        self._alphamaps.mutable_view()[..., 0] = 1.0
        self._details = self.arena.allocate(
            "details", (self.detail_layers, self.detail_resolution, self.detail_resolution), np.int32
        )

    def footprint(self) -> Bounds:
        return Bounds(self.origin[0], self.origin[1], self.size[0], self.size[2])

    # Grid access -----------------------------------------------------

    def get_heights(self) -> np.ndarray:
        return self._heights.copy()

    def set_heights(self, heights: np.ndarray) -> None:
        _assign(self._heights, heights)

    def get_alphamaps(self) -> np.ndarray:
        return self._alphamaps.copy()

    def set_alphamaps(self, alphamaps: np.ndarray) -> None:
        _assign(self._alphamaps, alphamaps)

    def get_details(self) -> np.ndarray:
        return self._details.copy()

    def set_details(self, details: np.ndarray) -> None:
        _assign(self._details, details)

    def get_detail_layer(self, layer: int) -> np.ndarray:
        return np.array(self._details.array()[layer], copy=True)

    def set_detail_layer(self, layer: int, values: np.ndarray) -> None:
        view = self._details.mutable_view()
        values = np.asarray(values)
        if values.shape != view.shape[1:]:
            raise ValueError(f"Detail layer shape {values.shape} does not match {view.shape[1:]}")
        view[layer] = values

    def checksums(self) -> Dict[str, str]:
        return {
            "heights": self._heights.checksum(),
            "alphamaps": self._alphamaps.checksum(),
            "details": self._details.checksum(),
        }

    # Index <-> world -------------------------------------------------

    def world_to_grid(self, x: float, z: float, resolution: int) -> Tuple[float, float]:
        """Fractional ``(col, row)`` of a world point on a grid of ``resolution``."""
        col = (x - self.origin[0]) / self.size[0] * (resolution - 1)
        row = (z - self.origin[1]) / self.size[2] * (resolution - 1)
        return col, row

    # Point sampling --------------------------------------------------

    def sample_height(self, x: float, z: float) -> float:
        """Bilinear height in world units."""
        heights = self._heights.array()
        res = self.heightmap_resolution
        col, row = self.world_to_grid(x, z, res)
        col = min(max(col, 0.0), res - 1.0)
        row = min(max(row, 0.0), res - 1.0)
        c0 = min(int(math.floor(col)), res - 2)
        r0 = min(int(math.floor(row)), res - 2)
        tc = col - c0
        tr = row - r0
        h00 = float(heights[r0, c0])
        h10 = float(heights[r0, c0 + 1])
        h01 = float(heights[r0 + 1, c0])
        h11 = float(heights[r0 + 1, c0 + 1])
        top = h00 + (h10 - h00) * tc
        bottom = h01 + (h11 - h01) * tc
        return (top + (bottom - top) * tr) * self.size[1]

    def steepness(self, x: float, z: float) -> float:
        """Slope angle in degrees from central differences one cell apart."""
        res = self.heightmap_resolution
        dx = self.size[0] / (res - 1)
        dz = self.size[2] / (res - 1)
        gx = (self.sample_height(x + dx, z) - self.sample_height(x - dx, z)) / (2.0 * dx)
        gz = (self.sample_height(x, z + dz) - self.sample_height(x, z - dz)) / (2.0 * dz)
        return math.degrees(math.atan(math.hypot(gx, gz)))


def _assign(handle: ArrayHandle, values: Any) -> None:
    values = np.asarray(values)
    if values.shape != handle.shape:
        raise ValueError(f"Cannot assign shape {values.shape} to grid '{handle.name}' of shape {handle.shape}")
    handle.mutable_view()[...] = values


__all__ = ["Bounds", "GridTerrain", "TerrainResource"]
