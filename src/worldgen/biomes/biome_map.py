"""Spatial index answering which biome, with what blend weight, is at a point."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..errors import EmptyBiomeMapError
from ..noise import NoiseConfig, NoiseField
from .catalog import BiomeCatalog, BiomeDefinition

Point = Tuple[float, float]

_WARP_CELL_SEED_STEP = 7919


@dataclass(frozen=True)
class BiomeCell:
    """Voronoi seed point with its assigned biome type."""

    center: Point
    biome_type: str
    index: int
    biome_index: int = 0


@dataclass(frozen=True)
class BiomeQuery:
    primary_type: str
    primary_weight: float
    secondary_type: Optional[str]
    secondary_weight: float
    nearest_center: Point
    distance: float

    @property
    def is_blending(self) -> bool:
        return self.secondary_weight > 0.0


@dataclass
class BiomeQueryBatch:
    """Column-wise query results; cell indices refer to :attr:`BiomeMap.cells`."""

    primary_cell: np.ndarray
    secondary_cell: np.ndarray
    primary_weight: np.ndarray
    secondary_weight: np.ndarray
    distance: np.ndarray


DistanceFn = Callable[[np.ndarray, np.ndarray, BiomeCell], np.ndarray]


def euclidean_distance(xs: np.ndarray, zs: np.ndarray, cell: BiomeCell) -> np.ndarray:
    return np.hypot(xs - cell.center[0], zs - cell.center[1])


@dataclass(frozen=True)
class WarpConfig:
    """Domain warp applied to distances so borders bend organically."""

    enabled: bool = True
    amplitude: float = 12.0
    frequency: float = 0.02
    octaves: int = 3
    persistence: float = 0.5
    lacunarity: float = 2.0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "WarpConfig":
        if mapping is None:
            return cls()
        return cls(
            enabled=bool(mapping.get("enabled", cls.enabled)),
            amplitude=float(mapping.get("amplitude", cls.amplitude)),
            frequency=float(mapping.get("frequency", cls.frequency)),
            octaves=int(mapping.get("octaves", cls.octaves)),
            persistence=float(mapping.get("persistence", cls.persistence)),
            lacunarity=float(mapping.get("lacunarity", cls.lacunarity)),
        )

    def noise_config(self) -> NoiseConfig:
        return NoiseConfig(
            frequency=self.frequency,
            use_fbm=self.octaves > 1,
            octaves=self.octaves,
            persistence=self.persistence,
            lacunarity=self.lacunarity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "amplitude": self.amplitude,
            "frequency": self.frequency,
            "octaves": self.octaves,
            "persistence": self.persistence,
            "lacunarity": self.lacunarity,
        }


class WarpedDistance:
    """Euclidean distance plus a per-cell noise offset in ``[-amplitude, amplitude]``."""

    def __init__(self, config: WarpConfig, seed: int) -> None:
        self.config = config
        self.seed = int(seed)
        self._noise_config = config.noise_config()
        self._fields: Dict[int, NoiseField] = {}

    def _field(self, cell: BiomeCell) -> NoiseField:
        field_ = self._fields.get(cell.index)
        if field_ is None:
            field_ = NoiseField(self._noise_config, seed=self.seed + cell.index * _WARP_CELL_SEED_STEP)
            self._fields[cell.index] = field_
        return field_

    def __call__(self, xs: np.ndarray, zs: np.ndarray, cell: BiomeCell) -> np.ndarray:
        base = euclidean_distance(xs, zs, cell)
        if not self.config.enabled or self.config.amplitude == 0.0:
            return base
        offset = (self._field(cell).sample_many(xs, zs) * 2.0 - 1.0) * self.config.amplitude
        return base + offset


def smootherstep(t: np.ndarray) -> np.ndarray:
    return t * t * t * (t * (6.0 * t - 15.0) + 10.0)


class BiomeMap:
    """Append-only set of biome cells with nearest-cell queries.

    Every query requires at least one cell; querying an empty map raises
    :class:`EmptyBiomeMapError`.
    """

    def __init__(
        self,
        catalog: BiomeCatalog,
        blend_width: float,
        distance: DistanceFn | None = None,
    ) -> None:
        self.catalog = catalog
        self.blend_width = float(blend_width)
        self._distance = distance or euclidean_distance
        self._cells: List[BiomeCell] = []
        self.metadata: Dict[str, Any] = {}

    @property
    def cells(self) -> Tuple[BiomeCell, ...]:
        return tuple(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    @property
    def is_empty(self) -> bool:
        return not self._cells

    def add_cell(self, center: Point, biome_type: str) -> BiomeCell:
        if biome_type not in self.catalog:
            raise KeyError(f"Biome type '{biome_type}' is not registered in the catalog")
        cell = BiomeCell(
            center=(float(center[0]), float(center[1])),
            biome_type=biome_type,
            index=len(self._cells),
            biome_index=self.catalog.index_of(biome_type),
        )
        self._cells.append(cell)
        return cell

    def cell_types(self) -> List[str]:
        return [cell.biome_type for cell in self._cells]

    def _require_cells(self) -> None:
        if not self._cells:
            raise EmptyBiomeMapError("BiomeMap has no cells; run the biome layout first")

    def distances(self, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """Warped distance from every point to every cell, shape ``(cells, points)``."""
        self._require_cells()
        xs = np.atleast_1d(np.asarray(xs, dtype=np.float64))
        zs = np.atleast_1d(np.asarray(zs, dtype=np.float64))
        return np.stack([self._distance(xs, zs, cell) for cell in self._cells])

    def classify(self, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """Index of the nearest cell for every point."""
        return np.argmin(self.distances(xs, zs), axis=0)

    def query_many(self, xs: np.ndarray, zs: np.ndarray) -> BiomeQueryBatch:
        dist = self.distances(xs, zs)
        count = dist.shape[1]
        if dist.shape[0] == 1:
            return BiomeQueryBatch(
                primary_cell=np.zeros(count, dtype=np.int64),
                secondary_cell=np.full(count, -1, dtype=np.int64),
                primary_weight=np.ones(count),
                secondary_weight=np.zeros(count),
                distance=dist[0],
            )
        order = np.argsort(dist, axis=0, kind="stable")[:2]
        nearest = np.take_along_axis(dist, order, axis=0)
        gap = nearest[1] - nearest[0]
        if self.blend_width > 0.0:
            t = np.clip(gap / self.blend_width, 0.0, 1.0)
        else:
            t = np.ones_like(gap)
        primary = 0.5 + 0.5 * smootherstep(t)
        return BiomeQueryBatch(
            primary_cell=order[0],
            secondary_cell=order[1],
            primary_weight=primary,
            secondary_weight=1.0 - primary,
            distance=nearest[0],
        )

    def query(self, x: float, z: float) -> BiomeQuery:
        batch = self.query_many(np.array([x]), np.array([z]))
        primary = self._cells[int(batch.primary_cell[0])]
        secondary_idx = int(batch.secondary_cell[0])
        secondary = self._cells[secondary_idx].biome_type if secondary_idx >= 0 else None
        return BiomeQuery(
            primary_type=primary.biome_type,
            primary_weight=float(batch.primary_weight[0]),
            secondary_type=secondary,
            secondary_weight=float(batch.secondary_weight[0]),
            nearest_center=primary.center,
            distance=float(batch.distance[0]),
        )

    def get_cell_at(self, x: float, z: float) -> BiomeCell:
        return self._cells[int(self.classify(np.array([x]), np.array([z]))[0])]

    def get_biome_at(self, x: float, z: float) -> str:
        return self.get_cell_at(x, z).biome_type

    def get_biome_data_at(self, x: float, z: float) -> BiomeDefinition:
        return self.catalog.get(self.get_biome_at(x, z))

    def blend_weight(self, x: float, z: float, biome_type: str) -> float:
        """Combined weight of ``biome_type`` among the two nearest cells."""
        query = self.query(x, z)
        weight = 0.0
        if query.primary_type == biome_type:
            weight += query.primary_weight
        if query.secondary_type == biome_type:
            weight += query.secondary_weight
        return weight

    def border_distances(self, xs: np.ndarray, zs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Nearest cell of another biome type and the distance to its border.

        The distance is half the warped-distance gap between the owning cell
        and that foreign cell; points with no foreign cell get ``-1`` and
        ``inf``.
        """
        dist = self.distances(xs, zs)
        columns = np.arange(dist.shape[1])
        cell_biome = np.array([cell.biome_index for cell in self._cells], dtype=np.int64)
        nearest = np.argmin(dist, axis=0)
        foreign = cell_biome[:, None] != cell_biome[nearest][None, :]
        masked = np.where(foreign, dist, np.inf)
        foreign_cell = np.argmin(masked, axis=0)
        gap = masked[foreign_cell, columns] - dist[nearest, columns]
        has_foreign = foreign.any(axis=0)
        return np.where(has_foreign, foreign_cell, -1), gap * 0.5

    def distance_to_border(self, x: float, z: float) -> float:
        """Half the warped-distance gap to the nearest cell of another type."""
        _, border = self.border_distances(np.array([x]), np.array([z]))
        return float(border[0])

    def normalized_distances_to_center(self, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
        """``0`` at a cell centre rising to ``1`` halfway to the next centre."""
        self._require_cells()
        xs = np.atleast_1d(np.asarray(xs, dtype=np.float64))
        zs = np.atleast_1d(np.asarray(zs, dtype=np.float64))
        if len(self._cells) == 1:
            return np.zeros(xs.shape)
        centers = np.array([cell.center for cell in self._cells], dtype=np.float64)
        dist = np.hypot(xs[None, :] - centers[:, 0:1], zs[None, :] - centers[:, 1:2])
        order = np.argsort(dist, axis=0, kind="stable")[:2]
        first, second = centers[order[0]], centers[order[1]]
        radius = np.hypot(*(second - first).T) * 0.5
        nearest = np.take_along_axis(dist, order[:1], axis=0)[0]
        safe = np.where(radius < 1e-3, 1.0, radius)
        return np.where(radius < 1e-3, 0.0, np.clip(nearest / safe, 0.0, 1.0))


__all__ = [
    "BiomeCell",
    "BiomeMap",
    "BiomeQuery",
    "BiomeQueryBatch",
    "DistanceFn",
    "WarpConfig",
    "WarpedDistance",
    "euclidean_distance",
    "smootherstep",
]
