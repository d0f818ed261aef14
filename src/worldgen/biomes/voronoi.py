"""Voronoi partition of the generation bounds into biome cells."""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import numpy as np

from ..terrain import Bounds
from .biome_map import BiomeMap, DistanceFn, WarpConfig, WarpedDistance, euclidean_distance
from .catalog import BiomeCatalog

logger = logging.getLogger(__name__)

ATTEMPTS_PER_CELL = 50
SPACING_FACTOR = 0.5
ACCEPTANCE_FLOOR = 0.5
_SEED_MASK = (1 << 64) - 1


class VoronoiBiomeGenerator:
    """Builds a :class:`BiomeMap` from bounds, catalog and seed.

    Identical inputs always produce an identical cell list and assignment;
    every random draw comes from a generator seeded with ``seed``.
    """

    def __init__(self, distance: Optional[DistanceFn] = None) -> None:
        self._distance = distance

    def generate(
        self,
        bounds: Bounds,
        catalog: BiomeCatalog,
        blend_width: float,
        seed: int,
        min_cells: int,
        max_cells: int,
        warp: Optional[WarpConfig] = None,
    ) -> BiomeMap:
        if max_cells < min_cells:
            raise ValueError(f"max_cells ({max_cells}) must be >= min_cells ({min_cells})")
        biome_map = BiomeMap(catalog, blend_width, distance=self._distance_for(warp, seed))
        rng = np.random.default_rng(int(seed) & _SEED_MASK)
        count = int(rng.integers(max(min_cells, 0), max(max_cells, 0) + 1))

        if len(catalog) == 0 or count <= 0 or bounds.area <= 0:
            logger.warning(
                "Degenerate biome layout: %d biomes, %d cells, bounds area %.1f",
                len(catalog),
                count,
                bounds.area,
            )
            biome_map.metadata.update({"degenerate": True, "requested_cells": count})
            return biome_map

        points, attempts, fallback = self._sample_points(bounds, count, rng)
        types = catalog.types()
        for point in points:
            biome_map.add_cell(point, types[self._pick_weighted(catalog.weights(), rng)])

        biome_map.metadata.update(
            {
                "degenerate": False,
                "requested_cells": count,
                "cells": len(points),
                "attempts": attempts,
                "uniform_fallback": fallback,
            }
        )
        logger.debug("Generated %d biome cells in %d attempts (fallback=%s)", len(points), attempts, fallback)
        return biome_map

    def _distance_for(self, warp: Optional[WarpConfig], seed: int) -> DistanceFn:
        if self._distance is not None:
            return self._distance
        if warp is not None and warp.enabled:
            return WarpedDistance(warp, seed)
        return euclidean_distance

    @staticmethod
    def _uniform_point(bounds: Bounds, rng: np.random.Generator) -> Tuple[float, float]:
        return (
            float(rng.uniform(bounds.min_x, bounds.max_x)),
            float(rng.uniform(bounds.min_z, bounds.max_z)),
        )

    def _sample_points(
        self, bounds: Bounds, count: int, rng: np.random.Generator
    ) -> Tuple[List[Tuple[float, float]], int, bool]:
        spacing = math.sqrt(bounds.area / count) * SPACING_FACTOR
        min_sqr = spacing * spacing
        points: List[Tuple[float, float]] = []
        attempts = 0
        max_attempts = count * ATTEMPTS_PER_CELL
        while len(points) < count and attempts < max_attempts:
            attempts += 1
            candidate = self._uniform_point(bounds, rng)
            if all((candidate[0] - px) ** 2 + (candidate[1] - pz) ** 2 >= min_sqr for px, pz in points):
                points.append(candidate)

        if len(points) < count * ACCEPTANCE_FLOOR:
            logger.warning(
                "Blue-noise sampling accepted %d of %d cells; falling back to uniform sampling",
                len(points),
                count,
            )
            points = [self._uniform_point(bounds, rng) for _ in range(count)]
            return points, attempts, True
        return points, attempts, False

    @staticmethod
    def _pick_weighted(weights: List[float], rng: np.random.Generator) -> int:
        clipped = [max(0.0, float(weight)) for weight in weights]
        total = sum(clipped)
        if total <= 0.0:
            return int(rng.integers(0, len(clipped)))
        roll = float(rng.random()) * total
        cumulative = 0.0
        for idx, weight in enumerate(clipped):
            cumulative += weight
            if roll < cumulative:
                return idx
        return len(clipped) - 1


__all__ = ["VoronoiBiomeGenerator", "ATTEMPTS_PER_CELL", "SPACING_FACTOR", "ACCEPTANCE_FLOOR"]
