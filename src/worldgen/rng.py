"""Seeded random streams."""

from __future__ import annotations

import hashlib
import math
from typing import Tuple

import numpy as np

from .terrain import Bounds


class RngPool:
    """Deterministic RNG factory keyed by arbitrary labels.

    Each distinct key tuple gets an independent stream, so draws do not depend
    on the order in which streams are requested.
    """

    def __init__(self, seed: int) -> None:
        self._seed = int(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def stream(self, *keys: object) -> np.random.Generator:
        label = ":".join(str(key) for key in keys)
        payload = f"{label}:{self._seed}".encode("utf8")
        digest = hashlib.blake2b(payload, digest_size=16)
        seed = int.from_bytes(digest.digest()[:8], "little", signed=False)
        return np.random.default_rng(seed)


class WorldRandom:
    """Convenience draws over a numpy generator in world space."""

    def __init__(self, generator: np.random.Generator) -> None:
        self.generator = generator

    @classmethod
    def from_seed(cls, seed: int) -> "WorldRandom":
        return cls(np.random.default_rng(int(seed)))

    def value(self) -> float:
        return float(self.generator.random())

    def range(self, low: float, high: float) -> float:
        return float(low + (high - low) * self.generator.random())

    def range_int(self, low: int, high: int) -> int:
        """Integer in ``[low, high]`` inclusive."""
        if high < low:
            low, high = high, low
        return int(self.generator.integers(low, high + 1))

    def inside_unit_circle(self) -> Tuple[float, float]:
        angle = self.range(0.0, 2.0 * math.pi)
        radius = math.sqrt(self.value())
        return radius * math.cos(angle), radius * math.sin(angle)

    def point_in_bounds(self, bounds: Bounds) -> Tuple[float, float]:
        x = self.range(bounds.min_x, bounds.max_x)
        z = self.range(bounds.min_z, bounds.max_z)
        return x, z

    def point_in_annulus(self, center: Tuple[float, float], radius_min: float, radius_max: float) -> Tuple[float, float]:
        angle = self.range(0.0, 2.0 * math.pi)
        radius = self.range(radius_min, radius_max)
        return center[0] + radius * math.cos(angle), center[1] + radius * math.sin(angle)


__all__ = ["RngPool", "WorldRandom"]
