"""Deterministic 2D noise sampling used for heights and border warping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Tuple

import numpy as np
from noise import pnoise2

_PRIME_X = np.uint32(0x27D4EB2D)
_PRIME_Y = np.uint32(0x165667B1)
_MIX_A = np.uint32(0x7FEB352D)
_MIX_B = np.uint32(0x846CA68B)
_OCTAVE_SEED_STEP = 1013
_MAX_UINT32 = float(0xFFFFFFFF)
_PERLIN_REPEAT = 1 << 16
# pnoise2 samples in float32; keep shifted coordinates small.
_PERLIN_SHIFT_SPAN = 1024.0

NOISE_KINDS = ("value", "perlin")


@dataclass(frozen=True)
class NoiseConfig:
    """Parameters for a :class:`NoiseField`."""

    frequency: float = 0.015
    amplitude: float = 1.0
    offset: Tuple[float, float] = (0.0, 0.0)
    seed_offset: int = 0
    use_fbm: bool = True
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    normalize: bool = True
    power: float = 1.0
    invert: bool = False
    kind: str = "value"

    def __post_init__(self) -> None:
        if self.kind not in NOISE_KINDS:
            raise ValueError(f"Unknown noise kind '{self.kind}', expected one of {NOISE_KINDS}")
        if self.octaves < 1:
            raise ValueError("Noise octaves must be >= 1")
        if self.frequency <= 0:
            raise ValueError("Noise frequency must be positive")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "NoiseConfig":
        if not mapping:
            return cls()
        offset = mapping.get("offset", cls.offset)
        if len(offset) != 2:
            raise ValueError(f"Noise offset must have two components, got {offset!r}")
        return cls(
            frequency=float(mapping.get("frequency", cls.frequency)),
            amplitude=float(mapping.get("amplitude", cls.amplitude)),
            offset=(float(offset[0]), float(offset[1])),
            seed_offset=int(mapping.get("seed_offset", cls.seed_offset)),
            use_fbm=bool(mapping.get("use_fbm", cls.use_fbm)),
            octaves=int(mapping.get("octaves", cls.octaves)),
            persistence=float(mapping.get("persistence", cls.persistence)),
            lacunarity=float(mapping.get("lacunarity", cls.lacunarity)),
            normalize=bool(mapping.get("normalize", cls.normalize)),
            power=float(mapping.get("power", cls.power)),
            invert=bool(mapping.get("invert", cls.invert)),
            kind=str(mapping.get("kind", cls.kind)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "frequency": self.frequency,
            "amplitude": self.amplitude,
            "offset": list(self.offset),
            "seed_offset": self.seed_offset,
            "use_fbm": self.use_fbm,
            "octaves": self.octaves,
            "persistence": self.persistence,
            "lacunarity": self.lacunarity,
            "normalize": self.normalize,
            "power": self.power,
            "invert": self.invert,
            "kind": self.kind,
        }


def _hash2d(ix: np.ndarray, iy: np.ndarray, seed: int) -> np.ndarray:
    """Map integer lattice coordinates to uniform values in [0, 1]."""
    h = ix.astype(np.uint32) * _PRIME_X
    h ^= iy.astype(np.uint32) * _PRIME_Y
    h ^= np.uint32((int(seed) * 0x9E3779B1) & 0xFFFFFFFF)
    h ^= h >> np.uint32(16)
    h *= _MIX_A
    h ^= h >> np.uint32(15)
    h *= _MIX_B
    h ^= h >> np.uint32(16)
    return h.astype(np.float64) / _MAX_UINT32


def value_noise(x: np.ndarray, y: np.ndarray, seed: int) -> np.ndarray:
    """Single octave of lattice value noise in [0, 1]."""
    fx = np.floor(x)
    fy = np.floor(y)
    ix = fx.astype(np.int64)
    iy = fy.astype(np.int64)
    tx = x - fx
    ty = y - fy
    tx = tx * tx * (3.0 - 2.0 * tx)
    ty = ty * ty * (3.0 - 2.0 * ty)

    v00 = _hash2d(ix, iy, seed)
    v10 = _hash2d(ix + 1, iy, seed)
    v01 = _hash2d(ix, iy + 1, seed)
    v11 = _hash2d(ix + 1, iy + 1, seed)

    v0 = v00 + (v10 - v00) * tx
    v1 = v01 + (v11 - v01) * tx
    return v0 + (v1 - v0) * ty


def _perlin_shift(seed: int) -> Tuple[float, float]:
    """Per-seed shift of the Perlin sampling window."""
    lanes = np.array([0, 1], dtype=np.int64)
    shift = _hash2d(lanes, lanes[::-1], seed) * _PERLIN_SHIFT_SPAN
    return float(shift[0]), float(shift[1])


def perlin_noise(
    x: np.ndarray,
    y: np.ndarray,
    seed: int,
    octaves: int = 1,
    persistence: float = 0.5,
    lacunarity: float = 2.0,
) -> np.ndarray:
    """Gradient noise in roughly [-1, 1], FBM summed by ``pnoise2`` itself.

    The seed moves the sampling window instead of picking a permutation base,
    so every seed yields its own field.
    """
    shift_x, shift_y = _perlin_shift(seed)
    out = np.empty(x.shape, dtype=np.float64)
    flat_x = x.ravel()
    flat_y = y.ravel()
    flat_out = out.reshape(-1)
    for idx in range(flat_x.size):
        flat_out[idx] = pnoise2(
            float(flat_x[idx]) + shift_x,
            float(flat_y[idx]) + shift_y,
            octaves=octaves,
            persistence=persistence,
            lacunarity=lacunarity,
            repeatx=_PERLIN_REPEAT,
            repeaty=_PERLIN_REPEAT,
            base=0,
        )
    return out


_SAMPLERS = {
    "value": (value_noise, (0.0, 1.0)),
    "perlin": (perlin_noise, (-1.0, 1.0)),
}


class NoiseField:
    """Seeded noise sampler with optional FBM and output shaping.

    Identical ``(seed, x, y)`` always yields an identical value. Output passes
    through normalize, power, invert and amplitude, in that order.
    """

    def __init__(self, config: NoiseConfig | None = None, seed: int = 0) -> None:
        self.config = config or NoiseConfig()
        self._seed = int(seed)
        self._sampler, self._native_range = _SAMPLERS[self.config.kind]

    @property
    def seed(self) -> int:
        return self._seed

    def set_seed(self, seed: int) -> None:
        self._seed = int(seed)

    def sample(self, x: float, y: float) -> float:
        return float(self.sample_many(np.array([x]), np.array([y]))[0])

    def sample_many(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorised :meth:`sample` over broadcastable coordinate arrays."""
        xs, ys = np.broadcast_arrays(np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64))
        shape = xs.shape
        xs = np.atleast_1d(xs).ravel()
        ys = np.atleast_1d(ys).ravel()
        cfg = self.config
        nx = (xs + cfg.offset[0]) * cfg.frequency
        ny = (ys + cfg.offset[1]) * cfg.frequency
        seed = self._seed + cfg.seed_offset
        if cfg.kind == "perlin":
            octaves = cfg.octaves if cfg.use_fbm else 1
            raw = perlin_noise(nx, ny, seed, octaves, cfg.persistence, cfg.lacunarity)
        elif cfg.use_fbm and cfg.octaves > 1:
            raw = self._fbm(nx, ny, seed)
        else:
            raw = self._sampler(nx, ny, seed)
        return self._post_process(raw).reshape(shape)

    def _fbm(self, nx: np.ndarray, ny: np.ndarray, seed: int) -> np.ndarray:
        cfg = self.config
        total = np.zeros_like(nx)
        amplitude = 1.0
        frequency = 1.0
        max_amplitude = 0.0
        for octave in range(cfg.octaves):
            octave_seed = seed + octave * _OCTAVE_SEED_STEP
            total += self._sampler(nx * frequency, ny * frequency, octave_seed) * amplitude
            max_amplitude += amplitude
            amplitude *= cfg.persistence
            frequency *= cfg.lacunarity
        return total / max_amplitude

    def _post_process(self, value: np.ndarray) -> np.ndarray:
        cfg = self.config
        if cfg.normalize:
            low, high = self._native_range
            value = np.clip((value - low) / (high - low), 0.0, 1.0)
        if cfg.power != 1.0:
            value = np.power(np.clip(value, 0.0, 1.0), cfg.power)
        if cfg.invert:
            value = 1.0 - value
        return value * cfg.amplitude


__all__ = ["NOISE_KINDS", "NoiseConfig", "NoiseField", "perlin_noise", "value_noise"]
