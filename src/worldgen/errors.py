"""Exception types raised by the generator."""

from __future__ import annotations


class WorldGenError(Exception):
    """Base class for generator errors."""


class EmptyBiomeMapError(WorldGenError, LookupError):
    """Raised when a biome query is made against a map without cells."""


class GenerationCancelled(WorldGenError):
    """Raised inside a phase when the pipeline was asked to stop."""


class DegenerateInputWarning(UserWarning):
    """Category for configuration that produces an empty result."""


__all__ = [
    "WorldGenError",
    "EmptyBiomeMapError",
    "GenerationCancelled",
    "DegenerateInputWarning",
]
