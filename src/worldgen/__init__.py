"""Deterministic, phase-based procedural world generation."""

from .biomes import BiomeCatalog, BiomeDefinition, BiomeMap, BiomeQuery, VoronoiBiomeGenerator
from .noise import NoiseConfig, NoiseField
from .pipeline import GenerationConfig, GenerationPipeline, PhaseState, SpawnRecord
from .terrain import Bounds, GridTerrain

__all__ = [
    "BiomeCatalog",
    "BiomeDefinition",
    "BiomeMap",
    "BiomeQuery",
    "Bounds",
    "GenerationConfig",
    "GenerationPipeline",
    "GridTerrain",
    "NoiseConfig",
    "NoiseField",
    "PhaseState",
    "SpawnRecord",
    "VoronoiBiomeGenerator",
]
__version__ = "0.1.0"
