"""Biome catalog, Voronoi partition and biome queries."""

from .biome_map import (
    BiomeCell,
    BiomeMap,
    BiomeQuery,
    BiomeQueryBatch,
    WarpConfig,
    WarpedDistance,
    euclidean_distance,
)
from .catalog import BiomeCatalog, BiomeDefinition, CatalogValidation, VegetationLayer
from .voronoi import VoronoiBiomeGenerator

__all__ = [
    "BiomeCatalog",
    "BiomeCell",
    "BiomeDefinition",
    "BiomeMap",
    "BiomeQuery",
    "BiomeQueryBatch",
    "CatalogValidation",
    "VegetationLayer",
    "VoronoiBiomeGenerator",
    "WarpConfig",
    "WarpedDistance",
    "euclidean_distance",
]
