from __future__ import annotations

import copy

import pytest

from worldgen.biomes import BiomeCatalog, BiomeDefinition
from worldgen.noise import NoiseConfig
from worldgen.pipeline import GenerationConfig
from worldgen.terrain import GridTerrain

SMALL_WORLD = {
    "seed": 42,
    "edge_margin": 0.0,
    "blend_width": 8.0,
    "min_cells": 4,
    "max_cells": 6,
    "texture_layers": ["grass", "rock"],
    "scatter_rules": {
        "tree": {"density": 0.2, "min_spacing": 4.0, "slope_range": [0, 90], "height_range": [0, 100]},
        "bush": {
            "density": 0.1,
            "min_spacing": 2.0,
            "cluster_size": [2, 4],
            "cluster_spread": 3.0,
            "slope_range": [0, 90],
            "height_range": [0, 100],
        },
    },
    "biomes": {
        "meadow": {
            "base_height": 5.0,
            "height_variation": 2.0,
            "base_layer": "grass",
            "vegetation": [{"layer": 0, "density": 0.7}],
            "scatter": ["tree"],
        },
        "crag": {
            "base_height": 8.0,
            "height_variation": 3.0,
            "base_layer": "rock",
            "vegetation": [{"layer": 1, "density": 0.3}],
            "scatter": ["bush"],
        },
    },
}


@pytest.fixture
def world_mapping():
    return copy.deepcopy(SMALL_WORLD)


@pytest.fixture
def small_config(world_mapping) -> GenerationConfig:
    return GenerationConfig.from_mapping(world_mapping)


@pytest.fixture
def small_terrain() -> GridTerrain:
    return GridTerrain(size=(64.0, 20.0, 64.0), heightmap_resolution=17, alphamap_layers=2, detail_layers=2)


@pytest.fixture
def two_biome_catalog() -> BiomeCatalog:
    flat = NoiseConfig(frequency=0.05, use_fbm=False)
    return BiomeCatalog(
        [
            BiomeDefinition("a", weight=1.0, base_height=2.0, height_variation=1.0, height_noise=flat),
            BiomeDefinition("b", weight=1.0, base_height=4.0, height_variation=1.0, height_noise=flat, base_layer=1),
        ],
        texture_layers=("grass", "rock"),
    )
