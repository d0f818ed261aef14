"""Built-in generation phases, registered in execution order on import."""

from .biome_layout import BiomeLayoutPhase
from .scatter import ScatterPhase, scatter_group_id
from .splatmap_paint import SplatmapPaintPhase
from .terrain_sculpt import TerrainSculptPhase, limit_slopes
from .vegetation import VegetationPhase

__all__ = [
    "BiomeLayoutPhase",
    "ScatterPhase",
    "SplatmapPaintPhase",
    "TerrainSculptPhase",
    "VegetationPhase",
    "limit_slopes",
    "scatter_group_id",
]
