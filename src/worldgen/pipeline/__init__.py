"""Phase-based generation pipeline."""

from .config import (
    DEFAULT_WORLD,
    GenerationConfig,
    GlobalNoiseConfig,
    RiverConfig,
    default_config,
    load_config,
)
from .context import GenerationContext, OverlaySink
from .dataset import DatasetWriter, read_spawn_records
from .execution import GenerationPipeline
from .logging import RunLogger
from .models import PhaseState, PhaseStats, Signal, SpawnRecord
from .phase import GenerationPhase
from .phases import BiomeLayoutPhase, ScatterPhase, SplatmapPaintPhase, TerrainSculptPhase, VegetationPhase
from .registry import PhaseDescriptor, PhaseRegistry, phase, registry
from .visualization import VisualManager

__all__ = [
    "BiomeLayoutPhase",
    "DEFAULT_WORLD",
    "DatasetWriter",
    "GenerationConfig",
    "GenerationContext",
    "GenerationPhase",
    "GenerationPipeline",
    "GlobalNoiseConfig",
    "OverlaySink",
    "PhaseDescriptor",
    "PhaseRegistry",
    "PhaseState",
    "PhaseStats",
    "RiverConfig",
    "RunLogger",
    "ScatterPhase",
    "Signal",
    "SpawnRecord",
    "SplatmapPaintPhase",
    "TerrainSculptPhase",
    "VegetationPhase",
    "VisualManager",
    "default_config",
    "load_config",
    "phase",
    "read_spawn_records",
    "registry",
]
