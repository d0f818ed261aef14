"""Configuration models for a generation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import uuid

import yaml

from ..biomes.biome_map import WarpConfig
from ..biomes.catalog import BiomeCatalog, BiomeDefinition
from ..scatter.rules import parse_scatter_rules


def _expand_dir(path: Path) -> Path:
    return Path(path).expanduser().resolve()


def _default_run_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"run-{timestamp}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class GlobalNoiseConfig:
    """Biome-independent height noise added on top of every land biome."""

    enabled: bool = False
    scale: float = 0.005
    amplitude: float = 6.0
    detail_scale: float = 0.05
    detail_amplitude: float = 0.5

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "GlobalNoiseConfig":
        if not mapping:
            return cls()
        return cls(
            enabled=bool(mapping.get("enabled", True)),
            scale=float(mapping.get("scale", cls.scale)),
            amplitude=float(mapping.get("amplitude", cls.amplitude)),
            detail_scale=float(mapping.get("detail_scale", cls.detail_scale)),
            detail_amplitude=float(mapping.get("detail_amplitude", cls.detail_amplitude)),
        )


@dataclass(frozen=True)
class RiverConfig:
    """Channels carved along borders between land biomes."""

    enabled: bool = False
    width: float = 6.0
    depth: float = 2.0
    border_chance: float = 1.0
    noise_scale: float = 0.008

    def __post_init__(self) -> None:
        if self.width <= 0:
            raise ValueError("River width must be positive")
        if self.depth < 0:
            raise ValueError("River depth must be >= 0")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "RiverConfig":
        if not mapping:
            return cls()
        return cls(
            enabled=bool(mapping.get("enabled", True)),
            width=float(mapping.get("width", cls.width)),
            depth=float(mapping.get("depth", cls.depth)),
            border_chance=float(mapping.get("border_chance", cls.border_chance)),
            noise_scale=float(mapping.get("noise_scale", cls.noise_scale)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "width": self.width,
            "depth": self.depth,
            "border_chance": self.border_chance,
            "noise_scale": self.noise_scale,
        }


@dataclass
class GenerationConfig:
    """Top-level configuration for a generation run.

    ``seed`` of ``0`` asks the context to draw a time-based seed; the drawn
    value is written back here so the run can be repeated.
    """

    catalog: BiomeCatalog
    seed: int = 0
    edge_margin: float = 10.0
    blend_width: float = 15.0
    min_cells: int = 8
    max_cells: int = 25
    warp: WarpConfig = field(default_factory=WarpConfig)
    blend_aware_sampling: bool = False
    sculpt_terrain: bool = True
    paint_splatmap: bool = True
    paint_vegetation: bool = True
    scatter_objects: bool = True
    water_level: float = 0.0
    global_noise: GlobalNoiseConfig = field(default_factory=GlobalNoiseConfig)
    rivers: RiverConfig = field(default_factory=RiverConfig)
    limit_slopes: bool = False
    max_slope_angle: float = 45.0
    slope_smoothing_passes: int = 4
    max_detail_density: int = 16
    scatter_bucket_size: float = 64.0
    log_generation: bool = True
    log_dir: Optional[Path] = None
    run_id: str = field(default_factory=_default_run_id)

    def __post_init__(self) -> None:
        if self.min_cells < 0:
            raise ValueError("min_cells must be >= 0")
        if self.max_cells < self.min_cells:
            raise ValueError(f"max_cells ({self.max_cells}) must be >= min_cells ({self.min_cells})")
        if self.edge_margin < 0:
            raise ValueError("edge_margin must be >= 0")
        if self.max_detail_density < 0:
            raise ValueError("max_detail_density must be >= 0")
        if self.scatter_bucket_size <= 0:
            raise ValueError("scatter_bucket_size must be positive")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "GenerationConfig":
        texture_layers = [str(name) for name in mapping.get("texture_layers", ())]
        layer_lookup = {name: idx for idx, name in enumerate(texture_layers)}
        rules = parse_scatter_rules(mapping.get("scatter_rules"), layer_lookup)

        raw_biomes = mapping.get("biomes", {})
        if isinstance(raw_biomes, Mapping):
            entries = list(raw_biomes.items())
        elif isinstance(raw_biomes, list):
            entries = []
            for entry in raw_biomes:
                if not isinstance(entry, Mapping) or "name" not in entry:
                    raise ValueError("Biome list entries must be mappings with a 'name'")
                entries.append((entry["name"], entry))
        else:
            raise TypeError(f"biomes must be a mapping or list, got {type(raw_biomes)!r}")
        biomes = [
            BiomeDefinition.from_mapping(str(name), entry or {}, scatter_rules=rules, layer_lookup=layer_lookup)
            for name, entry in entries
        ]
        catalog = BiomeCatalog(biomes, texture_layers)

        log_dir = mapping.get("log_dir")
        return cls(
            catalog=catalog,
            seed=int(mapping.get("seed", 0)),
            edge_margin=float(mapping.get("edge_margin", cls.edge_margin)),
            blend_width=float(mapping.get("blend_width", cls.blend_width)),
            min_cells=int(mapping.get("min_cells", cls.min_cells)),
            max_cells=int(mapping.get("max_cells", cls.max_cells)),
            warp=WarpConfig.from_mapping(mapping.get("warp")),
            blend_aware_sampling=bool(mapping.get("blend_aware_sampling", cls.blend_aware_sampling)),
            sculpt_terrain=bool(mapping.get("sculpt_terrain", cls.sculpt_terrain)),
            paint_splatmap=bool(mapping.get("paint_splatmap", cls.paint_splatmap)),
            paint_vegetation=bool(mapping.get("paint_vegetation", cls.paint_vegetation)),
            scatter_objects=bool(mapping.get("scatter_objects", cls.scatter_objects)),
            water_level=float(mapping.get("water_level", cls.water_level)),
            global_noise=GlobalNoiseConfig.from_mapping(mapping.get("global_noise")),
            rivers=RiverConfig.from_mapping(mapping.get("rivers")),
            limit_slopes=bool(mapping.get("limit_slopes", cls.limit_slopes)),
            max_slope_angle=float(mapping.get("max_slope_angle", cls.max_slope_angle)),
            slope_smoothing_passes=int(mapping.get("slope_smoothing_passes", cls.slope_smoothing_passes)),
            max_detail_density=int(mapping.get("max_detail_density", cls.max_detail_density)),
            scatter_bucket_size=float(mapping.get("scatter_bucket_size", cls.scatter_bucket_size)),
            log_generation=bool(mapping.get("log_generation", cls.log_generation)),
            log_dir=_expand_dir(Path(log_dir)) if log_dir else None,
            run_id=str(mapping.get("run_id") or _default_run_id()),
        )

    @classmethod
    def from_file(cls, path: Path | str) -> "GenerationConfig":
        path = Path(path).expanduser()
        if not path.exists():
            raise FileNotFoundError(path)
        with path.open("r", encoding="utf8") as fh:
            if path.suffix.lower() in {".yml", ".yaml"}:
                data = yaml.safe_load(fh)
            else:
                data = json.load(fh)
        if not isinstance(data, Mapping):
            raise TypeError(f"Configuration file must contain a mapping, got {type(data)!r}")
        return cls.from_mapping(data)

    def run_log_path(self) -> Optional[Path]:
        if self.log_dir is None:
            return None
        return _expand_dir(self.log_dir / f"{self.run_id}.jsonl")

    def to_dict(self) -> Dict[str, Any]:
        """Scalar settings for manifests; the catalog is summarised by name."""
        return {
            "seed": self.seed,
            "edge_margin": self.edge_margin,
            "blend_width": self.blend_width,
            "min_cells": self.min_cells,
            "max_cells": self.max_cells,
            "warp": self.warp.to_dict(),
            "blend_aware_sampling": self.blend_aware_sampling,
            "sculpt_terrain": self.sculpt_terrain,
            "paint_splatmap": self.paint_splatmap,
            "paint_vegetation": self.paint_vegetation,
            "scatter_objects": self.scatter_objects,
            "water_level": self.water_level,
            "rivers": self.rivers.to_dict(),
            "limit_slopes": self.limit_slopes,
            "max_slope_angle": self.max_slope_angle,
            "max_detail_density": self.max_detail_density,
            "scatter_bucket_size": self.scatter_bucket_size,
            "biomes": self.catalog.types(),
            "texture_layers": list(self.catalog.texture_layers),
            "run_id": self.run_id,
        }


DEFAULT_WORLD: Dict[str, Any] = {
    "texture_layers": ["grass", "dirt", "rock", "sand"],
    "scatter_rules": {
        "oak": {
            "density": 0.08,
            "min_spacing": 6.0,
            "scale_range": [0.8, 1.3],
            "children": [{"rule": "mushroom", "count_per_parent": [0, 2], "radius_min": 1.0, "radius_max": 3.0}],
        },
        "mushroom": {"density": 0.0, "min_spacing": 0.5, "max_attempts": 8, "scale_range": [0.5, 1.0]},
        "bush": {"density": 0.05, "min_spacing": 3.0, "cluster_size": [2, 5], "cluster_spread": 4.0},
        "rock": {"density": 0.02, "min_spacing": 4.0, "slope_range": [0.0, 60.0]},
        "cactus": {"density": 0.03, "min_spacing": 5.0, "allowed_layers": ["sand"]},
    },
    "biomes": {
        "plains": {
            "weight": 1.2,
            "base_height": 8.0,
            "height_variation": 4.0,
            "height_noise": {"frequency": 0.01, "octaves": 3},
            "base_layer": "grass",
            "debug_color": [124, 182, 82],
            "vegetation": [{"layer": 0, "density": 0.6}, {"layer": 1, "density": 0.15}],
            "scatter": ["bush", {"rule": "rock", "placement": "flat"}],
        },
        "forest": {
            "weight": 1.0,
            "base_height": 10.0,
            "height_variation": 5.0,
            "height_noise": {"frequency": 0.015, "octaves": 4},
            "base_layer": "dirt",
            "debug_color": [46, 110, 52],
            "vegetation": [{"layer": 0, "density": 0.35}],
            "scatter": ["oak", "rock"],
        },
        "hills": {
            "weight": 0.7,
            "base_height": 11.0,
            "height_variation": 7.0,
            "height_noise": {"frequency": 0.02, "octaves": 5, "power": 1.4},
            "base_layer": "rock",
            "debug_color": [140, 128, 110],
            "scatter": [{"rule": "rock", "slope_range": [0.0, 75.0]}],
        },
        "desert": {
            "weight": 0.5,
            "base_height": 6.0,
            "height_variation": 3.0,
            "height_noise": {"frequency": 0.008, "octaves": 2},
            "base_layer": "sand",
            "debug_color": [222, 200, 140],
            "scatter": ["cactus"],
        },
    },
}


def default_config(**overrides: Any) -> GenerationConfig:
    """Ready-to-run configuration with four biomes."""
    mapping = dict(DEFAULT_WORLD)
    mapping.update(overrides)
    return GenerationConfig.from_mapping(mapping)


def load_config(source: Path | str) -> GenerationConfig:
    """Convenience helper for CLI consumers."""
    return GenerationConfig.from_file(source)


__all__ = [
    "DEFAULT_WORLD",
    "GenerationConfig",
    "GlobalNoiseConfig",
    "RiverConfig",
    "default_config",
    "load_config",
]
