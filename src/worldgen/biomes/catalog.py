"""Static per-biome parameters."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..noise import NoiseConfig
from ..scatter.rules import BiomeScatter, ScatterRule, parse_biome_scatter, resolve_layers

Color = Tuple[int, int, int]

_RECOMMENDED_TRANSITION_SLOPE = 25.0
_MAX_TRANSITION_SLOPE = 40.0


@dataclass(frozen=True)
class VegetationLayer:
    """Density of one detail layer inside a biome.

    ``noise`` masks the density with a noise field; cells at or below
    ``noise_threshold`` stay bare. ``slope_falloff`` is the slope in degrees
    where density reaches zero, ``height_range`` a world-height window and
    ``edge_falloff`` the density lost at the cell border.
    """

    layer: int
    density: float = 0.5
    allowed_layers: Tuple[int, ...] = ()
    noise: Optional[NoiseConfig] = None
    noise_threshold: float = 0.0
    slope_falloff: Optional[float] = None
    height_range: Optional[Tuple[float, float]] = None
    edge_falloff: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.density <= 1.0:
            raise ValueError(f"Vegetation density must be within [0, 1], got {self.density}")
        if not 0.0 <= self.edge_falloff <= 1.0:
            raise ValueError(f"Vegetation edge_falloff must be within [0, 1], got {self.edge_falloff}")
        if self.slope_falloff is not None and self.slope_falloff <= 0.0:
            raise ValueError("Vegetation slope_falloff must be positive")
        if self.height_range is not None and self.height_range[0] > self.height_range[1]:
            raise ValueError(f"Vegetation height_range {self.height_range} is inverted")

    @property
    def uses_terrain(self) -> bool:
        return self.slope_falloff is not None or self.height_range is not None

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], layer_lookup: Mapping[str, int] | None, biome_name: str
    ) -> "VegetationLayer":
        if not isinstance(mapping, Mapping) or "layer" not in mapping:
            raise ValueError(f"Vegetation entries of biome '{biome_name}' need a 'layer'")
        height_range = mapping.get("height_range")
        if height_range is not None:
            if len(height_range) != 2:
                raise ValueError(f"Vegetation height_range of biome '{biome_name}' needs two values")
            height_range = (float(height_range[0]), float(height_range[1]))
        slope_falloff = mapping.get("slope_falloff")
        return cls(
            layer=int(mapping["layer"]),
            density=float(mapping.get("density", cls.density)),
            allowed_layers=resolve_layers(
                mapping.get("allowed_layers", ()), layer_lookup, f"{biome_name}.vegetation.allowed_layers"
            ),
            noise=NoiseConfig.from_mapping(mapping["noise"]) if mapping.get("noise") else None,
            noise_threshold=float(mapping.get("noise_threshold", cls.noise_threshold)),
            slope_falloff=float(slope_falloff) if slope_falloff is not None else None,
            height_range=height_range,
            edge_falloff=float(mapping.get("edge_falloff", cls.edge_falloff)),
        )


@dataclass(frozen=True)
class BiomeDefinition:
    """Static parameters of one biome type.

    Water bodies ignore ``base_height`` and the clearance floor; they are
    carved from just below ``water_level`` down to ``water_depth`` under it.
    """

    name: str
    weight: float = 1.0
    base_height: float = 10.0
    height_variation: float = 5.0
    min_clearance_above_water: float = 0.5
    height_noise: NoiseConfig = field(default_factory=NoiseConfig)
    base_layer: int = 0
    debug_color: Color = (128, 128, 128)
    vegetation: Tuple[VegetationLayer, ...] = ()
    scatters: Tuple[BiomeScatter, ...] = ()
    is_water_body: bool = False
    water_depth: float = 3.0
    shore_steepness: float = 0.5

    def __post_init__(self) -> None:
        if self.water_depth < 0.0:
            raise ValueError(f"Biome '{self.name}' water_depth must be >= 0")
        if not 0.0 <= self.shore_steepness <= 1.0:
            raise ValueError(f"Biome '{self.name}' shore_steepness must be within [0, 1]")

    @property
    def min_height(self) -> float:
        return self.base_height

    @property
    def max_height(self) -> float:
        return self.base_height + self.height_variation * self.height_noise.amplitude

    @classmethod
    def from_mapping(
        cls,
        name: str,
        mapping: Mapping[str, Any],
        *,
        scatter_rules: Mapping[str, ScatterRule] | None = None,
        layer_lookup: Mapping[str, int] | None = None,
    ) -> "BiomeDefinition":
        mapping = mapping or {}
        if not isinstance(mapping, Mapping):
            raise TypeError(f"Biome '{name}' must be a mapping, got {type(mapping)!r}")
        base_layer = resolve_layers([mapping.get("base_layer", 0)], layer_lookup, f"{name}.base_layer")[0]
        color = mapping.get("debug_color", cls.debug_color)
        if len(color) != 3:
            raise ValueError(f"Biome '{name}' debug_color must be an RGB triple")
        vegetation = [
            VegetationLayer.from_mapping(entry, layer_lookup, name) for entry in mapping.get("vegetation", ()) or ()
        ]
        scatters = [
            parse_biome_scatter(entry, scatter_rules or {}, name) for entry in mapping.get("scatter", ()) or ()
        ]
        return cls(
            name=str(name),
            weight=float(mapping.get("weight", cls.weight)),
            base_height=float(mapping.get("base_height", cls.base_height)),
            height_variation=float(mapping.get("height_variation", cls.height_variation)),
            min_clearance_above_water=float(
                mapping.get("min_clearance_above_water", cls.min_clearance_above_water)
            ),
            height_noise=NoiseConfig.from_mapping(mapping.get("height_noise")),
            base_layer=base_layer,
            debug_color=(int(color[0]), int(color[1]), int(color[2])),
            vegetation=tuple(vegetation),
            scatters=tuple(scatters),
            is_water_body=bool(mapping.get("is_water_body", cls.is_water_body)),
            water_depth=float(mapping.get("water_depth", cls.water_depth)),
            shore_steepness=float(mapping.get("shore_steepness", cls.shore_steepness)),
        )


@dataclass
class CatalogValidation:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class BiomeCatalog:
    """Ordered, name-addressable collection of biome definitions."""

    def __init__(self, biomes: Sequence[BiomeDefinition] = (), texture_layers: Sequence[str] = ()) -> None:
        self._biomes: Dict[str, BiomeDefinition] = {}
        for biome in biomes:
            if biome.name in self._biomes:
                raise ValueError(f"Biome '{biome.name}' defined twice")
            self._biomes[biome.name] = biome
        self.texture_layers: Tuple[str, ...] = tuple(texture_layers)

    def __len__(self) -> int:
        return len(self._biomes)

    def __iter__(self) -> Iterator[BiomeDefinition]:
        return iter(self._biomes.values())

    def __contains__(self, name: object) -> bool:
        return name in self._biomes

    def get(self, name: str) -> BiomeDefinition:
        try:
            return self._biomes[name]
        except KeyError as exc:
            raise KeyError(f"Unknown biome '{name}'") from exc

    def index_of(self, name: str) -> int:
        return list(self._biomes).index(name)

    def types(self) -> List[str]:
        return list(self._biomes)

    def weights(self) -> List[float]:
        return [biome.weight for biome in self._biomes.values()]

    def validate(
        self,
        terrain_height: float,
        blend_width: float,
        water_level: float = 0.0,
        layer_count: Optional[int] = None,
    ) -> CatalogValidation:
        """Check heights, layers and pairwise transition slopes."""
        result = CatalogValidation()
        layer_count = layer_count if layer_count is not None else len(self.texture_layers) or None
        if not self._biomes:
            result.errors.append("Catalog has no biomes")
        for biome in self:
            if biome.weight <= 0:
                result.warnings.append(f"{biome.name}: weight {biome.weight} means it is never selected")
            if biome.base_height < 0:
                result.errors.append(f"{biome.name}: negative base height {biome.base_height}")
            if biome.max_height > terrain_height:
                result.warnings.append(
                    f"{biome.name}: max height {biome.max_height:.1f} exceeds terrain height {terrain_height:.1f}"
                )
            if biome.is_water_body:
                if water_level <= 0.0:
                    result.warnings.append(f"{biome.name}: water body needs a positive water_level")
            elif water_level > 0.0 and biome.min_height < water_level + biome.min_clearance_above_water:
                result.warnings.append(
                    f"{biome.name}: min height {biome.min_height:.1f} may go below water clearance"
                )
            if layer_count is not None:
                layers = [biome.base_layer] + [veg_layer for veg in biome.vegetation for veg_layer in veg.allowed_layers]
                for layer in layers:
                    if not 0 <= layer < layer_count:
                        result.errors.append(f"{biome.name}: texture layer {layer} outside palette of {layer_count}")

        biomes = [biome for biome in self if not biome.is_water_body]
        for idx, source in enumerate(biomes):
            for target in biomes[idx + 1 :]:
                diff = max(
                    abs(source.max_height - target.min_height),
                    abs(source.min_height - target.max_height),
                )
                slope = math.degrees(math.atan2(diff, max(blend_width, 1e-6)))
                label = f"{source.name} -> {target.name}"
                if slope > _MAX_TRANSITION_SLOPE:
                    result.errors.append(f"{label}: transition slope {slope:.1f} deg exceeds {_MAX_TRANSITION_SLOPE}")
                elif slope > _RECOMMENDED_TRANSITION_SLOPE:
                    result.warnings.append(f"{label}: transition slope {slope:.1f} deg above {_RECOMMENDED_TRANSITION_SLOPE}")
        return result


__all__ = ["BiomeCatalog", "BiomeDefinition", "CatalogValidation", "VegetationLayer"]
