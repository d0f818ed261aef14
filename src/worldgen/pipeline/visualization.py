"""PNG previews of biome layouts and terrain grids."""

from __future__ import annotations

from dataclasses import dataclass
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

import numpy as np
from PIL import Image

from ..terrain import Bounds

if TYPE_CHECKING:
    from ..biomes.biome_map import BiomeMap

# Fallback colours for splat layers, cycled when there are more layers.
_LAYER_PALETTE = np.array(
    [
        (96, 160, 64),
        (130, 100, 70),
        (150, 150, 150),
        (220, 200, 140),
        (70, 110, 170),
        (200, 200, 210),
    ],
    dtype=np.float64,
)


@dataclass(frozen=True)
class VisualizationResult:
    path: Path
    name: str
    metadata: dict[str, Any]


class VisualManager:
    """Saves overlay images as PNG files; usable as a pipeline overlay sink."""

    def __init__(self, output_root: Path) -> None:
        self._output_root = Path(output_root)
        self._output_root.mkdir(parents=True, exist_ok=True)
        self.results: List[VisualizationResult] = []
        self.current: Optional[Image.Image] = None

    @property
    def output_root(self) -> Path:
        return self._output_root

    def save(self, name: str, image: Image.Image) -> VisualizationResult:
        path = self._output_root / f"{name}.png"
        image.save(path)
        result = VisualizationResult(path=path, name=name, metadata={"size": image.size, "mode": image.mode})
        self.results.append(result)
        return result

    def show_overlay(self, name: str, image: Image.Image) -> None:
        self.current = image
        self.save(name, image)

    def clear_overlay(self) -> None:
        self.current = None


def render_biome_map(
    biome_map: "BiomeMap",
    bounds: Bounds,
    resolution: int = 128,
    mark_centers: bool = True,
) -> Image.Image:
    """Biome debug colours blended by weight, with cell centres marked."""
    colors = np.array(
        [biome_map.catalog.get(cell.biome_type).debug_color for cell in biome_map.cells], dtype=np.float64
    )
    cols = np.arange(resolution)
    xs = bounds.index_to_world(cols, resolution, axis="x")
    rgb = np.zeros((resolution, resolution, 3), dtype=np.float64)
    for row in range(resolution):
        zs = np.full(resolution, bounds.index_to_world(row, resolution, axis="z"), dtype=np.float64)
        batch = biome_map.query_many(xs, zs)
        pixel = colors[batch.primary_cell] * batch.primary_weight[:, None]
        blending = batch.secondary_weight > 0.0
        pixel[blending] += colors[batch.secondary_cell[blending]] * batch.secondary_weight[blending, None]
        rgb[row] = pixel
    if mark_centers and bounds.size_x > 0 and bounds.size_z > 0:
        for cell in biome_map.cells:
            col = int(round((cell.center[0] - bounds.min_x) / bounds.size_x * (resolution - 1)))
            row = int(round((cell.center[1] - bounds.min_z) / bounds.size_z * (resolution - 1)))
            rgb[max(row - 1, 0) : row + 2, max(col - 1, 0) : col + 2] = 0.0
    return Image.fromarray(np.clip(rgb, 0, 255).astype(np.uint8))


def render_heightmap(heights: np.ndarray, normalized: bool = True) -> Image.Image:
    """Greyscale heights; ``normalized`` heights map ``[0, 1]`` directly."""
    heights = np.asarray(heights, dtype=np.float64)
    if normalized:
        data = (np.clip(heights, 0.0, 1.0) * 255).astype(np.uint8)
    else:
        data = _normalize_array(heights)
    return Image.fromarray(data)


def render_splatmap(splat: np.ndarray, palette: Optional[Sequence[Sequence[int]]] = None) -> Image.Image:
    """Weighted sum of per-layer colours."""
    splat = np.asarray(splat, dtype=np.float64)
    layers = splat.shape[2]
    colors = np.asarray(palette, dtype=np.float64) if palette is not None else _LAYER_PALETTE
    colors = colors[np.arange(layers) % len(colors)]
    rgb = np.tensordot(splat, colors, axes=([2], [0]))
    return Image.fromarray(np.clip(rgb, 0, 255).astype(np.uint8))


def render_detail(detail: np.ndarray, max_density: int) -> Image.Image:
    """Detail layers summed and scaled so a full cell reads white."""
    detail = np.asarray(detail, dtype=np.float64)
    total = detail.sum(axis=0)
    ceiling = max(max_density, 1) * max(detail.shape[0], 1)
    data = (np.clip(total / ceiling, 0.0, 1.0) * 255).astype(np.uint8)
    return Image.fromarray(data)


def _normalize_array(array: np.ndarray) -> np.ndarray:
    array = np.asarray(array, dtype=np.float64)
    finite = array[np.isfinite(array)]
    if finite.size == 0:
        return np.zeros_like(array, dtype=np.uint8)
    low = float(np.percentile(finite, 2))
    high = float(np.percentile(finite, 98))
    if math.isclose(low, high):
        high = low + 1.0
    scaled = np.clip((array - low) / (high - low), 0.0, 1.0)
    return (scaled * 255).astype(np.uint8)


__all__ = [
    "VisualManager",
    "VisualizationResult",
    "render_biome_map",
    "render_detail",
    "render_heightmap",
    "render_splatmap",
]
