"""Mutable state shared by the phases of one generation run."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import time
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Protocol

import numpy as np

from ..errors import GenerationCancelled
from ..memory import ArrayHandle, MemoryArena
from ..rng import RngPool, WorldRandom
from ..terrain import Bounds, TerrainResource
from .config import GenerationConfig
from .logging import RunLogger
from .models import SpawnRecord

if TYPE_CHECKING:
    from PIL import Image

    from ..biomes.biome_map import BiomeMap

logger = logging.getLogger(__name__)

_SEED_MASK = (1 << 64) - 1
_GRID_NAMES = ("heights", "splat", "detail")


class OverlaySink(Protocol):
    """Receives preview images produced while in artist mode."""

    def show_overlay(self, name: str, image: "Image.Image") -> None: ...
    def clear_overlay(self) -> None: ...


def resolve_seed(config: GenerationConfig) -> int:
    """Return the configured seed, drawing and persisting one when it is 0."""
    if config.seed:
        return int(config.seed)
    seed = time.time_ns() & 0x7FFFFFFF or 1
    config.seed = seed
    return seed


class GenerationContext:
    """Working grids, rollback snapshots and random streams for one run.

    Grid shapes are fixed at construction; assigning an array of another
    shape raises ``ValueError``.
    """

    def __init__(
        self,
        config: GenerationConfig,
        terrain: TerrainResource,
        *,
        logger: RunLogger | None = None,
        overlay_sink: OverlaySink | None = None,
        arena: MemoryArena | None = None,
        artist_mode: bool = False,
    ) -> None:
        self.config = config
        self.terrain = terrain
        self.logger = logger or RunLogger(None)
        self.arena = arena or MemoryArena()
        self.artist_mode = artist_mode
        self.seed = resolve_seed(config)
        self.bounds: Bounds = terrain.footprint().shrink(config.edge_margin)

        self._working: Dict[str, ArrayHandle] = {}
        self._original: Dict[str, ArrayHandle] = {}
        for name, grid in zip(_GRID_NAMES, (terrain.get_heights(), terrain.get_alphamaps(), terrain.get_details())):
            self._original[name] = self.arena.snapshot(f"original_{name}", grid)
            working = self.arena.allocate(name, grid.shape, dtype=grid.dtype)
            working.mutable_view()[...] = grid
            self._working[name] = working

        self._rng_pool = RngPool(self.seed)
        self._random = np.random.default_rng(self.seed & _SEED_MASK)
        self._overlay_sink = overlay_sink
        self._cancel_requested = False
        self.current_phase: Optional[str] = None
        self.biome_map: Optional["BiomeMap"] = None
        self.spawn_records: List[SpawnRecord] = []
        self.debug_overlay: Optional["Image.Image"] = None

    # Grids -----------------------------------------------------------

    @property
    def heights(self) -> np.ndarray:
        return self._working["heights"].mutable_view()

    @heights.setter
    def heights(self, values: np.ndarray) -> None:
        self._assign("heights", values)

    @property
    def splat(self) -> np.ndarray:
        return self._working["splat"].mutable_view()

    @splat.setter
    def splat(self, values: np.ndarray) -> None:
        self._assign("splat", values)

    @property
    def detail(self) -> np.ndarray:
        return self._working["detail"].mutable_view()

    @detail.setter
    def detail(self, values: np.ndarray) -> None:
        self._assign("detail", values)

    def original(self, name: str) -> np.ndarray:
        """Read-only snapshot taken when the context was created."""
        return self._original[name].array()

    def grid_shape(self, name: str) -> tuple:
        return self._working[name].shape

    def _assign(self, name: str, values: Any) -> None:
        values = np.asarray(values)
        shape = self._working[name].shape
        if values.shape != shape:
            raise ValueError(f"Grid '{name}' is fixed at shape {shape}; got {values.shape}")
        self._working[name].mutable_view()[...] = values

    def commit_heights(self) -> None:
        self.terrain.set_heights(self.heights)

    def commit_splat(self) -> None:
        self.terrain.set_alphamaps(self.splat)

    def commit_detail(self) -> None:
        self.terrain.set_details(self.detail)

    def restore_heights(self) -> None:
        self.heights = self.original("heights")
        self.commit_heights()

    def restore_splat(self) -> None:
        self.splat = self.original("splat")
        self.commit_splat()

    def restore_detail(self) -> None:
        self.detail = self.original("detail")
        self.commit_detail()

    def restore_all(self) -> None:
        self.restore_heights()
        self.restore_splat()
        self.restore_detail()

    def checksums(self) -> Dict[str, str]:
        return {name: handle.checksum() for name, handle in self._working.items()}

    # Index -> world --------------------------------------------------

    def world_x(self, cols: np.ndarray | int, resolution: int) -> np.ndarray:
        return self.bounds.index_to_world(cols, resolution, axis="x")

    def world_z(self, rows: np.ndarray | int, resolution: int) -> np.ndarray:
        return self.bounds.index_to_world(rows, resolution, axis="z")

    # Randomness ------------------------------------------------------

    def random_value(self) -> float:
        return float(self._random.random())

    def random_range(self, low: float, high: float) -> float:
        return float(low + (high - low) * self._random.random())

    def rng(self, *keys: object) -> np.random.Generator:
        """Independent stream for ``keys``; unaffected by other draws."""
        return self._rng_pool.stream(*keys)

    def world_random(self, *keys: object) -> WorldRandom:
        return WorldRandom(self.rng(*keys))

    # Interaction -----------------------------------------------------

    def set_debug_overlay(self, image: Optional["Image.Image"], name: str = "overlay") -> None:
        self.debug_overlay = image
        if self._overlay_sink is None:
            return
        if image is None:
            self._overlay_sink.clear_overlay()
        else:
            self._overlay_sink.show_overlay(name, image)

    def request_cancel(self) -> None:
        self._cancel_requested = True

    def clear_cancel(self) -> None:
        self._cancel_requested = False

    def check_cancelled(self) -> None:
        if self._cancel_requested:
            raise GenerationCancelled(f"Generation cancelled during '{self.current_phase}'")

    def log_info(self, message: str, *args: Any) -> None:
        if self.config.log_generation:
            logger.info(message, *args)

    @contextmanager
    def timed(self, label: str) -> Iterator[None]:
        start = time.perf_counter_ns()
        try:
            yield
        finally:
            end = time.perf_counter_ns()
            self.logger.log_event(
                {
                    "type": "timed_scope",
                    "phase": self.current_phase,
                    "label": label,
                    "duration_ns": end - start,
                }
            )


__all__ = ["GenerationContext", "OverlaySink", "resolve_seed"]
