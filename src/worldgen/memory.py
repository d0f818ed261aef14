"""Aligned buffer arena backing terrain grids and rollback snapshots."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import threading
import uuid
from typing import Any, Tuple

import numpy as np

DEFAULT_ALIGNMENT = 64


def _aligned_empty(shape: Tuple[int, ...], dtype: np.dtype, alignment: int) -> tuple[np.ndarray, np.ndarray]:
    """Allocate an aligned ndarray and return both the view and owning buffer."""
    dtype = np.dtype(dtype)
    size = int(np.prod(shape, dtype=np.int64)) * dtype.itemsize
    raw = np.empty(size + alignment, dtype=np.uint8)
    offset = (-raw.ctypes.data) % alignment
    buffer = raw[offset : offset + size]
    array = np.frombuffer(buffer, dtype=dtype).reshape(shape)
    return array, raw


@dataclass
class ArenaAllocation:
    key: str
    name: str
    array: np.ndarray
    base_buffer: np.ndarray
    dtype: np.dtype
    shape: Tuple[int, ...]
    sealed: bool = False

    def bytes(self) -> int:
        return int(self.array.nbytes)


class MemoryArena:
    """Owns the grid buffers of a terrain and the snapshots taken from them."""

    def __init__(self, alignment: int = DEFAULT_ALIGNMENT) -> None:
        self._alignment = alignment
        self._allocations: dict[str, ArenaAllocation] = {}
        self._lock = threading.Lock()
        self._bytes_allocated = 0

    def allocate(
        self, name: str, shape: Tuple[int, ...], dtype: np.dtype = np.float32, fill: Any = 0
    ) -> "ArrayHandle":
        shape_tuple = tuple(int(dim) for dim in shape)
        if not shape_tuple or any(dim <= 0 for dim in shape_tuple):
            raise ValueError(f"Allocation '{name}' needs a positive shape, got {shape_tuple}")
        dtype = np.dtype(dtype)
        array, base = _aligned_empty(shape_tuple, dtype, self._alignment)
        array[...] = fill
        key = uuid.uuid4().hex
        allocation = ArenaAllocation(
            key=key,
            name=name,
            array=array,
            base_buffer=base,
            dtype=dtype,
            shape=shape_tuple,
        )
        with self._lock:
            self._allocations[key] = allocation
            self._bytes_allocated += allocation.bytes()
        return ArrayHandle(self, key)

    def snapshot(self, name: str, source: np.ndarray) -> "ArrayHandle":
        """Copy ``source`` into a new allocation and seal it."""
        source = np.asarray(source)
        handle = self.allocate(name, source.shape, dtype=source.dtype)
        handle.mutable_view()[...] = source
        handle.seal()
        return handle

    def _get_allocation(self, key: str) -> ArenaAllocation:
        try:
            return self._allocations[key]
        except KeyError as exc:
            raise KeyError(f"Unknown allocation key {key}") from exc

    def seal(self, key: str) -> None:
        with self._lock:
            allocation = self._get_allocation(key)
            if allocation.sealed:
                return
            allocation.array.setflags(write=False)
            allocation.sealed = True

    def release(self, key: str) -> None:
        with self._lock:
            allocation = self._allocations.pop(key, None)
            if allocation:
                self._bytes_allocated -= allocation.bytes()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "allocations": len(self._allocations),
                "bytes_allocated": self._bytes_allocated,
                "alignment": self._alignment,
            }


class ArrayHandle:
    """Reference to an arena allocation."""

    __slots__ = ("_arena", "_key")

    def __init__(self, arena: MemoryArena, key: str) -> None:
        self._arena = arena
        self._key = key

    @property
    def name(self) -> str:
        return self._arena._get_allocation(self._key).name

    @property
    def sealed(self) -> bool:
        return self._arena._get_allocation(self._key).sealed

    def mutable_view(self) -> np.ndarray:
        allocation = self._arena._get_allocation(self._key)
        if allocation.sealed:
            raise RuntimeError(f"Allocation '{allocation.name}' is sealed; cannot request mutable view")
        allocation.array.setflags(write=True)
        return allocation.array

    def array(self) -> np.ndarray:
        """Read-only view of the allocation."""
        allocation = self._arena._get_allocation(self._key)
        view = allocation.array.view()
        view.setflags(write=False)
        return view

    def copy(self) -> np.ndarray:
        return np.array(self.array(), copy=True)

    def seal(self) -> None:
        self._arena.seal(self._key)

    def release(self) -> None:
        self._arena.release(self._key)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._arena._get_allocation(self._key).shape

    @property
    def dtype(self) -> np.dtype:
        return self._arena._get_allocation(self._key).dtype

    def checksum(self) -> str:
        hasher = hashlib.blake2b()
        hasher.update(np.ascontiguousarray(self.array()).tobytes())
        return hasher.hexdigest()

    def __array__(self, dtype=None, copy=None) -> np.ndarray:  # pragma: no cover - implicit numpy bridge
        array = self.array()
        return array if dtype is None else array.astype(dtype)

    def __repr__(self) -> str:
        allocation = self._arena._get_allocation(self._key)
        state = "sealed" if allocation.sealed else "mutable"
        return f"ArrayHandle({allocation.name!r}, shape={allocation.shape}, dtype={allocation.dtype}, {state})"


def checksum_array(array: np.ndarray) -> str:
    hasher = hashlib.blake2b()
    hasher.update(np.ascontiguousarray(array).tobytes())
    return hasher.hexdigest()


__all__ = ["ArrayHandle", "MemoryArena", "checksum_array"]
