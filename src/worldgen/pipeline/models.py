"""Core data models shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple


class PhaseState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PhaseStats:
    """Timing and resource metrics for a phase execution."""

    start_ns: int
    end_ns: int
    duration_ns: int
    cpu_time_ns: int
    memory_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_ns": self.start_ns,
            "end_ns": self.end_ns,
            "duration_ns": self.duration_ns,
            "cpu_time_ns": self.cpu_time_ns,
            "memory_bytes": self.memory_bytes,
        }


@dataclass(frozen=True)
class SpawnRecord:
    """One object placement handed over to an external spawner.

    ``position`` is ``(x, y, z)`` with ``y`` left at zero; snapping to the
    ground is the spawner's job. ``rotation`` is a yaw angle in degrees.
    """

    object_key: str
    position: Tuple[float, float, float]
    rotation: float
    scale: float
    group_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_key": self.object_key,
            "x": self.position[0],
            "y": self.position[1],
            "z": self.position[2],
            "rotation": self.rotation,
            "scale": self.scale,
            "group_id": self.group_id,
        }


class Signal:
    """Minimal synchronous event: handlers run in connection order."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: List[Callable[..., Any]] = []

    def connect(self, handler: Callable[..., Any]) -> Callable[..., Any]:
        self._handlers.append(handler)
        return handler

    def disconnect(self, handler: Callable[..., Any]) -> None:
        self._handlers.remove(handler)

    def emit(self, *args: Any) -> None:
        for handler in list(self._handlers):
            handler(*args)

    def __len__(self) -> int:
        return len(self._handlers)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, handlers={len(self._handlers)})"


__all__ = ["PhaseState", "PhaseStats", "Signal", "SpawnRecord"]
