"""Phase registration and ordering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Type

if TYPE_CHECKING:
    from .phase import GenerationPhase

PhaseFactory = Callable[[], "GenerationPhase"]


@dataclass(frozen=True)
class PhaseDescriptor:
    name: str
    order: int
    factory: PhaseFactory
    description: Optional[str] = None


class PhaseRegistry:
    """Registry of phase classes, iterated in ``order``."""

    def __init__(self) -> None:
        self._phases: Dict[str, PhaseDescriptor] = {}

    def register(self, descriptor: PhaseDescriptor) -> None:
        if descriptor.name in self._phases:
            raise ValueError(f"Phase '{descriptor.name}' already registered")
        for existing in self._phases.values():
            if existing.order == descriptor.order:
                raise ValueError(
                    f"Phase '{descriptor.name}' uses order {descriptor.order} already taken by '{existing.name}'"
                )
        self._phases[descriptor.name] = descriptor

    def get(self, name: str) -> PhaseDescriptor:
        try:
            return self._phases[name]
        except KeyError as exc:
            raise KeyError(f"Unknown phase '{name}'") from exc

    def unregister(self, name: str) -> None:
        self._phases.pop(name, None)

    def ordered(self) -> List[PhaseDescriptor]:
        return sorted(self._phases.values(), key=lambda descriptor: descriptor.order)

    def create_phases(self) -> List["GenerationPhase"]:
        return [descriptor.factory() for descriptor in self.ordered()]

    def __contains__(self, name: str) -> bool:
        return name in self._phases


_REGISTRY = PhaseRegistry()


def phase(
    name: str, order: int, *, description: str | None = None
) -> Callable[[Type["GenerationPhase"]], Type["GenerationPhase"]]:
    """Class decorator registering a generation phase."""

    def decorator(cls: Type["GenerationPhase"]) -> Type["GenerationPhase"]:
        _REGISTRY.register(
            PhaseDescriptor(
                name=name,
                order=order,
                factory=cls,
                description=description or cls.description or (cls.__doc__ or "").strip() or None,
            )
        )
        return cls

    return decorator


def registry() -> PhaseRegistry:
    return _REGISTRY


__all__ = ["PhaseDescriptor", "PhaseRegistry", "phase", "registry"]
