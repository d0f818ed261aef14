"""Base class for the steps of a generation run."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import time
from typing import TYPE_CHECKING, Optional

from .models import PhaseState, PhaseStats, Signal

if TYPE_CHECKING:
    from PIL import Image

    from .context import GenerationContext

logger = logging.getLogger(__name__)


class GenerationPhase(ABC):
    """One resumable, reversible step of the pipeline.

    ``execute`` never raises: failures are stored on :attr:`error` and the
    state becomes ``FAILED``. ``rollback`` restores only what the phase owns
    and may be called any number of times.
    """

    name: str = "phase"
    description: str = ""

    def __init__(self) -> None:
        self.state = PhaseState.PENDING
        self.progress = 0.0
        self.error: Optional[BaseException] = None
        self.stats: Optional[PhaseStats] = None
        self.skip_reason: Optional[str] = None
        self.progress_changed = Signal(f"{self.name}.progress_changed")
        self.state_changed = Signal(f"{self.name}.state_changed")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self.state.value}, progress={self.progress:.2f})"

    # State -----------------------------------------------------------

    def _set_state(self, state: PhaseState) -> None:
        if state is self.state:
            return
        self.state = state
        self.state_changed.emit(self, state)

    def report_progress(self, value: float) -> None:
        self.progress = min(max(float(value), 0.0), 1.0)
        self.progress_changed.emit(self, self.progress)

    def reset_state(self) -> None:
        self.error = None
        self.stats = None
        self.skip_reason = None
        self.progress = 0.0
        self._set_state(PhaseState.PENDING)

    # Preconditions ---------------------------------------------------

    def can_execute(self, ctx: "GenerationContext") -> bool:
        return self.validate_context(ctx) is None

    def validate_context(self, ctx: "GenerationContext") -> Optional[str]:
        """Reason the phase cannot run against ``ctx``, or ``None``."""
        return None

    # Lifecycle -------------------------------------------------------

    def execute(self, ctx: "GenerationContext") -> PhaseState:
        reason = self.validate_context(ctx)
        if reason is not None:
            self.skip_reason = reason
            self.progress = 0.0
            self._set_state(PhaseState.SKIPPED)
            ctx.log_info("Skipping phase '%s': %s", self.name, reason)
            return self.state

        self.error = None
        self.skip_reason = None
        self.progress = 0.0
        self._set_state(PhaseState.RUNNING)
        ctx.current_phase = self.name
        start_ns = time.perf_counter_ns()
        start_cpu = time.process_time_ns()
        try:
            self.execute_internal(ctx)
        except Exception as exc:
            logger.exception("Phase '%s' failed", self.name)
            self.error = exc
            self._set_state(PhaseState.FAILED)
        else:
            self.report_progress(1.0)
            self._set_state(PhaseState.COMPLETED)
        finally:
            end_ns = time.perf_counter_ns()
            self.stats = PhaseStats(
                start_ns=start_ns,
                end_ns=end_ns,
                duration_ns=end_ns - start_ns,
                cpu_time_ns=time.process_time_ns() - start_cpu,
                memory_bytes=ctx.arena.stats()["bytes_allocated"],
            )
            ctx.current_phase = None
        return self.state

    def rollback(self, ctx: "GenerationContext") -> None:
        try:
            self.rollback_internal(ctx)
        except Exception:
            logger.exception("Rollback of phase '%s' failed", self.name)
        ctx.set_debug_overlay(None)
        self.reset_state()

    def create_debug_overlay(self, ctx: "GenerationContext") -> Optional["Image.Image"]:
        """Preview image shown after the phase in artist mode."""
        return None

    @abstractmethod
    def execute_internal(self, ctx: "GenerationContext") -> None:
        """Run the transform; raising marks the phase as failed."""

    @abstractmethod
    def rollback_internal(self, ctx: "GenerationContext") -> None:
        """Undo this phase's writes to ``ctx``."""


__all__ = ["GenerationPhase"]
