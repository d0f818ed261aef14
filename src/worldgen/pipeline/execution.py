"""Pipeline driver: ordered phases, artist-mode pausing and rollback."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..terrain import TerrainResource
from . import phases as _phases  # noqa: F401  registers the built-in phases
from .config import GenerationConfig
from .context import GenerationContext, OverlaySink
from .logging import RunLogger
from .models import PhaseState, Signal
from .phase import GenerationPhase
from .registry import registry

logger = logging.getLogger(__name__)


class GenerationPipeline:
    """Runs generation phases in order against one context.

    In artist mode the pipeline pauses after every completed phase and shows
    that phase's preview on the overlay sink; :meth:`continue_` resumes.
    Skipped phases never pause. A failed phase stops the run until a
    :meth:`rollback_to` below it or a :meth:`reset`.
    """

    def __init__(
        self,
        phases: Optional[Sequence[GenerationPhase]] = None,
        overlay_sink: Optional[OverlaySink] = None,
    ) -> None:
        self.phases: List[GenerationPhase] = list(phases) if phases is not None else registry().create_phases()
        self.overlay_sink = overlay_sink
        self._context: Optional[GenerationContext] = None
        self._logger: Optional[RunLogger] = None
        self._current_index = -1
        self._running = False
        self._paused = False
        self._completed = False

        self.phase_started = Signal("phase_started")
        self.phase_completed = Signal("phase_completed")
        self.phase_failed = Signal("phase_failed")
        self.phase_progress = Signal("phase_progress")
        self.pipeline_started = Signal("pipeline_started")
        self.pipeline_completed = Signal("pipeline_completed")
        self.pipeline_paused = Signal("pipeline_paused")
        self.pipeline_reset = Signal("pipeline_reset")
        for phase in self.phases:
            phase.progress_changed.connect(self.phase_progress.emit)

    # Properties ------------------------------------------------------

    @property
    def context(self) -> Optional[GenerationContext]:
        return self._context

    @property
    def current_phase_index(self) -> int:
        return self._current_index

    @property
    def current_phase(self) -> Optional[GenerationPhase]:
        if 0 <= self._current_index < len(self.phases):
            return self.phases[self._current_index]
        return None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_completed(self) -> bool:
        return self._completed

    # Control ---------------------------------------------------------

    def begin(
        self, config: GenerationConfig, terrain: TerrainResource, artist_mode: bool = False
    ) -> GenerationContext:
        if self._running and self._context is not None:
            logger.warning("Pipeline already running; ignoring begin()")
            return self._context
        if self._logger is not None:
            self._logger.close()
        for phase in self.phases:
            phase.reset_state()

        self._logger = RunLogger(config.run_log_path())
        self._context = GenerationContext(
            config, terrain, logger=self._logger, overlay_sink=self.overlay_sink, artist_mode=artist_mode
        )
        self._current_index = -1
        self._paused = False
        self._running = True
        self._completed = False

        self._logger.log_event(
            {
                "type": "pipeline_start",
                "run_id": config.run_id,
                "seed": self._context.seed,
                "artist_mode": artist_mode,
                "phases": [phase.name for phase in self.phases],
            }
        )
        self.pipeline_started.emit(self)
        self._context.log_info("Pipeline started (seed: %d, artist mode: %s)", self._context.seed, artist_mode)

        if artist_mode:
            self.execute_next_phase()
        else:
            self.execute_all()
        return self._context

    def execute_next_phase(self) -> Optional[PhaseState]:
        """Run the next phase; returns its state, or ``None`` if nothing ran."""
        ctx = self._context
        if not self._running or ctx is None:
            logger.warning("Pipeline not running; ignoring execute_next_phase()")
            return None
        if self._current_index >= len(self.phases) - 1:
            self._finalize()
            return None

        self._paused = False
        self._current_index += 1
        index = self._current_index
        phase = self.phases[index]
        self._logger.log_phase_start(phase.name, index)
        self.phase_started.emit(phase)

        state = phase.execute(ctx)
        self._logger.log_phase_end(phase.name, index, state.value, phase.stats)

        if state is PhaseState.COMPLETED:
            self.phase_completed.emit(phase)
            if ctx.artist_mode:
                ctx.set_debug_overlay(phase.create_debug_overlay(ctx), name=phase.name)
                self._paused = True
                self.pipeline_paused.emit(phase)
            if index >= len(self.phases) - 1:
                self._finalize()
        elif state is PhaseState.FAILED:
            self._logger.log_event(
                {"type": "phase_failed", "phase": phase.name, "index": index, "error": repr(phase.error)}
            )
            self._running = False
            self.phase_failed.emit(phase)
        elif state is PhaseState.SKIPPED:
            self._logger.log_event(
                {"type": "phase_skipped", "phase": phase.name, "index": index, "reason": phase.skip_reason}
            )
            if index >= len(self.phases) - 1:
                self._finalize()
            elif ctx.artist_mode:
                return self.execute_next_phase()
        return state

    def execute_all(self) -> None:
        ctx = self._context
        if ctx is None:
            logger.warning("Pipeline has no context; call begin() first")
            return
        was_artist_mode = ctx.artist_mode
        ctx.artist_mode = False
        try:
            while self._running and self._current_index < len(self.phases) - 1:
                self.execute_next_phase()
            if self._running:
                self._finalize()
        finally:
            ctx.artist_mode = was_artist_mode

    def continue_(self) -> Optional[PhaseState]:
        if self._paused and self._running:
            return self.execute_next_phase()
        return None

    def cancel(self) -> None:
        """Fail the running phase at its next cancellation check."""
        if self._context is not None:
            self._context.request_cancel()

    def rollback_to(self, target_index: int) -> None:
        """Undo every phase after ``target_index``; ``-1`` undoes them all.

        Targets ahead of the current phase are ignored. A failed phase at the
        target is undone as well so the next run retries it.
        """
        ctx = self._context
        if ctx is None:
            return
        target_index = max(int(target_index), -1)
        if target_index > self._current_index:
            logger.warning(
                "Cannot roll forward to phase %d (current phase: %d); ignoring", target_index, self._current_index
            )
            return
        if 0 <= target_index and self.phases[target_index].state is PhaseState.FAILED:
            target_index -= 1
        if target_index == self._current_index:
            return
        for index in range(self._current_index, target_index, -1):
            self.phases[index].rollback(ctx)
        self._current_index = target_index
        ctx.clear_cancel()
        self._completed = False
        self._running = True
        self._paused = ctx.artist_mode
        if ctx.artist_mode and target_index >= 0:
            phase = self.phases[target_index]
            ctx.set_debug_overlay(phase.create_debug_overlay(ctx), name=phase.name)
        else:
            ctx.set_debug_overlay(None)

    def reset(self) -> None:
        """Undo every executed phase, restore all grids and drop the context."""
        ctx = self._context
        if ctx is not None:
            for index in range(self._current_index, -1, -1):
                self.phases[index].rollback(ctx)
            ctx.set_debug_overlay(None)
            ctx.restore_all()
        for phase in self.phases:
            phase.reset_state()
        self._current_index = -1
        self._paused = False
        self._running = False
        self._completed = False
        self._context = None
        if self._logger is not None:
            self._logger.log_event({"type": "pipeline_reset"})
            self._logger.close()
            self._logger = None
        self.pipeline_reset.emit(self)
        logger.info("Pipeline reset")

    def _finalize(self) -> None:
        ctx = self._context
        if ctx is not None:
            ctx.set_debug_overlay(None)
        self._running = False
        self._paused = False
        self._completed = True
        if self._logger is not None:
            self._logger.log_event(
                {
                    "type": "pipeline_complete",
                    "states": {phase.name: phase.state.value for phase in self.phases},
                    "spawn_records": len(ctx.spawn_records) if ctx is not None else 0,
                }
            )
            self._logger.close()
        self.pipeline_completed.emit(self)
        if ctx is not None:
            ctx.log_info("Pipeline completed")


__all__ = ["GenerationPipeline"]
