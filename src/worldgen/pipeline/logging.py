"""Asynchronous structured logging for generation runs."""

from __future__ import annotations

import json
import queue
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import PhaseStats


class RunLogger:
    """Writes structured events to disk asynchronously.

    Every event is also kept in :attr:`events`. With ``log_path=None`` nothing
    touches the filesystem.
    """

    def __init__(self, log_path: Optional[Path] = None, summary_path: Optional[Path] = None) -> None:
        self._log_path = log_path
        self._summary_path = summary_path or (log_path.with_suffix(".md") if log_path else None)
        self._queue: "queue.Queue[Optional[Dict[str, Any]]]" = queue.Queue()
        self._stop = threading.Event()
        self._phase_records: list[dict[str, Any]] = []
        self._closed = False
        self.events: List[Dict[str, Any]] = []
        self._thread: Optional[threading.Thread] = None
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._thread = threading.Thread(target=self._worker, daemon=True)
            self._thread.start()

    @property
    def log_path(self) -> Optional[Path]:
        return self._log_path

    @property
    def closed(self) -> bool:
        return self._closed

    def _worker(self) -> None:
        with self._log_path.open("a", encoding="utf8") as fh:
            while True:
                try:
                    item = self._queue.get(timeout=0.1)
                except queue.Empty:
                    if self._stop.is_set():
                        break
                    continue
                if item is None:
                    break
                json.dump(item, fh, sort_keys=True, default=str)
                fh.write("\n")
                fh.flush()

    def log_event(self, event: Dict[str, Any]) -> None:
        payload = {"timestamp": time.time(), **event}
        self.events.append(payload)
        if self._thread is not None and not self._closed:
            self._queue.put(payload)

    def events_of(self, event_type: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event.get("type") == event_type]

    def log_phase_start(self, phase_name: str, index: int) -> None:
        self.log_event({"type": "phase_start", "phase": phase_name, "index": index})

    def log_phase_end(self, phase_name: str, index: int, state: str, stats: Optional[PhaseStats]) -> None:
        payload: Dict[str, Any] = {"type": "phase_end", "phase": phase_name, "index": index, "state": state}
        if stats:
            payload["stats"] = stats.to_dict()
            self._phase_records.append(
                {
                    "phase": phase_name,
                    "state": state,
                    "duration_ns": stats.duration_ns,
                    "memory_bytes": stats.memory_bytes,
                }
            )
        self.log_event(payload)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._thread is not None:
            self._stop.set()
            self._queue.put(None)
            self._thread.join(timeout=2)
        self._write_summary()

    def _write_summary(self) -> None:
        if not self._phase_records or self._summary_path is None:
            return
        total_duration = sum(record["duration_ns"] for record in self._phase_records)
        lines = ["# Generation Run Summary", "", f"- Total phases: {len(self._phase_records)}"]
        lines.append(f"- Total duration (ms): {total_duration / 1e6:.2f}")
        failed = sum(1 for record in self._phase_records if record["state"] == "failed")
        lines.append(f"- Failed phases: {failed}")
        lines.append("")
        lines.append("| Phase | State | Duration (ms) | Memory (MB) |")
        lines.append("| --- | --- | ---: | ---: |")
        for record in self._phase_records:
            duration_ms = record["duration_ns"] / 1e6
            memory_mb = record["memory_bytes"] / (1024 * 1024)
            lines.append(f"| {record['phase']} | {record['state']} | {duration_ms:.2f} | {memory_mb:.2f} |")
        self._summary_path.parent.mkdir(parents=True, exist_ok=True)
        self._summary_path.write_text("\n".join(lines), encoding="utf8")


__all__ = ["RunLogger"]
