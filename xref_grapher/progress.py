"""Phase bookkeeping for one xref run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class PhaseStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def icon(self) -> str:
        return _ICONS[self]


_ICONS = {
    PhaseStatus.PENDING: ".",
    PhaseStatus.RUNNING: "~",
    PhaseStatus.COMPLETED: "+",
    PhaseStatus.FAILED: "!",
    PhaseStatus.SKIPPED: "-",
}


@dataclass
class PhaseProgress:
    phase: str
    status: PhaseStatus = PhaseStatus.PENDING
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return round(self.end_time - self.start_time, 2)

    def format_line(self) -> str:
        """e.g. ``[+] compile (1.2s) - 12 ok, 1 failed``."""
        line = f"[{self.status.icon}] {self.phase}"
        if self.duration:
            line += f" ({self.duration}s)"
        if self.detail:
            line += f" - {self.detail}"
        if self.error:
            line += f" ERROR: {self.error}"
        return line


class ProgressTracker:
    """Ordered record of the phases of one run.

    Callbacks fire on every status change; a failing callback is logged and
    never interrupts the run.
    """

    def __init__(self) -> None:
        self.phases: list[PhaseProgress] = []
        self._by_name: dict[str, PhaseProgress] = {}
        self.callbacks: list[Callable[[PhaseProgress], None]] = []

    def start_phase(self, phase: str) -> None:
        self._add(PhaseProgress(phase, PhaseStatus.RUNNING, start_time=time.monotonic()))

    def skip_phase(self, phase: str, reason: str) -> None:
        self._add(PhaseProgress(phase, PhaseStatus.SKIPPED, detail=reason))

    def complete_phase(self, phase: str, detail: str = "") -> None:
        self._finish(phase, PhaseStatus.COMPLETED, detail=detail)

    def fail_phase(self, phase: str, error: str) -> None:
        self._finish(phase, PhaseStatus.FAILED, error=error)

    def get(self, phase: str) -> PhaseProgress | None:
        return self._by_name.get(phase)

    @property
    def failed(self) -> list[PhaseProgress]:
        return [p for p in self.phases if p.status is PhaseStatus.FAILED]

    @property
    def total_duration(self) -> float:
        return round(sum(p.duration or 0 for p in self.phases), 2)

    def get_summary(self) -> dict[str, Any]:
        return {
            "phases": [
                {
                    "phase": p.phase,
                    "status": p.status.value,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                }
                for p in self.phases
            ],
            "total_duration": self.total_duration,
        }

    def format_summary(self) -> list[str]:
        return [p.format_line() for p in self.phases]

    def _add(self, p: PhaseProgress) -> None:
        self.phases.append(p)
        self._by_name[p.phase] = p
        self._notify(p)

    def _finish(
        self, phase: str, status: PhaseStatus, detail: str = "", error: str | None = None
    ) -> None:
        p = self._by_name.get(phase)
        if p is None:
            logger.debug("Ignoring %s for phase %s that never started", status.value, phase)
            return
        p.status = status
        p.end_time = time.monotonic()
        if detail:
            p.detail = detail
        p.error = error
        self._notify(p)

    def _notify(self, p: PhaseProgress) -> None:
        for cb in self.callbacks:
            try:
                cb(p)
            except Exception:
                logger.debug("Progress callback error for phase %s", p.phase, exc_info=True)
