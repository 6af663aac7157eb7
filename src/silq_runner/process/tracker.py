"""
Single-slot tracking for program runs.

At most one run session is live process-wide. A new run request preempts the
current one: the old compiler is killed without waiting for its output, and
the new session becomes current immediately. Every session carries a
generation number so completions from superseded sessions can be recognised
and ignored. Check invocations never pass through the tracker.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog

from silq_runner.process.supervisor import CompilerHandle


class TrackerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(slots=True)
class RunSession:
    """One tracked run from request to stream drain (or preemption)."""

    generation: int
    document_id: str
    process: CompilerHandle | None = None


class ExecutionTracker:
    """Idle/Running state machine owning the current run session."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._generation = 0
        self._current: RunSession | None = None

    @property
    def state(self) -> TrackerState:
        return TrackerState.IDLE if self._current is None else TrackerState.RUNNING

    @property
    def current(self) -> RunSession | None:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self, document_id: str) -> RunSession:
        """Start a new session, terminating any run that is still tracked."""

        previous = self._current
        self._generation += 1
        session = RunSession(generation=self._generation, document_id=document_id)
        self._current = session
        if previous is not None:
            self._terminate(previous)
            self._logger.info(
                "run_preempted",
                previous_generation=previous.generation,
                previous_document_id=previous.document_id,
                generation=session.generation,
                document_id=document_id,
            )
        return session

    def attach(self, session: RunSession, process: CompilerHandle) -> bool:
        """Attach the launched process; kill it if ``session`` was superseded meanwhile."""

        session.process = process
        if not self.is_current(session):
            process.terminate()
            self._logger.info(
                "run_superseded_during_launch",
                generation=session.generation,
                document_id=session.document_id,
            )
            return False
        return True

    def is_current(self, session: RunSession) -> bool:
        return self._current is session

    def finish(self, session: RunSession) -> bool:
        """Return to idle if ``session`` is still the tracked run."""

        if not self.is_current(session):
            return False
        self._current = None
        self._logger.info(
            "run_finished",
            generation=session.generation,
            document_id=session.document_id,
        )
        return True

    def abandon(self, session: RunSession) -> bool:
        """Release the slot for a session whose compiler never started."""

        if not self.is_current(session):
            return False
        self._current = None
        return True

    def terminate_current(self) -> RunSession | None:
        session = self._current
        if session is None:
            return None
        self._current = None
        self._terminate(session)
        return session

    @staticmethod
    def _terminate(session: RunSession) -> None:
        if session.process is not None:
            session.process.terminate()


__all__ = ["ExecutionTracker", "RunSession", "TrackerState"]
