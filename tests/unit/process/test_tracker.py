"""Unit tests for the single-slot run tracker.

File: tests/unit/process/test_tracker.py

Tests:
- Idle/Running transitions
- Preemption terminates the previous compiler
- Late attach after supersession
- finish/abandon ignore superseded sessions
"""

from __future__ import annotations

from unittest import mock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from silq_runner.process.tracker import ExecutionTracker, TrackerState


def _handle() -> mock.Mock:
    return mock.Mock(name="handle")


@pytest.mark.unit
class TestTransitions:
    def test_starts_idle(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        assert tracker.state is TrackerState.IDLE
        assert tracker.current is None

    def test_begin_then_finish(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())

        session = tracker.begin("a")
        assert tracker.state is TrackerState.RUNNING
        assert tracker.attach(session, _handle())

        assert tracker.finish(session) is True
        assert tracker.state is TrackerState.IDLE

    def test_generations_increase(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        first = tracker.begin("a")
        second = tracker.begin("b")
        assert second.generation == first.generation + 1 == tracker.generation


@pytest.mark.unit
class TestPreemption:
    def test_second_run_kills_first(self) -> None:
        logger = mock.Mock()
        tracker = ExecutionTracker(logger=logger)
        first_handle = _handle()
        first = tracker.begin("a")
        tracker.attach(first, first_handle)

        second = tracker.begin("b")

        first_handle.terminate.assert_called_once_with()
        assert tracker.current is second
        assert not tracker.is_current(first)
        logger.info.assert_any_call(
            "run_preempted",
            previous_generation=first.generation,
            previous_document_id="a",
            generation=second.generation,
            document_id="b",
        )

    @given(st.integers(min_value=2, max_value=20))
    def test_exactly_one_session_tracked(self, runs: int) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        handles = []
        for index in range(runs):
            session = tracker.begin(f"doc{index}")
            handle = _handle()
            tracker.attach(session, handle)
            handles.append(handle)

        assert tracker.state is TrackerState.RUNNING
        assert tracker.current is not None
        assert tracker.current.process is handles[-1]
        for handle in handles[:-1]:
            handle.terminate.assert_called_once_with()
        handles[-1].terminate.assert_not_called()

    def test_finish_of_superseded_session_is_ignored(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        first = tracker.begin("a")
        second = tracker.begin("a")

        assert tracker.finish(first) is False
        assert tracker.current is second


@pytest.mark.unit
class TestAttach:
    def test_attach_after_supersession_kills_new_process(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        first = tracker.begin("a")
        second = tracker.begin("a")
        late = _handle()

        assert tracker.attach(first, late) is False
        late.terminate.assert_called_once_with()
        assert tracker.current is second


@pytest.mark.unit
class TestAbandonAndTerminate:
    def test_abandon_frees_slot_without_terminate(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        session = tracker.begin("a")

        assert tracker.abandon(session) is True
        assert tracker.state is TrackerState.IDLE

    def test_abandon_superseded_is_noop(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        first = tracker.begin("a")
        tracker.begin("b")

        assert tracker.abandon(first) is False
        assert tracker.state is TrackerState.RUNNING

    def test_terminate_current(self) -> None:
        tracker = ExecutionTracker(logger=mock.Mock())
        handle = _handle()
        session = tracker.begin("a")
        tracker.attach(session, handle)

        assert tracker.terminate_current() is session
        handle.terminate.assert_called_once_with()
        assert tracker.state is TrackerState.IDLE
        assert tracker.terminate_current() is None
