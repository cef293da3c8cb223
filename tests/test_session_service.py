import threading

import pytest

from conftest import FakeAttempts, FakeTests, make_test
from api.services.session_service import SessionRegistry
from engine.errors import CapabilityDenied, PersistenceError, SessionConflict
from engine.session import SessionState


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _registry(attempts=None, clock=None, **kwargs) -> SessionRegistry:
    return SessionRegistry(
        tests=FakeTests(make_test("algebra"), make_test("geometry")),
        attempts=attempts or FakeAttempts(),
        tick_interval=None,
        retry_delay=0,
        clock=clock or Clock(),
        **kwargs,
    )


def test_finished_session_is_dropped_after_retention() -> None:
    clock = Clock()
    registry = _registry(clock=clock, finished_retention=10)
    controller = registry.start_session("algebra", "cand-1", True)
    attempt_id = controller.attempt.id
    controller.submit()

    assert registry.get(attempt_id) is controller
    clock.now = 5
    assert registry.get(attempt_id) is controller

    clock.now = 11
    with pytest.raises(KeyError):
        registry.get(attempt_id)
    assert registry._sessions == {}
    assert registry._latest == {}


def test_live_session_is_never_dropped() -> None:
    clock = Clock()
    registry = _registry(clock=clock, finished_retention=10)
    controller = registry.start_session("algebra", "cand-1", True)
    registry.get(controller.attempt.id)

    clock.now = 10_000
    assert registry.get(controller.attempt.id) is controller
    assert controller.state is SessionState.IN_PROGRESS


def test_unsaved_result_survives_end_session_and_retention() -> None:
    attempts = FakeAttempts()
    clock = Clock()
    registry = _registry(attempts=attempts, clock=clock, finished_retention=10)
    controller = registry.start_session("algebra", "cand-1", True)
    attempt_id = controller.attempt.id

    attempts.complete_failures = 2
    with pytest.raises(PersistenceError):
        controller.submit()
    registry.end_session(attempt_id)
    clock.now = 10_000

    kept = registry.get(attempt_id)
    assert kept.state is SessionState.SUBMITTING
    kept.retry_completion()
    assert kept.state is SessionState.COMPLETED
    assert len(attempts.completed) == 1


def test_end_session_forgets_abandoned_attempt() -> None:
    registry = _registry()
    controller = registry.start_session("algebra", "cand-1", True)
    registry.end_session(controller.attempt.id)
    assert controller.state is SessionState.ABANDONED
    with pytest.raises(KeyError):
        registry.get(controller.attempt.id)


def test_shutdown_saves_pending_result() -> None:
    attempts = FakeAttempts()
    registry = _registry(attempts=attempts)
    controller = registry.start_session("algebra", "cand-1", True)
    attempts.complete_failures = 2
    with pytest.raises(PersistenceError):
        controller.submit()

    registry.shutdown()

    assert controller.state is SessionState.COMPLETED
    assert len(attempts.completed) == 1
    assert attempts.abandoned == []


def test_shutdown_abandons_running_sessions() -> None:
    attempts = FakeAttempts()
    registry = _registry(attempts=attempts)
    controller = registry.start_session("algebra", "cand-1", True)
    registry.shutdown()
    assert controller.state is SessionState.ABANDONED
    assert attempts.abandoned == [(controller.attempt.id, 0)]


def test_media_refusal_keeps_pending_controller() -> None:
    attempts = FakeAttempts()
    registry = _registry(attempts=attempts)
    with pytest.raises(CapabilityDenied):
        registry.start_session("algebra", "cand-1", False)
    pending = registry._latest[("cand-1", "algebra")]

    controller = registry.start_session("algebra", "cand-1", True)
    assert controller is pending
    assert controller.state is SessionState.IN_PROGRESS
    assert len(attempts.created) == 1


class SlowAttempts(FakeAttempts):
    """Blocks attempt creation for one candidate until released."""

    def __init__(self, slow_candidate: str) -> None:
        super().__init__()
        self.slow_candidate = slow_candidate
        self.entered = threading.Event()
        self.release = threading.Event()

    def create_attempt(self, test_id: str, candidate_id: str) -> str:
        if candidate_id == self.slow_candidate:
            self.entered.set()
            assert self.release.wait(5)
        return super().create_attempt(test_id, candidate_id)


def test_slow_start_does_not_block_other_candidates() -> None:
    attempts = SlowAttempts("cand-slow")
    registry = _registry(attempts=attempts)
    started = []

    worker = threading.Thread(
        target=lambda: started.append(registry.start_session("algebra", "cand-slow", True))
    )
    worker.start()
    try:
        assert attempts.entered.wait(5)

        other = registry.start_session("algebra", "cand-fast", True)
        assert other.state is SessionState.IN_PROGRESS
        with pytest.raises(SessionConflict):
            registry.start_session("algebra", "cand-slow", True)
    finally:
        attempts.release.set()
        worker.join(5)

    assert started[0].state is SessionState.IN_PROGRESS
    assert registry.get(started[0].attempt.id) is started[0]
