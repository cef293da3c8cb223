"""Registry of live test-taking sessions."""
import logging
import threading
import time
from typing import Callable

from engine.delivery import DeliverySelector
from engine.errors import AttemptLimitReached, CapabilityDenied, PersistenceError, SessionConflict
from engine.repositories import TestRepository
from engine.session import SessionController, SessionState

from api.services.attempt_service import SqlAttemptRepository

logger = logging.getLogger(__name__)

LIVE_STATES = (SessionState.IN_PROGRESS, SessionState.SUBMITTING)
IDLE_STATES = (
    SessionState.NOT_STARTED,
    SessionState.AWAITING_CAPABILITIES,
    SessionState.COMPLETED,
    SessionState.ABANDONED,
)


class ClientMediaHandle:
    """Server-side record of a capture stream held by the candidate's browser.

    Stopping it tells the client (through the session view) to release
    camera and microphone.
    """

    def __init__(self) -> None:
        self.released = False

    def stop(self) -> None:
        self.released = True


class ReportedMediaAccess:
    """Media access as reported by the client when it asks to start."""

    def __init__(self, granted: bool):
        self.granted = granted

    def request_media(self) -> ClientMediaHandle:
        if not self.granted:
            raise CapabilityDenied("Camera and microphone access is required to start")
        return ClientMediaHandle()


class SessionRegistry:
    """
    Keeps one controller per attempt.

    A candidate has at most one live session per test. A start that was
    refused for missing media is kept so that the next start call retries
    capability negotiation on the same controller. Finished sessions stay
    readable for `finished_retention` seconds and are then dropped; a
    submitted session whose result is not saved yet is never dropped.
    """

    def __init__(
        self,
        tests: TestRepository,
        attempts: SqlAttemptRepository,
        tick_interval: float | None = 1.0,
        retry_delay: float = 0.5,
        finished_retention: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tests = tests
        self.attempts = attempts
        self.tick_interval = tick_interval
        self.retry_delay = retry_delay
        self.finished_retention = finished_retention
        self.clock = clock
        self._sessions: dict[str, SessionController] = {}
        # Latest controller per (candidate_id, test_id), started or pending
        self._latest: dict[tuple[str, str], SessionController] = {}
        self._starting: set[tuple[str, str]] = set()
        self._idle_since: dict[SessionController, float] = {}
        self._lock = threading.Lock()

    def start_session(
        self, test_id: str, candidate_id: str, media_granted: bool
    ) -> SessionController:
        """
        Start (or retry starting) a session.

        Raises:
            SessionConflict: The candidate already has a live or starting session for the test
            AttemptLimitReached: The test's attempt limit is used up
            CapabilityDenied: Media was not granted; the pending session is kept
        """
        key = (candidate_id, test_id)
        with self._lock:
            self._reap()
            current = self._latest.get(key)
            if key in self._starting or (
                current is not None and current.state in LIVE_STATES
            ):
                raise SessionConflict(
                    f"Candidate {candidate_id} already has an active session for test {test_id}"
                )
            self._starting.add(key)

        controller = None
        try:
            test = self.tests.get_test_definition(test_id)
            if test.max_attempts and test.max_attempts > 0:
                used = self.attempts.count_attempts(candidate_id, test_id)
                if used >= test.max_attempts:
                    raise AttemptLimitReached(test_id, test.max_attempts)

            if current is not None and current.state is SessionState.AWAITING_CAPABILITIES:
                controller = current
            else:
                controller = SessionController(
                    test_id=test_id,
                    candidate_id=candidate_id,
                    tests=self.tests,
                    attempts=self.attempts,
                    media=ReportedMediaAccess(media_granted),
                    selector=DeliverySelector(),
                    tick_interval=self.tick_interval,
                    retry_delay=self.retry_delay,
                )
            controller.media = ReportedMediaAccess(media_granted)
            controller.begin()
            return controller
        finally:
            with self._lock:
                self._starting.discard(key)
                self._track(key, controller)

    def _track(self, key: tuple[str, str], controller: SessionController | None) -> None:
        if controller is None:
            return
        if controller.attempt is not None:
            self._sessions[controller.attempt.id] = controller
            self._latest[key] = controller
        elif controller.state is SessionState.AWAITING_CAPABILITIES:
            self._latest[key] = controller
        elif self._latest.get(key) is controller:
            del self._latest[key]

    def _reap(self) -> None:
        """Drop sessions that have been idle longer than the retention."""
        now = self.clock()
        controllers = set(self._sessions.values()) | set(self._latest.values())
        for controller in controllers:
            key = (controller.candidate_id, controller.test_id)
            if controller.state not in IDLE_STATES or key in self._starting:
                self._idle_since.pop(controller, None)
                continue
            since = self._idle_since.setdefault(controller, now)
            if now - since < self.finished_retention:
                continue
            self._forget(controller)

    def _forget(self, controller: SessionController) -> None:
        self._idle_since.pop(controller, None)
        if controller.attempt is not None:
            self._sessions.pop(controller.attempt.id, None)
        key = (controller.candidate_id, controller.test_id)
        if self._latest.get(key) is controller:
            del self._latest[key]

    def get(self, attempt_id: str) -> SessionController:
        """Return the controller of an attempt. Raises KeyError when unknown."""
        with self._lock:
            self._reap()
            return self._sessions[attempt_id]

    def end_session(self, attempt_id: str) -> SessionController:
        """
        Tear down a session. An unfinished attempt is abandoned and forgotten;
        a submitted one with an unsaved result stays registered for retry.
        """
        with self._lock:
            controller = self._sessions[attempt_id]
        controller.teardown()
        with self._lock:
            if controller.state is SessionState.SUBMITTING:
                logger.warning(
                    f"Attempt {attempt_id} has an unsaved result; keeping it for retry"
                )
            else:
                self._forget(controller)
        return controller

    def shutdown(self) -> None:
        """Tear down every session, saving pending results where possible."""
        with self._lock:
            controllers = set(self._sessions.values()) | set(self._latest.values())
            self._sessions.clear()
            self._latest.clear()
            self._idle_since.clear()
        for controller in controllers:
            if controller.state is SessionState.SUBMITTING:
                try:
                    controller.retry_completion()
                except PersistenceError:
                    result = controller.result
                    logger.error(
                        f"Result of attempt {controller.attempt.id} lost on shutdown: "
                        f"{result.percent}% candidate={controller.candidate_id} "
                        f"test={controller.test_id}"
                    )
            controller.teardown()
        if controllers:
            logger.info(f"Tore down {len(controllers)} session(s) on shutdown")
