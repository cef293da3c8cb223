"""
Session controller: the single owner of an attempt while it is taken.

Every input (candidate actions, timer ticks, environment callbacks) is
posted to the controller's mailbox and applied one event at a time under
the controller's lock, so no two transitions ever run concurrently.
"""
from __future__ import annotations

import enum
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from engine.delivery import DeliverySelector
from engine.errors import (
    CapabilityDenied,
    InvalidTransition,
    NoQuestionsAvailable,
    PersistenceError,
    TestNotOpen,
)
from engine.integrity import IntegrityMonitor, MediaAccess, MediaStream
from engine.models import Attempt, TestDefinition, TestStatus
from engine.repositories import AttemptRepository, TestRepository
from engine.scoring import ScoreResult, score
from engine.timer import Countdown, SessionTicker

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_DELAY_SECONDS = 0.5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def call_with_retry(
    operation: Callable[[], T],
    description: str,
    delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run a repository write, retrying once after `delay` on PersistenceError."""
    try:
        return operation()
    except PersistenceError as exc:
        logger.warning(f"{description} failed, retrying once: {exc}")
    sleep(delay)
    return operation()


class SessionState(str, enum.Enum):
    """Lifecycle of a test-taking session."""

    NOT_STARTED = "not_started"
    AWAITING_CAPABILITIES = "awaiting_capabilities"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SubmitReason(str, enum.Enum):
    CANDIDATE = "candidate"
    TIMEOUT = "timeout"


# Inbound events


@dataclass(frozen=True)
class _Begin:
    pass


@dataclass(frozen=True)
class _Tick:
    pass


@dataclass(frozen=True)
class _SetAnswer:
    position: int | None
    option_index: int | None


@dataclass(frozen=True)
class _Navigate:
    position: int


@dataclass(frozen=True)
class _Submit:
    reason: SubmitReason


@dataclass(frozen=True)
class _RetryCompletion:
    pass


@dataclass(frozen=True)
class _VisibilityChanged:
    hidden: bool


@dataclass(frozen=True)
class _FullscreenChanged:
    fullscreen: bool


@dataclass(frozen=True)
class _Teardown:
    pass


@dataclass(frozen=True)
class CandidateQuestion:
    """A delivered question as shown to the candidate (no correct index)."""

    position: int
    prompt: str
    options: tuple[str, ...]
    selected_option: int | None


@dataclass(frozen=True)
class SessionView:
    """Read-only projection used for rendering."""

    state: SessionState
    attempt_id: str | None
    test_id: str
    candidate_id: str
    time_remaining_seconds: int | None
    time_remaining: str | None
    violation_count: int
    blocked: bool
    media_active: bool
    question_count: int
    current_question: CandidateQuestion | None
    answered_positions: tuple[int, ...]
    score_percent: int | None
    passed: bool | None


class SessionController:
    """Runs one candidate's attempt at one test."""

    def __init__(
        self,
        test_id: str,
        candidate_id: str,
        tests: TestRepository,
        attempts: AttemptRepository,
        media: MediaAccess,
        selector: DeliverySelector | None = None,
        clock: Callable[[], datetime] = _utc_now,
        tick_interval: float | None = 1.0,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.test_id = test_id
        self.candidate_id = candidate_id
        self.tests = tests
        self.attempts = attempts
        self.media = media
        self.selector = selector or DeliverySelector()
        self.clock = clock
        self.tick_interval = tick_interval
        self.retry_delay = retry_delay
        self.sleep = sleep

        self.state = SessionState.NOT_STARTED
        self.test: TestDefinition | None = None
        self.attempt: Attempt | None = None
        self.countdown: Countdown | None = None
        self.monitor = IntegrityMonitor()
        self.current_position = 0
        self.result: ScoreResult | None = None
        self.submit_reason: SubmitReason | None = None
        self._completed_at: datetime | None = None
        self._ticker: SessionTicker | None = None

        self._lock = threading.RLock()
        self._mailbox: deque[Any] = deque()
        self._draining = False

    # ===== PUBLIC OPERATIONS =====

    def begin(self) -> Attempt:
        """
        Request media access and start the attempt.

        Raises:
            TestNotFound / TestNotOpen / NoQuestionsAvailable: fatal for this call
            CapabilityDenied: media refused; calling begin() again retries
            PersistenceError: attempt could not be created
        """
        return self._post(_Begin())

    def tick(self) -> None:
        """Advance the countdown by one second."""
        self._post(_Tick())

    def record_answer(self, option_index: int, position: int | None = None) -> bool:
        """Record or overwrite an answer. Returns False if the input was dropped."""
        return self._post(_SetAnswer(position, option_index))

    def clear_answer(self, position: int | None = None) -> bool:
        return self._post(_SetAnswer(position, None))

    def navigate(self, position: int) -> bool:
        return self._post(_Navigate(position))

    def next_question(self) -> bool:
        return self.navigate(min(self.current_position + 1, self._question_count() - 1))

    def previous_question(self) -> bool:
        return self.navigate(max(self.current_position - 1, 0))

    def submit(self) -> ScoreResult | None:
        """Submit the attempt; a submit after the first one is dropped."""
        return self._post(_Submit(SubmitReason.CANDIDATE))

    def retry_completion(self) -> ScoreResult:
        """Re-offer a computed result whose completion write failed."""
        return self._post(_RetryCompletion())

    def on_visibility_change(self, hidden: bool) -> None:
        self._post(_VisibilityChanged(hidden))

    def on_fullscreen_change(self, fullscreen: bool) -> None:
        self._post(_FullscreenChanged(fullscreen))

    def teardown(self) -> None:
        """Destroy the session; an unfinished attempt becomes abandoned."""
        self._post(_Teardown())
        ticker = self._ticker
        if ticker is not None:
            ticker.join()

    def view(self) -> SessionView:
        with self._lock:
            attempt = self.attempt
            current = None
            answered: tuple[int, ...] = ()
            if attempt is not None and attempt.delivered_questions:
                question = attempt.delivered_questions[self.current_position]
                current = CandidateQuestion(
                    position=self.current_position,
                    prompt=question.prompt,
                    options=question.options,
                    selected_option=attempt.answers.get(self.current_position),
                )
                answered = tuple(sorted(attempt.answers))
            return SessionView(
                state=self.state,
                attempt_id=attempt.id if attempt else None,
                test_id=self.test_id,
                candidate_id=self.candidate_id,
                time_remaining_seconds=(
                    self.countdown.remaining_seconds if self.countdown else None
                ),
                time_remaining=self.countdown.format() if self.countdown else None,
                violation_count=self.monitor.violation_count,
                blocked=self.monitor.blocked,
                media_active=self.monitor.media_active,
                question_count=self._question_count(),
                current_question=current,
                answered_positions=answered,
                score_percent=self.result.percent if self.result else None,
                passed=self.result.passed if self.result else None,
            )

    # ===== MAILBOX =====

    def _post(self, event: Any) -> Any:
        """Queue an event and apply queued events in order.

        Events posted while an event is being applied (a final tick queuing
        the submit) run after it, in the same drain.
        """
        with self._lock:
            self._mailbox.append(event)
            if self._draining:
                return None
            self._draining = True
            try:
                result = self._apply(self._mailbox.popleft())
                while self._mailbox:
                    self._apply(self._mailbox.popleft())
                return result
            except Exception:
                if self._mailbox:
                    logger.warning(
                        f"Discarding {len(self._mailbox)} queued event(s) after failure"
                    )
                    self._mailbox.clear()
                raise
            finally:
                self._draining = False

    def _apply(self, event: Any) -> Any:
        if isinstance(event, _Tick):
            return self._on_tick()
        if isinstance(event, _SetAnswer):
            return self._on_set_answer(event)
        if isinstance(event, _Navigate):
            return self._on_navigate(event)
        if isinstance(event, _VisibilityChanged):
            return self._on_visibility(event)
        if isinstance(event, _FullscreenChanged):
            return self._on_fullscreen(event)
        if isinstance(event, _Submit):
            return self._on_submit(event)
        if isinstance(event, _RetryCompletion):
            return self._on_retry_completion()
        if isinstance(event, _Begin):
            return self._on_begin()
        if isinstance(event, _Teardown):
            return self._on_teardown()
        raise TypeError(f"Unknown session event: {event!r}")

    # ===== TRANSITIONS =====

    def _on_begin(self) -> Attempt:
        if self.state not in (
            SessionState.NOT_STARTED,
            SessionState.AWAITING_CAPABILITIES,
        ):
            raise InvalidTransition("begin", self.state.value)

        test = self.tests.get_test_definition(self.test_id)
        now = self.clock()
        if test.status is not TestStatus.PUBLISHED:
            raise TestNotOpen(test.id, f"status is {test.status.value}")
        if not test.window_contains(now):
            raise TestNotOpen(test.id)
        if not test.eligible_pool():
            raise NoQuestionsAvailable(test.id)

        self.state = SessionState.AWAITING_CAPABILITIES
        try:
            media = self.media.request_media()
        except CapabilityDenied:
            logger.info(
                f"Media access denied for candidate {self.candidate_id} on test {self.test_id}"
            )
            raise
        return self._start_attempt(test, media)

    def _start_attempt(self, test: TestDefinition, media: MediaStream) -> Attempt:
        try:
            delivered = self.selector.select(test)
            attempt_id = call_with_retry(
                lambda: self.attempts.create_attempt(test.id, self.candidate_id),
                "Attempt creation",
                delay=self.retry_delay,
                sleep=self.sleep,
            )
        except Exception:
            media.stop()
            raise

        attempt = Attempt(id=attempt_id, test_id=test.id, candidate_id=self.candidate_id)
        attempt.start(delivered, self.clock())
        self.test = test
        self.attempt = attempt
        self.current_position = 0
        self.countdown = Countdown(test.duration_seconds)
        self.monitor.activate(media)
        self.state = SessionState.IN_PROGRESS

        if self.tick_interval is not None:
            self._ticker = SessionTicker(
                self.tick, self.tick_interval, name=f"session_{attempt_id}"
            )
            self._ticker.start()

        logger.info(
            f"Attempt {attempt_id} started: candidate={self.candidate_id} test={test.id} "
            f"questions={len(delivered)} duration={test.duration_seconds}s"
        )
        return attempt

    def _on_tick(self) -> None:
        if self.state is not SessionState.IN_PROGRESS:
            logger.debug(f"Dropping tick in state {self.state.value}")
            return
        remaining = self.countdown.tick()
        if remaining <= 0:
            logger.info(f"Time expired for attempt {self.attempt.id}")
            self._mailbox.append(_Submit(SubmitReason.TIMEOUT))

    def _accepts_input(self, kind: str) -> bool:
        if self.state is not SessionState.IN_PROGRESS:
            logger.debug(f"Dropping {kind} in state {self.state.value}")
            return False
        if self.monitor.blocked:
            logger.debug(f"Dropping {kind} while fullscreen is exited")
            return False
        return True

    def _on_set_answer(self, event: _SetAnswer) -> bool:
        if not self._accepts_input("answer"):
            return False
        position = self.current_position if event.position is None else event.position
        if event.option_index is None:
            self.attempt.clear_answer(position)
        else:
            self.attempt.record_answer(position, event.option_index)
        return True

    def _on_navigate(self, event: _Navigate) -> bool:
        if not self._accepts_input("navigation"):
            return False
        if not 0 <= event.position < self._question_count():
            raise IndexError(f"Question position {event.position} out of range")
        self.current_position = event.position
        return True

    def _on_visibility(self, event: _VisibilityChanged) -> None:
        if self.state is SessionState.IN_PROGRESS:
            self.monitor.on_visibility_change(event.hidden)

    def _on_fullscreen(self, event: _FullscreenChanged) -> None:
        if self.state is SessionState.IN_PROGRESS:
            self.monitor.on_fullscreen_change(event.fullscreen)

    def _on_submit(self, event: _Submit) -> ScoreResult | None:
        if self.state is not SessionState.IN_PROGRESS:
            logger.debug(
                f"Dropping {event.reason.value} submit in state {self.state.value}"
            )
            return self.result

        self.state = SessionState.SUBMITTING
        self.submit_reason = event.reason
        self._stop_activity()

        attempt = self.attempt
        self.result = score(
            attempt.delivered_questions,
            attempt.answers,
            self.test.passing_score_percent,
        )
        self._completed_at = self.clock()
        verdict = "passed" if self.result.passed else "failed"
        logger.info(
            f"Attempt {attempt.id} submitted ({event.reason.value}): "
            f"{self.result.percent}% {verdict}"
        )
        return self._persist_completion()

    def _on_retry_completion(self) -> ScoreResult:
        if self.state is not SessionState.SUBMITTING or self.result is None:
            raise InvalidTransition("retry completion", self.state.value)
        return self._persist_completion()

    def _persist_completion(self) -> ScoreResult:
        attempt = self.attempt
        result = self.result
        violations = self.monitor.violation_count
        try:
            call_with_retry(
                lambda: self.attempts.complete_attempt(
                    attempt.id,
                    attempt.delivered_questions,
                    dict(attempt.answers),
                    result.percent,
                    violations,
                    self._completed_at,
                    passed=result.passed,
                ),
                "Attempt completion",
                delay=self.retry_delay,
                sleep=self.sleep,
            )
        except PersistenceError:
            logger.error(
                f"Could not persist attempt {attempt.id}; "
                f"result {result.percent}% kept for a later retry"
            )
            raise

        attempt.complete(result.percent, result.passed, violations, self._completed_at)
        self.state = SessionState.COMPLETED
        logger.info(f"Attempt {attempt.id} completed")
        return result

    def _on_teardown(self) -> None:
        self._stop_activity()
        if self.state in (SessionState.COMPLETED, SessionState.ABANDONED):
            return
        if self.state is SessionState.SUBMITTING:
            logger.warning(
                f"Session for attempt {self.attempt.id} torn down with an unsaved result"
            )
            return
        previous = self.state
        self.state = SessionState.ABANDONED
        if previous is not SessionState.IN_PROGRESS:
            return

        violations = self.monitor.violation_count
        self.attempt.abandon(violations)
        logger.info(f"Attempt {self.attempt.id} abandoned")
        try:
            self.attempts.abandon_attempt(self.attempt.id, violations)
        except PersistenceError:
            logger.exception(f"Could not record abandonment of attempt {self.attempt.id}")

    def _stop_activity(self) -> None:
        """Stop the ticker and release monitoring resources."""
        if self._ticker is not None:
            self._ticker.stop(timeout=0)
        self.monitor.deactivate()

    def _question_count(self) -> int:
        return self.attempt.question_count if self.attempt else 0
