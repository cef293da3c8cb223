"""Typed errors raised by the assessment engine."""
from __future__ import annotations


class AssessmentError(Exception):
    """Base class for all engine errors."""


class TestNotFound(AssessmentError):
    """The test repository has no definition for the requested id."""

    __test__ = False

    def __init__(self, test_id: str):
        super().__init__(f"Test not found: {test_id}")
        self.test_id = test_id


class TestNotOpen(AssessmentError):
    """The test is outside its publish window or not published."""

    __test__ = False

    def __init__(self, test_id: str, reason: str = "outside its open window"):
        super().__init__(f"Test {test_id} is not open: {reason}")
        self.test_id = test_id
        self.reason = reason


class NoQuestionsAvailable(AssessmentError):
    """The eligible pool of a test is empty, so nothing can be delivered."""

    def __init__(self, test_id: str):
        super().__init__(f"Test {test_id} has no questions available for delivery")
        self.test_id = test_id


class CapabilityDenied(AssessmentError):
    """Camera or microphone access was refused. The candidate may retry."""


class PersistenceError(AssessmentError):
    """Writing an attempt to the attempt repository failed."""


class InvalidAttempt(AssessmentError):
    """Scoring was invoked on an attempt with no delivered questions."""


class AttemptLimitReached(AssessmentError):
    """The candidate has used every attempt the test allows."""

    def __init__(self, test_id: str, max_attempts: int):
        super().__init__(
            f"Attempt limit of {max_attempts} reached for test {test_id}"
        )
        self.test_id = test_id
        self.max_attempts = max_attempts


class SessionConflict(AssessmentError):
    """The candidate already has an active session for the test."""


class InvalidTransition(AssessmentError):
    """An operation was requested in a session state that does not allow it."""

    def __init__(self, operation: str, state: str):
        super().__init__(f"Cannot {operation} while session is {state}")
        self.operation = operation
        self.state = state


class InvalidTestDefinition(AssessmentError):
    """A stored test definition could not be parsed."""

    def __init__(self, test_id: str, reason: str):
        super().__init__(f"Test {test_id} is malformed: {reason}")
        self.test_id = test_id
        self.reason = reason
