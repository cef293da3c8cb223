"""Mapping of engine errors to HTTP responses."""
from fastapi import HTTPException

from engine.errors import (
    AssessmentError,
    AttemptLimitReached,
    CapabilityDenied,
    InvalidAttempt,
    InvalidTestDefinition,
    InvalidTransition,
    NoQuestionsAvailable,
    PersistenceError,
    SessionConflict,
    TestNotFound,
    TestNotOpen,
)

_STATUS_CODES: list[tuple[type[AssessmentError], int]] = [
    (TestNotFound, 404),
    (TestNotOpen, 403),
    (CapabilityDenied, 403),
    (NoQuestionsAvailable, 409),
    (SessionConflict, 409),
    (AttemptLimitReached, 409),
    (InvalidTransition, 409),
    (InvalidAttempt, 409),
    (InvalidTestDefinition, 422),
    (PersistenceError, 503),
]


def http_error(exc: AssessmentError) -> HTTPException:
    """Build the HTTPException for an engine error."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
