"""Pydantic models."""
from api.models.attempts import (
    AttemptAnswerDetail,
    AttemptDetail,
    AttemptSummary,
    TestResults,
)
from api.models.sessions import (
    AnswerRequest,
    EnvironmentEventRequest,
    EnvironmentEventType,
    InputResponse,
    NavigateRequest,
    StartSessionRequest,
    SubmitResponse,
)
from api.models.tests import TestMetadata

__all__ = [
    "AnswerRequest",
    "AttemptAnswerDetail",
    "AttemptDetail",
    "AttemptSummary",
    "EnvironmentEventRequest",
    "EnvironmentEventType",
    "InputResponse",
    "NavigateRequest",
    "StartSessionRequest",
    "SubmitResponse",
    "TestMetadata",
    "TestResults",
]
