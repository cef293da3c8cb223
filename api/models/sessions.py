"""Session-related Pydantic models."""
from enum import Enum

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    """Request to start (or retry starting) a session.

    `mediaGranted` is what the browser reported after asking for camera and
    microphone.
    """

    testId: str = Field(..., min_length=1)
    candidateId: str = Field(..., min_length=1)
    mediaGranted: bool = False


class AnswerRequest(BaseModel):
    """Model for choosing an option."""

    optionIndex: int = Field(..., ge=0)


class NavigateRequest(BaseModel):
    """Model for moving to a question."""

    position: int = Field(..., ge=0)


class EnvironmentEventType(str, Enum):
    VISIBILITY = "visibility"
    FULLSCREEN = "fullscreen"


class EnvironmentEventRequest(BaseModel):
    """Browser environment change reported by the client."""

    eventType: EnvironmentEventType
    hidden: bool | None = None
    fullscreen: bool | None = None


class InputResponse(BaseModel):
    """Whether the input was applied; `session` is the updated view."""

    accepted: bool
    session: dict[str, object]


class SubmitResponse(BaseModel):
    """Submission outcome."""

    status: str
    score: dict[str, object] | None
    session: dict[str, object]
