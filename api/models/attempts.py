"""Attempt-related Pydantic models."""
from pydantic import BaseModel


class AttemptSummary(BaseModel):
    """Model for one attempt in a result listing."""

    attemptId: str
    testId: str
    candidateId: str
    status: str
    startedAt: str | None = None
    completedAt: str | None = None
    scorePercent: int | None = None
    passed: bool | None = None
    violationCount: int
    questionCount: int
    answeredCount: int
    correctCount: int


class AttemptAnswerDetail(BaseModel):
    """Model for a delivered question with the candidate's answer."""

    position: int
    sourceQuestionId: str
    prompt: str
    options: list[str]
    correctOptionIndex: int
    answerIndex: int | None = None
    isCorrect: bool
    weight: int


class AttemptDetail(AttemptSummary):
    """Model for attempt detail with its delivered snapshot."""

    answers: list[AttemptAnswerDetail]


class TestResults(BaseModel):
    """Model for completed attempts of a test."""

    testId: str
    completedCount: int
    passedCount: int
    averageScore: int | None = None
    attempts: list[AttemptSummary]
