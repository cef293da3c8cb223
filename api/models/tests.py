"""Test-related Pydantic models."""
from pydantic import BaseModel


class TestMetadata(BaseModel):
    """Public description of a test; never includes questions or answers."""

    id: str
    title: str
    description: str
    status: str
    questionCount: int
    durationMinutes: int
    passingScore: int
    opensAt: str | None = None
    closesAt: str | None = None
    maxAttempts: int | None = None
