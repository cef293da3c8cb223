"""Interfaces of the repositories the engine reads from and writes to."""
from __future__ import annotations

from datetime import datetime
from typing import Mapping, Protocol, Sequence

from engine.models import DeliveredQuestion, TestDefinition


class TestRepository(Protocol):
    """Read access to test definitions.

    Raises TestNotFound for unknown ids.
    """

    def get_test_definition(self, test_id: str) -> TestDefinition: ...


class AttemptRepository(Protocol):
    """Write access to attempts. Failures raise PersistenceError."""

    def create_attempt(self, test_id: str, candidate_id: str) -> str: ...

    def complete_attempt(
        self,
        attempt_id: str,
        delivered_questions: Sequence[DeliveredQuestion],
        answers: Mapping[int, int],
        score_percent: int,
        violation_count: int,
        completed_at: datetime,
        passed: bool | None = None,
    ) -> None: ...

    def abandon_attempt(self, attempt_id: str, violation_count: int) -> None: ...
