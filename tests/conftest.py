import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

# api.config reads these at import time
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="assessment-tests-"))
os.environ.setdefault("TEST_DATA_DIR", str(_TMP_ROOT / "tests"))
os.environ.setdefault("DB_DIR", str(_TMP_ROOT / "db"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_ROOT / 'db' / 'assessments.db'}")
os.environ.setdefault("SESSION_TICK_SECONDS", "0")
os.environ.setdefault("PERSIST_RETRY_DELAY_SECONDS", "0")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from engine.errors import CapabilityDenied, PersistenceError, TestNotFound  # noqa: E402
from engine.models import Question, TestDefinition  # noqa: E402

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_question(question_id: str, correct: int = 0, options: int = 4, weight: int = 1) -> Question:
    return Question(
        id=question_id,
        prompt=f"Question {question_id}",
        options=tuple(f"{question_id}-option-{i}" for i in range(options)),
        correct_option_index=correct,
        weight=weight,
    )


def make_test(test_id: str = "algebra", count: int = 2, **kwargs) -> TestDefinition:
    kwargs.setdefault("questions", [make_question(f"q{i}", correct=i % 4) for i in range(count)])
    kwargs.setdefault("duration_minutes", 1)
    kwargs.setdefault("passing_score_percent", 50)
    return TestDefinition(id=test_id, title=test_id.title(), **kwargs)


class FakeTests:
    def __init__(self, *tests: TestDefinition):
        self.tests = {test.id: test for test in tests}

    def get_test_definition(self, test_id: str) -> TestDefinition:
        if test_id not in self.tests:
            raise TestNotFound(test_id)
        return self.tests[test_id]


class FakeAttempts:
    """In-memory attempt repository that can be told to fail."""

    def __init__(self) -> None:
        self.created: list[tuple[str, str]] = []
        self.completed: list[dict[str, object]] = []
        self.abandoned: list[tuple[str, int]] = []
        self.create_failures = 0
        self.complete_failures = 0

    def create_attempt(self, test_id: str, candidate_id: str) -> str:
        if self.create_failures:
            self.create_failures -= 1
            raise PersistenceError("database unavailable")
        self.created.append((test_id, candidate_id))
        return f"attempt-{len(self.created)}"

    def complete_attempt(
        self,
        attempt_id,
        delivered_questions,
        answers,
        score_percent,
        violation_count,
        completed_at,
        passed=None,
    ) -> None:
        if self.complete_failures:
            self.complete_failures -= 1
            raise PersistenceError("database unavailable")
        self.completed.append(
            {
                "attempt_id": attempt_id,
                "delivered": tuple(delivered_questions),
                "answers": dict(answers),
                "score_percent": score_percent,
                "violation_count": violation_count,
                "passed": passed,
            }
        )

    def abandon_attempt(self, attempt_id: str, violation_count: int) -> None:
        self.abandoned.append((attempt_id, violation_count))

    def count_attempts(self, candidate_id: str, test_id: str) -> int:
        return self.created.count((test_id, candidate_id))


class FakeStream:
    def __init__(self) -> None:
        self.stop_calls = 0

    def stop(self) -> None:
        self.stop_calls += 1


class FakeMedia:
    def __init__(self, granted: bool = True):
        self.granted = granted
        self.streams: list[FakeStream] = []

    def request_media(self) -> FakeStream:
        if not self.granted:
            raise CapabilityDenied("camera refused")
        stream = FakeStream()
        self.streams.append(stream)
        return stream


@pytest.fixture
def fake_attempts() -> FakeAttempts:
    return FakeAttempts()


@pytest.fixture
def fake_media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker:
    """Session factory bound to a fresh SQLite database."""
    from api.database import Base
    import api.models.db  # noqa: F401

    engine = create_engine(
        f"sqlite:///{tmp_path / 'attempts.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()
