"""Domain models for authored tests, delivered questions and attempts."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from engine.errors import InvalidTransition

OPTIONS_PER_QUESTION = 4
DEFAULT_DURATION_MINUTES = 60
DEFAULT_PASSING_SCORE = 40


@dataclass(frozen=True)
class Question:
    """An authored multiple-choice question."""

    id: str
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    weight: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "options", tuple(str(o) for o in self.options))
        if not 0 <= self.correct_option_index < len(self.options):
            raise ValueError(
                f"Question {self.id}: correct option index "
                f"{self.correct_option_index} outside 0..{len(self.options) - 1}"
            )
        if self.weight < 1:
            raise ValueError(f"Question {self.id}: weight must be positive")

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_option_index]


class TestStatus(str, enum.Enum):
    """Publication status of a test."""

    __test__ = False

    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"


@dataclass
class TestDefinition:
    """
    A published assessment.

    `question_bank` is the author's working set and `approved_question_ids`
    the part of it eligible for delivery. Tests created before the approval
    model keep their questions in the flat `questions` list, which is used
    whenever no approval list is present.
    """

    __test__ = False

    id: str
    title: str = ""
    description: str = ""
    question_bank: list[Question] = field(default_factory=list)
    approved_question_ids: list[str] = field(default_factory=list)
    questions: list[Question] = field(default_factory=list)
    questions_to_show: int | None = None
    shuffle_options: bool = True
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    passing_score_percent: int = DEFAULT_PASSING_SCORE
    opens_at: datetime | None = None
    closes_at: datetime | None = None
    status: TestStatus = TestStatus.PUBLISHED
    max_attempts: int | None = None

    def eligible_pool(self) -> list[Question]:
        """Return the questions permitted for delivery, in authored order."""
        if self.approved_question_ids:
            approved = {str(question_id) for question_id in self.approved_question_ids}
            return [q for q in self.question_bank if q.id in approved]
        return list(self.questions)

    def resolved_questions_to_show(self) -> int:
        """Number of questions one attempt receives."""
        pool_size = len(self.eligible_pool())
        if self.questions_to_show is None or self.questions_to_show <= 0:
            return pool_size
        return min(self.questions_to_show, pool_size)

    def window_contains(self, now: datetime) -> bool:
        """Check the optional publish window; missing bounds are unbounded."""
        if self.opens_at is not None and now < self.opens_at:
            return False
        if self.closes_at is not None and now > self.closes_at:
            return False
        return True

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


@dataclass(frozen=True)
class DeliveredQuestion:
    """A question as served to one attempt, after selection and shuffling."""

    source_id: str
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    weight: int = 1

    @classmethod
    def from_question(cls, question: Question) -> "DeliveredQuestion":
        return cls(
            source_id=question.id,
            prompt=question.prompt,
            options=question.options,
            correct_option_index=question.correct_option_index,
            weight=question.weight,
        )


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass
class Attempt:
    """
    One candidate's run through a test.

    Mutation goes through the methods below so that a completed or
    abandoned attempt can never change again.
    """

    id: str
    test_id: str
    candidate_id: str
    status: AttemptStatus = AttemptStatus.NOT_STARTED
    delivered_questions: tuple[DeliveredQuestion, ...] = ()
    answers: dict[int, int] = field(default_factory=dict)
    violation_count: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    score_percent: int | None = None
    passed: bool | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (AttemptStatus.COMPLETED, AttemptStatus.ABANDONED)

    @property
    def question_count(self) -> int:
        return len(self.delivered_questions)

    def _require_in_progress(self, operation: str) -> None:
        if self.status is not AttemptStatus.IN_PROGRESS:
            raise InvalidTransition(operation, self.status.value)

    def start(
        self, delivered: tuple[DeliveredQuestion, ...], started_at: datetime
    ) -> None:
        """Freeze the delivered set and move to IN_PROGRESS."""
        if self.status is not AttemptStatus.NOT_STARTED:
            raise InvalidTransition("start attempt", self.status.value)
        self.delivered_questions = tuple(delivered)
        self.started_at = started_at
        self.status = AttemptStatus.IN_PROGRESS

    def record_answer(self, position: int, option_index: int) -> None:
        self._require_in_progress("record answer")
        self._check_position(position)
        options = self.delivered_questions[position].options
        if not 0 <= option_index < len(options):
            raise ValueError(
                f"Option index {option_index} outside 0..{len(options) - 1}"
            )
        self.answers[position] = option_index

    def clear_answer(self, position: int) -> None:
        self._require_in_progress("clear answer")
        self._check_position(position)
        self.answers.pop(position, None)

    def complete(
        self,
        score_percent: int,
        passed: bool,
        violation_count: int,
        completed_at: datetime,
    ) -> None:
        self._require_in_progress("complete attempt")
        self.score_percent = score_percent
        self.passed = passed
        self.violation_count = violation_count
        self.completed_at = completed_at
        self.status = AttemptStatus.COMPLETED

    def abandon(self, violation_count: int) -> None:
        if self.is_terminal:
            raise InvalidTransition("abandon attempt", self.status.value)
        self.violation_count = violation_count
        self.status = AttemptStatus.ABANDONED

    def _check_position(self, position: int) -> None:
        if not 0 <= position < len(self.delivered_questions):
            raise IndexError(
                f"Question position {position} outside 0..{len(self.delivered_questions) - 1}"
            )
