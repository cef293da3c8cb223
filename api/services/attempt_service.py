"""Service layer for attempts using SQLite database."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Mapping, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession, joinedload, sessionmaker

from api.database import SessionLocal, session_scope
from api.models.db.attempt import Attempt, AttemptAnswer
from engine.errors import InvalidTransition, PersistenceError
from engine.models import AttemptStatus, DeliveredQuestion

logger = logging.getLogger(__name__)


def create_attempt(db: DbSession, test_id: str, candidate_id: str) -> Attempt:
    """Create a new in-progress attempt."""
    attempt = Attempt(
        id=uuid.uuid4().hex,
        test_id=test_id,
        candidate_id=candidate_id,
        status=AttemptStatus.IN_PROGRESS.value,
        started_at=datetime.now(timezone.utc),
    )
    db.add(attempt)
    db.flush()
    return attempt


def complete_attempt(
    db: DbSession,
    attempt_id: str,
    delivered_questions: Sequence[DeliveredQuestion],
    answers: Mapping[int, int],
    score_percent: int,
    violation_count: int,
    completed_at: datetime,
    passed: bool | None = None,
) -> Attempt:
    """
    Store the delivered questions, answers and final score of an attempt.

    Args:
        db: Database session
        attempt_id: Attempt being completed
        delivered_questions: Frozen question set, in delivery order
        answers: Position -> chosen option index
        score_percent: Score computed by the engine
        violation_count: Integrity violations recorded during the session
        completed_at: Completion timestamp
        passed: Pass verdict computed by the engine
    """
    attempt = db.get(Attempt, attempt_id)
    if attempt is None:
        raise PersistenceError(f"Attempt not found: {attempt_id}")
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        raise InvalidTransition("complete attempt", attempt.status)

    answered_count = 0
    correct_count = 0
    for index, question in enumerate(delivered_questions):
        answer_index = answers.get(index)
        is_correct = answer_index is not None and answer_index == question.correct_option_index
        if answer_index is not None:
            answered_count += 1
        if is_correct:
            correct_count += 1

        answer = AttemptAnswer(
            attempt_id=attempt_id,
            source_question_id=question.source_id,
            question_index=index,
            answer_index=answer_index,
            is_correct=is_correct,
            prompt=question.prompt,
            correct_option_index=question.correct_option_index,
            weight=question.weight,
        )
        answer.options = list(question.options)
        db.add(answer)

    attempt.status = AttemptStatus.COMPLETED.value
    attempt.completed_at = completed_at
    attempt.score_percent = score_percent
    attempt.passed = passed
    attempt.violation_count = violation_count
    attempt.question_count = len(delivered_questions)
    attempt.answered_count = answered_count
    attempt.correct_count = correct_count
    db.flush()
    return attempt


def abandon_attempt(db: DbSession, attempt_id: str, violation_count: int = 0) -> Attempt | None:
    """Mark an in-progress attempt as abandoned."""
    attempt = db.get(Attempt, attempt_id)
    if not attempt:
        return None
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        return attempt

    attempt.status = AttemptStatus.ABANDONED.value
    attempt.violation_count = violation_count
    db.flush()
    return attempt


def get_attempt(db: DbSession, attempt_id: str) -> Attempt | None:
    """Get attempt by ID with answers loaded."""
    return db.execute(
        select(Attempt)
        .options(joinedload(Attempt.answers))
        .where(Attempt.id == attempt_id)
    ).unique().scalar_one_or_none()


def get_attempts_by_test(
    db: DbSession,
    test_id: str,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Attempt]:
    """
    Get attempts for a test, best score first.
    """
    query = select(Attempt).where(Attempt.test_id == test_id)

    if status:
        query = query.where(Attempt.status == status)

    query = (
        query.order_by(Attempt.score_percent.desc().nulls_last(), Attempt.started_at)
        .limit(limit)
        .offset(offset)
    )

    return list(db.execute(query).scalars().all())


def get_attempts_by_candidate(
    db: DbSession,
    candidate_id: str,
    test_id: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Attempt]:
    """
    Get attempts for a candidate, optionally filtered by test_id and status.
    """
    query = select(Attempt).where(Attempt.candidate_id == candidate_id)

    if test_id:
        query = query.where(Attempt.test_id == test_id)
    if status:
        query = query.where(Attempt.status == status)

    query = query.order_by(Attempt.started_at.desc()).limit(limit).offset(offset)

    return list(db.execute(query).scalars().all())


def count_attempts(
    db: DbSession,
    candidate_id: str | None = None,
    test_id: str | None = None,
    status: str | None = None,
) -> int:
    """Count attempts matching criteria."""
    query = select(func.count(Attempt.id))

    if candidate_id:
        query = query.where(Attempt.candidate_id == candidate_id)
    if test_id:
        query = query.where(Attempt.test_id == test_id)
    if status:
        query = query.where(Attempt.status == status)

    return db.execute(query).scalar() or 0


class SqlAttemptRepository:
    """Attempt repository backed by SQLAlchemy.

    Database failures surface as PersistenceError.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def create_attempt(self, test_id: str, candidate_id: str) -> str:
        try:
            with session_scope(self.session_factory) as db:
                return create_attempt(db, test_id, candidate_id).id
        except SQLAlchemyError as exc:
            logger.error(f"Failed to create attempt for test {test_id}: {exc}")
            raise PersistenceError(f"Could not create attempt: {exc}") from exc

    def complete_attempt(
        self,
        attempt_id: str,
        delivered_questions: Sequence[DeliveredQuestion],
        answers: Mapping[int, int],
        score_percent: int,
        violation_count: int,
        completed_at: datetime,
        passed: bool | None = None,
    ) -> None:
        try:
            with session_scope(self.session_factory) as db:
                complete_attempt(
                    db,
                    attempt_id,
                    delivered_questions,
                    answers,
                    score_percent,
                    violation_count,
                    completed_at,
                    passed=passed,
                )
        except SQLAlchemyError as exc:
            logger.error(f"Failed to complete attempt {attempt_id}: {exc}")
            raise PersistenceError(f"Could not complete attempt: {exc}") from exc

    def abandon_attempt(self, attempt_id: str, violation_count: int) -> None:
        try:
            with session_scope(self.session_factory) as db:
                abandon_attempt(db, attempt_id, violation_count)
        except SQLAlchemyError as exc:
            logger.error(f"Failed to abandon attempt {attempt_id}: {exc}")
            raise PersistenceError(f"Could not abandon attempt: {exc}") from exc

    def count_attempts(self, candidate_id: str, test_id: str) -> int:
        try:
            with session_scope(self.session_factory) as db:
                return count_attempts(db, candidate_id=candidate_id, test_id=test_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not count attempts: {exc}") from exc
