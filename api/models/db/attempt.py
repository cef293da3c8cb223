"""
Attempt and AttemptAnswer database models for delivered test attempts.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.database import Base
from engine.models import AttemptStatus


class Attempt(Base):
    """
    Test attempt record.
    Stores metadata and the final result of a single test-taking session.
    """

    __tablename__ = "attempts"

    # Primary key - UUID hex generated on creation
    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)

    # References
    test_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    candidate_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Status and results
    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False, index=True
    )
    score_percent: Mapped[int | None] = mapped_column(nullable=True)
    passed: Mapped[bool | None] = mapped_column(nullable=True)
    violation_count: Mapped[int] = mapped_column(default=0, nullable=False)
    question_count: Mapped[int] = mapped_column(default=0, nullable=False)
    answered_count: Mapped[int] = mapped_column(default=0, nullable=False)
    correct_count: Mapped[int] = mapped_column(default=0, nullable=False)

    # Relationships
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.question_index",
    )

    @property
    def is_completed(self) -> bool:
        """Check if attempt is completed."""
        return self.status == AttemptStatus.COMPLETED.value


class AttemptAnswer(Base):
    """
    One delivered question of an attempt with the candidate's answer.
    The question is stored exactly as delivered so scoring can be replayed.
    """

    __tablename__ = "attempt_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Question reference
    source_question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    question_index: Mapped[int] = mapped_column(nullable=False)  # Order shown in attempt

    # Answer data
    answer_index: Mapped[int | None] = mapped_column(nullable=True)  # Selected option index
    is_correct: Mapped[bool] = mapped_column(default=False, nullable=False)

    # Delivered question snapshot
    prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    options_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    correct_option_index: Mapped[int] = mapped_column(nullable=False)
    weight: Mapped[int] = mapped_column(default=1, nullable=False)

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_index", name="uq_attempt_position"),
    )

    # Relationships
    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")

    @property
    def options(self) -> list[str]:
        """Parse options from JSON."""
        if not self.options_json:
            return []
        try:
            return json.loads(self.options_json)
        except (json.JSONDecodeError, TypeError):
            return []

    @options.setter
    def options(self, value: list[str] | None) -> None:
        """Serialize options to JSON."""
        self.options_json = json.dumps(value, ensure_ascii=False) if value else None
