"""Scoring of completed attempts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from engine.errors import InvalidAttempt
from engine.models import DeliveredQuestion


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one attempt."""

    percent: int
    passed: bool
    correct_count: int
    answered_count: int
    total: int
    earned_marks: int
    total_marks: int


def round_half_up(numerator: int, denominator: int) -> int:
    """Round a non-negative fraction to the nearest integer, halves upward."""
    return (2 * numerator + denominator) // (2 * denominator)


def score(
    delivered: Sequence[DeliveredQuestion],
    answers: Mapping[int, int],
    passing_score_percent: int,
) -> ScoreResult:
    """
    Compare answers against the delivered (already shuffled) questions.

    Args:
        delivered: Frozen question set of the attempt, in delivery order
        answers: Position -> chosen option index; missing positions are unanswered
        passing_score_percent: Threshold for the pass verdict

    Returns:
        ScoreResult with the rounded percentage and pass/fail verdict

    Raises:
        InvalidAttempt: If no questions were delivered
    """
    total = len(delivered)
    if total == 0:
        raise InvalidAttempt("Cannot score an attempt with no delivered questions")

    correct_count = 0
    answered_count = 0
    earned_marks = 0
    for position, question in enumerate(delivered):
        chosen = answers.get(position)
        if chosen is None:
            continue
        answered_count += 1
        if chosen == question.correct_option_index:
            correct_count += 1
            earned_marks += question.weight

    percent = round_half_up(100 * correct_count, total)
    return ScoreResult(
        percent=percent,
        passed=percent >= passing_score_percent,
        correct_count=correct_count,
        answered_count=answered_count,
        total=total,
        earned_marks=earned_marks,
        total_marks=sum(q.weight for q in delivered),
    )
