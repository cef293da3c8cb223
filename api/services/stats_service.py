"""Service layer for test result summaries."""
from sqlalchemy.orm import Session as DbSession

from api.models.db.attempt import Attempt
from api.services.attempt_service import get_attempts_by_test
from engine.models import AttemptStatus
from engine.scoring import round_half_up
from serialization import format_datetime


def serialize_attempt_row(attempt: Attempt) -> dict[str, object]:
    """Serialize attempt summary for result listings."""
    return {
        "attemptId": attempt.id,
        "testId": attempt.test_id,
        "candidateId": attempt.candidate_id,
        "status": attempt.status,
        "startedAt": format_datetime(attempt.started_at),
        "completedAt": format_datetime(attempt.completed_at),
        "scorePercent": attempt.score_percent,
        "passed": attempt.passed,
        "violationCount": attempt.violation_count,
        "questionCount": attempt.question_count,
        "answeredCount": attempt.answered_count,
        "correctCount": attempt.correct_count,
    }


def serialize_attempt_detail(attempt: Attempt) -> dict[str, object]:
    """Serialize attempt with its delivered question snapshot."""
    detail = serialize_attempt_row(attempt)
    detail["answers"] = [
        {
            "position": answer.question_index,
            "sourceQuestionId": answer.source_question_id,
            "prompt": answer.prompt,
            "options": answer.options,
            "correctOptionIndex": answer.correct_option_index,
            "answerIndex": answer.answer_index,
            "isCorrect": answer.is_correct,
            "weight": answer.weight,
        }
        for answer in attempt.answers
    ]
    return detail


def summarize_test_results(db: DbSession, test_id: str) -> dict[str, object]:
    """
    Completed attempts of a test, best score first, with pass count and
    average score (rounded half up).
    """
    attempts = get_attempts_by_test(
        db, test_id, status=AttemptStatus.COMPLETED.value, limit=1000
    )
    scores = [attempt.score_percent or 0 for attempt in attempts]
    passed_count = sum(1 for attempt in attempts if attempt.passed)
    average = round_half_up(sum(scores), len(scores)) if scores else None

    return {
        "testId": test_id,
        "completedCount": len(attempts),
        "passedCount": passed_count,
        "averageScore": average,
        "attempts": [serialize_attempt_row(attempt) for attempt in attempts],
    }
