from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from api.utils.time_utils import parse_iso_timestamp
from engine.models import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_PASSING_SCORE,
    DeliveredQuestion,
    Question,
    TestDefinition,
    TestStatus,
)
from engine.scoring import ScoreResult
from engine.session import CandidateQuestion, SessionView


def _first(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def parse_question(data: dict[str, Any], fallback_id: str) -> Question:
    question_id = str(_first(data, "id", default=fallback_id))
    correct = _first(data, "correctOptionIndex", "correctAnswer")
    if correct is None:
        raise ValueError(f"Question {question_id}: correct option index is missing")
    options = data.get("options") or []
    return Question(
        id=question_id,
        prompt=str(_first(data, "prompt", "question", default="")),
        options=tuple(str(option) for option in options),
        correct_option_index=int(correct),
        weight=int(_first(data, "weight", default=1)),
    )


def parse_questions(items: Iterable[Any]) -> list[Question]:
    questions = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        questions.append(parse_question(item, fallback_id=str(index)))
    return questions


def parse_test_definition(payload: dict[str, Any]) -> TestDefinition:
    """Build a TestDefinition from a stored test payload."""
    status = payload.get("status") or TestStatus.PUBLISHED.value
    return TestDefinition(
        id=str(payload["id"]),
        title=str(payload.get("title") or ""),
        description=str(payload.get("description") or ""),
        question_bank=parse_questions(payload.get("questionBank") or []),
        approved_question_ids=[
            str(item) for item in payload.get("approvedQuestionIds") or [] if item
        ],
        questions=parse_questions(payload.get("questions") or []),
        questions_to_show=_optional_int(payload.get("questionsToShow")),
        shuffle_options=bool(_first(payload, "shuffleOptions", default=True)),
        duration_minutes=int(
            _first(payload, "durationMinutes", default=DEFAULT_DURATION_MINUTES)
        ),
        passing_score_percent=int(
            _first(payload, "passingScore", default=DEFAULT_PASSING_SCORE)
        ),
        opens_at=parse_iso_timestamp(_first(payload, "opensAt", "startsAt")),
        closes_at=parse_iso_timestamp(_first(payload, "closesAt", "endsAt")),
        status=TestStatus(status),
        max_attempts=_optional_int(payload.get("maxAttempts")),
    )


def serialize_metadata(test: TestDefinition) -> dict[str, Any]:
    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "status": test.status.value,
        "questionCount": test.resolved_questions_to_show(),
        "durationMinutes": test.duration_minutes,
        "passingScore": test.passing_score_percent,
        "opensAt": format_datetime(test.opens_at),
        "closesAt": format_datetime(test.closes_at),
        "maxAttempts": test.max_attempts,
    }


def serialize_delivered_question(question: DeliveredQuestion) -> dict[str, Any]:
    return {
        "sourceId": question.source_id,
        "prompt": question.prompt,
        "options": list(question.options),
        "correctOptionIndex": question.correct_option_index,
        "weight": question.weight,
    }


def deserialize_delivered_question(data: dict[str, Any]) -> DeliveredQuestion:
    return DeliveredQuestion(
        source_id=str(data["sourceId"]),
        prompt=str(data.get("prompt", "")),
        options=tuple(str(option) for option in data.get("options", [])),
        correct_option_index=int(data["correctOptionIndex"]),
        weight=int(data.get("weight", 1)),
    )


def serialize_candidate_question(
    question: CandidateQuestion | None,
) -> dict[str, Any] | None:
    # The correct index never leaves the engine while a session runs
    if question is None:
        return None
    return {
        "position": question.position,
        "prompt": question.prompt,
        "options": list(question.options),
        "selectedOption": question.selected_option,
    }


def serialize_score(result: ScoreResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "percent": result.percent,
        "passed": result.passed,
        "correctCount": result.correct_count,
        "answeredCount": result.answered_count,
        "total": result.total,
        "earnedMarks": result.earned_marks,
        "totalMarks": result.total_marks,
    }


def serialize_session_view(view: SessionView) -> dict[str, Any]:
    return {
        "state": view.state.value,
        "attemptId": view.attempt_id,
        "testId": view.test_id,
        "candidateId": view.candidate_id,
        "timeRemainingSeconds": view.time_remaining_seconds,
        "timeRemaining": view.time_remaining,
        "violationCount": view.violation_count,
        "blocked": view.blocked,
        "mediaActive": view.media_active,
        "questionCount": view.question_count,
        "currentQuestion": serialize_candidate_question(view.current_question),
        "answeredPositions": list(view.answered_positions),
        "scorePercent": view.score_percent,
        "passed": view.passed,
    }
