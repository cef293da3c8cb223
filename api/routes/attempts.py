"""Attempt result endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DbSession

from api.database import get_db
from api.models import AttemptDetail, TestResults
from api.services.attempt_service import get_attempt
from api.services.stats_service import serialize_attempt_detail, summarize_test_results
from api.utils import validate_id

router = APIRouter(prefix="/api", tags=["attempts"])


@router.get("/tests/{test_id}/results", response_model=TestResults)
def get_test_results(
    test_id: str,
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Completed attempts of a test, best score first."""
    test_id = validate_id("testId", test_id)
    return summarize_test_results(db, test_id)


@router.get("/attempts/{attempt_id}", response_model=AttemptDetail)
def get_attempt_detail(
    attempt_id: str,
    db: Annotated[DbSession, Depends(get_db)],
) -> dict[str, object]:
    """Get an attempt with its delivered questions and answers."""
    attempt_id = validate_id("attemptId", attempt_id)
    attempt = get_attempt(db, attempt_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="Attempt not found")
    return serialize_attempt_detail(attempt)
