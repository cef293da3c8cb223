"""Test catalogue endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends

from api.dependencies import get_test_repository
from api.models import TestMetadata
from api.services.test_service import FileTestRepository
from api.utils import validate_id
from api.utils.errors import http_error
from engine.errors import AssessmentError
from serialization import serialize_metadata

router = APIRouter(prefix="/api/tests", tags=["tests"])

Tests = Annotated[FileTestRepository, Depends(get_test_repository)]


@router.get("", response_model=list[TestMetadata])
def list_tests(tests: Tests) -> list[dict[str, object]]:
    """List published tests."""
    return [serialize_metadata(test) for test in tests.list_published()]


@router.get("/{test_id}", response_model=TestMetadata)
def get_test(test_id: str, tests: Tests) -> dict[str, object]:
    """Get test metadata (no questions or answers)."""
    test_id = validate_id("testId", test_id)
    try:
        test = tests.get_test_definition(test_id)
    except AssessmentError as exc:
        raise http_error(exc)
    return serialize_metadata(test)
