"""Test-taking session endpoints."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_session_registry
from api.models import (
    AnswerRequest,
    EnvironmentEventRequest,
    EnvironmentEventType,
    InputResponse,
    NavigateRequest,
    StartSessionRequest,
    SubmitResponse,
)
from api.services.session_service import SessionRegistry
from api.utils import validate_id
from api.utils.errors import http_error
from engine.errors import AssessmentError, PersistenceError
from engine.session import SessionController
from serialization import serialize_score, serialize_session_view

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

Registry = Annotated[SessionRegistry, Depends(get_session_registry)]


def _get_controller(registry: SessionRegistry, attempt_id: str) -> SessionController:
    attempt_id = validate_id("attemptId", attempt_id)
    try:
        return registry.get(attempt_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")


def _session_payload(controller: SessionController) -> dict[str, object]:
    return serialize_session_view(controller.view())


def _input_response(controller: SessionController, accepted: bool) -> dict[str, object]:
    return {"accepted": accepted, "session": _session_payload(controller)}


@router.post("")
def start_session(payload: StartSessionRequest, registry: Registry) -> dict[str, object]:
    """Start a session, or retry one that was refused for missing media."""
    test_id = validate_id("testId", payload.testId)
    candidate_id = validate_id("candidateId", payload.candidateId)
    try:
        controller = registry.start_session(test_id, candidate_id, payload.mediaGranted)
    except AssessmentError as exc:
        raise http_error(exc)
    return _session_payload(controller)


@router.get("/{attempt_id}")
def get_session(attempt_id: str, registry: Registry) -> dict[str, object]:
    """Get the current session view."""
    return _session_payload(_get_controller(registry, attempt_id))


@router.put("/{attempt_id}/answers/{position}", response_model=InputResponse)
def record_answer(
    attempt_id: str,
    position: int,
    payload: AnswerRequest,
    registry: Registry,
) -> dict[str, object]:
    """Choose (or change) the answer for a question."""
    controller = _get_controller(registry, attempt_id)
    try:
        accepted = controller.record_answer(payload.optionIndex, position=position)
    except (IndexError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _input_response(controller, accepted)


@router.delete("/{attempt_id}/answers/{position}", response_model=InputResponse)
def clear_answer(attempt_id: str, position: int, registry: Registry) -> dict[str, object]:
    """Remove the answer for a question."""
    controller = _get_controller(registry, attempt_id)
    try:
        accepted = controller.clear_answer(position=position)
    except IndexError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _input_response(controller, accepted)


@router.post("/{attempt_id}/navigate", response_model=InputResponse)
def navigate(
    attempt_id: str,
    payload: NavigateRequest,
    registry: Registry,
) -> dict[str, object]:
    """Move to another question."""
    controller = _get_controller(registry, attempt_id)
    try:
        accepted = controller.navigate(payload.position)
    except IndexError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _input_response(controller, accepted)


@router.post("/{attempt_id}/events")
def environment_event(
    attempt_id: str,
    payload: EnvironmentEventRequest,
    registry: Registry,
) -> dict[str, object]:
    """Report a visibility or fullscreen change."""
    controller = _get_controller(registry, attempt_id)
    if payload.eventType is EnvironmentEventType.VISIBILITY:
        if payload.hidden is None:
            raise HTTPException(status_code=400, detail="hidden is required")
        controller.on_visibility_change(payload.hidden)
    else:
        if payload.fullscreen is None:
            raise HTTPException(status_code=400, detail="fullscreen is required")
        controller.on_fullscreen_change(payload.fullscreen)
    return _session_payload(controller)


def _submit_response(controller: SessionController) -> dict[str, object]:
    session = _session_payload(controller)
    return {
        "status": session["state"],
        "score": serialize_score(controller.result),
        "session": session,
    }


@router.post("/{attempt_id}/submit", response_model=SubmitResponse)
def submit_session(attempt_id: str, registry: Registry) -> dict[str, object]:
    """Submit the attempt and return its score."""
    controller = _get_controller(registry, attempt_id)
    try:
        controller.submit()
    except PersistenceError as exc:
        logger.error(f"Submission of attempt {attempt_id} not saved: {exc}")
        raise http_error(exc)
    return _submit_response(controller)


@router.post("/{attempt_id}/retry", response_model=SubmitResponse)
def retry_completion(attempt_id: str, registry: Registry) -> dict[str, object]:
    """Retry saving a submitted attempt whose completion write failed."""
    controller = _get_controller(registry, attempt_id)
    try:
        controller.retry_completion()
    except AssessmentError as exc:
        raise http_error(exc)
    return _submit_response(controller)


@router.delete("/{attempt_id}")
def end_session(attempt_id: str, registry: Registry) -> dict[str, object]:
    """Leave the session. An unfinished attempt is abandoned."""
    attempt_id = validate_id("attemptId", attempt_id)
    try:
        controller = registry.end_session(attempt_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")
    return _session_payload(controller)
