from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.app import app
from api.database import get_db
from api.dependencies import get_session_registry, get_test_repository
from api.services import attempt_service
from api.services.attempt_service import SqlAttemptRepository
from api.services.session_service import SessionRegistry
from api.services.test_service import FileTestRepository, save_test_payload
from engine.errors import InvalidTestDefinition


def _question(question_id: str) -> dict[str, object]:
    return {
        "id": question_id,
        "prompt": f"Question {question_id}",
        "options": ["a", "b", "c", "d"],
        "correctOptionIndex": 1,
    }


def _write_tests(data_dir: Path) -> None:
    save_test_payload(
        "algebra",
        {
            "title": "Algebra",
            "questions": [_question("q1"), _question("q2")],
            "shuffleOptions": False,
            "durationMinutes": 10,
            "passingScore": 50,
        },
        data_dir,
    )
    save_test_payload(
        "limited",
        {"title": "Limited", "questions": [_question("q1")], "maxAttempts": 1},
        data_dir,
    )
    save_test_payload(
        "draft",
        {"title": "Draft", "questions": [_question("q1")], "status": "draft"},
        data_dir,
    )
    save_test_payload(
        "closed",
        {"title": "Closed", "questions": [_question("q1")], "closesAt": "2020-01-01T00:00:00Z"},
        data_dir,
    )
    save_test_payload("empty", {"title": "Empty", "questions": []}, data_dir)


@pytest.fixture
def registry(tmp_path: Path, session_factory) -> SessionRegistry:
    data_dir = tmp_path / "tests"
    _write_tests(data_dir)
    registry = SessionRegistry(
        tests=FileTestRepository(data_dir),
        attempts=SqlAttemptRepository(session_factory),
        tick_interval=None,
        retry_delay=0,
    )
    yield registry
    registry.shutdown()


@pytest.fixture
def client(registry: SessionRegistry, session_factory) -> TestClient:
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_test_repository] = lambda: registry.tests
    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _start(client: TestClient, test_id: str = "algebra", candidate_id: str = "cand-1", media: bool = True):
    return client.post(
        "/api/sessions",
        json={"testId": test_id, "candidateId": candidate_id, "mediaGranted": media},
    )


def test_list_tests_shows_published_only(client: TestClient) -> None:
    response = client.get("/api/tests")
    assert response.status_code == 200
    ids = {item["id"] for item in response.json()}
    assert ids == {"algebra", "limited", "closed", "empty"}
    algebra = next(item for item in response.json() if item["id"] == "algebra")
    assert algebra["questionCount"] == 2
    assert "questions" not in algebra


def test_get_unknown_test(client: TestClient) -> None:
    assert client.get("/api/tests/nope").status_code == 404


def test_full_session_flow(client: TestClient) -> None:
    response = _start(client)
    assert response.status_code == 200
    session = response.json()
    assert session["state"] == "in_progress"
    assert session["questionCount"] == 2
    assert session["mediaActive"] is True
    assert "correctOptionIndex" not in session["currentQuestion"]
    attempt_id = session["attemptId"]

    for position in range(2):
        response = client.put(
            f"/api/sessions/{attempt_id}/answers/{position}", json={"optionIndex": 1}
        )
        assert response.json()["accepted"] is True

    response = client.post(f"/api/sessions/{attempt_id}/navigate", json={"position": 1})
    assert response.json()["session"]["currentQuestion"]["position"] == 1

    response = client.post(f"/api/sessions/{attempt_id}/submit")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["score"]["percent"] == 100
    assert body["score"]["passed"] is True
    assert body["session"]["mediaActive"] is False

    detail = client.get(f"/api/attempts/{attempt_id}").json()
    assert detail["status"] == "completed"
    assert [answer["answerIndex"] for answer in detail["answers"]] == [1, 1]

    results = client.get("/api/tests/algebra/results").json()
    assert results["completedCount"] == 1
    assert results["passedCount"] == 1
    assert results["averageScore"] == 100


def test_second_submit_returns_same_result(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    first = client.post(f"/api/sessions/{attempt_id}/submit").json()
    second = client.post(f"/api/sessions/{attempt_id}/submit").json()
    assert second["score"] == first["score"]
    assert client.get("/api/tests/algebra/results").json()["completedCount"] == 1


def test_media_refusal_then_retry(client: TestClient) -> None:
    response = _start(client, media=False)
    assert response.status_code == 403

    response = _start(client, media=True)
    assert response.status_code == 200
    assert response.json()["state"] == "in_progress"


def test_one_live_session_per_candidate_and_test(client: TestClient) -> None:
    assert _start(client).status_code == 200
    assert _start(client).status_code == 409
    assert _start(client, candidate_id="cand-2").status_code == 200


def test_attempt_limit(client: TestClient) -> None:
    attempt_id = _start(client, test_id="limited").json()["attemptId"]
    client.post(f"/api/sessions/{attempt_id}/submit")
    response = _start(client, test_id="limited")
    assert response.status_code == 409
    assert "limit" in response.json()["detail"]


@pytest.mark.parametrize(
    ("test_id", "status_code"),
    [("draft", 403), ("closed", 403), ("empty", 409), ("missing", 404)],
)
def test_start_refusals(client: TestClient, test_id: str, status_code: int) -> None:
    assert _start(client, test_id=test_id).status_code == status_code


def test_fullscreen_exit_blocks_answers(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    response = client.post(
        f"/api/sessions/{attempt_id}/events",
        json={"eventType": "fullscreen", "fullscreen": False},
    )
    assert response.json()["blocked"] is True

    response = client.put(f"/api/sessions/{attempt_id}/answers/0", json={"optionIndex": 1})
    assert response.json()["accepted"] is False
    assert response.json()["session"]["answeredPositions"] == []


def test_visibility_event_counts_violation(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    response = client.post(
        f"/api/sessions/{attempt_id}/events",
        json={"eventType": "visibility", "hidden": True},
    )
    assert response.json()["violationCount"] == 1

    response = client.post(f"/api/sessions/{attempt_id}/events", json={"eventType": "visibility"})
    assert response.status_code == 400


def test_invalid_answer_rejected(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    response = client.put(f"/api/sessions/{attempt_id}/answers/0", json={"optionIndex": 7})
    assert response.status_code == 400
    response = client.put(f"/api/sessions/{attempt_id}/answers/9", json={"optionIndex": 0})
    assert response.status_code == 400


def test_clear_answer(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    client.put(f"/api/sessions/{attempt_id}/answers/0", json={"optionIndex": 2})
    response = client.delete(f"/api/sessions/{attempt_id}/answers/0")
    assert response.json()["session"]["answeredPositions"] == []


def test_end_session_abandons_attempt(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    response = client.delete(f"/api/sessions/{attempt_id}")
    assert response.status_code == 200
    assert response.json()["state"] == "abandoned"
    assert response.json()["mediaActive"] is False

    assert client.get(f"/api/sessions/{attempt_id}").status_code == 404
    assert client.get(f"/api/attempts/{attempt_id}").json()["status"] == "abandoned"


def test_unknown_session(client: TestClient) -> None:
    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/submit").status_code == 404


def test_failed_submission_can_be_retried(client: TestClient, monkeypatch) -> None:
    attempt_id = _start(client).json()["attemptId"]
    original = attempt_service.complete_attempt
    failures = []

    def _flaky(*args, **kwargs):
        if len(failures) < 2:
            failures.append(1)
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        return original(*args, **kwargs)

    monkeypatch.setattr(attempt_service, "complete_attempt", _flaky)

    response = client.post(f"/api/sessions/{attempt_id}/submit")
    assert response.status_code == 503
    assert client.get(f"/api/sessions/{attempt_id}").json()["state"] == "submitting"

    response = client.post(f"/api/sessions/{attempt_id}/retry")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"


def test_unsaved_result_survives_leaving_session(client: TestClient, monkeypatch) -> None:
    attempt_id = _start(client).json()["attemptId"]
    client.put(f"/api/sessions/{attempt_id}/answers/0", json={"optionIndex": 1})
    original = attempt_service.complete_attempt

    def _failing(*args, **kwargs):
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(attempt_service, "complete_attempt", _failing)
    assert client.post(f"/api/sessions/{attempt_id}/submit").status_code == 503

    response = client.delete(f"/api/sessions/{attempt_id}")
    assert response.status_code == 200
    assert response.json()["state"] == "submitting"
    assert response.json()["scorePercent"] == 50

    monkeypatch.setattr(attempt_service, "complete_attempt", original)
    response = client.post(f"/api/sessions/{attempt_id}/retry")
    assert response.status_code == 200
    assert response.json()["score"]["percent"] == 50
    assert client.get(f"/api/attempts/{attempt_id}").json()["status"] == "completed"


def test_malformed_test_is_rejected(client: TestClient, registry: SessionRegistry) -> None:
    save_test_payload(
        "broken",
        {"title": "Broken", "questions": [_question("q1")], "status": "archived"},
        registry.tests.data_dir,
    )

    response = client.get("/api/tests/broken")
    assert response.status_code == 422
    assert _start(client, test_id="broken").status_code == 422

    ids = {item["id"] for item in client.get("/api/tests").json()}
    assert "broken" not in ids
    assert "algebra" in ids


def test_retry_without_failed_submission(client: TestClient) -> None:
    attempt_id = _start(client).json()["attemptId"]
    assert client.post(f"/api/sessions/{attempt_id}/retry").status_code == 409


def test_unreadable_test_payload(tmp_path: Path) -> None:
    (tmp_path / "garbled").mkdir()
    (tmp_path / "garbled" / "test.json").write_text("{not json", encoding="utf-8")
    save_test_payload("algebra", {"title": "Algebra", "questions": [_question("q1")]}, tmp_path)
    repository = FileTestRepository(tmp_path)

    with pytest.raises(InvalidTestDefinition) as excinfo:
        repository.get_test_definition("garbled")
    assert excinfo.value.test_id == "garbled"
    assert [test.id for test in repository.list_published()] == ["algebra"]
