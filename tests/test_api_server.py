from datetime import date

import pytest
from fastapi.testclient import TestClient

from conftest import make_questions

from exam_app.core.question_provider import StaticQuestionProvider
from exam_app.core.quiz_manager import QuizManager
from exam_app.core.services.history_repository import InMemoryHistoryRepository
from exam_app.server.api_server import create_api_app

_SESSION = {
    "exam": "RRB NTPC",
    "subject": "Reasoning",
    "topics": ["Series"],
    "question_count": 5,
    "user_id": "u1",
}


@pytest.fixture
def manager():
    quiz_manager = QuizManager(
        StaticQuestionProvider(make_questions(10)),
        InMemoryHistoryRepository(),
        auto_tick=False,
    )
    yield quiz_manager
    quiz_manager.shutdown()


@pytest.fixture
def client(manager):
    return TestClient(create_api_app(manager))


def test_catalog_lists_exams_and_limits(client):
    body = client.get("/catalog").json()
    assert body["question_count"] == {"min": 5, "max": 120}
    assert body["turn_duration_seconds"] == 60
    assert {category["id"] for category in body["exam_categories"]} == {"railway", "bank"}


def test_solo_flow_to_result_and_dashboard(client, manager):
    created = client.post("/sessions", json=_SESSION)
    assert created.status_code == 201
    snapshot = created.json()
    session_id = snapshot["session_id"]
    assert snapshot["phase"] == "active"
    assert "correct_index" not in snapshot
    assert snapshot["options"] == ["A", "B", "C", "D"]

    for index in range(5):
        selected = client.post(f"/sessions/{session_id}/select", json={"option_index": index % 4})
        assert selected.json()["current_selection"] == index % 4
        advanced = client.post(f"/sessions/{session_id}/advance")
        assert advanced.status_code == 200

    assert advanced.json()["phase"] == "done"
    result = client.get(f"/sessions/{session_id}/result").json()
    assert result["player_one"]["score"] == 5
    assert result["player_two"] is None
    assert result["winner"] is None
    assert result["questions"][0]["explanation"]["concept"] == "Concept 0"

    manager.flush_pending_writes()
    history = client.get("/users/u1/history").json()
    assert len(history) == 1
    dashboard = client.get("/users/u1/dashboard", params={"today": date.today().isoformat()}).json()
    assert dashboard["total_quizzes"] == 1
    assert dashboard["xp"] == 35
    assert dashboard["streak"] == 1
    assert len(dashboard["daily_accuracy"]) == 7


def test_versus_flow_reports_winner(client):
    payload = dict(_SESSION, mode="1vs1", player_one_name="Asha", player_two_name="Ravi")
    session_id = client.post("/sessions", json=payload).json()["session_id"]

    for index in range(5):
        client.post(f"/sessions/{session_id}/select", json={"option_index": index % 4})
        turn = client.post(f"/sessions/{session_id}/advance").json()
        if turn["phase"] == "active":
            assert turn["active_party_name"] == "Ravi"
        client.post(f"/sessions/{session_id}/advance")

    result = client.get(f"/sessions/{session_id}/result").json()
    assert result["winner"] == "Asha"
    assert result["player_two"]["score"] == 0


def test_back_is_rejected_in_versus(client):
    payload = dict(_SESSION, mode="1vs1")
    session_id = client.post("/sessions", json=payload).json()["session_id"]
    response = client.post(f"/sessions/{session_id}/back")
    assert response.status_code == 409


def test_invalid_configuration_is_422(client):
    response = client.post("/sessions", json=dict(_SESSION, question_count=500))
    assert response.status_code == 422


def test_out_of_range_option_is_409(client):
    session_id = client.post("/sessions", json=_SESSION).json()["session_id"]
    response = client.post(f"/sessions/{session_id}/select", json={"option_index": 7})
    assert response.status_code == 409


def test_unknown_session_is_404(client):
    assert client.get("/sessions/nope").status_code == 404


def test_cancel_then_result_is_409(client):
    session_id = client.post("/sessions", json=_SESSION).json()["session_id"]
    cancelled = client.post(f"/sessions/{session_id}/cancel").json()
    assert cancelled["phase"] == "cancelled"
    assert client.get(f"/sessions/{session_id}/result").status_code == 409
    assert client.get("/users/u1/history").json() == []


def test_failed_generation_can_be_retried():
    calls = {"count": 0}

    class OnceBroken:
        def generate_questions(self, config, preferred_topics=()):
            calls["count"] += 1
            if calls["count"] == 1:
                raise ConnectionError("offline")
            return make_questions(5)

    quiz_manager = QuizManager(OnceBroken(), InMemoryHistoryRepository(), auto_tick=False)
    client = TestClient(create_api_app(quiz_manager))

    failed = client.post("/sessions", json=_SESSION).json()
    assert failed["phase"] == "failed"
    assert failed["can_retry"] is True

    retried = client.post(f"/sessions/{failed['session_id']}/retry").json()
    assert retried["phase"] == "active"
    quiz_manager.shutdown()


def test_delete_discards_session(client):
    session_id = client.post("/sessions", json=_SESSION).json()["session_id"]
    assert client.delete(f"/sessions/{session_id}").status_code == 204
    assert client.get(f"/sessions/{session_id}").status_code == 404
    assert client.delete(f"/sessions/{session_id}").status_code == 404
