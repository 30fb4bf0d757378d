"""API endpoint tests using FastAPI TestClient."""
import sys
import os
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fastapi.testclient import TestClient
import main
from models import Player, QuizPhase
from quiz_session import QuizSession


@pytest.fixture(autouse=True)
def fresh_session(monkeypatch):
    """Swap in an empty session for each test."""
    session = QuizSession(main.socket_manager)
    monkeypatch.setattr(main, "quiz_session", session)
    return session


client = TestClient(main.app)


# ---------------------------------------------------------------------------
# Health & Root
# ---------------------------------------------------------------------------

class TestHealthEndpoints:
    def test_root(self):
        res = client.get("/")
        assert res.status_code == 200
        assert "running" in res.json()["message"].lower()

    def test_health(self):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json()["status"] == "healthy"

    def test_system_info(self):
        res = client.get("/system/info")
        assert res.status_code == 200
        assert "ip" in res.json()


# ---------------------------------------------------------------------------
# State snapshot
# ---------------------------------------------------------------------------

class TestStateEndpoint:
    def test_initial_state(self):
        res = client.get("/state")
        assert res.status_code == 200
        data = res.json()
        assert data["phase"] == "idle"
        assert data["timer"] == 0
        assert data["participants"] == []
        assert data["winners"] == []
        assert data["history"] == []
        assert data["currentQuiz"] == {
            "question": "",
            "options": ["", "", "", "", ""],
            "correctAnswerIndex": None,
            "timeLimit": 30,
        }

    def test_reflects_session_changes(self, fresh_session):
        fresh_session.state.participants[3] = Player(id=3, name="Carol")
        fresh_session.state.winners.append(3)
        fresh_session.state.phase = QuizPhase.SHOW_RESULTS
        data = client.get("/state").json()
        assert data["phase"] == "show_results"
        assert data["participants"] == [{"id": 3, "name": "Carol"}]
        assert data["winners"] == [3]

    def test_state_is_read_only(self):
        res = client.post("/state", json={"phase": "show_results"})
        assert res.status_code == 405
