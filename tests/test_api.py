"""
API tests using FastAPI's TestClient.

The orchestrator singleton is replaced by one wired to in-memory
collaborators, so no request leaves the process.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import FakePlanSource, FakePlayer, FakeScorer, RecordingSleep
from main import app
from oralexam.api import dependencies
from oralexam.core.exam_orchestrator import ExamOrchestrator
from oralexam.errors import PlanGenerationError


@pytest.fixture
def orchestrator(two_section_plan, monkeypatch):
    orchestrator = ExamOrchestrator(
        content_service=FakePlanSource(two_section_plan),
        scorer=FakeScorer(),
        player_factory=FakePlayer,
        settle_seconds=0,
        rest_seconds=10,
        sleep=RecordingSleep(),
    )
    monkeypatch.setattr(dependencies, "_orchestrator", orchestrator)
    return orchestrator


@pytest.fixture
def client(orchestrator):
    with TestClient(app) as client:
        yield client


def create_session(client) -> str:
    response = client.post("/api/exam/sessions")
    assert response.status_code == 200
    return response.json()["session_id"]


def run_to_review(client, session_id: str) -> dict:
    client.post(f"/api/exam/{session_id}/generate")
    client.post(f"/api/exam/{session_id}/start")
    for _ in range(500):
        status = client.get(f"/api/exam/{session_id}/status").json()
        if status["status"] in ("review", "aborted"):
            return status
    raise AssertionError("exam did not finish")


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestExamEndpoints:

    def test_create_session(self, client):
        response = client.post("/api/exam/sessions")

        assert response.json()["status"] == "idle"

    def test_generate_plan(self, client):
        session_id = create_session(client)

        response = client.post(f"/api/exam/{session_id}/generate")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["total_items"] == 3
        assert [s["tag"] for s in body["sections"]] == ["SpeakingA", "SpeakingB"]

    def test_generation_failure(self, client, orchestrator):
        orchestrator.content_service = FakePlanSource(error=PlanGenerationError("quota exceeded"))
        session_id = create_session(client)

        response = client.post(f"/api/exam/{session_id}/generate")

        assert response.status_code == 502
        assert client.get(f"/api/exam/{session_id}/status").json()["status"] == "idle"

    def test_load_plan(self, client, two_section_plan):
        session_id = create_session(client)

        response = client.post(
            f"/api/exam/{session_id}/plan", json=two_section_plan.model_dump(mode="json")
        )

        assert response.status_code == 200
        assert response.json()["plan_id"] == two_section_plan.plan_id

    def test_load_invalid_plan(self, client):
        session_id = create_session(client)

        response = client.post(f"/api/exam/{session_id}/plan", json={"sections": []})

        assert response.status_code == 422

    def test_unknown_session(self, client):
        assert client.get("/api/exam/missing/status").status_code == 404
        assert client.post("/api/exam/missing/start").status_code == 404

    def test_start_before_plan_conflicts(self, client):
        session_id = create_session(client)

        assert client.post(f"/api/exam/{session_id}/start").status_code == 409

    def test_abort_when_not_running_conflicts(self, client):
        session_id = create_session(client)

        assert client.post(f"/api/exam/{session_id}/abort").status_code == 409

    def test_full_run(self, client):
        session_id = create_session(client)

        status = run_to_review(client, session_id)

        assert status["status"] == "review"
        assert status["scoring_current"] == status["scoring_total"] == 3

    def test_restart_after_review(self, client):
        session_id = create_session(client)
        run_to_review(client, session_id)

        response = client.post(f"/api/exam/{session_id}/restart")

        assert response.status_code == 200
        assert response.json()["status"] == "idle"


class TestReportEndpoints:

    def test_report(self, client):
        session_id = create_session(client)
        run_to_review(client, session_id)

        report = client.get(f"/api/exam/{session_id}/report").json()

        assert report["total_score"] == pytest.approx(1.5)
        assert report["max_score"] == pytest.approx(2.0)
        assert [s["section_tag"] for s in report["sections"]] == ["SpeakingA", "SpeakingB"]

    def test_summary(self, client):
        session_id = create_session(client)
        run_to_review(client, session_id)

        summary = client.get(f"/api/exam/{session_id}/report/summary").json()

        assert summary["score_percentage"] == pytest.approx(75.0)
        assert summary["unscored_items"] == 0

    def test_markdown_download(self, client):
        session_id = create_session(client)
        run_to_review(client, session_id)

        response = client.get(f"/api/exam/{session_id}/report/markdown")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert "attachment" in response.headers["content-disposition"]
        assert response.text.startswith("# Shanghai Oral English Test Report")

    def test_report_before_review_conflicts(self, client):
        session_id = create_session(client)

        assert client.get(f"/api/exam/{session_id}/report").status_code == 409

    def test_report_unknown_session(self, client):
        assert client.get("/api/exam/missing/report").status_code == 404


class TestMetadataEndpoints:

    def test_sections(self, client):
        sections = client.get("/api/metadata/sections").json()

        assert [s["kind"] for s in sections] == [
            "SpeakingA", "SpeakingB", "SpeakingC", "SpeakingD", "ListeningA", "ListeningB",
        ]

    def test_section(self, client):
        section = client.get("/api/metadata/sections/SpeakingD").json()

        assert section["item_max_score"] == 1.5
        assert section["prep_seconds"] == 60

    def test_unknown_section(self, client):
        assert client.get("/api/metadata/sections/Writing").status_code == 404


class TestWebSocket:

    def test_initial_snapshot_and_ping(self, client):
        session_id = create_session(client)

        with client.websocket_connect(f"/api/exam/ws/{session_id}") as websocket:
            first = websocket.receive_json()
            websocket.send_json({"type": "ping"})
            second = websocket.receive_json()

        assert first["type"] == "snapshot"
        assert first["data"]["status"] == "idle"
        assert second == {"type": "pong"}

    def test_invalid_audio_chunk(self, client):
        session_id = create_session(client)

        with client.websocket_connect(f"/api/exam/ws/{session_id}") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "audio_chunk", "data": "abc"})
            reply = websocket.receive_json()

        assert reply["type"] == "error"

    def test_non_object_message_is_rejected(self, client):
        session_id = create_session(client)

        with client.websocket_connect(f"/api/exam/ws/{session_id}") as websocket:
            websocket.receive_json()
            websocket.send_json(["ping"])
            reply = websocket.receive_json()
            websocket.send_json({"type": "ping"})
            after = websocket.receive_json()

        assert reply["type"] == "error"
        assert after == {"type": "pong"}

    def test_unknown_session_closes(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/exam/ws/missing") as websocket:
                websocket.receive_json()
