import logging
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from analyst import main
from analyst.config import Settings
from analyst.services import run_manager
from analyst.services.pipeline import PipelineOrchestrator
from analyst.services.run_manager import RunManager
from conftest import MIB, FakeGeminiServer, RecordingSleep

logger = logging.getLogger(__name__)


@pytest.fixture
def manager(
    monkeypatch: pytest.MonkeyPatch,
    make_settings: Callable[..., Settings],
    fake_gemini: FakeGeminiServer,
    recording_sleep: RecordingSleep,
) -> RunManager:
    orchestrator = PipelineOrchestrator(
        make_settings(),
        client_factory=lambda: fake_gemini.client(),
        sleep=recording_sleep,
    )
    manager = RunManager(orchestrator)
    monkeypatch.setattr(run_manager, "_run_manager", manager)
    return manager


@pytest.fixture
def client(manager: RunManager) -> TestClient:
    return TestClient(main.app)


def _wait_for_terminal(client: TestClient, attempts: int = 100) -> dict:
    for _ in range(attempts):
        state = client.get("/api/analysis").json()
        if state["stage"] in ("succeeded", "failed"):
            return state
        time.sleep(0.02)
    raise AssertionError(f"Run did not finish: {state}")


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_idle_state(client: TestClient) -> None:
    response = client.get("/api/analysis")

    assert response.status_code == 200
    body = response.json()
    assert body["stage"] == "idle"
    assert body["progress"] == 0
    assert body["failure"] is None


def test_result_and_raw_unavailable_before_run(client: TestClient) -> None:
    assert client.get("/api/analysis/result").status_code == 404
    assert client.get("/api/analysis/raw").status_code == 404


def test_start_with_missing_file(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/api/analysis", json={"media_path": str(tmp_path / "missing.mp4")})

    assert response.status_code == 404


def test_cancel_without_run_conflicts(client: TestClient) -> None:
    assert client.delete("/api/analysis").status_code == 409


def test_full_run_over_http(manager: RunManager, make_media_file: Callable[..., Path]) -> None:
    media = make_media_file("clip.mp4", MIB)

    with TestClient(main.app) as client:
        response = client.post("/api/analysis", json={"media_path": str(media)})
        assert response.status_code == 202
        assert response.json()["run_id"] == 1

        state = _wait_for_terminal(client)
        assert state["stage"] == "succeeded"
        assert state["progress"] == 100

        result = client.get("/api/analysis/result")
        assert result.status_code == 200
        assert result.json()["match_context"] == "Derby, second half"
        assert result.json()["primary_section"] == "tactics"

        raw = client.get("/api/analysis/raw")
        assert raw.status_code == 200
        assert "Derby, second half" in raw.json()["raw_response"]


def test_websocket_sends_state_and_closes_when_idle(client: TestClient) -> None:
    with client.websocket_connect("/ws/analysis") as websocket:
        message = websocket.receive_json()

    assert message["stage"] == "idle"


def test_second_start_conflicts_and_delete_cancels(
    make_settings: Callable[..., Settings],
    fake_gemini: FakeGeminiServer,
    monkeypatch: pytest.MonkeyPatch,
    make_media_file: Callable[..., Path],
) -> None:
    fake_gemini.file_states = ["PROCESSING"]
    orchestrator = PipelineOrchestrator(
        make_settings(poll_interval=0.01),
        client_factory=lambda: fake_gemini.client(),
    )
    monkeypatch.setattr(run_manager, "_run_manager", RunManager(orchestrator))
    media = str(make_media_file("derby.mp4", 21 * MIB))

    with TestClient(main.app) as client:
        assert client.post("/api/analysis", json={"media_path": media}).status_code == 202

        conflict = client.post("/api/analysis", json={"media_path": media})
        assert conflict.status_code == 409
        assert conflict.json()["detail"] == "Run 1 is still in progress"

        cancelled = client.delete("/api/analysis")
        assert cancelled.status_code == 200
        assert cancelled.json()["stage"] == "failed"
        assert cancelled.json()["failure"]["reason"] == "cancelled"

        assert client.delete("/api/analysis").status_code == 409


def test_websocket_unsubscribes_when_idle(client: TestClient, manager: RunManager) -> None:
    with client.websocket_connect("/ws/analysis") as websocket:
        assert websocket.receive_json()["stage"] == "idle"

    assert manager._subscribers == []
