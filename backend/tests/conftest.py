import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from analyst.config import Settings
from analyst.services.ai_clients import GeminiClient

logger = logging.getLogger(__name__)

BASE_URL = "https://gemini.test"
SESSION_URL = f"{BASE_URL}/upload/v1beta/files?upload_id=session-1"
FILE_NAME = "files/abc"
FILE_URI = f"{BASE_URL}/v1beta/files/abc"
MIB = 1024 * 1024

SAMPLE_ANALYSIS: dict[str, Any] = {
    "match_context": "Derby, second half",
    "formations": {"team_a": "4-3-3", "team_b": "Dynamic/Unclear"},
    "events": [
        {
            "timestamp": "01:12",
            "seconds": 72,
            "type": "Shot",
            "team": "Team A",
            "description": "Low drive from the edge of the box",
        },
    ],
    "player_analysis": [],
    "tactical_insights": [
        {
            "title": "Half-space overload",
            "phase": "Attack",
            "observation": "The left eight drifts wide",
            "improvement": "Hold the half-space",
            "drill_name": "Rondo 4v2",
            "drill_setup": "20x20 grid",
            "visual_cue": "Triangle on the left",
            "key_moment_timestamp": "01:05",
            "key_moment_seconds": 65,
        },
    ],
}


class RecordingSleep:
    """Awaitable sleep that records the requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeGeminiServer:
    """
    In-process stand-in for the Gemini REST API, served via httpx.MockTransport.

    Attributes:
        file_states: States returned by successive status checks (last one repeats)
        generate_responses: Per-call inference outcomes; an int is an HTTP
            error status, a str is the model output text
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.start_response: httpx.Response | None = None
        self.finalize_response: httpx.Response | None = None
        self.file_states: list[str] = ["ACTIVE"]
        self.generate_responses: list[int | str] = [json.dumps(SAMPLE_ANALYSIS)]
        self.uploaded_bytes = 0

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, **config: Any) -> GeminiClient:
        settings = Settings(gemini_api_key="test-key", gemini_base_url=BASE_URL, **config)
        return GeminiClient.from_settings(settings, transport=self.transport)

    def requests_for(self, method: str, path_suffix: str = "") -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.endswith(path_suffix)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/upload/v1beta/files":
            if self.start_response is not None:
                return self.start_response
            return httpx.Response(200, headers={"x-goog-upload-url": SESSION_URL})

        if request.method == "PUT" and str(request.url) == SESSION_URL:
            self.uploaded_bytes = len(request.content)
            if self.finalize_response is not None:
                return self.finalize_response
            return httpx.Response(
                200,
                json={
                    "file": {
                        "name": FILE_NAME,
                        "uri": FILE_URI,
                        "mimeType": "video/mp4",
                        "state": "PROCESSING",
                    },
                },
            )

        if request.method == "GET" and path == f"/v1beta/{FILE_NAME}":
            state = self.file_states.pop(0) if len(self.file_states) > 1 else self.file_states[0]
            return httpx.Response(200, json={"name": FILE_NAME, "state": state})

        if request.method == "POST" and path.endswith(":generateContent"):
            outcome = self.generate_responses.pop(0)
            if isinstance(outcome, int):
                return httpx.Response(
                    outcome,
                    json={"error": {"code": outcome, "message": "The model is overloaded."}}
                    if outcome in (429, 503)
                    else {"error": {"code": outcome, "message": "Invalid argument."}},
                )
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": outcome}]}}]},
            )

        return httpx.Response(404, json={"error": {"message": f"No route for {path}"}})


@pytest.fixture
def fake_gemini() -> FakeGeminiServer:
    return FakeGeminiServer()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make_settings(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "gemini_api_key": "test-key",
            "gemini_base_url": BASE_URL,
            "analysis_model": "gemini-3-pro-preview",
            "poll_interval": 2.0,
            "retry_base_delay": 2.0,
            # Keep the cosmetic ticker out of state assertions
            "progress_interval": 60.0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make_settings


@pytest.fixture
def make_media_file(tmp_path: Path) -> Callable[..., Path]:
    def _make_media_file(name: str = "match.mp4", size_bytes: int = 1024) -> Path:
        path = tmp_path / name
        with open(path, "wb") as f:
            # Sparse file: the size is what matters, not the content
            f.truncate(size_bytes)
        return path

    return _make_media_file
