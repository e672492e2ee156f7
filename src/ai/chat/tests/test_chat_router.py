"""Tests for the chat SSE endpoint."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from src.ai.chat.router import get_chat_service
from src.ai.chat.service import ChatService
from src.ai.chat.stream import UIMessageStreamWriter
from src.ai.base import ChatStreamChunk
from src.ai.openai.config import OpenAISettings
from src.config import AppSettings, get_app_settings, set_app_settings
from src.main import app


def parse_sse(body: str) -> list:
    """Split an SSE body into decoded JSON events plus the raw [DONE] marker."""
    events = []
    for frame in body.split("\n\n"):
        if not frame:
            continue
        assert frame.startswith("data: ")
        payload = frame[len("data: ") :]
        events.append(payload if payload == "[DONE]" else json.loads(payload))
    return events


class SlowChatService:
    """Emits a start event and then stalls."""

    async def stream_response(self, messages):
        writer = UIMessageStreamWriter()
        yield writer.start()
        await asyncio.sleep(30)
        yield writer.finish()


class BrokenChatService:
    async def stream_response(self, messages):
        yield UIMessageStreamWriter().start()
        raise RuntimeError("unexpected failure")


@pytest.fixture
def client_for():
    """Build a test client around a given chat service."""

    original_settings = get_app_settings()

    def build(service, app_settings: AppSettings | None = None):
        app.dependency_overrides[get_chat_service] = lambda: service
        if app_settings is not None:
            set_app_settings(app_settings)
        return TestClient(app)

    yield build

    app.dependency_overrides.clear()
    set_app_settings(original_settings)


def chat_body(text: str) -> dict:
    return {"messages": [{"id": "m1", "role": "user", "parts": [{"type": "text", "text": text}]}]}


class TestChatRoutes:
    """Test suite for POST /api/chat."""

    def test_streams_ui_message_events(self, client_for, make_provider):
        provider = make_provider(
            chat_chunks=[ChatStreamChunk(content="Hello!", finish_reason="completed")]
        )
        service = ChatService(provider, OpenAISettings(api_key="sk-test"))

        with client_for(service) as client:
            response = client.post("/api/chat", json=chat_body("hi"))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["x-vercel-ai-ui-message-stream"] == "v1"
        events = parse_sse(response.text)
        assert events[-1] == "[DONE]"
        assert [event["type"] for event in events[:-1]] == [
            "start",
            "text-start",
            "text-delta",
            "text-end",
            "finish",
        ]
        assert events[2] == {"type": "text-delta", "id": "text-1", "delta": "Hello!"}

    def test_missing_credentials_still_returns_complete_stream(
        self, client_for, make_provider
    ):
        service = ChatService(make_provider(has_credentials=False), OpenAISettings())

        with client_for(service) as client:
            response = client.post("/api/chat", json=chat_body("hi"))

        events = parse_sse(response.text)
        assert events[0]["type"] == "start"
        assert events[-2]["type"] == "finish"
        assert events[-1] == "[DONE]"

    def test_stops_when_time_budget_is_exhausted(self, client_for):
        settings = AppSettings(max_request_duration_seconds=0.2)

        with client_for(SlowChatService(), settings) as client:
            response = client.post("/api/chat", json=chat_body("hi"))

        events = parse_sse(response.text)
        # Envelope is left open: no finish and no [DONE]
        assert events == [{"type": "start"}]

    def test_unexpected_error_is_reported_as_error_event(self, client_for):
        with client_for(BrokenChatService()) as client:
            response = client.post("/api/chat", json=chat_body("hi"))

        events = parse_sse(response.text)
        assert events[0] == {"type": "start"}
        assert events[-1] == {"type": "error", "errorText": "unexpected failure"}

    def test_invalid_request_is_rejected(self, client_for, make_provider):
        service = ChatService(make_provider(), OpenAISettings(api_key="sk-test"))

        with client_for(service) as client:
            response = client.post("/api/chat", json={"messages": [{"role": "robot"}]})

        assert response.status_code == 422


class TestHealthRoutes:
    """Test suite for service health endpoints."""

    def test_healthcheck(self):
        with TestClient(app) as client:
            response = client.get("/healthcheck")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
