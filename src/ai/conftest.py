"""Shared fixtures for AI tests: a scripted in-memory provider."""

from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from src.ai.base import (
    AIProvider,
    ChatStreamChunk,
    ModelMessage,
    ModerationClassification,
)


@dataclass
class TextCall:
    messages: list[ModelMessage]
    model: str | None
    kwargs: dict[str, Any] = field(default_factory=dict)

    @property
    def texts(self) -> list[str]:
        """Text parts of the first message, in order."""
        content = self.messages[0].content
        if isinstance(content, str):
            return [content]
        return [part.text for part in content if part.type == "input_text"]

    @property
    def image_urls(self) -> list[str]:
        content = self.messages[0].content
        if isinstance(content, str):
            return []
        return [part.image_url for part in content if part.type == "input_image"]


class FakeProvider(AIProvider):
    """Provider that records every call and answers from scripted data."""

    def __init__(
        self,
        has_credentials: bool = True,
        responder: Callable[[TextCall], str] | None = None,
        chat_chunks: list[ChatStreamChunk] | None = None,
        moderation: ModerationClassification | None = None,
        moderation_error: Exception | None = None,
    ):
        self._has_credentials = has_credentials
        self.responder = responder or (lambda call: "fake output")
        self.chat_chunks = chat_chunks or []
        self.moderation = moderation or ModerationClassification(flagged=False)
        self.moderation_error = moderation_error
        self.text_calls: list[TextCall] = []
        self.chat_calls: list[dict[str, Any]] = []
        self.moderation_calls: list[str] = []

    @property
    def has_credentials(self) -> bool:
        return self._has_credentials

    async def stream_chat(
        self,
        messages,
        instructions=None,
        enable_web_search=False,
        vector_store_ids=None,
        **kwargs,
    ):
        self.chat_calls.append(
            {
                "messages": messages,
                "instructions": instructions,
                "enable_web_search": enable_web_search,
                "vector_store_ids": vector_store_ids,
                **kwargs,
            }
        )
        for chunk in self.chat_chunks:
            yield chunk

    async def stream_text(self, messages, model=None, **kwargs):
        call = TextCall(messages=messages, model=model, kwargs=kwargs)
        self.text_calls.append(call)
        output = self.responder(call)
        # Split into several deltas like a real stream
        for start in range(0, len(output), 5):
            yield output[start : start + 5]

    async def moderate(self, text: str) -> ModerationClassification:
        self.moderation_calls.append(text)
        if self.moderation_error is not None:
            raise self.moderation_error
        return self.moderation


@pytest.fixture
def make_provider():
    """Factory for ``FakeProvider`` instances."""
    return FakeProvider
