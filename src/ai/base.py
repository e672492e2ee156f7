"""Base classes for AI provider abstraction."""

import base64
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncGenerator, Literal

from pydantic import BaseModel, Field


class ToolName(str, Enum):
    """Enum for tool names used in the system."""

    WEB_SEARCH = "web_search"
    FILE_SEARCH = "file_search"


class ToolStatus(str, Enum):
    """Enum for tool execution status."""

    COMPLETE = "complete"


class SearchCitation(BaseModel):
    """Citation from web search results."""

    url: str
    title: str | None = None


class ReasoningSummary(BaseModel):
    """Incrementally updated summary of the model's reasoning.

    The same ``id`` is re-sent with a longer ``summary`` as deltas arrive.
    """

    id: str
    summary: str


class ToolCall(BaseModel):
    """Tool call information streamed to the UI.

    ``result`` is None while the tool is running.
    """

    tool_call_id: str
    tool_name: ToolName
    args: dict[str, Any]
    result: dict[str, Any] | None = None


class ChatStreamChunk(BaseModel):
    """Chunk from a streaming chat response.

    A chunk may carry content text, reasoning summaries, tool calls and
    citations from web search results. ``finish_reason`` is set on the last
    chunk of the stream.
    """

    content: str = ""
    reasoning_summaries: list[ReasoningSummary] = []
    tool_calls: list[ToolCall] = []
    citations: list[SearchCitation] = []
    finish_reason: str | None = None


class InputTextPart(BaseModel):
    """Text content sent to the model."""

    type: Literal["input_text"] = "input_text"
    text: str


class InputImagePart(BaseModel):
    """Inline image content sent to the model as a data URL."""

    type: Literal["input_image"] = "input_image"
    image_url: str
    detail: Literal["low", "high", "auto"] = "auto"

    @classmethod
    def from_bytes(
        cls, data: bytes, media_type: str = "image/png"
    ) -> "InputImagePart":
        encoded = base64.b64encode(data).decode("ascii")
        return cls(image_url=f"data:{media_type};base64,{encoded}")


ModelContentPart = InputTextPart | InputImagePart


class ModelMessage(BaseModel):
    """A role-tagged message sent to the model.

    ``content`` is either plain text or an ordered list of content parts.
    System prompts are passed separately via ``instructions``.
    """

    role: Literal["user", "assistant"]
    content: str | list[ModelContentPart]


class ModerationClassification(BaseModel):
    """Raw moderation verdict: overall flag plus the names of triggered categories."""

    flagged: bool
    categories: list[str] = Field(default_factory=list)


class AIProvider(ABC):
    """Abstract base class for AI providers.

    Each provider is the only place that knows its SDK's request and
    response shapes; callers work with the models defined above.
    """

    @property
    @abstractmethod
    def has_credentials(self) -> bool:
        """Whether a model access credential is configured."""
        pass

    @abstractmethod
    async def stream_chat(
        self,
        messages: list[ModelMessage],
        instructions: str | None = None,
        enable_web_search: bool = False,
        vector_store_ids: list[str] | None = None,
        **kwargs,
    ) -> AsyncGenerator[ChatStreamChunk, None]:
        """Stream chat responses with optional web search, file search, and citations.

        Args:
            messages: Chat messages (user and assistant only, no system messages)
            instructions: Optional system prompt/instructions
            enable_web_search: Whether to enable web search capability
            vector_store_ids: Optional list of vector store IDs for file search
            **kwargs: Provider-specific options (model, reasoning_effort, etc.)

        Yields:
            ChatStreamChunk: Stream chunks with content and optional citations
        """
        pass

    @abstractmethod
    def stream_text(
        self,
        messages: list[ModelMessage],
        model: str | None = None,
        **kwargs,
    ) -> AsyncGenerator[str, None]:
        """Stream plain text deltas for a single model call without tools.

        Args:
            messages: Messages, possibly containing inline images
            model: Model name (provider default if omitted)
            **kwargs: Provider-specific options (reasoning_effort, etc.)

        Yields:
            str: Text deltas in arrival order
        """
        pass

    @abstractmethod
    async def moderate(self, text: str) -> ModerationClassification:
        """Classify text with the provider's moderation model.

        Raises on transport or API failure; the caller decides the policy.
        """
        pass

    async def collect_text(
        self,
        messages: list[ModelMessage],
        model: str | None = None,
        **kwargs,
    ) -> str:
        """Fully drain ``stream_text`` and return the concatenated output."""
        collected = ""
        async for delta in self.stream_text(messages, model=model, **kwargs):
            collected += delta
        return collected
