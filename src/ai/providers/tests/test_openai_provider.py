"""Tests for the OpenAI provider with a mocked client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from openai.types.responses import (
    Response,
    ResponseCompletedEvent,
    ResponseErrorEvent,
    ResponseIncompleteEvent,
    ResponseOutputTextAnnotationAddedEvent,
    ResponseReasoningSummaryTextDeltaEvent,
    ResponseTextDeltaEvent,
    ResponseWebSearchCallCompletedEvent,
    ResponseWebSearchCallInProgressEvent,
)
from openai.types.responses.response import IncompleteDetails

from src.ai.base import InputImagePart, InputTextPart, ModelMessage, ToolName
from src.ai.openai.config import OpenAISettings
from src.ai.openai.exceptions import (
    OpenAIContentGenerationError,
    OpenAICredentialsMissingError,
    OpenAIModerationError,
)
from src.ai.providers.openai import OpenAIProvider


async def stream_of(*events):
    for event in events:
        yield event


def text_delta(delta: str) -> ResponseTextDeltaEvent:
    return ResponseTextDeltaEvent.model_construct(type="response.output_text.delta", delta=delta)


@pytest.fixture
def settings():
    return OpenAISettings(
        api_key="sk-test",
        model_name="gpt-4o-mini",
        chat_model_name="gpt-5-mini",
        reasoning_effort="medium",
        temperature=0.3,
        max_tokens=1000,
    )


@pytest.fixture
def provider(settings):
    """Provider with a mocked AsyncOpenAI client."""
    provider = OpenAIProvider(settings)
    provider._client = MagicMock()
    return provider


class TestClientSetup:
    """Test suite for client creation."""

    def test_missing_api_key_raises_before_network(self):
        provider = OpenAIProvider(OpenAISettings(api_key=None))

        assert provider.has_credentials is False
        with pytest.raises(OpenAICredentialsMissingError):
            provider._get_client()

    def test_client_is_created_once(self, settings):
        provider = OpenAIProvider(settings)
        assert provider._get_client() is provider._get_client()


class TestParams:
    """Test suite for request parameter building."""

    def test_reasoning_model_params(self, provider):
        params = provider._build_model_params("gpt-5-mini", reasoning_effort="high")

        assert params["reasoning"] == {"effort": "high"}
        assert "temperature" not in params
        assert params["max_output_tokens"] == 1000

    def test_standard_model_params_drop_reasoning_effort(self, provider):
        params = provider._build_model_params("gpt-4o-mini", reasoning_effort="high")

        assert "reasoning" not in params
        assert params["temperature"] == 0.3

    def test_stream_params_include_tools_and_summary(self, provider):
        params = provider._build_stream_params(
            messages=[ModelMessage(role="user", content="hi")],
            instructions="be brief",
            enable_web_search=True,
            vector_store_ids=["vs_1"],
        )

        assert params["model"] == "gpt-5-mini"
        assert params["stream"] is True
        assert params["instructions"] == "be brief"
        assert params["reasoning"]["summary"] == "auto"
        assert [tool["type"] for tool in params["tools"]] == ["web_search", "file_search"]
        assert params["tools"][1]["vector_store_ids"] == ["vs_1"]
        assert params["parallel_tool_calls"] is False

    def test_stream_params_without_tools(self, provider):
        params = provider._build_stream_params(
            messages=[], instructions=None, enable_web_search=False, vector_store_ids=[]
        )

        assert "tools" not in params
        assert "instructions" not in params

    def test_input_items_keep_image_parts(self, provider):
        items = provider._to_input_items(
            [
                ModelMessage(
                    role="user",
                    content=[
                        InputTextPart(text="describe"),
                        InputImagePart.from_bytes(b"img"),
                    ],
                )
            ]
        )

        (item,) = items
        assert item["role"] == "user"
        assert item["content"][0] == {"type": "input_text", "text": "describe"}
        assert item["content"][1]["type"] == "input_image"
        assert item["content"][1]["image_url"].startswith("data:image/png;base64,")


class TestTextCleaning:
    """Test suite for citation marker cleanup."""

    def test_removes_markers_and_private_use_characters(self, provider):
        text = "See filecite turn0file1 the docs here"
        assert provider._clean_citation_markers(text) == "See   the docs here"

    def test_buffers_until_word_boundary(self, provider):
        content, buffer = provider._buffer_and_clean_text("", "Hel")
        assert content is None
        assert buffer == "Hel"

        content, buffer = provider._buffer_and_clean_text(buffer, "lo wor")
        assert content == "Hello "
        assert buffer == "wor"

    def test_only_url_citations_are_kept(self, provider):
        url = provider._parse_annotation_to_citation(
            {"type": "url_citation", "url": "https://example.com", "title": "Example"}
        )
        file_citation = provider._parse_annotation_to_citation(
            {"type": "file_citation", "file_id": "file_1"}
        )

        assert url.url == "https://example.com"
        assert url.title == "Example"
        assert file_citation is None


class TestStreamText:
    """Test suite for stream_text."""

    @pytest.mark.asyncio
    async def test_yields_text_deltas(self, provider):
        provider._client.responses.create = AsyncMock(
            return_value=stream_of(text_delta("Hel"), text_delta("lo"))
        )

        result = await provider.collect_text([ModelMessage(role="user", content="hi")])

        assert result == "Hello"
        kwargs = provider._client.responses.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_error_event_raises(self, provider):
        provider._client.responses.create = AsyncMock(
            return_value=stream_of(
                text_delta("partial"),
                ResponseErrorEvent.model_construct(type="error", message="overloaded"),
            )
        )

        with pytest.raises(OpenAIContentGenerationError, match="overloaded"):
            await provider.collect_text([ModelMessage(role="user", content="hi")])

    @pytest.mark.asyncio
    async def test_incomplete_response_raises(self, provider):
        incomplete = ResponseIncompleteEvent.model_construct(
            type="response.incomplete",
            response=Response.model_construct(
                incomplete_details=IncompleteDetails(reason="max_output_tokens")
            ),
        )
        provider._client.responses.create = AsyncMock(
            return_value=stream_of(text_delta('{"title": "Rep'), incomplete)
        )

        with pytest.raises(OpenAIContentGenerationError, match="max_output_tokens"):
            await provider.collect_text([ModelMessage(role="user", content="hi")])

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self, provider):
        provider._client.responses.create = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(OpenAIContentGenerationError) as exc_info:
            await provider.collect_text([ModelMessage(role="user", content="hi")])

        assert isinstance(exc_info.value.original_error, ConnectionError)

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        provider = OpenAIProvider(OpenAISettings(api_key=None))

        with pytest.raises(OpenAICredentialsMissingError):
            await provider.collect_text([ModelMessage(role="user", content="hi")])


class TestStreamChat:
    """Test suite for stream_chat."""

    @pytest.mark.asyncio
    async def test_maps_events_to_chunks(self, provider):
        provider._client.responses.create = AsyncMock(
            return_value=stream_of(
                ResponseReasoningSummaryTextDeltaEvent.model_construct(
                    type="response.reasoning_summary_text.delta", delta="**Plan** look it up"
                ),
                ResponseWebSearchCallInProgressEvent.model_construct(
                    type="response.web_search_call.in_progress", item_id="ws_1"
                ),
                ResponseWebSearchCallCompletedEvent.model_construct(
                    type="response.web_search_call.completed", item_id="ws_1"
                ),
                text_delta("The answer is "),
                ResponseOutputTextAnnotationAddedEvent.model_construct(
                    type="response.output_text.annotation.added",
                    annotation={"type": "url_citation", "url": "https://a.example", "title": "A"},
                ),
                text_delta("42"),
                ResponseCompletedEvent.model_construct(type="response.completed"),
            )
        )

        chunks = [
            chunk
            async for chunk in provider.stream_chat(
                [ModelMessage(role="user", content="question")], enable_web_search=True
            )
        ]

        assert chunks[0].reasoning_summaries[0].id == "reasoning_1"
        assert chunks[0].reasoning_summaries[0].summary == "**Plan** look it up"
        assert chunks[1].tool_calls[0].tool_name == ToolName.WEB_SEARCH
        assert chunks[1].tool_calls[0].result is None
        assert chunks[2].tool_calls[0].result == {"status": "complete"}
        assert "".join(chunk.content for chunk in chunks) == "The answer is 42"
        assert [c.url for chunk in chunks for c in chunk.citations] == ["https://a.example"]
        assert chunks[-1].finish_reason == "completed"

    @pytest.mark.asyncio
    async def test_failure_is_yielded_as_error_chunk(self, provider):
        provider._client.responses.create = AsyncMock(side_effect=RuntimeError("boom"))

        chunks = [
            chunk
            async for chunk in provider.stream_chat([ModelMessage(role="user", content="q")])
        ]

        assert len(chunks) == 1
        assert chunks[0].content == "\n\nError: boom"
        assert chunks[0].finish_reason == "error"


class TestModerate:
    """Test suite for moderate."""

    @pytest.mark.asyncio
    async def test_returns_triggered_categories(self, provider):
        result = MagicMock()
        result.flagged = True
        result.categories.model_dump.return_value = {
            "harassment": True,
            "harassment/threatening": False,
            "illicit": None,
            "violence": True,
        }
        provider._client.moderations.create = AsyncMock(
            return_value=MagicMock(results=[result])
        )

        classification = await provider.moderate("text")

        assert classification.flagged is True
        assert classification.categories == ["harassment", "violence"]
        assert provider._client.moderations.create.call_args.kwargs == {
            "model": "omni-moderation-latest",
            "input": "text",
        }

    @pytest.mark.asyncio
    async def test_api_failure_is_wrapped(self, provider):
        provider._client.moderations.create = AsyncMock(side_effect=RuntimeError("503"))

        with pytest.raises(OpenAIModerationError):
            await provider.moderate("text")
