"""OpenAI provider implementation."""

import re
from typing import Any, AsyncGenerator

import httpx
from braintrust import init_logger, wrap_openai
from openai import AsyncOpenAI
from openai.types.responses import (
    EasyInputMessageParam,
    FileSearchToolParam,
    ResponseCompletedEvent,
    ResponseContentPartAddedEvent,
    ResponseContentPartDoneEvent,
    ResponseCreatedEvent,
    ResponseErrorEvent,
    ResponseFailedEvent,
    ResponseFileSearchCallCompletedEvent,
    ResponseFileSearchCallInProgressEvent,
    ResponseFileSearchCallSearchingEvent,
    ResponseInProgressEvent,
    ResponseIncompleteEvent,
    ResponseOutputItemAddedEvent,
    ResponseOutputItemDoneEvent,
    ResponseOutputTextAnnotationAddedEvent,
    ResponseReasoningSummaryPartAddedEvent,
    ResponseReasoningSummaryPartDoneEvent,
    ResponseReasoningSummaryTextDeltaEvent,
    ResponseReasoningSummaryTextDoneEvent,
    ResponseTextDeltaEvent,
    ResponseTextDoneEvent,
    ResponseWebSearchCallCompletedEvent,
    ResponseWebSearchCallInProgressEvent,
    ResponseWebSearchCallSearchingEvent,
    WebSearchToolParam,
)
from openai.types.responses.response_create_params import (
    Reasoning as ReasoningParam,
)
from openai.types.responses.response_create_params import (
    ResponseCreateParamsStreaming,
    ResponseTextConfigParam,
)

from src.ai.base import (
    AIProvider,
    ChatStreamChunk,
    ModelMessage,
    ModerationClassification,
    ReasoningSummary,
    SearchCitation,
    ToolCall,
    ToolName,
    ToolStatus,
)
from src.ai.openai.config import OpenAISettings, get_openai_settings
from src.ai.openai.exceptions import (
    OpenAIAuthenticationError,
    OpenAIContentGenerationError,
    OpenAICredentialsMissingError,
    OpenAIModerationError,
)
from src.utils.logger import logger

REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")


class OpenAIProvider(AIProvider):
    """OpenAI provider implementation.

    Uses the Responses API for chat and single-shot text/vision calls and the
    Moderations API for content classification.
    """

    def __init__(self, settings: OpenAISettings | None = None):
        """Initialize OpenAI provider.

        Args:
            settings: OpenAI settings (cached environment settings if omitted)
        """
        self.settings = settings or get_openai_settings()
        self._client: AsyncOpenAI | None = None

    @property
    def has_credentials(self) -> bool:
        return self.settings.has_credentials

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client.

        Raises:
            OpenAICredentialsMissingError: If no API key is configured. Checked
                before any network call.
        """
        if not self.has_credentials:
            raise OpenAICredentialsMissingError()

        if self._client is None:
            try:
                timeout = httpx.Timeout(
                    timeout=self.settings.request_timeout,
                    connect=10.0,
                )
                client = AsyncOpenAI(api_key=self.settings.api_key, timeout=timeout)

                if self.settings.braintrust_enabled:
                    init_logger(project=self.settings.braintrust_project_name)
                    client = wrap_openai(client)
                    logger.info(
                        "[OPENAI] Client wrapped with Braintrust tracing",
                        project=self.settings.braintrust_project_name,
                    )

                self._client = client
                logger.info(
                    "[OPENAI] Client initialized",
                    timeout_seconds=self.settings.request_timeout,
                )
            except Exception as e:
                logger.error("[OPENAI] Failed to initialize client", error=str(e))
                raise OpenAIAuthenticationError(
                    f"Failed to authenticate with OpenAI: {e}", e
                )
        return self._client

    def _is_reasoning_model(self, model: str) -> bool:
        """Check if a model is a reasoning model.

        Args:
            model: Model name

        Returns:
            True if reasoning model (gpt-5, o-series), False otherwise
        """
        return model.startswith(REASONING_MODEL_PREFIXES)

    def _to_input_items(self, messages: list[ModelMessage]) -> list[EasyInputMessageParam]:
        """Convert provider-agnostic messages to Responses API input items."""
        input_items: list[EasyInputMessageParam] = []
        for msg in messages:
            if isinstance(msg.content, str):
                content: Any = msg.content
            else:
                content = [part.model_dump() for part in msg.content]
            input_items.append(
                EasyInputMessageParam(role=msg.role, content=content)  # type: ignore[typeddict-item]
            )
        return input_items

    def _build_model_params(
        self,
        model: str,
        reasoning_effort: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        reasoning_summary: bool = False,
    ) -> dict[str, Any]:
        """Build model-specific parameters for API calls.

        Reasoning models take a reasoning config; standard models take a
        temperature. A reasoning effort passed for a standard model is dropped.
        """
        params: dict[str, Any] = {
            "model": model,
            "max_output_tokens": max_output_tokens or self.settings.max_tokens,
        }

        if self._is_reasoning_model(model):
            effort = reasoning_effort or self.settings.reasoning_effort
            reasoning: ReasoningParam = {"effort": effort}  # type: ignore[typeddict-item]
            if reasoning_summary:
                reasoning["summary"] = "auto"
            params["reasoning"] = reasoning
            params["text"] = ResponseTextConfigParam(
                verbosity=self.settings.text_verbosity  # type: ignore[typeddict-item]
            )
            if temperature is not None:
                logger.warning(
                    "[OPENAI] temperature parameter ignored for reasoning model",
                    model=model,
                )
        else:
            params["temperature"] = (
                temperature if temperature is not None else self.settings.temperature
            )
            if reasoning_effort:
                logger.debug(
                    "[OPENAI] reasoning_effort ignored for standard model",
                    model=model,
                    reasoning_effort=reasoning_effort,
                )

        return params

    def _build_stream_params(
        self,
        messages: list[ModelMessage],
        instructions: str | None,
        enable_web_search: bool,
        vector_store_ids: list[str] | None,
        **kwargs,
    ) -> ResponseCreateParamsStreaming:
        """Build streaming parameters for the chat flow.

        Args:
            messages: List of chat messages
            instructions: Optional system instructions
            enable_web_search: Whether to enable web search
            vector_store_ids: Optional vector store IDs for file search
            **kwargs: Additional model-specific parameters

        Returns:
            Streaming params for ``client.responses.create``
        """
        model = kwargs.get("model") or self.settings.chat_model_name

        logger.info(
            "[OPENAI] Streaming chat",
            web_search=enable_web_search,
            file_search=bool(vector_store_ids),
            model=model,
            is_reasoning=self._is_reasoning_model(model),
        )

        tools: list[WebSearchToolParam | FileSearchToolParam] = []
        if enable_web_search:
            tools.append(WebSearchToolParam(type="web_search"))
        if vector_store_ids:
            tools.append(
                FileSearchToolParam(
                    type="file_search", vector_store_ids=vector_store_ids
                )
            )

        stream_params: ResponseCreateParamsStreaming = {
            **self._build_model_params(  # type: ignore[typeddict-item]
                model=model,
                reasoning_effort=kwargs.get("reasoning_effort"),
                temperature=kwargs.get("temperature"),
                max_output_tokens=kwargs.get("max_output_tokens"),
                reasoning_summary=True,
            ),
            "input": self._to_input_items(messages),
            "stream": True,
        }

        if instructions:
            stream_params["instructions"] = instructions
        if tools:
            stream_params["tools"] = tools  # type: ignore[typeddict-item]
            stream_params["parallel_tool_calls"] = False

        logger.debug(
            "[OPENAI] Stream params",
            model=model,
            input_items=len(messages),
            has_instructions=bool(instructions),
            tools=len(tools),
        )

        return stream_params

    def _handle_web_search_event(
        self,
        event: ResponseWebSearchCallInProgressEvent
        | ResponseWebSearchCallSearchingEvent
        | ResponseWebSearchCallCompletedEvent,
    ) -> ToolCall | None:
        """Handle web search tool events.

        Returns:
            ToolCall if the event should be yielded, None otherwise
        """
        if isinstance(event, ResponseWebSearchCallInProgressEvent):
            logger.info("[WEB_SEARCH] Search started", item_id=event.item_id)
            return ToolCall(
                tool_call_id=event.item_id,
                tool_name=ToolName.WEB_SEARCH,
                args={},
            )
        elif isinstance(event, ResponseWebSearchCallCompletedEvent):
            logger.info("[WEB_SEARCH] Search completed", item_id=event.item_id)
            return ToolCall(
                tool_call_id=event.item_id,
                tool_name=ToolName.WEB_SEARCH,
                args={},
                result={"status": ToolStatus.COMPLETE.value},
            )
        # Searching events are skipped to prevent flickering
        return None

    def _handle_file_search_event(
        self,
        event: ResponseFileSearchCallInProgressEvent
        | ResponseFileSearchCallSearchingEvent
        | ResponseFileSearchCallCompletedEvent,
    ) -> ToolCall | None:
        """Handle file (vector store) search tool events."""
        if isinstance(event, ResponseFileSearchCallInProgressEvent):
            logger.info("[FILE_SEARCH] Search started", item_id=event.item_id)
            return ToolCall(
                tool_call_id=event.item_id,
                tool_name=ToolName.FILE_SEARCH,
                args={},
            )
        elif isinstance(event, ResponseFileSearchCallCompletedEvent):
            logger.info("[FILE_SEARCH] Search completed", item_id=event.item_id)
            return ToolCall(
                tool_call_id=event.item_id,
                tool_name=ToolName.FILE_SEARCH,
                args={},
                result={"status": ToolStatus.COMPLETE.value},
            )
        return None

    def _parse_annotation_to_citation(self, annotation: Any) -> SearchCitation | None:
        """Turn a URL citation annotation into a SearchCitation.

        File citations point at internal vector store documents and are not
        surfaced to the user.
        """
        if isinstance(annotation, dict):
            ann_type = annotation.get("type")
            url = annotation.get("url")
            title = annotation.get("title")
        else:
            ann_type = getattr(annotation, "type", None)
            url = getattr(annotation, "url", None)
            title = getattr(annotation, "title", None)

        if ann_type == "url_citation" and url:
            return SearchCitation(url=url, title=title)

        logger.debug("[OPENAI] Skipped annotation", annotation_type=ann_type)
        return None

    def _clean_citation_markers(self, text: str) -> str:
        """Remove citation markers from text.

        Strips file citation markers, 'turnXfileY' style tokens and Private Use
        Area characters that the Responses API may embed.
        """
        cleaned = text.replace("filecite", "")
        cleaned = re.sub(r"(turn\d+[a-z_]+\d+)+", "", cleaned, flags=re.IGNORECASE)
        # BMP PUA range: U+E000-U+F8FF
        cleaned = re.sub(r"[\uE000-\uF8FF]", "", cleaned)
        return cleaned

    def _buffer_and_clean_text(self, buffer: str, delta: str) -> tuple[str | None, str]:
        """Buffer text deltas and clean citation markers at word boundaries.

        Returns:
            Tuple of (cleaned_content, new_buffer); cleaned_content is None
            while still buffering.
        """
        buffer += delta

        if " " not in buffer:
            return None, buffer

        parts = buffer.rsplit(" ", 1)
        words_to_send = parts[0] + " "
        new_buffer = parts[1] if len(parts) > 1 else ""

        return self._clean_citation_markers(words_to_send), new_buffer

    def _handle_reasoning_summary_delta(
        self,
        event: ResponseReasoningSummaryTextDeltaEvent,
        current_reasoning_id: str | None,
        reasoning_summary_count: int,
        current_reasoning_summary: str,
    ) -> tuple[str, int, str, ReasoningSummary]:
        """Handle reasoning summary delta events.

        A delta starting with a bold heading opens a new summary.

        Returns:
            Tuple of (reasoning_id, count, summary_text, reasoning_summary_to_yield)
        """
        summary_delta = event.delta or ""

        if current_reasoning_id is None or (
            summary_delta.strip().startswith("**") and current_reasoning_summary
        ):
            reasoning_summary_count += 1
            current_reasoning_id = f"reasoning_{reasoning_summary_count}"
            current_reasoning_summary = summary_delta
        else:
            current_reasoning_summary += summary_delta

        return (
            current_reasoning_id,
            reasoning_summary_count,
            current_reasoning_summary,
            ReasoningSummary(
                id=current_reasoning_id,
                summary=current_reasoning_summary,
            ),
        )

    async def stream_chat(
        self,
        messages: list[ModelMessage],
        instructions: str | None = None,
        enable_web_search: bool = False,
        vector_store_ids: list[str] | None = None,
        **kwargs,
    ) -> AsyncGenerator[ChatStreamChunk, None]:
        """Stream chat responses with optional web search, file search and citations.

        Errors are yielded as content with ``finish_reason="error"`` so the
        caller can close its own stream cleanly.

        Args:
            messages: List of chat messages (user and assistant only)
            instructions: Optional system prompt/instructions
            enable_web_search: Whether to enable web search capability
            vector_store_ids: Optional list of vector store IDs for file search
            **kwargs: model, reasoning_effort, temperature, max_output_tokens

        Yields:
            ChatStreamChunk: Stream chunks with content, reasoning, and optional citations
        """
        try:
            client = self._get_client()

            stream_params = self._build_stream_params(
                messages=messages,
                instructions=instructions,
                enable_web_search=enable_web_search,
                vector_store_ids=vector_store_ids,
                **kwargs,
            )

            logger.info("[STREAM] Creating stream with OpenAI Responses API...")
            stream = await client.responses.create(**stream_params)

            accumulated_citations: list[SearchCitation] = []
            text_buffer = ""
            current_reasoning_summary = ""
            current_reasoning_id: str | None = None
            reasoning_summary_count = 0

            async for event in stream:
                content = ""
                citations: list[SearchCitation] = []
                finish_reason = None
                tool_calls_to_yield: list[ToolCall] = []
                reasoning_summaries_to_yield: list[ReasoningSummary] = []

                try:
                    if isinstance(
                        event,
                        (
                            ResponseCreatedEvent,
                            ResponseInProgressEvent,
                            ResponseOutputItemAddedEvent,
                            ResponseOutputItemDoneEvent,
                            ResponseContentPartAddedEvent,
                            ResponseContentPartDoneEvent,
                            ResponseTextDoneEvent,
                            ResponseReasoningSummaryPartAddedEvent,
                            ResponseReasoningSummaryTextDoneEvent,
                            ResponseReasoningSummaryPartDoneEvent,
                        ),
                    ):
                        # Lifecycle events
                        continue

                    elif isinstance(
                        event,
                        (
                            ResponseWebSearchCallInProgressEvent,
                            ResponseWebSearchCallSearchingEvent,
                            ResponseWebSearchCallCompletedEvent,
                        ),
                    ):
                        tool_call = self._handle_web_search_event(event)
                        if not tool_call:
                            continue
                        tool_calls_to_yield.append(tool_call)

                    elif isinstance(
                        event,
                        (
                            ResponseFileSearchCallInProgressEvent,
                            ResponseFileSearchCallSearchingEvent,
                            ResponseFileSearchCallCompletedEvent,
                        ),
                    ):
                        tool_call = self._handle_file_search_event(event)
                        if not tool_call:
                            continue
                        tool_calls_to_yield.append(tool_call)

                    elif isinstance(event, ResponseReasoningSummaryTextDeltaEvent):
                        (
                            current_reasoning_id,
                            reasoning_summary_count,
                            current_reasoning_summary,
                            reasoning_summary,
                        ) = self._handle_reasoning_summary_delta(
                            event=event,
                            current_reasoning_id=current_reasoning_id,
                            reasoning_summary_count=reasoning_summary_count,
                            current_reasoning_summary=current_reasoning_summary,
                        )
                        reasoning_summaries_to_yield.append(reasoning_summary)

                    elif isinstance(event, ResponseTextDeltaEvent):
                        cleaned_content, text_buffer = self._buffer_and_clean_text(
                            text_buffer, event.delta
                        )
                        if not cleaned_content:
                            continue
                        content = cleaned_content

                    elif isinstance(event, ResponseOutputTextAnnotationAddedEvent):
                        citation = self._parse_annotation_to_citation(event.annotation)
                        if citation:
                            citations.append(citation)
                            if citation not in accumulated_citations:
                                accumulated_citations.append(citation)

                    elif isinstance(event, ResponseCompletedEvent):
                        finish_reason = "completed"
                        logger.info("[STREAM] Completed successfully")
                        if text_buffer:
                            content = self._clean_citation_markers(text_buffer)
                            text_buffer = ""

                    elif isinstance(event, (ResponseFailedEvent, ResponseIncompleteEvent)):
                        finish_reason = "failed"
                        logger.error("[STREAM] Failed", event_details=str(event))
                        if text_buffer:
                            content = self._clean_citation_markers(text_buffer)
                            text_buffer = ""

                    else:
                        logger.debug(
                            "[UNHANDLED] Unhandled event type",
                            event_type=type(event).__name__,
                        )
                        continue

                    yield ChatStreamChunk(
                        content=content,
                        tool_calls=tool_calls_to_yield,
                        reasoning_summaries=reasoning_summaries_to_yield,
                        citations=citations,
                        finish_reason=finish_reason,
                    )

                except Exception as e:
                    logger.error(
                        "[STREAM] Error parsing event",
                        error=str(e),
                        event_type=type(event).__name__,
                    )
                    continue

            logger.info(
                "[STREAM] Chat stream completed",
                citation_count=len(accumulated_citations),
            )

        except Exception as e:
            logger.error(
                "[STREAM] Streaming chat failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            yield ChatStreamChunk(
                content=f"\n\nError: {str(e)}",
                finish_reason="error",
            )

    async def stream_text(
        self,
        messages: list[ModelMessage],
        model: str | None = None,
        **kwargs,
    ) -> AsyncGenerator[str, None]:
        """Stream text deltas for a single tool-less call.

        Args:
            messages: Messages, possibly containing inline images
            model: Model name (defaults to settings.model_name)
            **kwargs: reasoning_effort, temperature, max_output_tokens

        Yields:
            str: Output text deltas

        Raises:
            OpenAICredentialsMissingError: If no API key is configured
            OpenAIContentGenerationError: If the call or the stream fails
        """
        client = self._get_client()
        _model = model or self.settings.model_name

        params = self._build_model_params(
            model=_model,
            reasoning_effort=kwargs.get("reasoning_effort"),
            temperature=kwargs.get("temperature"),
            max_output_tokens=kwargs.get("max_output_tokens"),
        )

        logger.info(
            "[OPENAI] Streaming text",
            model=_model,
            input_items=len(messages),
        )

        try:
            stream = await client.responses.create(
                **params,
                input=self._to_input_items(messages),
                stream=True,
            )
            async for event in stream:
                if isinstance(event, ResponseTextDeltaEvent):
                    yield event.delta
                elif isinstance(event, ResponseErrorEvent):
                    raise OpenAIContentGenerationError(
                        f"Model stream error: {event.message}"
                    )
                elif isinstance(event, ResponseFailedEvent):
                    error = event.response.error
                    raise OpenAIContentGenerationError(
                        f"Model response failed: {error.message if error else 'unknown error'}"
                    )
                elif isinstance(event, ResponseIncompleteEvent):
                    details = event.response.incomplete_details
                    reason = details.reason if details and details.reason else "unknown reason"
                    logger.error(
                        "[OPENAI] Text stream incomplete", model=_model, reason=reason
                    )
                    raise OpenAIContentGenerationError(
                        f"Model response incomplete: {reason}"
                    )
        except OpenAIContentGenerationError:
            raise
        except Exception as e:
            logger.error(
                "[OPENAI] Text stream failed", model=_model, error=str(e)
            )
            raise OpenAIContentGenerationError(f"Failed to generate content: {e}", e)

    async def moderate(self, text: str) -> ModerationClassification:
        """Classify text with the Moderations API.

        Raises:
            OpenAICredentialsMissingError: If no API key is configured
            OpenAIModerationError: On any API or transport failure
        """
        client = self._get_client()
        try:
            response = await client.moderations.create(
                model=self.settings.moderation_model_name,
                input=text,
            )
        except Exception as e:
            logger.error("[OPENAI] Moderation request failed", error=str(e))
            raise OpenAIModerationError(f"Moderation request failed: {e}", e)

        if not response.results:
            return ModerationClassification(flagged=False)

        result = response.results[0]
        categories = result.categories.model_dump(by_alias=True)
        return ModerationClassification(
            flagged=bool(result.flagged),
            categories=[name for name, value in categories.items() if value is True],
        )
