"""
Chat service.

Decides how one chat turn is answered and produces the UI stream events for
it, in this order:

1. Moderation of the latest user message (flagged -> denial message)
2. File flow when the conversation carries an uploaded file
   (capability menu or analysis)
3. General chat with web search and file search tools
"""

from pathlib import Path
from typing import AsyncGenerator

from src.ai.analysis.config import AnalysisSettings, get_analysis_settings
from src.ai.analysis.intent import route_conversation
from src.ai.analysis.orchestrator import AnalysisOrchestrator
from src.ai.base import AIProvider, ChatStreamChunk, ModelMessage
from src.ai.chat.constants import (
    DEFAULT_SYSTEM_PROMPT,
    MISSING_CREDENTIALS_BLOCK_ID,
    MISSING_CREDENTIALS_MESSAGE,
    REASONING_BLOCK_ID_TEMPLATE,
    SOURCE_ID_TEMPLATE,
    TEXT_BLOCK_ID_TEMPLATE,
)
from src.ai.chat.schemas import UIMessage
from src.ai.chat.stream import UIMessageStreamWriter, UIStreamEvent, single_text_response
from src.ai.moderation import ModerationService
from src.ai.moderation.constants import MODERATION_DENIAL_BLOCK_ID
from src.ai.openai.config import OpenAISettings, get_openai_settings
from src.ai.providers.factory import get_ai_provider
from src.utils.logger import logger


def latest_user_text(messages: list[UIMessage]) -> str:
    """Text of the newest user message, or an empty string."""
    for message in reversed(messages):
        if message.role == "user":
            return message.text
    return ""


def to_model_messages(messages: list[UIMessage]) -> list[ModelMessage]:
    """Convert UI messages to model input, keeping only user/assistant text."""
    model_messages = []
    for message in messages:
        if message.role == "system":
            continue
        text = message.text
        if not text.strip():
            continue
        model_messages.append(ModelMessage(role=message.role, content=text))
    return model_messages


class ChatEventMapper:
    """Maps provider chunks of one general chat response to UI stream events.

    Reasoning summaries arrive as ever-growing snapshots per id; only the new
    suffix is written as a delta.
    """

    def __init__(self, writer: UIMessageStreamWriter):
        self.writer = writer
        self._text_block_count = 0
        self._text_block_id: str | None = None
        self._reasoning_block_id: str | None = None
        self._reasoning_sent: dict[str, str] = {}
        self._tool_calls_started: set[str] = set()
        self._source_urls: set[str] = set()

    def _end_reasoning(self) -> list[UIStreamEvent]:
        if self._reasoning_block_id is None:
            return []
        event = self.writer.reasoning_end(self._reasoning_block_id)
        self._reasoning_block_id = None
        return [event]

    def _end_text(self) -> list[UIStreamEvent]:
        if self._text_block_id is None:
            return []
        event = self.writer.text_end(self._text_block_id)
        self._text_block_id = None
        return [event]

    def map_chunk(self, chunk: ChatStreamChunk) -> list[UIStreamEvent]:
        events: list[UIStreamEvent] = []

        for reasoning in chunk.reasoning_summaries:
            block_id = REASONING_BLOCK_ID_TEMPLATE.format(reasoning_id=reasoning.id)
            if block_id != self._reasoning_block_id:
                events.extend(self._end_reasoning())
                events.extend(self._end_text())
                events.append(self.writer.reasoning_start(block_id))
                self._reasoning_block_id = block_id
            sent = self._reasoning_sent.get(reasoning.id, "")
            if reasoning.summary.startswith(sent):
                delta = reasoning.summary[len(sent) :]
            else:
                delta = reasoning.summary
            if delta:
                events.append(self.writer.reasoning_delta(block_id, delta))
            self._reasoning_sent[reasoning.id] = reasoning.summary

        for tool_call in chunk.tool_calls:
            if tool_call.tool_call_id not in self._tool_calls_started:
                self._tool_calls_started.add(tool_call.tool_call_id)
                events.append(
                    self.writer.tool_input_available(
                        tool_call.tool_call_id, tool_call.tool_name.value, tool_call.args
                    )
                )
            if tool_call.result is not None:
                events.append(
                    self.writer.tool_output_available(tool_call.tool_call_id, tool_call.result)
                )

        if chunk.content:
            events.extend(self._end_reasoning())
            if self._text_block_id is None:
                self._text_block_count += 1
                self._text_block_id = TEXT_BLOCK_ID_TEMPLATE.format(
                    index=self._text_block_count
                )
                events.append(self.writer.text_start(self._text_block_id))
            events.append(self.writer.text_delta(self._text_block_id, chunk.content))

        for citation in chunk.citations:
            if citation.url in self._source_urls:
                continue
            self._source_urls.add(citation.url)
            events.append(
                self.writer.source_url(
                    SOURCE_ID_TEMPLATE.format(index=len(self._source_urls)),
                    citation.url,
                    citation.title,
                )
            )

        return events


class ChatService:
    """Answers chat turns as UI message stream events."""

    def __init__(
        self,
        provider: AIProvider | None = None,
        settings: OpenAISettings | None = None,
        analysis_settings: AnalysisSettings | None = None,
    ):
        """
        Initialize the chat service.

        Args:
            provider: AI provider (process-wide provider if omitted)
            settings: OpenAI settings
            analysis_settings: File analysis settings
        """
        self.provider = provider or get_ai_provider()
        self.settings = settings or get_openai_settings()
        self.analysis_settings = analysis_settings or get_analysis_settings()
        self.moderation = ModerationService(self.provider)
        self.system_prompt_file = Path(__file__).parent / "system_prompt.md"
        self.system_prompt = self._build_system_prompt()

    def _build_system_prompt(self) -> str:
        try:
            prompt = self.system_prompt_file.read_text(encoding="utf-8")
            logger.info("[CHAT] Loaded system prompt", file_name=self.system_prompt_file.name)
        except Exception as e:
            logger.error("[CHAT] Failed to load system prompt file", error=str(e))
            prompt = DEFAULT_SYSTEM_PROMPT
        return prompt

    def create_orchestrator(self) -> AnalysisOrchestrator:
        return AnalysisOrchestrator(self.provider, settings=self.analysis_settings)

    async def stream_response(
        self, messages: list[UIMessage]
    ) -> AsyncGenerator[UIStreamEvent, None]:
        """
        Stream the response to one chat turn.

        Args:
            messages: Full conversation history, oldest first

        Yields:
            UIStreamEvent: A complete envelope (start ... finish)
        """
        moderation = await self.moderation.classify(latest_user_text(messages))
        if moderation.flagged:
            logger.info("[CHAT] Responding with moderation denial", category=moderation.category)
            for event in single_text_response(
                MODERATION_DENIAL_BLOCK_ID, moderation.denial_message
            ):
                yield event
            return

        decision = route_conversation(messages)
        if decision.active_file is not None:
            logger.info(
                "[CHAT] Routing to file flow",
                file_name=decision.active_file.attachment.file_name,
                wants_analysis=decision.wants_analysis,
            )
            async for event in self.create_orchestrator().run(messages, decision):
                yield event
            return

        async for event in self._stream_general_chat(messages):
            yield event

    async def _stream_general_chat(
        self, messages: list[UIMessage]
    ) -> AsyncGenerator[UIStreamEvent, None]:
        if not self.provider.has_credentials:
            logger.warning("[CHAT] No API key configured")
            for event in single_text_response(
                MISSING_CREDENTIALS_BLOCK_ID, MISSING_CREDENTIALS_MESSAGE
            ):
                yield event
            return

        model_messages = to_model_messages(messages)
        logger.info("[CHAT] Streaming general chat", message_count=len(model_messages))

        writer = UIMessageStreamWriter()
        mapper = ChatEventMapper(writer)
        yield writer.start()

        async for chunk in self.provider.stream_chat(
            messages=model_messages,
            instructions=self.system_prompt,
            enable_web_search=self.settings.enable_web_search,
            vector_store_ids=self.settings.vector_store_ids,
            model=self.settings.chat_model_name,
            reasoning_effort=self.settings.reasoning_effort,
        ):
            for event in mapper.map_chunk(chunk):
                yield event
            if chunk.finish_reason:
                logger.info("[CHAT] Stream finished", finish_reason=chunk.finish_reason)

        for event in writer.close():
            yield event
