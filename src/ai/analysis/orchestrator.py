"""
File analysis orchestration.

Sequences routing, extraction, vision analysis and summarization for the
active file and turns the outcome into UI stream events. The pipeline is an
explicit state machine:

    IDLE -> ROUTING -> NO_INTENT
                    -> EXTRACTING -> SUMMARIZING_DIRECT                  -> STREAMING
                                  -> RENDERING -> OCRING -> SUMMARIZING_OCR -> STREAMING
                                  -> ANALYZING_IMAGE                      -> STREAMING
                                  -> EXTRACTING_UNKNOWN [-> SUMMARIZING_UNKNOWN] -> STREAMING
    STREAMING -> DONE
    any working state -> FAILED -> DONE

Every analysis response is one text block; progress notices are written
before the slow call they announce and any failure becomes a single error
delta inside the same block.
"""

from collections.abc import AsyncGenerator
from enum import Enum

from src.ai.analysis.config import AnalysisSettings, get_analysis_settings
from src.ai.analysis.constants import (
    ANALYSIS_ERROR_TEMPLATE,
    ANALYZING_IMAGE_NOTICE,
    CAPABILITY_MENU_TEMPLATE,
    DIRECT_TEXT_RESULT_PREFIX,
    FILE_ANALYSIS_BLOCK_ID,
    FILE_RECEIVED_BLOCK_ID,
    IMAGE_RESULT_PREFIX,
    NO_MEANINGFUL_TEXT_MESSAGE,
    OCR_RESULT_PREFIX,
    PAGE_HEADER_TEMPLATE,
    SCANNED_PDF_NOTICE,
    UNKNOWN_TEXT_RESULT_PREFIX,
    UNKNOWN_TYPE_NOTICE,
)
from src.ai.analysis.exceptions import FileTooLargeError
from src.ai.analysis.extractor import DocumentExtractor, FileKind, classify_file
from src.ai.analysis.intent import RoutingDecision, route_conversation
from src.ai.analysis.summarizer import Summarizer
from src.ai.analysis.vision import VisionAnalyzer
from src.ai.base import AIProvider
from src.ai.chat.schemas import FileAttachment, UIMessage
from src.ai.chat.stream import UIMessageStreamWriter, UIStreamEvent, single_text_response
from src.ai.openai.exceptions import OpenAICredentialsMissingError
from src.utils.logger import logger


class AnalysisState(str, Enum):
    IDLE = "idle"
    ROUTING = "routing"
    NO_INTENT = "no_intent"
    EXTRACTING = "extracting"
    SUMMARIZING_DIRECT = "summarizing_direct"
    RENDERING = "rendering"
    OCRING = "ocring"
    SUMMARIZING_OCR = "summarizing_ocr"
    ANALYZING_IMAGE = "analyzing_image"
    EXTRACTING_UNKNOWN = "extracting_unknown"
    SUMMARIZING_UNKNOWN = "summarizing_unknown"
    STREAMING = "streaming"
    FAILED = "failed"
    DONE = "done"


_WORKING_STATES = frozenset(
    {
        AnalysisState.EXTRACTING,
        AnalysisState.SUMMARIZING_DIRECT,
        AnalysisState.RENDERING,
        AnalysisState.OCRING,
        AnalysisState.SUMMARIZING_OCR,
        AnalysisState.ANALYZING_IMAGE,
        AnalysisState.EXTRACTING_UNKNOWN,
        AnalysisState.SUMMARIZING_UNKNOWN,
        AnalysisState.STREAMING,
    }
)

ALLOWED_TRANSITIONS: dict[AnalysisState, frozenset[AnalysisState]] = {
    AnalysisState.IDLE: frozenset({AnalysisState.ROUTING}),
    AnalysisState.ROUTING: frozenset({AnalysisState.NO_INTENT, AnalysisState.EXTRACTING}),
    AnalysisState.NO_INTENT: frozenset(),
    AnalysisState.EXTRACTING: frozenset(
        {
            AnalysisState.SUMMARIZING_DIRECT,
            AnalysisState.RENDERING,
            AnalysisState.ANALYZING_IMAGE,
            AnalysisState.EXTRACTING_UNKNOWN,
        }
    ),
    AnalysisState.SUMMARIZING_DIRECT: frozenset({AnalysisState.STREAMING}),
    AnalysisState.RENDERING: frozenset({AnalysisState.OCRING}),
    AnalysisState.OCRING: frozenset({AnalysisState.SUMMARIZING_OCR}),
    AnalysisState.SUMMARIZING_OCR: frozenset({AnalysisState.STREAMING}),
    AnalysisState.ANALYZING_IMAGE: frozenset({AnalysisState.STREAMING}),
    AnalysisState.EXTRACTING_UNKNOWN: frozenset(
        {AnalysisState.SUMMARIZING_UNKNOWN, AnalysisState.STREAMING}
    ),
    AnalysisState.SUMMARIZING_UNKNOWN: frozenset({AnalysisState.STREAMING}),
    AnalysisState.STREAMING: frozenset({AnalysisState.DONE}),
    AnalysisState.FAILED: frozenset({AnalysisState.DONE}),
    AnalysisState.DONE: frozenset(),
}
for _state in _WORKING_STATES:
    ALLOWED_TRANSITIONS[_state] = ALLOWED_TRANSITIONS[_state] | {AnalysisState.FAILED}


class InvalidTransitionError(RuntimeError):
    """Raised when the orchestrator attempts a transition the table forbids."""


def transition(current: AnalysisState, target: AnalysisState) -> AnalysisState:
    """Validate and return the next state."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"{current.value} -> {target.value} is not allowed")
    logger.debug("[ANALYSIS] State transition", from_state=current.value, to_state=target.value)
    return target


def capability_menu_events(attachment: FileAttachment) -> list[UIStreamEvent]:
    """Events acknowledging an upload and listing what can be done with it."""
    text = CAPABILITY_MENU_TEMPLATE.format(
        file_name=attachment.file_name, media_type=attachment.declared_media_type
    )
    return single_text_response(FILE_RECEIVED_BLOCK_ID, text)


class AnalysisOrchestrator:
    """Runs the file flow for one request.

    Holds per-request state, so create a new instance for every request.
    """

    def __init__(
        self,
        provider: AIProvider,
        extractor: DocumentExtractor | None = None,
        vision: VisionAnalyzer | None = None,
        summarizer: Summarizer | None = None,
        settings: AnalysisSettings | None = None,
    ):
        self.provider = provider
        self.settings = settings or get_analysis_settings()
        self.extractor = extractor or DocumentExtractor(settings=self.settings)
        self.vision = vision or VisionAnalyzer(provider)
        self.summarizer = summarizer or Summarizer(provider, analysis_settings=self.settings)
        self.state = AnalysisState.IDLE
        self.history: list[AnalysisState] = [AnalysisState.IDLE]

    def _enter(self, target: AnalysisState) -> None:
        self.state = transition(self.state, target)
        self.history.append(target)

    async def run(
        self, messages: list[UIMessage], decision: RoutingDecision | None = None
    ) -> AsyncGenerator[UIStreamEvent, None]:
        """
        Stream the response for a conversation with an active file.

        Args:
            messages: Conversation history
            decision: Routing decision already computed for ``messages``

        Yields:
            UIStreamEvent: A complete envelope (start ... finish)

        Raises:
            ValueError: If the conversation carries no file attachment
        """
        self._enter(AnalysisState.ROUTING)
        if decision is None:
            decision = route_conversation(messages)
        if decision.active_file is None:
            raise ValueError("Conversation has no file attachment")

        attachment = decision.active_file.attachment
        if not decision.wants_analysis:
            self._enter(AnalysisState.NO_INTENT)
            logger.info(
                "[ANALYSIS] File received, sending capability menu",
                file_name=attachment.file_name,
            )
            for event in capability_menu_events(attachment):
                yield event
            return

        writer = UIMessageStreamWriter()
        yield writer.start()
        yield writer.text_start(FILE_ANALYSIS_BLOCK_ID)

        try:
            self._enter(AnalysisState.EXTRACTING)
            async for delta in self._analyze(attachment):
                yield writer.text_delta(FILE_ANALYSIS_BLOCK_ID, delta)
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error(
                "[ANALYSIS] Analysis failed",
                file_name=attachment.file_name,
                state=self.state.value,
                error=message,
                error_type=type(e).__name__,
            )
            self._enter(AnalysisState.FAILED)
            yield writer.text_delta(
                FILE_ANALYSIS_BLOCK_ID, ANALYSIS_ERROR_TEMPLATE.format(message=message)
            )

        for event in writer.close():
            yield event
        self._enter(AnalysisState.DONE)

    async def _analyze(self, attachment: FileAttachment) -> AsyncGenerator[str, None]:
        """Yield the text deltas of the analysis block."""
        if not self.provider.has_credentials:
            raise OpenAICredentialsMissingError()

        data = attachment.decode()
        limit_bytes = int(self.settings.max_file_size_mb * 1024 * 1024)
        if len(data) > limit_bytes:
            raise FileTooLargeError(
                f"File too large: {len(data) / (1024 * 1024):.1f} MB "
                f"(limit {self.settings.max_file_size_mb:g} MB)"
            )

        media_type = attachment.declared_media_type
        kind = classify_file(media_type, attachment.file_name)
        logger.info(
            "[ANALYSIS] Starting analysis",
            file_name=attachment.file_name,
            media_type=media_type,
            kind=kind.value,
            size_bytes=len(data),
        )

        if kind == FileKind.PDF:
            direct = await self.extractor.extract_text_layer(data)
            if direct is not None:
                self._enter(AnalysisState.SUMMARIZING_DIRECT)
                summary = await self.summarizer.summarize(direct.text)
                self._enter(AnalysisState.STREAMING)
                yield DIRECT_TEXT_RESULT_PREFIX + summary
                return

            yield SCANNED_PDF_NOTICE
            self._enter(AnalysisState.RENDERING)
            pages = await self.extractor.render_page_images(data)
            self._enter(AnalysisState.OCRING)
            page_texts = []
            for page_number, image in enumerate(pages.images, start=1):
                page_result = await self.vision.analyze_image(
                    image, media_type="image/png", label=f"pdf-page-{page_number}.png"
                )
                page_texts.append(
                    PAGE_HEADER_TEMPLATE.format(page_number=page_number, text=page_result)
                )
            self._enter(AnalysisState.SUMMARIZING_OCR)
            summary = await self.summarizer.summarize("\n\n".join(page_texts))
            self._enter(AnalysisState.STREAMING)
            yield OCR_RESULT_PREFIX + summary
            return

        if kind == FileKind.IMAGE:
            self._enter(AnalysisState.ANALYZING_IMAGE)
            yield ANALYZING_IMAGE_NOTICE.format(file_name=attachment.file_name)
            image = self.extractor.as_image(data, media_type)
            result = await self.vision.analyze_image(
                image.data, media_type=image.media_type, label=attachment.file_name
            )
            self._enter(AnalysisState.STREAMING)
            yield IMAGE_RESULT_PREFIX + result
            return

        self._enter(AnalysisState.EXTRACTING_UNKNOWN)
        yield UNKNOWN_TYPE_NOTICE.format(media_type=media_type)
        extracted = self.extractor.decode_unknown(data)
        if not extracted.usable:
            self._enter(AnalysisState.STREAMING)
            yield NO_MEANINGFUL_TEXT_MESSAGE
            return
        self._enter(AnalysisState.SUMMARIZING_UNKNOWN)
        summary = await self.summarizer.summarize(extracted.text)
        self._enter(AnalysisState.STREAMING)
        yield UNKNOWN_TEXT_RESULT_PREFIX + summary
