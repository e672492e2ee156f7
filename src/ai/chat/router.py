"""FastAPI router for chat endpoints with SSE streaming."""

import asyncio
import time
from contextlib import suppress
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from src.ai.chat.schemas import ChatRequest
from src.ai.chat.service import ChatService
from src.ai.chat.stream import SSE_DONE, UI_MESSAGE_STREAM_HEADERS, UIStreamEvent
from src.config import AppSettings, get_app_settings
from src.utils.logger import logger

router = APIRouter(prefix="/chat", tags=["Chat"])


# Singleton service instance
_chat_service: ChatService | None = None


def get_chat_service() -> ChatService:
    """
    Get or create the chat service singleton.

    Returns:
        ChatService: The chat service instance
    """
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
        logger.info("Initialized ChatService")
    return _chat_service


@router.post("")
async def stream_chat(
    request: ChatRequest,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
    app_settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> StreamingResponse:
    """
    Stream a chat turn as a UI message stream over Server-Sent Events.

    Args:
        request: Chat request with message history
        chat_service: Chat service dependency
        app_settings: Application settings (request time budget)

    Returns:
        StreamingResponse: SSE stream of UI message events
    """
    logger.info("[CHAT] Chat request", message_count=len(request.messages))

    budget = app_settings.max_request_duration_seconds

    async def event_generator():
        """Pull events from the chat service until done or out of time."""
        started_at = time.monotonic()
        next_event_task: asyncio.Task | None = None
        event_count = 0

        try:
            stream = chat_service.stream_response(request.messages)
            stream_iter = stream.__aiter__()
            next_event_task = asyncio.create_task(stream_iter.__anext__())

            while True:
                remaining = budget - (time.monotonic() - started_at)
                if remaining <= 0:
                    logger.error(
                        "[CHAT] Request exceeded time budget, stopping stream",
                        budget_seconds=budget,
                        event_count=event_count,
                    )
                    return

                done, _ = await asyncio.wait({next_event_task}, timeout=remaining)
                if next_event_task not in done:
                    continue

                try:
                    event = next_event_task.result()
                except StopAsyncIteration:
                    break

                next_event_task = asyncio.create_task(stream_iter.__anext__())
                event_count += 1
                yield event.format()

            yield SSE_DONE
            logger.info("[CHAT] Stream completed", event_count=event_count)

        except Exception as e:
            logger.error(
                "[CHAT] Error in chat stream", error=str(e), error_type=type(e).__name__
            )
            yield UIStreamEvent(type="error", error_text=str(e)).format()
        finally:
            if next_event_task is not None and not next_event_task.done():
                next_event_task.cancel()
                with suppress(asyncio.CancelledError):
                    await next_event_task

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=UI_MESSAGE_STREAM_HEADERS,
    )
