"""
UI message stream envelope.

Responses are streamed as typed JSON events framed as Server-Sent Events:

    start -> (text-start -> text-delta* -> text-end)* -> finish

``UIMessageStreamWriter`` builds the events and enforces that ordering, so a
caller cannot emit a delta for a block that was never opened or forget to
close one.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SSE_DONE = "data: [DONE]\n\n"

UI_MESSAGE_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
    "x-vercel-ai-ui-message-stream": "v1",
}

UIStreamEventType = Literal[
    "start",
    "text-start",
    "text-delta",
    "text-end",
    "reasoning-start",
    "reasoning-delta",
    "reasoning-end",
    "source-url",
    "tool-input-available",
    "tool-output-available",
    "error",
    "finish",
]


class UIStreamEvent(BaseModel):
    """One event of the UI message stream."""

    model_config = ConfigDict(populate_by_name=True)

    type: UIStreamEventType
    id: str | None = None
    delta: str | None = None
    message_id: str | None = Field(default=None, alias="messageId")
    error_text: str | None = Field(default=None, alias="errorText")
    source_id: str | None = Field(default=None, alias="sourceId")
    url: str | None = None
    title: str | None = None
    tool_call_id: str | None = Field(default=None, alias="toolCallId")
    tool_name: str | None = Field(default=None, alias="toolName")
    input: Any | None = None
    output: Any | None = None

    def format(self) -> str:
        """Format as an SSE ``data:`` line with the trailing blank line."""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


class StreamProtocolError(RuntimeError):
    """Raised when events would be emitted out of envelope order."""


class UIMessageStreamWriter:
    """Builds UI stream events for one response turn."""

    def __init__(self, message_id: str | None = None):
        self.message_id = message_id
        self.started = False
        self.finished = False
        self._open_blocks: dict[str, str] = {}

    @property
    def open_block_ids(self) -> list[str]:
        return list(self._open_blocks)

    def _check_writable(self) -> None:
        if not self.started:
            raise StreamProtocolError("stream not started")
        if self.finished:
            raise StreamProtocolError("stream already finished")

    def _open(self, kind: str, block_id: str) -> None:
        self._check_writable()
        if block_id in self._open_blocks:
            raise StreamProtocolError(f"block {block_id!r} already open")
        self._open_blocks[block_id] = kind

    def _require_open(self, kind: str, block_id: str) -> None:
        self._check_writable()
        if self._open_blocks.get(block_id) != kind:
            raise StreamProtocolError(f"{kind} block {block_id!r} is not open")

    def start(self) -> UIStreamEvent:
        if self.started:
            raise StreamProtocolError("stream already started")
        self.started = True
        return UIStreamEvent(type="start", message_id=self.message_id)

    def text_start(self, block_id: str) -> UIStreamEvent:
        self._open("text", block_id)
        return UIStreamEvent(type="text-start", id=block_id)

    def text_delta(self, block_id: str, delta: str) -> UIStreamEvent:
        self._require_open("text", block_id)
        return UIStreamEvent(type="text-delta", id=block_id, delta=delta)

    def text_end(self, block_id: str) -> UIStreamEvent:
        self._require_open("text", block_id)
        del self._open_blocks[block_id]
        return UIStreamEvent(type="text-end", id=block_id)

    def reasoning_start(self, block_id: str) -> UIStreamEvent:
        self._open("reasoning", block_id)
        return UIStreamEvent(type="reasoning-start", id=block_id)

    def reasoning_delta(self, block_id: str, delta: str) -> UIStreamEvent:
        self._require_open("reasoning", block_id)
        return UIStreamEvent(type="reasoning-delta", id=block_id, delta=delta)

    def reasoning_end(self, block_id: str) -> UIStreamEvent:
        self._require_open("reasoning", block_id)
        del self._open_blocks[block_id]
        return UIStreamEvent(type="reasoning-end", id=block_id)

    def source_url(self, source_id: str, url: str, title: str | None = None) -> UIStreamEvent:
        self._check_writable()
        return UIStreamEvent(type="source-url", source_id=source_id, url=url, title=title)

    def tool_input_available(
        self, tool_call_id: str, tool_name: str, tool_input: dict[str, Any]
    ) -> UIStreamEvent:
        self._check_writable()
        return UIStreamEvent(
            type="tool-input-available",
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            input=tool_input,
        )

    def tool_output_available(self, tool_call_id: str, output: Any) -> UIStreamEvent:
        self._check_writable()
        return UIStreamEvent(
            type="tool-output-available", tool_call_id=tool_call_id, output=output
        )

    def finish(self) -> UIStreamEvent:
        self._check_writable()
        if self._open_blocks:
            raise StreamProtocolError(
                f"cannot finish with open blocks: {self.open_block_ids}"
            )
        self.finished = True
        return UIStreamEvent(type="finish")

    def close(self) -> list[UIStreamEvent]:
        """End every open block and finish the stream.

        Safe to call on a stream in any state; returns whatever events are
        still needed to leave the envelope complete.
        """
        events: list[UIStreamEvent] = []
        if self.finished:
            return events
        if not self.started:
            events.append(self.start())
        for block_id, kind in list(self._open_blocks.items()):
            if kind == "text":
                events.append(self.text_end(block_id))
            else:
                events.append(self.reasoning_end(block_id))
        events.append(self.finish())
        return events


def single_text_response(block_id: str, text: str) -> list[UIStreamEvent]:
    """Events for a complete response made of one text block with one delta."""
    writer = UIMessageStreamWriter()
    return [
        writer.start(),
        writer.text_start(block_id),
        writer.text_delta(block_id, text),
        writer.text_end(block_id),
        writer.finish(),
    ]
