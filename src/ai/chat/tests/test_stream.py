"""Tests for the UI message stream writer."""

import json

import pytest

from src.ai.chat.stream import (
    StreamProtocolError,
    UIMessageStreamWriter,
    UIStreamEvent,
    single_text_response,
)


class TestUIStreamEvent:
    """Test suite for event serialization."""

    def test_format_uses_sse_framing_and_wire_names(self):
        event = UIStreamEvent(
            type="tool-input-available",
            tool_call_id="ws_1",
            tool_name="web_search",
            input={},
        )

        line = event.format()

        assert line.startswith("data: ")
        assert line.endswith("\n\n")
        assert json.loads(line[len("data: ") :]) == {
            "type": "tool-input-available",
            "toolCallId": "ws_1",
            "toolName": "web_search",
            "input": {},
        }

    def test_none_fields_are_omitted(self):
        payload = json.loads(UIStreamEvent(type="finish").format()[6:])
        assert payload == {"type": "finish"}


class TestUIMessageStreamWriter:
    """Test suite for UIMessageStreamWriter."""

    def test_single_text_response(self):
        events = single_text_response("file-received-text", "hello")

        assert [event.type for event in events] == [
            "start",
            "text-start",
            "text-delta",
            "text-end",
            "finish",
        ]
        assert {event.id for event in events[1:4]} == {"file-received-text"}
        assert events[2].delta == "hello"

    def test_delta_requires_open_block(self):
        writer = UIMessageStreamWriter()
        writer.start()

        with pytest.raises(StreamProtocolError):
            writer.text_delta("text-1", "x")

    def test_events_before_start_rejected(self):
        with pytest.raises(StreamProtocolError):
            UIMessageStreamWriter().text_start("text-1")

    def test_finish_with_open_block_rejected(self):
        writer = UIMessageStreamWriter()
        writer.start()
        writer.text_start("text-1")

        with pytest.raises(StreamProtocolError):
            writer.finish()

    def test_nothing_after_finish(self):
        writer = UIMessageStreamWriter()
        writer.start()
        writer.finish()

        with pytest.raises(StreamProtocolError):
            writer.text_start("text-1")

    def test_reasoning_and_text_blocks_are_distinct(self):
        writer = UIMessageStreamWriter()
        writer.start()
        writer.reasoning_start("reasoning-1")

        with pytest.raises(StreamProtocolError):
            writer.text_delta("reasoning-1", "x")

    def test_close_ends_open_blocks_and_finishes(self):
        writer = UIMessageStreamWriter()
        writer.start()
        writer.reasoning_start("reasoning-1")
        writer.text_start("text-1")

        events = writer.close()

        assert [(event.type, event.id) for event in events] == [
            ("reasoning-end", "reasoning-1"),
            ("text-end", "text-1"),
            ("finish", None),
        ]
        assert writer.close() == []

    def test_close_on_unstarted_stream(self):
        events = UIMessageStreamWriter().close()
        assert [event.type for event in events] == ["start", "finish"]
