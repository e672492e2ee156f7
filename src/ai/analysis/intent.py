"""
Intent routing over the conversation history.

Finds the most recently uploaded file and decides whether the user's latest
message after that upload asks for analysis. Pure functions; the same
conversation always yields the same decision.
"""

from pydantic import BaseModel

from src.ai.analysis.constants import ANALYSIS_INTENT_PATTERN
from src.ai.chat.schemas import FileAttachment, UIMessage


class ActiveFile(BaseModel):
    """The active attachment and the index of the message carrying it."""

    attachment: FileAttachment
    position: int


class RoutingDecision(BaseModel):
    """Result of routing a conversation."""

    active_file: ActiveFile | None = None
    wants_analysis: bool = False


def locate_active_file(messages: list[UIMessage]) -> ActiveFile | None:
    """Return the newest message's file attachment, scanning from the end."""
    for position in range(len(messages) - 1, -1, -1):
        attachment = messages[position].file_attachment
        if attachment is not None:
            return ActiveFile(attachment=attachment, position=position)
    return None


def detects_analysis_request(messages: list[UIMessage], attachment_position: int) -> bool:
    """Check whether the latest user message after the attachment asks for analysis.

    Only user messages strictly after ``attachment_position`` are considered.
    No such message means no analysis intent.
    """
    user_messages_after = [
        msg for msg in messages[attachment_position + 1 :] if msg.role == "user"
    ]
    if not user_messages_after:
        return False
    latest_text = user_messages_after[-1].text
    return bool(ANALYSIS_INTENT_PATTERN.search(latest_text))


def route_conversation(messages: list[UIMessage]) -> RoutingDecision:
    """Locate the active file and classify the analysis intent."""
    active_file = locate_active_file(messages)
    if active_file is None:
        return RoutingDecision()
    return RoutingDecision(
        active_file=active_file,
        wants_analysis=detects_analysis_request(messages, active_file.position),
    )
