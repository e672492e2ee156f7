"""Moderation result models."""

from pydantic import BaseModel


class ModerationResult(BaseModel):
    """Outcome of a moderation check on user input."""

    flagged: bool
    category: str | None = None
    denial_message: str | None = None
