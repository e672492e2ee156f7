"""Content moderation for inbound user messages."""

from src.ai.moderation.schemas import ModerationResult
from src.ai.moderation.service import ModerationService

__all__ = ["ModerationResult", "ModerationService"]
