"""
Moderation service.

Wraps the provider's moderation capability with a fail-open policy: if the
check cannot be performed the message is treated as not flagged.
"""

from src.ai.base import AIProvider
from src.ai.moderation.constants import (
    CATEGORY_CHECK_ORDER,
    CATEGORY_DENIAL_MESSAGES,
    MODERATION_DENIAL_MESSAGE_DEFAULT,
)
from src.ai.moderation.schemas import ModerationResult
from src.utils.logger import logger


class ModerationService:
    """Classifies user text and picks a denial message for flagged input."""

    def __init__(self, provider: AIProvider):
        """
        Initialize the moderation service.

        Args:
            provider: AI provider exposing ``moderate``
        """
        self.provider = provider

    async def classify(self, text: str) -> ModerationResult:
        """
        Classify text and resolve the most specific denial message.

        Args:
            text: User text to check

        Returns:
            ModerationResult: Not flagged for empty input or on any failure
        """
        if not text or not text.strip():
            return ModerationResult(flagged=False)

        if not self.provider.has_credentials:
            logger.warning("[MODERATION] Skipped, no API key configured")
            return ModerationResult(flagged=False)

        try:
            classification = await self.provider.moderate(text)
        except Exception as e:
            logger.warning(
                "[MODERATION] Check failed, failing open",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ModerationResult(flagged=False)

        if not classification.flagged:
            return ModerationResult(flagged=False)

        triggered = set(classification.categories)
        for category in CATEGORY_CHECK_ORDER:
            if category in triggered:
                logger.info("[MODERATION] Message flagged", category=category)
                return ModerationResult(
                    flagged=True,
                    category=category,
                    denial_message=CATEGORY_DENIAL_MESSAGES.get(
                        category, MODERATION_DENIAL_MESSAGE_DEFAULT
                    ),
                )

        logger.info(
            "[MODERATION] Message flagged without known category",
            categories=classification.categories,
        )
        return ModerationResult(
            flagged=True,
            denial_message=MODERATION_DENIAL_MESSAGE_DEFAULT,
        )
