"""OpenAI module for AI operations."""

from src.ai.openai.config import OpenAISettings, get_openai_settings
from src.ai.openai.exceptions import (
    OpenAIAuthenticationError,
    OpenAIContentGenerationError,
    OpenAICredentialsMissingError,
    OpenAIError,
    OpenAIModerationError,
)

__all__ = [
    "OpenAISettings",
    "get_openai_settings",
    "OpenAIError",
    "OpenAIAuthenticationError",
    "OpenAICredentialsMissingError",
    "OpenAIContentGenerationError",
    "OpenAIModerationError",
]
