"""OpenAI API configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OpenAISettings(BaseSettings):
    """Settings for OpenAI API integration.

    Attributes:
        api_key: OpenAI API key. Optional at load time; callers check it before
            any network call and report a missing credential themselves.
        model_name: Default text model (chunk and combine summarization)
        vision_model_name: Vision-capable model used for OCR / image analysis
        chat_model_name: Model used for the general chat flow
        moderation_model_name: Model used by the moderation endpoint
        reasoning_effort: Reasoning effort for chat, vision and per-chunk calls
        summary_reasoning_effort: Reasoning effort for the final combine call
        vector_store_ids: Vector stores exposed to the file search tool

    Note:
        For reasoning models (gpt-5, o1, o3), temperature is not supported.
        Use reasoning_effort and text_verbosity instead.
    """

    model_config = SettingsConfigDict(
        env_prefix="OPENAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    model_name: str = Field(
        default="gpt-4o-mini",
        description="Default text model for summarization",
    )
    vision_model_name: str = Field(
        default="gpt-4o-mini",
        description="Vision-capable model for OCR and image analysis",
    )
    chat_model_name: str = Field(
        default="gpt-5-mini",
        description="Model for the general chat flow",
    )
    moderation_model_name: str = Field(
        default="omni-moderation-latest",
        description="Model for the moderation endpoint",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Default temperature for non-reasoning models (not used with reasoning models)",
    )
    max_tokens: int = Field(
        default=16000,
        gt=0,
        description="Default max output tokens for generation",
    )
    reasoning_effort: str = Field(
        default="medium",
        description="Reasoning effort for chat, vision and per-chunk calls (minimal, low, medium, high)",
    )
    summary_reasoning_effort: str = Field(
        default="high",
        description="Reasoning effort for the combine step of summarization",
    )
    text_verbosity: str = Field(
        default="medium",
        description="Default text verbosity for reasoning models (low, medium, high)",
    )
    request_timeout: int = Field(
        default=120,
        gt=0,
        description="HTTP request timeout in seconds",
    )
    enable_web_search: bool = Field(
        default=True,
        description="Expose the web search tool in the general chat flow",
    )
    vector_store_ids: list[str] = Field(
        default_factory=list,
        description="Vector store IDs for the file search tool (empty disables it)",
    )
    braintrust_enabled: bool = Field(
        default=False,
        description="Wrap the OpenAI client with Braintrust tracing",
    )
    braintrust_project_name: str | None = Field(
        default=None,
        description="Braintrust project name for tracing",
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@lru_cache
def get_openai_settings() -> OpenAISettings:
    """Get cached OpenAI settings instance.

    Returns:
        OpenAISettings: Cached settings instance
    """
    return OpenAISettings()
