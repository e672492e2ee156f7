"""File analysis configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisSettings(BaseSettings):
    """Thresholds and sizes for the file analysis pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    chunk_max_chars: int = Field(
        default=2800,
        gt=0,
        description="Maximum characters per summarization chunk",
    )
    min_pdf_text_chars: int = Field(
        default=200,
        ge=0,
        description="Non-whitespace characters a PDF text layer must exceed to skip OCR",
    )
    min_unknown_text_chars: int = Field(
        default=100,
        ge=0,
        description="Minimum decoded length for an unknown file type to be summarized",
    )
    render_scale: float = Field(
        default=1.5,
        gt=0,
        description="Scale factor used when rasterizing PDF pages",
    )
    page_max_width: int = Field(
        default=1600,
        gt=0,
        description="Rendered pages wider than this are downscaled before OCR",
    )
    max_file_size_mb: float = Field(
        default=50,
        gt=0,
        description="Largest decoded upload accepted for analysis",
    )


@lru_cache
def get_analysis_settings() -> AnalysisSettings:
    """Get cached analysis settings instance."""
    return AnalysisSettings()
