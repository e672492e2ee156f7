"""
Map-reduce summarization of long text.

Each chunk is summarized on its own (map), then the chunk summaries are
merged by one final call (reduce). Calls run strictly one after another and
the first failure aborts the whole summary.
"""

from src.ai.analysis.chunking import chunk_text
from src.ai.analysis.config import AnalysisSettings, get_analysis_settings
from src.ai.analysis.constants import (
    CHUNK_SUMMARY_PROMPT_TEMPLATE,
    COMBINE_SUMMARIES_PROMPT_TEMPLATE,
)
from src.ai.base import AIProvider, InputTextPart, ModelMessage
from src.ai.openai.config import OpenAISettings, get_openai_settings
from src.ai.openai.exceptions import OpenAICredentialsMissingError
from src.utils.logger import logger


class Summarizer:
    """Produces one structured summary for arbitrarily long text."""

    def __init__(
        self,
        provider: AIProvider,
        settings: OpenAISettings | None = None,
        analysis_settings: AnalysisSettings | None = None,
    ):
        self.provider = provider
        self.settings = settings or get_openai_settings()
        self.analysis_settings = analysis_settings or get_analysis_settings()

    async def summarize(self, text: str) -> str:
        """
        Summarize text by chunking, per-chunk summaries and a final merge.

        Args:
            text: Source text of any length

        Returns:
            str: The merge call's output, stripped (model output is not validated)

        Raises:
            OpenAICredentialsMissingError: If no API key is configured
        """
        if not self.provider.has_credentials:
            raise OpenAICredentialsMissingError()

        chunks = chunk_text(text, self.analysis_settings.chunk_max_chars)
        logger.info(
            "[SUMMARIZER] Summarizing text",
            text_chars=len(text),
            chunk_count=len(chunks),
            model=self.settings.model_name,
        )

        chunk_summaries: list[str] = []
        for index, chunk in enumerate(chunks, start=1):
            prompt = CHUNK_SUMMARY_PROMPT_TEMPLATE.format(
                index=index, total=len(chunks), chunk=chunk
            )
            summary = await self.provider.collect_text(
                [ModelMessage(role="user", content=[InputTextPart(text=prompt)])],
                model=self.settings.model_name,
                reasoning_effort=self.settings.reasoning_effort,
            )
            chunk_summaries.append(summary.strip())
            logger.debug("[SUMMARIZER] Chunk summarized", index=index, total=len(chunks))

        combine_message = ModelMessage(
            role="user",
            content=[
                InputTextPart(
                    text=COMBINE_SUMMARIES_PROMPT_TEMPLATE.format(count=len(chunk_summaries))
                ),
                InputTextPart(text="\n\n".join(chunk_summaries)),
            ],
        )
        combined = await self.provider.collect_text(
            [combine_message],
            model=self.settings.model_name,
            reasoning_effort=self.settings.summary_reasoning_effort,
        )

        logger.info("[SUMMARIZER] Summary complete", output_chars=len(combined))
        return combined.strip()
