"""Image analysis (OCR, tables, short summary) with a vision-capable model."""

from src.ai.analysis.constants import VISION_PROMPT
from src.ai.base import AIProvider, InputImagePart, InputTextPart, ModelMessage
from src.ai.openai.config import OpenAISettings, get_openai_settings
from src.ai.openai.exceptions import OpenAICredentialsMissingError
from src.utils.logger import logger


class VisionAnalyzer:
    """Sends one image per call to the vision model and returns its raw output."""

    def __init__(self, provider: AIProvider, settings: OpenAISettings | None = None):
        self.provider = provider
        self.settings = settings or get_openai_settings()

    async def analyze_image(
        self,
        image: bytes,
        media_type: str = "image/png",
        label: str = "image",
    ) -> str:
        """
        Run OCR and structured extraction over a single image.

        Args:
            image: Encoded image bytes
            media_type: Image media type used in the inline data URL
            label: Name used in logs (file name or page label)

        Returns:
            str: Concatenated model output (expected to be JSON, not validated)

        Raises:
            OpenAICredentialsMissingError: If no API key is configured
        """
        if not self.provider.has_credentials:
            raise OpenAICredentialsMissingError()

        logger.info(
            "[VISION] Analyzing image",
            label=label,
            size_bytes=len(image),
            model=self.settings.vision_model_name,
        )

        messages = [
            ModelMessage(
                role="user",
                content=[
                    InputTextPart(text=VISION_PROMPT),
                    InputImagePart.from_bytes(image, media_type=media_type),
                ],
            )
        ]
        result = await self.provider.collect_text(
            messages,
            model=self.settings.vision_model_name,
            reasoning_effort=self.settings.reasoning_effort,
        )

        logger.info("[VISION] Analysis complete", label=label, output_chars=len(result))
        return result
