"""
Document extraction.

Turns an uploaded file into something the analysis pipeline can consume:

- PDF with a usable text layer -> ``DirectText`` (fast path)
- PDF without one (scanned)    -> ``PageImages``, one PNG per page
- image/*                      -> ``RawImage``
- anything else                -> ``RawBytesAsText``

The PDF and image libraries sit behind small capability classes so the
dispatch logic can be exercised without real documents.
"""

import asyncio
import io
from enum import Enum
from typing import Literal, Protocol

import fitz  # PyMuPDF
from PIL import Image
from pydantic import BaseModel
from pypdf import PdfReader

from src.ai.analysis.config import AnalysisSettings, get_analysis_settings
from src.ai.analysis.exceptions import DocumentRenderError, ImageProcessingError
from src.utils.logger import logger


class FileKind(str, Enum):
    """How an uploaded file is dispatched."""

    PDF = "pdf"
    IMAGE = "image"
    UNKNOWN = "unknown"


def classify_file(declared_media_type: str, file_name: str) -> FileKind:
    """Classify by declared media type, falling back to the .pdf suffix."""
    media_type = (declared_media_type or "").lower()
    if media_type == "application/pdf" or file_name.lower().endswith(".pdf"):
        return FileKind.PDF
    if media_type.startswith("image/"):
        return FileKind.IMAGE
    return FileKind.UNKNOWN


class DirectText(BaseModel):
    kind: Literal["direct_text"] = "direct_text"
    text: str


class PageImages(BaseModel):
    kind: Literal["page_images"] = "page_images"
    images: list[bytes]


class RawImage(BaseModel):
    kind: Literal["raw_image"] = "raw_image"
    data: bytes
    media_type: str


class RawBytesAsText(BaseModel):
    kind: Literal["raw_text"] = "raw_text"
    text: str
    usable: bool


ExtractionResult = DirectText | PageImages | RawImage | RawBytesAsText


class PdfTextReader(Protocol):
    def read_text(self, data: bytes) -> str: ...


class PdfPageRenderer(Protocol):
    def render_pages(self, data: bytes, scale: float) -> list[bytes]: ...


class ImageDownscaler(Protocol):
    def downscale(self, data: bytes, max_width: int) -> bytes: ...


class PyPdfTextReader:
    """Reads the embedded text layer with pypdf."""

    def read_text(self, data: bytes) -> str:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(pages).strip()


class PyMuPdfPageRenderer:
    """Rasterizes every page to PNG with PyMuPDF, page 1 first."""

    def render_pages(self, data: bytes, scale: float) -> list[bytes]:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                matrix = fitz.Matrix(scale, scale)
                return [
                    page.get_pixmap(matrix=matrix, alpha=False).tobytes("png")
                    for page in doc
                ]
        except Exception as e:
            raise DocumentRenderError(f"Failed to render PDF pages: {e}", e)


class PillowImageDownscaler:
    """Shrinks images wider than ``max_width``, keeping the aspect ratio."""

    def downscale(self, data: bytes, max_width: int) -> bytes:
        try:
            with Image.open(io.BytesIO(data)) as img:
                if img.width > max_width:
                    height = max(1, round(img.height * max_width / img.width))
                    img = img.resize((max_width, height), Image.LANCZOS)
                buf = io.BytesIO()
                img.save(buf, format="PNG")
                return buf.getvalue()
        except Exception as e:
            raise ImageProcessingError(f"Failed to downscale image: {e}", e)


def count_non_whitespace(text: str) -> int:
    return sum(1 for ch in text if not ch.isspace())


class DocumentExtractor:
    """Chooses and runs the extraction path for one uploaded file."""

    def __init__(
        self,
        settings: AnalysisSettings | None = None,
        text_reader: PdfTextReader | None = None,
        page_renderer: PdfPageRenderer | None = None,
        downscaler: ImageDownscaler | None = None,
    ):
        self.settings = settings or get_analysis_settings()
        self.text_reader = text_reader or PyPdfTextReader()
        self.page_renderer = page_renderer or PyMuPdfPageRenderer()
        self.downscaler = downscaler or PillowImageDownscaler()

    async def extract(
        self, data: bytes, declared_media_type: str, file_name: str
    ) -> ExtractionResult:
        """
        Extract text or images from a file.

        Runs the whole extraction in one call. The analysis orchestrator
        drives the individual steps itself so that the scanned-PDF notice
        is written before rendering starts.

        Args:
            data: Raw file bytes
            declared_media_type: Media type reported by the client (may be "unknown")
            file_name: Original file name

        Returns:
            ExtractionResult: One of the four extraction variants

        Raises:
            DocumentRenderError: If a scanned PDF cannot be rasterized
            ImageProcessingError: If a rendered page cannot be downscaled
        """
        kind = classify_file(declared_media_type, file_name)
        logger.info(
            "[ANALYSIS] Extracting file",
            file_name=file_name,
            media_type=declared_media_type,
            kind=kind.value,
            size_bytes=len(data),
        )

        if kind == FileKind.PDF:
            direct = await self.extract_text_layer(data)
            if direct is not None:
                return direct
            return await self.render_page_images(data)

        if kind == FileKind.IMAGE:
            return self.as_image(data, declared_media_type)

        return self.decode_unknown(data)

    async def extract_text_layer(self, data: bytes) -> DirectText | None:
        """Return the PDF text layer if it clears the minimum, else None."""
        text = await asyncio.to_thread(self._read_text_layer, data)
        text_chars = count_non_whitespace(text)
        if text_chars > self.settings.min_pdf_text_chars:
            return DirectText(text=text)
        logger.info(
            "[ANALYSIS] PDF text layer below threshold",
            text_chars=text_chars,
            threshold=self.settings.min_pdf_text_chars,
        )
        return None

    async def render_page_images(self, data: bytes) -> PageImages:
        images = await asyncio.to_thread(self.render_pages, data)
        return PageImages(images=images)

    def as_image(self, data: bytes, media_type: str) -> RawImage:
        return RawImage(data=data, media_type=media_type)

    def decode_unknown(self, data: bytes) -> RawBytesAsText:
        """Lossy UTF-8 decode; short output is marked unusable."""
        text = data.decode("utf-8", errors="replace")
        return RawBytesAsText(
            text=text, usable=len(text) >= self.settings.min_unknown_text_chars
        )

    def _read_text_layer(self, data: bytes) -> str:
        """Read the PDF text layer; a parse failure counts as an empty layer."""
        try:
            return self.text_reader.read_text(data)
        except Exception as e:
            logger.warning(
                "[ANALYSIS] PDF text extraction failed, treating as scanned",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ""

    def render_pages(self, data: bytes) -> list[bytes]:
        """Rasterize every page and downscale it for the vision model."""
        pages = self.page_renderer.render_pages(data, self.settings.render_scale)
        logger.info("[ANALYSIS] Rendered PDF pages", page_count=len(pages))
        return [
            self.downscaler.downscale(page, self.settings.page_max_width)
            for page in pages
        ]
