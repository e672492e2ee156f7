"""
Inbound chat request models.

Messages follow the UI message shape sent by the chat frontend: a role, an
ordered list of typed parts and optional metadata. Uploaded files travel in
the metadata as a base64 payload.
"""

import base64
import binascii
import math
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)

DEFAULT_FILE_NAME = "uploaded-file"
UNKNOWN_MEDIA_TYPE = "unknown"


class TextPart(BaseModel):
    """Plain text typed by the user or produced by the assistant."""

    type: Literal["text"] = "text"
    text: str


class ReasoningPart(BaseModel):
    """Reasoning text from a previous assistant turn."""

    type: Literal["reasoning"] = "reasoning"
    text: str = ""


class FilePart(BaseModel):
    """A file referenced by URL (usually a data URL)."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["file"] = "file"
    media_type: str = Field(alias="mediaType")
    url: str
    filename: str | None = None


class StepStartPart(BaseModel):
    """Boundary marker between assistant steps."""

    type: Literal["step-start"] = "step-start"


class OtherPart(BaseModel):
    """Tool invocations and any part type this service does not interpret."""

    model_config = ConfigDict(extra="allow")

    type: str


def _part_tag(value: Any) -> str:
    part_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if part_type in ("text", "reasoning", "file", "step-start"):
        return part_type
    return "other"


MessagePart = Annotated[
    Annotated[TextPart, Tag("text")]
    | Annotated[ReasoningPart, Tag("reasoning")]
    | Annotated[FilePart, Tag("file")]
    | Annotated[StepStartPart, Tag("step-start")]
    | Annotated[OtherPart, Tag("other")],
    Discriminator(_part_tag),
]


class FileAttachment(BaseModel):
    """File uploaded with a message, carried in the message metadata.

    Only ``fileContent`` is required. The descriptive fields are loosely
    typed by clients, so unusable values fall back to defaults instead of
    rejecting the attachment.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_name: str = Field(default=DEFAULT_FILE_NAME, alias="fileName")
    declared_media_type: str = Field(default=UNKNOWN_MEDIA_TYPE, alias="fileType")
    size_bytes: int | None = Field(default=None, alias="fileSize")
    encoded_content: str = Field(alias="fileContent")

    @field_validator("file_name", "declared_media_type", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any, info) -> str:
        default = DEFAULT_FILE_NAME if info.field_name == "file_name" else UNKNOWN_MEDIA_TYPE
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return default
        return str(value) or default

    @field_validator("size_bytes", mode="before")
    @classmethod
    def _coerce_size(cls, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    @field_validator("encoded_content", mode="before")
    @classmethod
    def _content_as_text(cls, value: Any) -> Any:
        # Non-string payloads surface later as a base64 decode error
        if value is not None and not isinstance(value, str):
            return str(value)
        return value

    def decode(self) -> bytes:
        """Decode the payload, dropping a data-URL style prefix if present.

        Raises:
            ValueError: If the payload is not valid base64
        """
        payload = self.encoded_content
        if "," in payload:
            payload = payload.split(",", 1)[1]
        payload = "".join(payload.split())
        payload += "=" * (-len(payload) % 4)
        try:
            return base64.b64decode(payload)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"File content is not valid base64: {e}")


class UIMessage(BaseModel):
    """A single conversation message."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    role: Literal["user", "assistant", "system"]
    parts: list[MessagePart] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        """Concatenate the text of parts tagged as plain text, in order."""
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    @property
    def file_attachment(self) -> FileAttachment | None:
        """The uploaded file carried in metadata, if any."""
        if not self.metadata or not self.metadata.get("fileContent"):
            return None
        return FileAttachment.model_validate(self.metadata)


class ChatRequest(BaseModel):
    """Chat request with message history."""

    model_config = ConfigDict(extra="ignore")

    messages: list[UIMessage]
