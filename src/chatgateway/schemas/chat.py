"""Request and response models for the conversation API."""

from __future__ import annotations

import base64
import binascii
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..chat.store import ImageAttachment

_DATA_URL_PREFIX = "data:"


class ImagePayload(BaseModel):
    """An inline image, either bare base64 or a ``data:`` URL."""

    data: str = Field(..., min_length=1)
    mime_type: str = Field(default="image/jpeg")

    @field_validator("data")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        _decode(value)
        return value

    def to_attachment(self) -> ImageAttachment:
        mime_type = self.mime_type
        data = self.data
        if data.startswith(_DATA_URL_PREFIX):
            header, _, _ = data.partition(",")
            declared = header[len(_DATA_URL_PREFIX) :].split(";", 1)[0]
            if declared:
                mime_type = declared
        return ImageAttachment(data=_decode(data), mime_type=mime_type)


def _decode(value: str) -> bytes:
    if value.startswith(_DATA_URL_PREFIX):
        header, separator, value = value.partition(",")
        if not separator or ";base64" not in header:
            raise ValueError("Image data URLs must be base64 encoded")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image data is not valid base64") from exc


class SubmitMessageRequest(BaseModel):
    text: str = ""
    images: List[ImagePayload] = Field(default_factory=list)

    def attachments(self) -> list[ImageAttachment]:
        return [image.to_attachment() for image in self.images]


class SubmitMessageResponse(BaseModel):
    conversation_id: str
    message_id: str


class ConversationSummary(BaseModel):
    id: str
    title: str
    created_at: str
    stream_state: str
    message_count: int


class ConversationSnapshot(BaseModel):
    id: str
    title: str
    active_model: Optional[str] = None
    stream_state: str
    error_message: Optional[str] = None
    created_at: str
    phase: str
    continuations: int = 0
    messages: List[dict[str, Any]] = Field(default_factory=list)


class ModelListResponse(BaseModel):
    provider: str
    models: List[str]


__all__ = [
    "ConversationSnapshot",
    "ConversationSummary",
    "ImagePayload",
    "ModelListResponse",
    "SubmitMessageRequest",
    "SubmitMessageResponse",
]
