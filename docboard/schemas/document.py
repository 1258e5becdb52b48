"""Pydantic schemas for Document endpoints and stored records."""

import base64
import uuid
from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer, field_validator

DEFAULT_TITLE = "Unnamed document"
DEFAULT_DESCRIPTION = "No description provided"


def _decode_payload(value: object) -> object:
    # JSON carries payloads as base64; Python callers may pass raw bytes.
    if isinstance(value, str):
        return base64.b64decode(value, validate=True)
    return value


def _encode_payload(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


Payload = Annotated[
    bytes,
    BeforeValidator(_decode_payload),
    PlainSerializer(_encode_payload, return_type=str, when_used="json"),
]


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=UTC).replace(tzinfo=None)


class Coordinate(BaseModel):
    x: int
    y: int


class Size(BaseModel):
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class TextSize(BaseModel):
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    font_size: int = Field(ge=0)


class Text(BaseModel):
    position: Coordinate
    size: TextSize
    content: Payload = b""


class Note(BaseModel):
    position: Coordinate
    size: Size
    # Legacy/initial body only; the note blob is authoritative once written.
    content: Payload = b""


class Canvas(BaseModel):
    position: Coordinate
    id: str


class Attachments(BaseModel):
    """The attachment maps as persisted in DocumentRecord.attachments."""

    texts: dict[str, Text] = Field(default_factory=dict)
    notes: dict[str, Note] = Field(default_factory=dict)
    canvases: dict[str, Canvas] = Field(default_factory=dict)


class Document(Attachments):
    id: str = Field(default_factory=_new_id, min_length=1)
    owner: str = ""
    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("created_at")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        """Store timestamps as naive UTC so they survive any database round trip."""
        if v.tzinfo is not None:
            return v.astimezone(UTC).replace(tzinfo=None)
        return v

    def attachment_maps(self) -> Attachments:
        return Attachments(texts=self.texts, notes=self.notes, canvases=self.canvases)


class DocumentCreateRequest(BaseModel):
    title: str | None = None
    description: str | None = None


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None
