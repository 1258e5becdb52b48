"""Unit tests for document schemas."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from docboard.schemas.document import Coordinate, Document, Note, Size, Text, TextSize


def _text(content: object) -> Text:
    return Text.model_validate(
        {
            "position": {"x": 0, "y": 0},
            "size": {"width": 1, "height": 1, "font_size": 1},
            "content": content,
        }
    )


class TestPayload:
    def test_json_content_is_base64_decoded(self) -> None:
        assert _text("AP9oaQ==").content == b"\x00\xffhi"

    def test_raw_bytes_pass_through(self) -> None:
        assert _text(b"\x00\xffhi").content == b"\x00\xffhi"

    def test_serialises_to_base64_in_json_mode(self) -> None:
        text = _text(b"\x00\xffhi")

        assert text.model_dump(mode="json")["content"] == "AP9oaQ=="
        assert text.model_dump()["content"] == b"\x00\xffhi"

    def test_rejects_invalid_base64(self) -> None:
        with pytest.raises(ValidationError):
            _text("not base64!")

    def test_note_content_defaults_to_empty(self) -> None:
        note = Note(position=Coordinate(x=1, y=2), size=Size(width=3, height=4))

        assert note.content == b""


class TestDocument:
    def test_defaults(self) -> None:
        doc = Document()

        uuid.UUID(doc.id)
        assert doc.owner == ""
        assert doc.title == "Unnamed document"
        assert doc.description == "No description provided"
        assert doc.texts == {} and doc.notes == {} and doc.canvases == {}
        assert doc.created_at.tzinfo is None

    def test_aware_created_at_is_converted_to_naive_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))

        doc = Document(created_at=datetime(2026, 5, 1, 12, 0, tzinfo=plus_two))

        assert doc.created_at == datetime(2026, 5, 1, 10, 0)

    def test_rejects_negative_sizes(self) -> None:
        with pytest.raises(ValidationError):
            TextSize(width=-1, height=1, font_size=1)

    def test_rejects_empty_id(self) -> None:
        with pytest.raises(ValidationError):
            Document(id="")

    def test_json_round_trip_preserves_every_field(self) -> None:
        doc = Document(
            owner="alice",
            texts={
                "t": _text(b"\x01\x02"),
            },
            notes={"n": Note(position=Coordinate(x=0, y=0), size=Size(width=1, height=1))},
        )

        assert Document.model_validate_json(doc.model_dump_json()) == doc
