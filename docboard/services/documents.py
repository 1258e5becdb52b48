"""Document repository: owner-scoped CRUD over document records."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError
from sqlalchemy import Row, Select, String, cast, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from docboard.models.document import DocumentRecord
from docboard.schemas.document import (
    DEFAULT_DESCRIPTION,
    DEFAULT_TITLE,
    Attachments,
    Document,
)
from docboard.services.types import Decoded, ScanOutcome, Undecodable

logger = logging.getLogger(__name__)

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE.
_UPSERT_INSERTS: dict[str, Any] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class StoreError(Exception):
    """Base class for document store failures."""


class NotFoundError(StoreError):
    """Raised when no document matches both owner and id."""


class StoreUnavailableError(StoreError):
    """Raised when the database cannot be reached or the statement fails."""


class WriteConflictError(StoreError):
    """Raised when a write targets a document id held by another owner."""


class RecordDecodeError(StoreError):
    """Raised when a single requested record cannot be decoded."""


def _to_row(document: Document) -> dict[str, Any]:
    return {
        "id": document.id,
        "owner": document.owner,
        "title": document.title,
        "description": document.description,
        "created_at": document.created_at,
        "attachments": document.attachment_maps().model_dump_json(),
    }


def select_raw_records() -> Select[tuple[str, str, str, str, str, str]]:
    """Select document columns with created_at as text.

    The driver parses timestamps while fetching, so a malformed value would
    abort the whole result; reading it as text leaves parsing to decode_record.
    """
    return select(
        DocumentRecord.id,
        DocumentRecord.owner,
        DocumentRecord.title,
        DocumentRecord.description,
        cast(DocumentRecord.created_at, String).label("created_at"),
        DocumentRecord.attachments,
    )


def decode_record(record: Row[Any]) -> ScanOutcome:
    """Turn a stored row into a Decoded document, or an Undecodable marker."""
    try:
        maps = Attachments.model_validate_json(record.attachments or "{}")
        document = Document(
            id=record.id,
            owner=record.owner,
            title=record.title,
            description=record.description,
            created_at=record.created_at,
            texts=maps.texts,
            notes=maps.notes,
            canvases=maps.canvases,
        )
    except (ValidationError, ValueError, TypeError) as exc:
        return Undecodable(document_id=record.id, reason=str(exc))
    return Decoded(document=document)


class DocumentRepository:
    """Every operation is filtered by owner; records of other owners are never touched."""

    def __init__(self, db: Session) -> None:
        self._db = db

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except DBAPIError as exc:
            self._db.rollback()
            raise StoreUnavailableError(str(exc.orig or exc)) from exc

    def scan_by_owner(self, owner: str) -> list[ScanOutcome]:
        """Return one outcome per stored record of *owner*, in no particular order.

        A record that fails to decode becomes an Undecodable entry instead of
        aborting the scan.
        """
        with self._translate_errors():
            records = self._db.execute(
                select_raw_records().where(DocumentRecord.owner == owner)
            ).all()
        outcomes = [decode_record(r) for r in records]
        for outcome in outcomes:
            if isinstance(outcome, Undecodable):
                logger.warning(
                    "Undecodable document %s: %s", outcome.document_id, outcome.reason
                )
        return outcomes

    def list_by_owner(self, owner: str) -> list[Document]:
        """Return the decodable documents of *owner*; undecodable records are skipped."""
        return [o.document for o in self.scan_by_owner(owner) if isinstance(o, Decoded)]

    def _find(self, owner: str, document_id: str) -> Row[Any] | None:
        with self._translate_errors():
            return self._db.execute(
                select_raw_records().where(
                    DocumentRecord.owner == owner, DocumentRecord.id == document_id
                )
            ).first()

    def get(self, owner: str, document_id: str) -> Document:
        """Return the document; raise NotFoundError unless owner and id both match."""
        record = self._find(owner, document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id} not found")
        outcome = decode_record(record)
        if isinstance(outcome, Undecodable):
            raise RecordDecodeError(f"Document {document_id} cannot be decoded: {outcome.reason}")
        return outcome.document

    def exists(self, owner: str, document_id: str) -> bool:
        return self._find(owner, document_id) is not None

    def create(
        self, owner: str, title: str | None = None, description: str | None = None
    ) -> Document:
        """Insert a fresh document with no attachments."""
        document = Document(
            owner=owner,
            title=title if title is not None else DEFAULT_TITLE,
            description=description if description is not None else DEFAULT_DESCRIPTION,
        )
        self._db.add(DocumentRecord(**_to_row(document)))
        try:
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise WriteConflictError(f"Document {document.id} already exists") from exc
        except DBAPIError as exc:
            self._db.rollback()
            raise StoreUnavailableError(str(exc.orig or exc)) from exc
        logger.info("Created document %s for %s", document.id, owner)
        return document

    def upsert(self, document: Document) -> Document:
        """Insert *document*, or replace every field of the owner's existing record.

        Runs as one INSERT ... ON CONFLICT statement, so concurrent upserts of a
        new id cannot both insert. Raises WriteConflictError if the id already
        belongs to a different owner; nothing is written in that case.
        """
        with self._translate_errors():
            dialect = self._db.get_bind().dialect.name
            make_insert = _UPSERT_INSERTS.get(dialect)
            if make_insert is None:
                raise StoreError(f"Upsert is not supported on {dialect!r}")
            row = _to_row(document)
            table = DocumentRecord.__table__
            stmt = make_insert(table).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.id],
                set_={key: stmt.excluded[key] for key in row if key not in ("id", "owner")},
                where=table.c.owner == stmt.excluded.owner,
            )
            result = self._db.execute(stmt)
            if result.rowcount == 0:  # type: ignore[attr-defined]
                self._db.rollback()
                raise WriteConflictError(f"Document {document.id} belongs to another owner")
            self._db.commit()
        logger.info("Upserted document %s for %s", document.id, document.owner)
        return document

    def delete(self, owner: str, document_id: str) -> Document | None:
        """Remove the document and return it for attachment cleanup.

        Returns None when the record was removed but could not be decoded.
        Raises NotFoundError if no record matches.
        """
        record = self._find(owner, document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id} not found")
        outcome = decode_record(record)
        with self._translate_errors():
            self._db.execute(
                delete(DocumentRecord).where(
                    DocumentRecord.owner == owner, DocumentRecord.id == document_id
                )
            )
            self._db.commit()
        logger.info("Deleted document %s for %s", document_id, owner)
        if isinstance(outcome, Undecodable):
            logger.warning(
                "Deleted undecodable document %s; its attachments cannot be cleaned up",
                document_id,
            )
            return None
        return outcome.document
