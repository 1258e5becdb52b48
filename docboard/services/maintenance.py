"""Orphaned blob detection and pruning."""

import logging
import time

from sqlalchemy.orm import Session

from docboard.services.attachments import AttachmentStore, BlobKind, blob_name
from docboard.services.documents import decode_record, select_raw_records
from docboard.services.types import Undecodable

logger = logging.getLogger(__name__)

# Blobs may be written before the record that references them is saved.
DEFAULT_MIN_AGE_SECONDS = 3600.0


def _referenced_names(db: Session) -> tuple[dict[BlobKind, set[str]], set[str]]:
    """Return blob names each kind's records refer to, plus ids of undecodable records."""
    referenced: dict[BlobKind, set[str]] = {kind: set() for kind in BlobKind}
    undecodable: set[str] = set()
    for record in db.execute(select_raw_records()):
        outcome = decode_record(record)
        if isinstance(outcome, Undecodable):
            undecodable.add(outcome.document_id)
            continue
        doc = outcome.document
        for canvas_id, canvas in doc.canvases.items():
            referenced[BlobKind.CANVASES].add(blob_name(doc.id, canvas_id))
            referenced[BlobKind.CANVASES].add(blob_name(doc.id, canvas.id))
        for note_id in doc.notes:
            referenced[BlobKind.NOTES].add(blob_name(doc.id, note_id))
    return referenced, undecodable


def find_orphan_blobs(
    db: Session,
    store: AttachmentStore,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
) -> list[tuple[BlobKind, str]]:
    """Return (kind, filename) for every blob no document record refers to.

    Blobs modified within the last *min_age_seconds* are skipped, as are blobs
    whose name starts with the id of an undecodable record.
    """
    cutoff = time.time() - min_age_seconds
    referenced, undecodable = _referenced_names(db)
    orphans: list[tuple[BlobKind, str]] = []
    for kind in BlobKind:
        for name in store.iter_blob_names(kind):
            if name in referenced[kind]:
                continue
            if any(name.startswith(f"{doc_id}-") for doc_id in undecodable):
                continue
            try:
                if (store.root / kind.value / name).stat().st_mtime > cutoff:
                    continue
            except FileNotFoundError:
                continue
            orphans.append((kind, name))
    return sorted(orphans)


def prune_orphan_blobs(
    db: Session,
    store: AttachmentStore,
    dry_run: bool = False,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
) -> list[tuple[BlobKind, str]]:
    """Delete orphaned blobs (unless *dry_run*) and return what was found."""
    orphans = find_orphan_blobs(db, store, min_age_seconds)
    for kind, name in orphans:
        if dry_run:
            logger.info("Would remove orphaned %s blob %s", kind.value, name)
            continue
        try:
            (store.root / kind.value / name).unlink()
            logger.info("Removed orphaned %s blob %s", kind.value, name)
        except OSError as exc:
            logger.warning("Could not remove orphaned %s blob %s: %s", kind.value, name, exc)
    return orphans
