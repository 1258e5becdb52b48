"""Filesystem blob store for canvas drawings and note bodies."""

import contextlib
import enum
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from docboard.schemas.document import Document

logger = logging.getLogger(__name__)

_FORBIDDEN_ID_CHARS = ("/", "\\", "\x00")


def _default_file_mode() -> int:
    # os.umask can only be read by setting it; done once at import.
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


# Temporary files are created 0600; blobs get the mode a plain open() would give.
_BLOB_FILE_MODE = _default_file_mode()


class BlobKind(str, enum.Enum):
    CANVASES = "canvases"
    NOTES = "notes"


class BlobError(Exception):
    """Base class for attachment store failures."""


class BlobIOError(BlobError):
    """Raised when a blob cannot be written or read."""


class BlobNotFoundError(BlobError):
    """Raised when no blob is stored under the requested key."""


class InvalidBlobKeyError(BlobError, ValueError):
    """Raised when an id cannot be used as part of a blob filename."""


def _check_id(label: str, value: str) -> None:
    if not value or not value.strip():
        raise InvalidBlobKeyError(f"{label} must not be empty")
    if value in (".", "..") or any(c in value for c in _FORBIDDEN_ID_CHARS):
        raise InvalidBlobKeyError(f"{label} contains characters not allowed in a blob key")


def blob_name(document_id: str, attachment_id: str) -> str:
    return f"{document_id}-{attachment_id}"


class AttachmentStore:
    """Stores blobs at ``<root>/<kind>/<document_id>-<attachment_id>``.

    No link to the document records is enforced here: a blob may outlive its
    document and a canvas or note entry may point at a blob never written.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, kind: BlobKind, document_id: str, attachment_id: str) -> Path:
        """Return the blob path; raise InvalidBlobKeyError for ids unsafe in a filename."""
        _check_id("document id", document_id)
        _check_id("attachment id", attachment_id)
        return self._root / BlobKind(kind).value / blob_name(document_id, attachment_id)

    def write_blob(
        self, kind: BlobKind, document_id: str, attachment_id: str, data: bytes
    ) -> bool:
        """Create or fully overwrite a blob. Returns False if *data* was empty.

        Empty payloads leave any existing blob untouched. The new content is
        written to a temporary file and moved into place, so a failed write
        never leaves a truncated blob behind. Raises BlobIOError on failure.
        """
        path = self.path_for(kind, document_id, attachment_id)
        if not data:
            return False
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=".tmp-", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
            os.chmod(tmp_name, _BLOB_FILE_MODE)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise BlobIOError(f"Could not write {path}: {exc}") from exc
        logger.info("Wrote %d bytes to %s blob %s", len(data), kind.value, path.name)
        return True

    def read_blob(self, kind: BlobKind, document_id: str, attachment_id: str) -> bytes:
        path = self.path_for(kind, document_id, attachment_id)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"No {kind.value} blob {path.name}") from exc
        except OSError as exc:
            raise BlobIOError(f"Could not read {path}: {exc}") from exc

    def delete_blob(self, kind: BlobKind, document_id: str, attachment_id: str) -> None:
        """Delete a blob. Best-effort: failures are logged, never raised."""
        try:
            self.path_for(kind, document_id, attachment_id).unlink()
        except FileNotFoundError:
            pass
        except (OSError, InvalidBlobKeyError) as exc:
            logger.warning(
                "Could not delete %s blob %s: %s",
                kind.value,
                blob_name(document_id, attachment_id),
                exc,
            )

    def delete_document_blobs(self, document: Document) -> None:
        """Best-effort removal of every canvas and note blob of *document*."""
        for canvas_id, canvas in document.canvases.items():
            self.delete_blob(BlobKind.CANVASES, document.id, canvas_id)
            if canvas.id and canvas.id != canvas_id:
                self.delete_blob(BlobKind.CANVASES, document.id, canvas.id)
        for note_id in document.notes:
            self.delete_blob(BlobKind.NOTES, document.id, note_id)

    def iter_blob_names(self, kind: BlobKind) -> Iterator[str]:
        """Yield the filename of every stored blob of *kind*."""
        directory = self._root / BlobKind(kind).value
        if not directory.is_dir():
            return
        for entry in directory.iterdir():
            if entry.is_file() and not entry.name.startswith(".tmp-"):
                yield entry.name
