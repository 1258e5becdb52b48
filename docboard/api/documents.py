"""Documents API router."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from starlette.concurrency import run_in_threadpool

from docboard.api.deps import current_owner, get_repository, get_store
from docboard.schemas.document import Document, DocumentCreateRequest
from docboard.services.attachments import (
    AttachmentStore,
    BlobKind,
    BlobNotFoundError,
    InvalidBlobKeyError,
)
from docboard.services.documents import DocumentRepository, NotFoundError, WriteConflictError
from docboard.services.types import Decoded

router = APIRouter()

UNDECODABLE_HEADER = "X-Undecodable-Records"


def _require_id(value: str, label: str = "id") -> str:
    if not value.strip():
        raise HTTPException(status_code=400, detail=f"Missing {label}")
    return value


@router.get("")
def list_documents(
    response: Response,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
) -> list[Document]:
    outcomes = repo.scan_by_owner(owner)
    documents = [o.document for o in outcomes if isinstance(o, Decoded)]
    response.headers[UNDECODABLE_HEADER] = str(len(outcomes) - len(documents))
    return documents


@router.post("", status_code=201)
def create_document(
    body: DocumentCreateRequest | None = None,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
) -> Document:
    body = body or DocumentCreateRequest()
    return repo.create(owner, title=body.title, description=body.description)


@router.put("")
def set_document(
    document: Document,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
) -> Document:
    """Insert or wholesale-replace a document. The owner is always the caller."""
    document = document.model_copy(update={"owner": owner})
    try:
        return repo.upsert(document)
    except WriteConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/{document_id}")
def get_document(
    document_id: str,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
) -> Document:
    _require_id(document_id)
    try:
        return repo.get(owner, document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc


@router.delete("/{document_id}", status_code=204)
def delete_document(
    document_id: str,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
    store: AttachmentStore = Depends(get_store),
) -> None:
    _require_id(document_id)
    try:
        deleted = repo.delete(owner, document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    # Cleanup is advisory: the delete has already succeeded.
    if deleted is not None:
        store.delete_document_blobs(deleted)


def _check_blob_access(
    repo: DocumentRepository,
    store: AttachmentStore,
    owner: str,
    kind: BlobKind,
    document_id: str,
    attachment_id: str,
) -> None:
    try:
        store.path_for(kind, document_id, attachment_id)
    except InvalidBlobKeyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not repo.exists(owner, document_id):
        raise HTTPException(status_code=404, detail="Document not found")


def _write_blob(
    repo: DocumentRepository,
    store: AttachmentStore,
    owner: str,
    kind: BlobKind,
    document_id: str,
    attachment_id: str,
    data: bytes,
) -> None:
    _check_blob_access(repo, store, owner, kind, document_id, attachment_id)
    store.write_blob(kind, document_id, attachment_id, data)


@router.put("/{document_id}/canvases/{canvas_id}", status_code=204)
async def save_canvas(
    document_id: str,
    canvas_id: str,
    request: Request,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
    store: AttachmentStore = Depends(get_store),
) -> None:
    data = await request.body()
    await run_in_threadpool(
        _write_blob, repo, store, owner, BlobKind.CANVASES, document_id, canvas_id, data
    )


@router.put("/{document_id}/notes/{note_id}", status_code=204)
async def save_note(
    document_id: str,
    note_id: str,
    request: Request,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
    store: AttachmentStore = Depends(get_store),
) -> None:
    data = await request.body()
    await run_in_threadpool(
        _write_blob, repo, store, owner, BlobKind.NOTES, document_id, note_id, data
    )


@router.get("/{document_id}/{kind}/{attachment_id}")
def read_blob(
    document_id: str,
    kind: BlobKind,
    attachment_id: str,
    owner: str = Depends(current_owner),
    repo: DocumentRepository = Depends(get_repository),
    store: AttachmentStore = Depends(get_store),
) -> Response:
    _check_blob_access(repo, store, owner, kind, document_id, attachment_id)
    try:
        data = store.read_blob(kind, document_id, attachment_id)
    except BlobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Attachment not found") from exc
    return Response(content=data, media_type="application/octet-stream")
