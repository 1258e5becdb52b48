"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from docboard.db import get_session
from docboard.services.attachments import AttachmentStore
from docboard.services.auth import AuthError, TokenVerifier, authenticate
from docboard.services.documents import DocumentRepository


def get_verifier(request: Request) -> TokenVerifier:
    verifier: TokenVerifier = request.app.state.verifier
    return verifier


def get_store(request: Request) -> AttachmentStore:
    store: AttachmentStore = request.app.state.store
    return store


def get_repository(db: Session = Depends(get_session)) -> DocumentRepository:
    return DocumentRepository(db)


def current_owner(
    request: Request,
    verifier: TokenVerifier = Depends(get_verifier),
) -> str:
    """Authenticate the caller and return their owner id; 401 on any auth failure."""
    try:
        return authenticate(request.cookies, request.headers, verifier)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
