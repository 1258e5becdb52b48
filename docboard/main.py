"""FastAPI application entry point.

Run with ``uvicorn docboard.main:create_app --factory``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S")

# Apply the same format to Uvicorn's loggers so they also show timestamps.
for _uvicorn_logger in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    _log = logging.getLogger(_uvicorn_logger)
    _log.handlers.clear()
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"))
    _log.addHandler(_handler)
    _log.propagate = False

import anyio.to_thread
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Engine

from docboard.api import documents
from docboard.config import Settings
from docboard.db import create_tables, make_engine, make_session_factory
from docboard.schemas.document import ErrorResponse
from docboard.services.attachments import (
    AttachmentStore,
    BlobError,
    BlobNotFoundError,
    InvalidBlobKeyError,
)
from docboard.services.auth import AuthError, IdentityServiceVerifier, TokenVerifier
from docboard.services.documents import NotFoundError, StoreError, WriteConflictError

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, detail: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


async def _domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, AuthError):
        return _error(401, "unauthorized", str(exc))
    if isinstance(exc, NotFoundError):
        return _error(404, "not_found", str(exc))
    if isinstance(exc, WriteConflictError):
        return _error(409, "conflict", str(exc))
    if isinstance(exc, InvalidBlobKeyError):
        return _error(400, "bad_request", str(exc))
    if isinstance(exc, BlobNotFoundError):
        return _error(404, "not_found", str(exc))
    if isinstance(exc, (StoreError, BlobError)):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, "internal_error", str(exc))
    return await _global_exception_handler(request, exc)


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # A missing or unparseable body is the caller's fault, not an entity problem.
    return _error(400, "bad_request", str(exc))


async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", str(exc))


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Build the application from explicit settings.

    *engine* and *verifier* default to ones built from *settings*; tests pass
    their own.
    """
    settings = settings or Settings.from_env()
    owns_engine = engine is None
    if engine is None:
        engine = make_engine(settings.database_url, settings.db_timeout_seconds)
    owns_verifier = verifier is None
    if verifier is None:
        verifier = IdentityServiceVerifier(
            settings.identity_api_url, timeout=settings.identity_timeout_seconds
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Bound the worker pool that runs sync endpoints.
        anyio.to_thread.current_default_thread_limiter().total_tokens = settings.worker_threads
        create_tables(engine)
        yield
        if owns_verifier and isinstance(verifier, IdentityServiceVerifier):
            verifier.close()
        if owns_engine:
            engine.dispose()

    app = FastAPI(title="docboard", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = make_session_factory(engine)
    app.state.store = AttachmentStore(settings.blob_root)
    app.state.verifier = verifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for exc_class in (AuthError, StoreError, BlobError):
        app.add_exception_handler(exc_class, _domain_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _global_exception_handler)

    app.include_router(documents.router, prefix="/documents", tags=["documents"])
    return app
