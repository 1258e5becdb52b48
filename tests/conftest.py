"""Shared pytest fixtures."""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from docboard.config import Settings
from docboard.db import create_tables, make_session_factory
from docboard.main import create_app
from docboard.services.attachments import AttachmentStore
from docboard.services.types import AuthResult, Authorized, Unauthorized, VerificationFailed

ALICE_TOKEN = "alice-token"
BOB_TOKEN = "bob-token"
NO_USER_TOKEN = "no-user-token"
BROKEN_TOKEN = "broken-token"


class StubVerifier:
    """Maps fixed tokens to results without calling any identity service."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.results: dict[str, AuthResult] = {
            ALICE_TOKEN: Authorized(owner="alice"),
            BOB_TOKEN: Authorized(owner="bob"),
            NO_USER_TOKEN: Unauthorized(),
            BROKEN_TOKEN: VerificationFailed(reason="identity service unreachable"),
        }

    def verify(self, token: str) -> AuthResult:
        self.calls.append(token)
        return self.results.get(token, Unauthorized())


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine shared across threads."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Generator[Session, None, None]:
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(tmp_path: Path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "blobs")


@pytest.fixture()
def verifier() -> StubVerifier:
    return StubVerifier()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url="sqlite://",
        identity_api_url="http://identity.test/",
        blob_root=tmp_path / "blobs",
    )


@pytest.fixture()
def client(
    settings: Settings, engine: Engine, verifier: StubVerifier
) -> Generator[TestClient, None, None]:
    app = create_app(settings, engine=engine, verifier=verifier)
    with TestClient(app) as test_client:
        yield test_client
