"""SQLAlchemy engine and session factory."""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


def make_engine(database_url: str, timeout_seconds: float = 10.0) -> Engine:
    """Create an engine whose pool waits and connects are bounded by *timeout_seconds*."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(url, connect_args={"timeout": timeout_seconds})
    connect_args: dict[str, object] = {}
    if url.get_backend_name() == "postgresql":
        connect_args["connect_timeout"] = max(1, int(timeout_seconds))
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        connect_args=connect_args,
    )


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_session(request: Request) -> Generator[Session, None, None]:
    """Yield a database session and close it when the request is done."""
    session_factory: sessionmaker[Session] = request.app.state.session_factory
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """Create all tables. Idempotent: safe to run on every startup."""
    # Import models so Base.metadata includes them before create_all().
    import docboard.models.document  # noqa: F401

    Base.metadata.create_all(bind=engine)
