"""Process configuration, built once at startup and passed explicitly."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


def _require(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise RuntimeError(f"{name} environment variable is not set")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str
    identity_api_url: str
    blob_root: Path = Path("blobs")
    identity_timeout_seconds: float = 5.0
    db_timeout_seconds: float = 10.0
    worker_threads: int = 4

    @classmethod
    def from_env(cls, env_file: str | os.PathLike[str] | None = None) -> "Settings":
        """Read settings from the environment.

        *env_file* (or the nearest .env above the working directory) is loaded
        first; variables already set in the environment win.

        Raises RuntimeError if DATABASE_URL or ACCOUNT_API_URL is missing.
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))
        return cls(
            database_url=_require("DATABASE_URL"),
            identity_api_url=_require("ACCOUNT_API_URL"),
            blob_root=Path(os.environ.get("BLOB_ROOT", "blobs")),
            identity_timeout_seconds=float(os.environ.get("IDENTITY_TIMEOUT_SECONDS", "5")),
            db_timeout_seconds=float(os.environ.get("DB_TIMEOUT_SECONDS", "10")),
            worker_threads=int(os.environ.get("WORKER_THREADS", "4")),
        )
