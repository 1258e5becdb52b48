"""Shared typed return types for backend services."""

from dataclasses import dataclass

from docboard.schemas.document import Document


@dataclass(frozen=True)
class Decoded:
    document: Document


@dataclass(frozen=True)
class Undecodable:
    """A stored record that could not be turned back into a Document."""

    document_id: str
    reason: str


ScanOutcome = Decoded | Undecodable


@dataclass(frozen=True)
class Authorized:
    owner: str


@dataclass(frozen=True)
class Unauthorized:
    pass


@dataclass(frozen=True)
class VerificationFailed:
    reason: str


AuthResult = Authorized | Unauthorized | VerificationFailed
