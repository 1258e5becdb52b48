"""Authentication gateway: token extraction and delegated verification."""

import logging
from collections.abc import Mapping
from typing import Protocol

import httpx
from pydantic import BaseModel, ValidationError

from docboard.services.types import AuthResult, Authorized, Unauthorized, VerificationFailed

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
# Identity service answers with this suid for a well-formed token with no user.
_NO_IDENTITY_SUID = "0"


class AuthError(Exception):
    """Base class for authentication failures; every subclass maps to 401."""


class MissingTokenError(AuthError):
    """Raised when the request carries no token cookie or header."""


class UnauthorizedError(AuthError):
    """Raised when the identity service knows no user for the token."""


class VerificationFailedError(AuthError):
    """Raised when the identity service could not be asked or gave a bad answer."""


class SuidResponse(BaseModel):
    suid: str


class TokenVerifier(Protocol):
    def verify(self, token: str) -> AuthResult: ...


def extract_token(cookies: Mapping[str, str], headers: Mapping[str, str]) -> str:
    """Return the ``token`` cookie, falling back to the ``token`` header."""
    token = cookies.get(TOKEN_KEY) or headers.get(TOKEN_KEY)
    if not token:
        raise MissingTokenError("No token cookie or header")
    return token


class IdentityServiceVerifier:
    """Verifies tokens against the account service's ``profile/verify-token`` endpoint.

    Every call makes one round trip; results are never cached.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/profile/verify-token"
        self._timeout = timeout
        self._client = client or httpx.Client()

    def verify(self, token: str) -> AuthResult:
        try:
            response = self._client.get(
                self._url, headers={TOKEN_KEY: token}, timeout=self._timeout
            )
            response.raise_for_status()
            body = SuidResponse.model_validate_json(response.content)
        except httpx.HTTPError as exc:
            logger.warning("Token verification request failed: %s", exc)
            return VerificationFailed(reason=str(exc))
        except (UnicodeEncodeError, httpx.InvalidURL) as exc:
            # Header values go out as ASCII; a latin-1 token cannot be sent.
            logger.warning("Token verification request could not be built: %s", exc)
            return VerificationFailed(reason=str(exc))
        except ValidationError as exc:
            logger.warning("Identity service returned a malformed body: %s", exc)
            return VerificationFailed(reason="malformed identity response")
        if body.suid == _NO_IDENTITY_SUID:
            return Unauthorized()
        return Authorized(owner=body.suid)

    def close(self) -> None:
        self._client.close()


def authenticate(
    cookies: Mapping[str, str], headers: Mapping[str, str], verifier: TokenVerifier
) -> str:
    """Return the caller's owner identity.

    Raises MissingTokenError, UnauthorizedError or VerificationFailedError.
    """
    token = extract_token(cookies, headers)
    result = verifier.verify(token)
    if isinstance(result, Authorized):
        return result.owner
    if isinstance(result, Unauthorized):
        raise UnauthorizedError("Token does not identify a user")
    raise VerificationFailedError(result.reason)
