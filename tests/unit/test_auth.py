"""Unit tests for the authentication gateway."""

from unittest.mock import MagicMock

import httpx
import pytest

from docboard.services.auth import (
    IdentityServiceVerifier,
    MissingTokenError,
    TokenVerifier,
    UnauthorizedError,
    VerificationFailedError,
    authenticate,
    extract_token,
)
from docboard.services.types import Authorized, Unauthorized, VerificationFailed


def _verifier(handler: httpx.MockTransport | None = None, **response: object) -> IdentityServiceVerifier:
    if handler is None:

        def _respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(**response)  # type: ignore[arg-type]

        handler = httpx.MockTransport(_respond)
    return IdentityServiceVerifier(
        "http://identity.test/", timeout=2.0, client=httpx.Client(transport=handler)
    )


class TestExtractToken:
    def test_prefers_cookie_over_header(self) -> None:
        assert extract_token({"token": "from-cookie"}, {"token": "from-header"}) == "from-cookie"

    def test_falls_back_to_header(self) -> None:
        assert extract_token({}, {"token": "from-header"}) == "from-header"

    def test_raises_missing_token_when_absent(self) -> None:
        with pytest.raises(MissingTokenError):
            extract_token({"session": "x"}, {"authorization": "Bearer y"})


class TestIdentityServiceVerifier:
    def test_returns_authorized_with_suid(self) -> None:
        result = _verifier(status_code=200, json={"suid": "user-42"}).verify("tok")

        assert result == Authorized(owner="user-42")

    def test_suid_zero_is_unauthorized(self) -> None:
        result = _verifier(status_code=200, json={"suid": "0"}).verify("tok")

        assert result == Unauthorized()

    def test_sends_token_header_to_verify_endpoint(self) -> None:
        seen: list[httpx.Request] = []

        def _respond(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"suid": "u"})

        _verifier(httpx.MockTransport(_respond)).verify("secret-token")

        assert str(seen[0].url) == "http://identity.test/profile/verify-token"
        assert seen[0].headers["token"] == "secret-token"

    def test_transport_error_is_verification_failed(self) -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = _verifier(httpx.MockTransport(_respond)).verify("tok")

        assert isinstance(result, VerificationFailed)

    def test_timeout_is_verification_failed(self) -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        assert isinstance(_verifier(httpx.MockTransport(_respond)).verify("tok"), VerificationFailed)

    def test_non_2xx_is_verification_failed(self) -> None:
        result = _verifier(status_code=503, json={"suid": "user-42"}).verify("tok")

        assert isinstance(result, VerificationFailed)

    @pytest.mark.parametrize(
        "content",
        [b"not json", b"{}", b'{"suid": 5}', b""],
    )
    def test_malformed_body_is_verification_failed(self, content: bytes) -> None:
        result = _verifier(status_code=200, content=content).verify("tok")

        assert isinstance(result, VerificationFailed)

    def test_non_ascii_token_is_verification_failed(self) -> None:
        calls: list[httpx.Request] = []

        def _respond(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"suid": "u"})

        result = _verifier(httpx.MockTransport(_respond)).verify("café")

        assert isinstance(result, VerificationFailed)
        assert calls == []

    def test_every_call_reaches_the_identity_service(self) -> None:
        calls: list[str] = []

        def _respond(request: httpx.Request) -> httpx.Response:
            calls.append(request.headers["token"])
            return httpx.Response(200, json={"suid": "u"})

        verifier = _verifier(httpx.MockTransport(_respond))
        verifier.verify("tok")
        verifier.verify("tok")

        assert calls == ["tok", "tok"]


class TestAuthenticate:
    def test_returns_owner_for_authorized_token(self, verifier: TokenVerifier) -> None:
        assert authenticate({"token": "alice-token"}, {}, verifier) == "alice"

    def test_raises_unauthorized_for_suid_zero(self, verifier: TokenVerifier) -> None:
        with pytest.raises(UnauthorizedError):
            authenticate({}, {"token": "no-user-token"}, verifier)

    def test_raises_verification_failed_for_transport_failure(
        self, verifier: TokenVerifier
    ) -> None:
        with pytest.raises(VerificationFailedError):
            authenticate({}, {"token": "broken-token"}, verifier)

    def test_missing_token_never_calls_verifier(self) -> None:
        verifier = MagicMock()

        with pytest.raises(MissingTokenError):
            authenticate({}, {}, verifier)

        verifier.verify.assert_not_called()
