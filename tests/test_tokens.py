"""Unit tests for auth/tokens.py -- token issuance, validation and password helpers.

Covers:
- Issued tokens validate and round-trip identity, role and a 24h window
- Expiry is enforced at the exp instant, even with a perfect signature
- Foreign secret, foreign algorithm and alg=none are signature failures
- Garbage input, missing claims and a foreign issuer are malformed
- Signature is checked before expiry
- bcrypt helpers never raise on bad input
"""

import base64
import json
import time
from datetime import timedelta

import pytest
from jose import jwt

from auth.tokens import (
    TokenErrorKind,
    TokenIssueError,
    TokenService,
    TokenValidationError,
    hash_password,
    verify_password,
)
from tests.helpers import TEST_ISSUER, TEST_SECRET, FakeClock

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _encode(payload: dict, secret: str = TEST_SECRET, algorithm: str = "HS256") -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


def _payload(**overrides) -> dict:
    now = int(time.time())
    payload = {
        "sub": "user-1",
        "email": "alice@example.com",
        "role": "user",
        "iat": now,
        "exp": now + 3600,
        "iss": TEST_ISSUER,
    }
    payload.update(overrides)
    return payload


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def _kind(service: TokenService, token: str) -> TokenErrorKind:
    with pytest.raises(TokenValidationError) as excinfo:
        service.validate(token)
    return excinfo.value.kind


# ---------------------------------------------------------------------------
# Issue / validate
# ---------------------------------------------------------------------------


class TestIssue:
    def test_issued_token_validates(self, token_service: TokenService) -> None:
        token = token_service.issue("user-1", "alice@example.com", "admin")
        claims = token_service.validate(token)
        assert claims.user_id == "user-1"
        assert claims.email == "alice@example.com"
        assert claims.role == "admin"
        assert claims.token == token

    def test_validity_window_is_24_hours(self) -> None:
        clock = FakeClock()
        service = TokenService(TEST_SECRET, TEST_ISSUER, clock=clock)
        claims = service.validate(service.issue("user-1", "alice@example.com", "user"))
        assert claims.expires_at - claims.issued_at == timedelta(hours=24)

    def test_issuer_label_is_embedded(self, token_service: TokenService) -> None:
        token = token_service.issue("user-1", "alice@example.com", "user")
        assert jwt.get_unverified_claims(token)["iss"] == TEST_ISSUER

    def test_missing_secret_is_an_issue_error(self) -> None:
        service = TokenService(secret_key="", issuer=TEST_ISSUER)
        with pytest.raises(TokenIssueError):
            service.issue("user-1", "alice@example.com", "user")


# ---------------------------------------------------------------------------
# Failure kinds
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_expired_at_exact_exp_instant(self) -> None:
        """exp <= now is expired -- the exp second itself is already too late."""
        clock = FakeClock()
        service = TokenService(TEST_SECRET, TEST_ISSUER, ttl_seconds=60, clock=clock)
        token = service.issue("user-1", "alice@example.com", "user")
        clock.advance(59)
        assert service.validate(token).user_id == "user-1"
        clock.advance(1)
        assert _kind(service, token) is TokenErrorKind.EXPIRED

    def test_past_expiry_with_valid_signature(self, token_service: TokenService) -> None:
        token = _encode(_payload(iat=int(time.time()) - 7200, exp=int(time.time()) - 3600))
        assert _kind(token_service, token) is TokenErrorKind.EXPIRED


class TestSignature:
    def test_different_secret(self, token_service: TokenService) -> None:
        token = _encode(_payload(), secret="another-secret-key-that-is-long-enough-987")
        assert _kind(token_service, token) is TokenErrorKind.BAD_SIGNATURE

    def test_unexpected_algorithm(self, token_service: TokenService) -> None:
        token = _encode(_payload(), algorithm="HS512")
        assert _kind(token_service, token) is TokenErrorKind.BAD_SIGNATURE

    def test_alg_none_is_rejected(self, token_service: TokenService) -> None:
        token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(_payload())}."
        assert _kind(token_service, token) is TokenErrorKind.BAD_SIGNATURE

    def test_tampered_payload(self, token_service: TokenService) -> None:
        header, _payload_segment, signature = token_service.issue("user-1", "a@b.co", "user").split(".")
        forged = f"{header}.{_b64(_payload(role='admin'))}.{signature}"
        assert _kind(token_service, forged) is TokenErrorKind.BAD_SIGNATURE

    def test_signature_checked_before_expiry(self, token_service: TokenService) -> None:
        token = _encode(_payload(exp=int(time.time()) - 10), secret="another-secret-key-that-is-long-enough-987")
        assert _kind(token_service, token) is TokenErrorKind.BAD_SIGNATURE


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b", "!!!.???.###"])
    def test_garbage(self, token_service: TokenService, token: str) -> None:
        assert _kind(token_service, token) is TokenErrorKind.MALFORMED

    def test_missing_email_claim(self, token_service: TokenService) -> None:
        payload = _payload()
        del payload["email"]
        assert _kind(token_service, _encode(payload)) is TokenErrorKind.MALFORMED

    def test_missing_exp_claim(self, token_service: TokenService) -> None:
        payload = _payload()
        del payload["exp"]
        assert _kind(token_service, _encode(payload)) is TokenErrorKind.MALFORMED

    def test_foreign_issuer(self, token_service: TokenService) -> None:
        assert _kind(token_service, _encode(_payload(iss="someone-else"))) is TokenErrorKind.MALFORMED


# ---------------------------------------------------------------------------
# Password helpers
# ---------------------------------------------------------------------------


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_corrupt_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False
