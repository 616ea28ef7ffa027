"""
auth/tokens.py -- Access tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
       identity id (sub), email, role, issue time, expiry and issuer label.
       Validation is strict and reports *why* a token was refused
       (TokenErrorKind) so the gate can log the reason while still answering
       every failure with the same 401.

  Algorithm confusion: the header alg is checked against an allow-list of
       exactly one algorithm (HS256) while the signature is verified. Tokens
       claiming "none", RS256 or any other algorithm are BAD_SIGNATURE, never
       decoded unverified.

  Passwords: bcrypt directly (no passlib wrapper). The DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered [C1].

  Signing key: passed to TokenService at construction. The service is built
       once in the app lifespan and never rotated during the process lifetime.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

import bcrypt
from jose import jws, jwt
from jose.exceptions import ExpiredSignatureError, JOSEError, JWSError, JWTClaimsError, JWTError

from auth.models import Claims

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("authgate.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "email", "role")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------

# bcrypt only looks at the first 72 bytes of its input; newer releases raise
# instead of truncating. Registration rejects anything longer.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError if the password exceeds bcrypt's 72-byte input limit.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Any error (corrupt hash,
    oversize input) counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except Exception:
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_password("authgate_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown or inactive email: bcrypt runs against DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any credential failure. Store errors
    propagate -- the caller decides how to report them.
    """
    user = store.get_by_email(email)
    if user is None or not user.is_active:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenErrorKind(str, Enum):
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"


class TokenValidationError(Exception):
    """Raised by TokenService.validate(). kind says which check failed."""

    def __init__(self, kind: TokenErrorKind, reason: str = "") -> None:
        super().__init__(f"{kind.value}: {reason}" if reason else kind.value)
        self.kind = kind
        self.reason = reason


class TokenIssueError(Exception):
    """Signing failed -- an internal error, never a policy rejection."""


class TokenService:
    """Issues and validates HS256 access tokens.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key, issuer="authgate")
        token = tokens.issue(user.id, user.email, user.role)
        claims = tokens.validate(token)   # raises TokenValidationError

    clock returns epoch seconds; tests pass a fake one to move time around
    without sleeping.
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str,
        ttl_seconds: int = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret_key = secret_key
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, user_id: str, email: str, role: str) -> str:
        """Encode a signed token valid for ttl_seconds from now."""
        if not self._secret_key:
            raise TokenIssueError("signing key is not configured")
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        payload = {
            "sub": user_id,
            "email": email,
            "role": role,
            "iat": now,
            "exp": now + timedelta(seconds=self.ttl_seconds),
            "iss": self.issuer,
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except JOSEError as exc:
            raise TokenIssueError(f"failed to sign token: {exc}") from exc

    def validate(self, token: str) -> Claims:
        """Verify structure, signature and expiry, in that order.

        Expiry is judged against this service's clock: a token is expired at
        its exp instant, not one second after.
        """
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise TokenValidationError(TokenErrorKind.MALFORMED, str(exc)) from exc

        try:
            jws.verify(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWSError as exc:
            raise TokenValidationError(TokenErrorKind.BAD_SIGNATURE, str(exc)) from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                issuer=self.issuer,
                options={"verify_exp": False},
            )
        except ExpiredSignatureError as exc:
            raise TokenValidationError(TokenErrorKind.EXPIRED, str(exc)) from exc
        except (JWTClaimsError, JWTError) as exc:
            raise TokenValidationError(TokenErrorKind.MALFORMED, str(exc)) from exc

        for name in _REQUIRED_CLAIMS:
            if not isinstance(payload.get(name), str) or not payload[name]:
                raise TokenValidationError(TokenErrorKind.MALFORMED, f"missing claim {name!r}")
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise TokenValidationError(TokenErrorKind.MALFORMED, "missing claim 'exp'")
        if exp <= self._clock():
            raise TokenValidationError(TokenErrorKind.EXPIRED, "token has expired")

        iat = payload.get("iat")
        issued_at = None
        if isinstance(iat, (int, float)) and not isinstance(iat, bool):
            issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)

        return Claims(
            user_id=payload["sub"],
            email=payload["email"],
            role=payload["role"],
            issued_at=issued_at,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            token=token,
        )
