"""
auth/service.py -- Login, logout and registration.

AuthService coordinates the rate limiter, the token service and both stores.
Each public method is a one-shot operation that returns an Outcome
(auth/results.py) and never raises for an expected failure:

  Ok              -- the operation happened.
  PolicyRejected  -- refused with one of the user-safe messages below.

Internal failures (store unreachable, hashing or signing failure) are logged
here with full detail and reported to the caller only as MSG_INTERNAL_ERROR.
The raw exception text never crosses this boundary.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.limiter import LoginRateLimiter
from auth.models import Role, SafeUser, User
from auth.results import Ok, Outcome, PolicyRejected
from auth.store import RevocationStore, UserStore
from auth.tokens import (
    MAX_PASSWORD_BYTES,
    TokenIssueError,
    TokenService,
    TokenValidationError,
    authenticate_user,
    hash_password,
)

logger = logging.getLogger("authgate.auth")

# ---------------------------------------------------------------------------
# Caller-facing messages -- the closed set of strings an operation may return
# ---------------------------------------------------------------------------

MSG_LOGIN_OK = "Login successful"
MSG_TOO_MANY_ATTEMPTS = "Too many login attempts. Please try again later."
MSG_CREDENTIALS_REQUIRED = "Email and password are required"
MSG_INVALID_CREDENTIALS = "Invalid email or password"
MSG_INTERNAL_ERROR = "Internal server error"

MSG_LOGOUT_OK = "Logged out successfully"
MSG_ALREADY_LOGGED_OUT = "Already logged out"
MSG_INVALID_TOKEN = "Invalid token"

MSG_REGISTER_OK = "Account created successfully"
MSG_EMAIL_REQUIRED = "Email is required"
MSG_PASSWORD_REQUIRED = "Password is required"
MSG_PASSWORD_TOO_SHORT = "Password must be at least 6 characters"
MSG_PASSWORD_TOO_LONG = "Password must be at most 72 bytes"
MSG_FIRST_NAME_REQUIRED = "First name is required"
MSG_LAST_NAME_REQUIRED = "Last name is required"
MSG_INVALID_EMAIL = "Invalid email format"
MSG_EMAIL_TAKEN = "Email already registered"
MSG_CREATE_FAILED = "Failed to create account"

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: SafeUser


@dataclass(frozen=True)
class RegisterResult:
    user_id: str


def safe_view(user: User) -> SafeUser:
    """Strip the password hash from a stored user."""
    return SafeUser(
        id=user.id or "",
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def is_valid_email(email: str) -> bool:
    """Minimal structural check: longer than 3 chars, has '@' and '.'.

    Deliberately weak. It catches typos, not hostile input, and is not a
    security boundary -- deliverability is the mail system's problem.
    """
    return len(email) > 3 and "@" in email and "." in email


def validate_registration(email: str, password: str, first_name: str, last_name: str) -> str | None:
    """Return the first validation failure message, or None if the input is acceptable."""
    if not email:
        return MSG_EMAIL_REQUIRED
    if not password:
        return MSG_PASSWORD_REQUIRED
    if len(password) < MIN_PASSWORD_LENGTH:
        return MSG_PASSWORD_TOO_SHORT
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return MSG_PASSWORD_TOO_LONG
    if not first_name:
        return MSG_FIRST_NAME_REQUIRED
    if not last_name:
        return MSG_LAST_NAME_REQUIRED
    if not is_valid_email(email):
        return MSG_INVALID_EMAIL
    return None


class AuthService:
    """Auth orchestrator. All collaborators are constructor-injected.

    Usage:
        service = AuthService(users, revocations, tokens, LoginRateLimiter())
        outcome = service.login("a@b.co", "secret")
        if isinstance(outcome, Ok):
            token = outcome.value.token
    """

    def __init__(
        self,
        users: UserStore,
        revocations: RevocationStore,
        tokens: TokenService,
        limiter: LoginRateLimiter,
    ) -> None:
        self.users = users
        self.revocations = revocations
        self.tokens = tokens
        self.limiter = limiter

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> Outcome:
        """Authenticate and issue a token.

        Unknown email and wrong password produce the identical rejection so a
        caller cannot probe which accounts exist.
        """
        if not self.limiter.allow():
            logger.warning("Rate limit exceeded for login attempt")
            return PolicyRejected(MSG_TOO_MANY_ATTEMPTS)

        if not email or not password:
            return PolicyRejected(MSG_CREDENTIALS_REQUIRED)

        try:
            user = authenticate_user(self.users, email, password)
        except SQLAlchemyError:
            logger.exception("Login failed - credential lookup error for %s", email)
            return PolicyRejected(MSG_INTERNAL_ERROR)

        if user is None:
            logger.info("Login failed - bad credentials for %s", email)
            return PolicyRejected(MSG_INVALID_CREDENTIALS)

        try:
            token = self.tokens.issue(user.id, user.email, user.role)
        except TokenIssueError:
            logger.exception("Failed to generate token for user %s", email)
            return PolicyRejected(MSG_INTERNAL_ERROR)

        logger.info("Login successful for user: %s", email)
        return Ok(LoginResult(token=token, user=safe_view(user)), MSG_LOGIN_OK)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, token: str) -> Outcome:
        """Revoke a token until its natural expiry.

        Logging out twice with the same token is not an error: the second call
        reports MSG_ALREADY_LOGGED_OUT and writes nothing.
        """
        try:
            claims = self.tokens.validate(token)
        except TokenValidationError as exc:
            logger.info("Logout refused - %s", exc.kind.value)
            return PolicyRejected(MSG_INVALID_TOKEN)

        try:
            if self.revocations.is_revoked(token):
                return Ok(message=MSG_ALREADY_LOGGED_OUT)
            self.revocations.revoke(token, expires_at=claims.expires_at)
        except IntegrityError:
            # A concurrent logout with the same token won the insert.
            return Ok(message=MSG_ALREADY_LOGGED_OUT)
        except SQLAlchemyError:
            logger.exception("Failed to blacklist token for %s", claims.email)
            return PolicyRejected(MSG_INTERNAL_ERROR)

        logger.info("User logged out successfully: %s", claims.email)
        return Ok(message=MSG_LOGOUT_OK)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, first_name: str, last_name: str) -> Outcome:
        """Create a user with the default role. Does not log the user in."""
        problem = validate_registration(email, password, first_name, last_name)
        if problem is not None:
            return PolicyRejected(problem)

        try:
            if self.users.email_exists(email):
                return PolicyRejected(MSG_EMAIL_TAKEN)
        except SQLAlchemyError:
            logger.exception("Registration failed - lookup error for %s", email)
            return PolicyRejected(MSG_INTERNAL_ERROR)

        try:
            hashed = hash_password(password)
        except ValueError:
            logger.exception("Failed to hash password for %s", email)
            return PolicyRejected(MSG_INTERNAL_ERROR)

        user = User(
            email=email,
            hashed_password=hashed,
            first_name=first_name,
            last_name=last_name,
            role=Role.user.value,
            is_active=True,
        )
        try:
            user_id = self.users.create_user(user)
        except IntegrityError:
            # Lost the race against a concurrent registration for the same email.
            return PolicyRejected(MSG_EMAIL_TAKEN)
        except SQLAlchemyError:
            logger.exception("Failed to create user %s", email)
            return PolicyRejected(MSG_CREATE_FAILED)

        logger.info("User registered successfully: %s", email)
        return Ok(RegisterResult(user_id=user_id), MSG_REGISTER_OK)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def purge_revocations(self) -> int:
        """Drop revocation records for tokens that have expired anyway."""
        removed = self.revocations.purge_expired()
        if removed:
            logger.info("Purged %d expired revocation records", removed)
        return removed
