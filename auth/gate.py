"""
auth/gate.py -- Authentication gate applied to every inbound call.

RequestGate decides, from the operation name (the request path) and the raw
Authorization header value, whether a call may reach its handler:

  1. Public operation            -> Ok(None), no credentials looked at.
  2. No header                   -> Fault(UNAUTHENTICATED)
  3. Header without "Bearer "    -> Fault(UNAUTHENTICATED). A bare token is
                                    not accepted as a fallback.
  4. Token fails validation      -> Fault(UNAUTHENTICATED)
  5. Token revoked (logged out)  -> Fault(UNAUTHENTICATED)
  6. Otherwise                   -> Ok(Claims)

Callers only ever see "Invalid token" for steps 4-5; the log line carries the
precise reason (malformed, bad_signature, expired, revoked).

The gate is transport-agnostic. api/main.py runs it from an HTTP middleware
and attaches the Claims to request.state.principal.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError

from auth.results import Fault, FaultKind, Ok, Outcome
from auth.store import RevocationStore
from auth.tokens import TokenService, TokenValidationError

logger = logging.getLogger("authgate.gate")

BEARER_PREFIX = "Bearer "

MSG_MISSING_HEADER = "Missing authorization header"
MSG_BAD_FORMAT = "Invalid authorization format"
MSG_INVALID_TOKEN = "Invalid token"
MSG_UNAVAILABLE = "Authentication temporarily unavailable"


class RequestGate:
    """Allow-list plus bearer-token check.

    enforce_revocation=False skips the revocation lookup, which keeps a
    logged-out token usable until it expires. The default checks it on every
    protected call.
    """

    def __init__(
        self,
        tokens: TokenService,
        revocations: RevocationStore,
        public_operations: Iterable[str],
        enforce_revocation: bool = True,
    ) -> None:
        self.tokens = tokens
        self.revocations = revocations
        self.public_operations = frozenset(public_operations)
        self.enforce_revocation = enforce_revocation

    def is_public(self, operation: str) -> bool:
        return operation in self.public_operations

    def authenticate(self, operation: str, authorization: str | None) -> Outcome:
        if self.is_public(operation):
            logger.debug("Public operation accessed: %s", operation)
            return Ok(None)

        if not authorization:
            logger.info("No authorization header for operation: %s", operation)
            return Fault(FaultKind.UNAUTHENTICATED, MSG_MISSING_HEADER)

        if not authorization.startswith(BEARER_PREFIX):
            logger.info("Invalid authorization format for operation: %s", operation)
            return Fault(FaultKind.UNAUTHENTICATED, MSG_BAD_FORMAT)

        token = authorization[len(BEARER_PREFIX) :]
        try:
            claims = self.tokens.validate(token)
        except TokenValidationError as exc:
            logger.info("Rejected token for operation %s: %s", operation, exc.kind.value)
            return Fault(FaultKind.UNAUTHENTICATED, MSG_INVALID_TOKEN)

        if self.enforce_revocation:
            try:
                revoked = self.revocations.is_revoked(token)
            except SQLAlchemyError:
                # Fail closed.
                logger.exception("Revocation lookup failed for operation: %s", operation)
                return Fault(FaultKind.INTERNAL, MSG_UNAVAILABLE)
            if revoked:
                logger.info("Rejected token for operation %s: revoked", operation)
                return Fault(FaultKind.UNAUTHENTICATED, MSG_INVALID_TOKEN)

        logger.info("Authenticated user: %s (%s) for operation: %s", claims.email, claims.role, operation)
        return Ok(claims)
