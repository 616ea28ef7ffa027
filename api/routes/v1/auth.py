"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login               -- password login; returns a bearer token
  POST /api/v1/auth/logout              -- revokes a token (requires auth)
  POST /api/v1/auth/register            -- create an account with role "user"
  GET  /api/v1/auth/me                  -- identity of the caller (requires auth)
  POST /api/v1/auth/revocations/purge   -- drop expired revocation records (admin only)

Authentication is enforced by the gate middleware in api/main.py before any
handler here runs; login and register are on its public allow-list.

Outcome mapping: Ok -> success=true, PolicyRejected -> success=false. Both are
HTTP 200. A rejected login is a normal answer, not a transport fault.

Security:
  [H2] login and register are also throttled per client IP by slowapi.
  [C1] AuthService.login() uses timing-equalized credential checks.
  [M5] Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import client_rate_limit, limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    MeResponse,
    PurgeResponse,
    RegisterRequest,
    RegisterResponse,
    SafeUserResponse,
)
from auth.dependencies import get_principal, require_admin
from auth.models import Claims
from auth.results import Ok
from auth.service import AuthService

logger = logging.getLogger("authgate.api")

# Public operations. The gate in api/main.py reads this set; keep it in sync
# with the route paths below.
PUBLIC_OPERATIONS = frozenset({"/api/v1/auth/login", "/api/v1/auth/register"})

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(client_rate_limit)  # [H2]
@router.post("/auth/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password; return a bearer token on success."""
    outcome = _service(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    if isinstance(outcome, Ok):
        logger.info("Login successful for: %s", body.email)
        return LoginResponse(
            success=True,
            message=outcome.message,
            token=outcome.value.token,
            user=SafeUserResponse.from_safe_user(outcome.value.user),
        )
    logger.info("Login failed for: %s - %s", body.email, outcome.message)
    return LoginResponse(success=False, message=outcome.message)


@limiter.limit(client_rate_limit)  # [H2]
@router.post("/auth/register", response_model=RegisterResponse, response_model_exclude_none=True)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an account. No token is issued -- the caller logs in afterwards."""
    outcome = _service(request).register(body.email, body.password, body.first_name, body.last_name)
    if isinstance(outcome, Ok):
        logger.info("Registration successful for: %s", body.email)
        return RegisterResponse(success=True, message=outcome.message, user_id=outcome.value.user_id)
    logger.info("Registration failed for: %s - %s", body.email, outcome.message)
    return RegisterResponse(success=False, message=outcome.message)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    body: LogoutRequest | None = None,
    principal: Claims = Depends(get_principal),
) -> LogoutResponse:
    """Revoke a token. Defaults to the bearer token that authenticated this call."""
    token = body.token if body is not None and body.token else principal.token
    outcome = _service(request).logout(token)
    if isinstance(outcome, Ok):
        logger.info("Logout successful for: %s", principal.email)
        return LogoutResponse(success=True, message=outcome.message)
    logger.info("Logout failed for: %s - %s", principal.email, outcome.message)
    return LogoutResponse(success=False, message=outcome.message)


@router.get("/auth/me", response_model=MeResponse)
async def me(principal: Claims = Depends(get_principal)) -> MeResponse:
    """Return identity information for the currently authenticated caller."""
    return MeResponse.from_claims(principal)


@router.post("/auth/revocations/purge", response_model=PurgeResponse)
def purge_revocations(request: Request, principal: Claims = Depends(require_admin)) -> PurgeResponse:
    """Delete revocation records whose tokens have expired. Admin only."""
    removed = _service(request).purge_revocations()
    logger.info("Revocation purge by %s removed %d records", principal.email, removed)
    return PurgeResponse(removed=removed)
