"""
api/main.py -- FastAPI application entry point for AuthGate.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware         -- answers preflights, adds CORS headers to every response
  2. log_requests           -- logs every call, including ones the gate rejects
  3. authenticate_requests  -- the request gate (auth/gate.py)
  4. SlowAPIMiddleware      -- per-client limits from api.limiter
  5. TrustedHostMiddleware  -- rejects requests with unexpected Host headers

Lifespan builds the stores and services once, runs a token self-check, and
starts the revocation purge task; shutdown tears them down symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import PUBLIC_OPERATIONS
from api.routes.v1.auth import router as auth_router
from auth.gate import RequestGate
from auth.limiter import LoginRateLimiter
from auth.results import Fault, FaultKind
from auth.service import AuthService
from auth.store import RevocationStore, UserStore
from auth.tokens import TokenService, TokenValidationError
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

_settings = get_settings()

HEALTH_PATH = "/api/v1/health"

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Drop revocation records for expired tokens every `interval` seconds.

    The purge itself is a blocking DB call, so it runs in the threadpool.
    A failed cycle is logged and the loop carries on. CancelledError from
    task.cancel() during shutdown propagates out and ends the task.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(app.state.auth_service.purge_revocations)
        except Exception:
            logger.exception("Revocation purge failed; retrying next cycle")


def _token_self_check(tokens: TokenService) -> None:
    """Issue and validate a probe token so a bad signing setup fails at startup."""
    probe = tokens.issue("self-check", "self-check@authgate.local", "user")
    try:
        claims = tokens.validate(probe)
    except TokenValidationError as exc:
        raise RuntimeError(f"Token service self-check failed: {exc}") from exc
    logger.info("Token service self-check passed (issuer=%s, role=%s)", tokens.issuer, claims.role)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Stores first -- the services below hold references to them.
      2. Token service, then its self-check, before anything can issue tokens.
      3. Auth service and gate share the same token service and revocation store.
      4. Purge task last -- references app.state.auth_service.
    """
    settings = get_settings()
    logger.info("AuthGate API starting up")

    app.state.user_store = UserStore(settings.database_url, timeout=settings.store_timeout_seconds)
    app.state.revocation_store = RevocationStore(settings.database_url, timeout=settings.store_timeout_seconds)
    logger.info("Stores initialized")

    tokens = TokenService(
        secret_key=settings.secret_key,
        issuer=settings.token_issuer,
        ttl_seconds=settings.token_expire_seconds,
    )
    _token_self_check(tokens)

    app.state.auth_service = AuthService(
        users=app.state.user_store,
        revocations=app.state.revocation_store,
        tokens=tokens,
        limiter=LoginRateLimiter(
            capacity=settings.login_rate_capacity,
            refill_seconds=settings.login_rate_refill_seconds,
        ),
    )
    app.state.gate = RequestGate(
        tokens=tokens,
        revocations=app.state.revocation_store,
        public_operations=PUBLIC_OPERATIONS | {HEALTH_PATH},
        enforce_revocation=settings.enforce_revocation,
    )
    logger.info(
        "Auth initialized (login bucket=%d/%.0fs, enforce_revocation=%s)",
        settings.login_rate_capacity,
        settings.login_rate_refill_seconds,
        settings.enforce_revocation,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.revocation_purge_interval_seconds))

    yield

    # Shutdown
    app.state.purge_task.cancel()
    with suppress(asyncio.CancelledError):
        await app.state.purge_task
    app.state.revocation_store.close()
    app.state.user_store.close()
    logger.info("AuthGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AuthGate API",
    description="Token issuance, validation, revocation and login rate limiting.",
    version=VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette makes the most recently added middleware the outermost one.
# TrustedHost and SlowAPI are added first (innermost), then the two
# @app.middleware("http") functions, then CORS last (outermost).
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


def _fault_response(fault: Fault) -> JSONResponse:
    if fault.kind is FaultKind.UNAUTHENTICATED:
        return JSONResponse(
            status_code=401,
            content=ErrorResponse(error=ErrorDetail(code="unauthenticated", message=fault.message)).model_dump(
                exclude_none=True
            ),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=ErrorDetail(code="internal_error", message=fault.message)).model_dump(
            exclude_none=True
        ),
    )


# ---------------------------------------------------------------------------
# Request gate middleware
#
# Every request passes through the gate before routing. Public operations go
# straight through; everything else needs a valid, non-revoked bearer token.
# The decoded Claims land on request.state.principal for the handler.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def authenticate_requests(request: Request, call_next):
    gate: RequestGate = request.app.state.gate
    path = request.url.path
    if gate.is_public(path):
        request.state.principal = None
        return await call_next(request)

    outcome = await run_in_threadpool(gate.authenticate, path, request.headers.get("authorization"))
    if isinstance(outcome, Fault):
        return _fault_response(outcome)
    request.state.principal = outcome.value
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered after the gate, so it wraps it: calls rejected at the gate are
# logged here too.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %s %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        "ok" if response.status_code < 400 else "failed",
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# CORS
#
# Added last so it is outermost: preflights are answered before the gate, and
# 401s from the gate still carry Access-Control-Allow-Origin.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a per-client limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route dependencies raise HTTPException with a dict detail; use it directly
    as the error field rather than stringifying it.
    """
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# On the gate's allow-list and not rate limited -- probes from load balancers
# must not need credentials or be throttled.
# ---------------------------------------------------------------------------


@app.get(HEALTH_PATH, include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a database check."""
    database_ok = request.app.state.user_store.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "database": "ok" if database_ok else "error"},
    )
