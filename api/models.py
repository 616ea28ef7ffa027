"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Missing or empty credential fields are NOT schema errors here: they default to
"" and reach AuthService, which answers with a policy rejection
(success=false). Only wrong types and oversize values fail with 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Claims, SafeUser

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


class LogoutRequest(BaseModel):
    """Request body for POST /api/v1/auth/logout.

    token may be omitted, in which case the bearer token that authenticated
    the call is the one revoked.
    """

    token: str = Field(default="", max_length=4096)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)
    first_name: str = Field(default="", max_length=255)
    last_name: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SafeUserResponse(BaseModel):
    """Public view of a user -- never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_safe_user(cls, user: SafeUser) -> "SafeUserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    token: Optional[str] = None
    user: Optional[SafeUserResponse] = None


class LogoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    user_id: Optional[str] = None


class MeResponse(BaseModel):
    """Identity of the caller as decoded from its bearer token."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: str
    expires_at: str

    @classmethod
    def from_claims(cls, claims: Claims) -> "MeResponse":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            role=claims.role,
            expires_at=claims.expires_at.isoformat(),
        )


class PurgeResponse(BaseModel):
    """Response for POST /api/v1/auth/revocations/purge."""

    model_config = ConfigDict(frozen=True)

    removed: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
