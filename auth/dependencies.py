"""
auth/dependencies.py -- FastAPI Depends() helpers for authenticated routes.

The gate middleware (api/main.py) has already validated the bearer token by
the time a protected route runs; it leaves the decoded Claims on
request.state.principal. These helpers read that value back in a typed way.

get_principal() raises HTTP 401 when no principal is present -- which only
happens if a route that needs an identity was put on the public allow-list.
require_admin() wraps get_principal() and raises HTTP 403 if not admin.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Claims, Role


def try_get_principal(request: Request) -> Claims | None:
    """Return the Claims the gate attached to this request, or None."""
    principal = getattr(request.state, "principal", None)
    return principal if isinstance(principal, Claims) else None


def get_principal(request: Request) -> Claims:
    """Require an authenticated caller.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Claims = Depends(get_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthenticated", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_admin(request: Request) -> Claims:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    principal = get_principal(request)
    if principal.role != Role.admin.value:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return principal
