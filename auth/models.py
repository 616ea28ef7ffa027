"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores, services and routes do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


@dataclass
class User:
    """A stored identity as the credential store returns it.

    id is an opaque hex string assigned by UserStore.create_user(); it is None
    only on a record that has not been persisted yet. created_at / updated_at
    are ISO-8601 UTC strings stamped by the store, never by callers.

    role is fixed at creation. The core only reads it -- changing a role is an
    administrative path outside this package.
    """

    email: str
    hashed_password: str
    role: str = Role.user.value
    first_name: str = ""
    last_name: str = ""
    id: str | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class SafeUser:
    """User view with the password hash removed. Safe to return to callers."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """Decoded payload of a validated access token.

    The gate attaches one of these to every authenticated request. token is
    the raw string the claims were decoded from, kept so logout can revoke
    exactly what was presented.
    """

    user_id: str
    email: str
    role: str
    issued_at: datetime | None
    expires_at: datetime
    token: str
