"""
tests/helpers.py -- Constants and small test doubles shared across test modules.

Kept out of conftest.py so test modules can import them directly
(from tests.helpers import ...) without importing conftest a second time.
"""

from __future__ import annotations

from auth.tokens import hash_password

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
TEST_ISSUER = "authgate-test"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"
USER_PASSWORD = "userpass123"

# bcrypt is deliberately slow; hash the shared fixture password once.
USER_PASSWORD_HASH = hash_password(USER_PASSWORD)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
