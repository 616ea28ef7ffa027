"""Tests for core/config.py -- SECRET_KEY policy and rate limit validation."""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_KEY = "k" * 32


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    """conftest.py tunes these for the API suite; start each test from defaults."""
    for name in ("DEBUG", "DATABASE_URL", "LOGIN_RATE_CAPACITY", "CLIENT_RATE_LIMIT", "ALLOWED_HOSTS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings(_env_file=None, secret_key=GOOD_KEY)
    assert settings.token_expire_seconds == 86400
    assert settings.login_rate_capacity == 5
    assert settings.login_rate_refill_seconds == 12.0
    assert settings.enforce_revocation is True


def test_debug_generates_key() -> None:
    settings = Settings(_env_file=None, debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_production_requires_key() -> None:
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False, secret_key="")


def test_short_key_rejected_even_in_debug() -> None:
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, debug=True, secret_key="too-short")


@pytest.mark.parametrize(
    "fields",
    [{"login_rate_capacity": 0}, {"login_rate_refill_seconds": 0}, {"login_rate_refill_seconds": -3}],
)
def test_invalid_login_bucket(fields: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key=GOOD_KEY, **fields)


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TOKEN_ISSUER", "auth.example.com")
    monkeypatch.setenv("ENFORCE_REVOCATION", "false")
    settings = Settings(_env_file=None, secret_key=GOOD_KEY)
    assert settings.token_issuer == "auth.example.com"
    assert settings.enforce_revocation is False
