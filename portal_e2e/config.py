"""Shared configuration for the end-to-end suite.

Values are resolved per key in this order:
- environment variable
- `.env` / `.env.defaults` in the repository root (see `env_defaults.py`)
- the hard-coded fallback below

Store access is opt-in: without DATABASE_URL the suite runs UI-only and every
database verification self-skips. In CI (`CI` set) the same rule applies, so a
pipeline without a database never tries to reach one.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urljoin

from portal_e2e.env_defaults import get_env_default

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _get(key: str, fallback: str = "") -> str:
    value = os.getenv(key)
    if value is None:
        value = get_env_default(key, fallback)
    return (value or "").strip()


def _get_bool(key: str, fallback: bool) -> bool:
    value = _get(key, "true" if fallback else "false")
    return value.lower() in _TRUE_VALUES


def _get_int(key: str, fallback: int) -> int:
    value = _get(key, str(fallback))
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class Timeouts:
    """Timeout tiers in seconds."""

    short: float = 5.0
    medium: float = 10.0
    long: float = 30.0
    extra_long: float = 60.0

    @staticmethod
    def ms(seconds: float) -> int:
        """Playwright takes milliseconds."""
        return int(seconds * 1000)


@dataclass(frozen=True)
class TestAccount:
    """Pre-provisioned account used by authenticated fixtures."""

    __test__ = False

    email: str
    password: str


@dataclass(frozen=True)
class Settings:
    base_url: str
    database_url: str | None
    test_account: TestAccount
    cleanup_on_start: bool = False
    cleanup_on_end: bool = True
    ci: bool = False
    email_prefix: str = "e2e"
    org_prefix: str = "test-org"
    password_length: int = 12
    playwright_headless: bool = True
    playwright_browser: str = "chromium"
    log_level: str = "INFO"
    timeouts: Timeouts = field(default_factory=Timeouts)

    @property
    def store_enabled(self) -> bool:
        """Whether any store access is allowed for this run.

        A CI run without DATABASE_URL falls under the same rule.
        """
        return bool(self.database_url)

    @property
    def user_sweep_pattern(self) -> str:
        """LIKE pattern matching every generated user email."""
        return f"{self.email_prefix}.%"

    @property
    def organization_sweep_pattern(self) -> str:
        """LIKE pattern matching every generated organization slug."""
        return f"{self.org_prefix}-%"

    def url(self, path: str) -> str:
        """Return an absolute URL for the provided path."""
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))


def load_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        base_url=_get("BASE_URL", "http://localhost:3001"),
        database_url=_get("DATABASE_URL") or None,
        test_account=TestAccount(
            email=_get("TEST_USER_EMAIL"),
            password=_get("TEST_USER_PASSWORD"),
        ),
        cleanup_on_start=_get_bool("DB_CLEANUP_ON_START", False),
        cleanup_on_end=_get_bool("DB_CLEANUP_ON_END", True),
        ci=_get_bool("CI", False),
        email_prefix=_get("TEST_EMAIL_PREFIX", "e2e").lower(),
        org_prefix=_get("TEST_ORG_PREFIX", "test-org").lower(),
        password_length=_get_int("TEST_PASSWORD_LENGTH", 12),
        playwright_headless=_get_bool("PLAYWRIGHT_HEADLESS", True),
        playwright_browser=_get("PLAYWRIGHT_BROWSER", "chromium").lower(),
        log_level=_get("E2E_LOG_LEVEL", "INFO").upper(),
    )


# Singleton instance - initialized on first import
settings = load_settings()
