"""Synthetic users and organizations for UI-driven creation.

Every natural key carries a unique token (base-36 nanosecond clock plus 32
random bits) and the configured marker, so concurrent workers never collide
and suite-wide sweeps can find leftovers by pattern.
"""
from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass

from faker import Faker

from portal_e2e.config import settings

SLUG_MAX_LENGTH = 50
MIN_PASSWORD_LENGTH = 8

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class UserData:
    first_name: str
    last_name: str
    email: str
    password: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class OrganizationData:
    name: str
    slug: str


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Derive the organization slug exactly as the application does.

    Pure: tests recompute the expected slug from a display name with it.
    """
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")
    return slug[:max_length].rstrip("-")


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def unique_suffix() -> str:
    return f"{_base36(time.time_ns())}{secrets.token_hex(4)}"


def password_meets_policy(password: str, min_length: int = MIN_PASSWORD_LENGTH) -> bool:
    """Letter, digit and symbol classes, minimum length."""
    return (
        len(password) >= min_length
        and re.search(r"[A-Za-z]", password) is not None
        and re.search(r"\d", password) is not None
        and re.search(r"[^A-Za-z0-9]", password) is not None
    )


def _email_part(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower()) or "x"


class FixtureDataGenerator:
    """Generate collision-resistant fixture payloads."""

    def __init__(
        self,
        faker: Faker | None = None,
        email_prefix: str | None = None,
        org_prefix: str | None = None,
        password_length: int | None = None,
    ) -> None:
        self.faker = faker or Faker()
        self.email_prefix = email_prefix if email_prefix is not None else settings.email_prefix
        self.org_prefix = org_prefix if org_prefix is not None else settings.org_prefix
        self.password_length = password_length or settings.password_length

    def generate_user(self) -> UserData:
        first_name = self.faker.first_name()
        last_name = self.faker.last_name()
        parts = [self.email_prefix, _email_part(first_name), _email_part(last_name), unique_suffix()]
        local_part = ".".join(part for part in parts if part)
        domain = self.faker.free_email_domain()
        return UserData(
            first_name=first_name,
            last_name=last_name,
            email=f"{local_part}@{domain}".lower(),
            password=self.generate_password(),
        )

    def generate_password(self, length: int | None = None) -> str:
        length = max(length or self.password_length, MIN_PASSWORD_LENGTH)
        while True:
            password = self.faker.password(
                length=length,
                special_chars=True,
                digits=True,
                upper_case=True,
                lower_case=True,
            )
            if password_meets_policy(password):
                return password

    def generate_organization(self) -> OrganizationData:
        # Unique token before the company name so truncation keeps it.
        prefix_words = self.org_prefix.replace("-", " ").title()
        name = f"{prefix_words} {unique_suffix()} {self.faker.company()}"
        return OrganizationData(name=name, slug=slugify(name))
