"""Tables of the application's auth/organization schema.

The suite consumes this schema, it does not own it. The definitions exist for
the explicit provisioning step (`portal_e2e.migrate`) and for building
throwaway stores in tests. Normal test runs only ever issue SELECT and DELETE.
"""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    Table,
    Text,
    false,
    func,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

user = Table(
    "user",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("surname", Text, nullable=False),
    Column("email", Text, nullable=False, unique=True),
    Column("email_verified", Boolean, nullable=False, server_default=false()),
    Column("image", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
    Column("role", Text),
    Column("banned", Boolean, server_default=false()),
    Column("ban_reason", Text),
    Column("ban_expires", DateTime),
)

organization = Table(
    "organization",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("slug", Text, nullable=False, unique=True),
    Column("logo", Text),
    Column("created_at", DateTime, nullable=False),
    Column("metadata", Text),
)

member = Table(
    "member",
    metadata,
    Column("id", Text, primary_key=True),
    Column("organization_id", Text, ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", Text, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("role", Text, nullable=False, server_default="member"),
    Column("created_at", DateTime, nullable=False),
)

session = Table(
    "session",
    metadata,
    Column("id", Text, primary_key=True),
    Column("expires_at", DateTime, nullable=False),
    Column("token", Text, nullable=False, unique=True),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
    Column("ip_address", Text),
    Column("user_agent", Text),
    Column("user_id", Text, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("impersonated_by", Text),
    Column("active_organization_id", Text),
)

account = Table(
    "account",
    metadata,
    Column("id", Text, primary_key=True),
    Column("account_id", Text, nullable=False),
    Column("provider_id", Text, nullable=False),
    Column("user_id", Text, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("access_token", Text),
    Column("refresh_token", Text),
    Column("id_token", Text),
    Column("access_token_expires_at", DateTime),
    Column("refresh_token_expires_at", DateTime),
    Column("scope", Text),
    Column("password", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

verification = Table(
    "verification",
    metadata,
    Column("id", Text, primary_key=True),
    Column("identifier", Text, nullable=False),
    Column("value", Text, nullable=False),
    Column("expires_at", DateTime, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

organization_role = Table(
    "organization_role",
    metadata,
    Column("id", Text, primary_key=True),
    Column("organization_id", Text, ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    Column("role", Text, nullable=False),
    Column("permission", Text, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

invitation = Table(
    "invitation",
    metadata,
    Column("id", Text, primary_key=True),
    Column("organization_id", Text, ForeignKey("organization.id", ondelete="CASCADE"), nullable=False),
    Column("email", Text, nullable=False),
    Column("role", Text),
    Column("status", Text, nullable=False, server_default="pending"),
    Column("expires_at", DateTime, nullable=False),
    Column("inviter_id", Text, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
)

# Rows referencing an entity, in the order they must be deleted before it.
USER_DEPENDENTS = (
    ("session", "user_id"),
    ("account", "user_id"),
    ("member", "user_id"),
    ("invitation", "inviter_id"),
)

ORGANIZATION_DEPENDENTS = (
    ("member", "organization_id"),
    ("invitation", "organization_id"),
    ("organization_role", "organization_id"),
)


async def create_schema(engine: AsyncEngine) -> list[str]:
    """Create missing tables; returns the table names in creation order."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    return [table.name for table in metadata.sorted_tables]
