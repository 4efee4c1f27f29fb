"""Store access for test setup, verification and cleanup.

`DatabaseClient` is the only place in the suite that talks to the backing
store. It is constructed explicitly and handed to whoever needs it (the run
lifecycle, the per-test cleanup tracker, tests that assert persisted state).

Statements are plain parameterized SQL through SQLAlchemy's asyncio engine
(asyncpg for PostgreSQL). Every logical operation runs in its own short
transaction; nothing is held open across operations, so the pool can be
shared by whatever runs in the worker's event loop.

Lookups return ``None`` when the row is absent. Deletes return whether the
entity row existed and was removed, so deleting twice yields True then False.
Driver failures raise `QueryError` and are logged with the operation's intent
rather than the statement text.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Type, TypeVar

import anyio
from sqlalchemy import bindparam, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from portal_e2e.schema import ORGANIZATION_DEPENDENTS, USER_DEPENDENTS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreError(Exception):
    """Base class for store failures."""


class DatabaseConnectionError(StoreError, ConnectionError):
    """Store unreachable, credentials rejected or no URL configured."""


class DatabaseNotConnectedError(StoreError):
    """A statement was issued before `connect()` succeeded."""


class QueryError(StoreError):
    """A single statement failed (syntax, constraint, timeout)."""

    def __init__(self, intent: str, message: str) -> None:
        super().__init__(f"{intent} failed: {message}")
        self.intent = intent


@dataclass
class UserRecord:
    id: str
    name: str
    surname: str
    email: str
    email_verified: bool
    image: Optional[str]
    created_at: datetime
    updated_at: datetime
    role: Optional[str]
    banned: Optional[bool]
    ban_reason: Optional[str]
    ban_expires: Optional[datetime]


@dataclass
class OrganizationRecord:
    id: str
    name: str
    slug: str
    logo: Optional[str]
    created_at: datetime
    metadata: Optional[str]


@dataclass
class MemberRecord:
    id: str
    organization_id: str
    user_id: str
    role: str
    created_at: datetime


_USER_COLUMNS = (
    "id, name, surname, email, email_verified, image, created_at, updated_at, "
    "role, banned, ban_reason, ban_expires"
)
_ORGANIZATION_COLUMNS = "id, name, slug, logo, created_at, metadata"
_MEMBER_COLUMNS = "id, organization_id, user_id, role, created_at"


def normalize_database_url(url: str) -> str:
    """Point bare PostgreSQL URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


class DatabaseClient:
    """Bounded connection pool plus the helpers the suite asserts with."""

    def __init__(
        self,
        url: str | None,
        *,
        pool_size: int = 10,
        idle_timeout: float = 30.0,
        connect_timeout: float = 10.0,
        statement_timeout: float = 30.0,
    ) -> None:
        self.url = normalize_database_url(url) if url else None
        self.pool_size = pool_size
        self.idle_timeout = idle_timeout
        self.connect_timeout = connect_timeout
        self.statement_timeout = statement_timeout
        self._engine: AsyncEngine | None = None

    @classmethod
    def from_settings(cls, settings) -> "DatabaseClient":
        return cls(
            settings.database_url,
            connect_timeout=settings.timeouts.medium,
            statement_timeout=settings.timeouts.long,
        )

    async def __aenter__(self) -> "DatabaseClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @property
    def redacted_url(self) -> str:
        if not self.url:
            return "<unset>"
        try:
            return make_url(self.url).render_as_string(hide_password=True)
        except ArgumentError:
            return "<unparseable>"

    # ---- lifecycle ------------------------------------------------------------
    async def connect(self) -> None:
        """Open the pool and probe it; a no-op when already connected."""
        if self._engine is not None:
            logger.debug("Database already connected")
            return
        if not self.url:
            raise DatabaseConnectionError("No database URL configured")

        logger.info("Connecting to database %s", self.redacted_url)
        try:
            engine = create_async_engine(
                self.url,
                pool_size=self.pool_size,
                max_overflow=0,
                pool_timeout=self.connect_timeout,
                pool_recycle=self.idle_timeout,
                pool_pre_ping=True,
                connect_args={"timeout": self.connect_timeout},
            )
        except SQLAlchemyError as exc:
            logger.error("Invalid database URL %s: %s", self.redacted_url, exc)
            raise DatabaseConnectionError(f"Invalid database URL: {exc}") from exc

        try:
            with anyio.fail_after(self.connect_timeout):
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            await engine.dispose()
            logger.error("Failed to connect to database %s: %s", self.redacted_url, exc)
            raise DatabaseConnectionError(f"Database unreachable: {exc}") from exc

        self._engine = engine
        logger.info("Database connected successfully")

    def is_connected(self) -> bool:
        return self._engine is not None

    async def disconnect(self) -> None:
        """Release the pool; safe to call when never connected."""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        logger.info("Database connection closed")

    # ---- raw access -----------------------------------------------------------
    async def query(
        self,
        sql: str,
        params: Mapping[str, Any] | None = None,
        *,
        row_type: Type[T] | None = None,
        intent: str | None = None,
    ) -> list:
        """Run a parameterized statement and return its rows.

        Rows are dicts, or ``row_type(**row)`` when a row type is given.
        """

        async def work(conn: AsyncConnection) -> list:
            result = await conn.execute(text(sql), dict(params or {}))
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]

        rows = await self._transaction(intent or "query", work)
        if row_type is not None:
            return [row_type(**row) for row in rows]
        return rows

    async def execute(
        self,
        sql: str,
        params: Mapping[str, Any] | None = None,
        *,
        intent: str | None = None,
    ) -> int:
        """Run a parameterized statement and return the affected row count."""

        async def work(conn: AsyncConnection) -> int:
            result = await conn.execute(text(sql), dict(params or {}))
            return result.rowcount

        return await self._transaction(intent or "execute", work)

    async def _transaction(self, intent: str, work: Callable[[AsyncConnection], Awaitable[T]]) -> T:
        if self._engine is None:
            raise DatabaseNotConnectedError("Database not connected. Call connect() first.")
        try:
            with anyio.fail_after(self.statement_timeout):
                async with self._engine.begin() as conn:
                    return await work(conn)
        except TimeoutError as exc:
            logger.error("Database query failed (%s): timed out after %ss", intent, self.statement_timeout)
            raise QueryError(intent, f"timed out after {self.statement_timeout}s") from exc
        except SQLAlchemyError as exc:
            reason = getattr(exc, "orig", None) or exc.__class__.__name__
            logger.error("Database query failed (%s): %s", intent, reason)
            raise QueryError(intent, str(reason)) from exc

    @staticmethod
    async def _cascade_delete(
        conn: AsyncConnection,
        table: str,
        entity_id: str,
        dependents: Sequence[tuple[str, str]],
    ) -> int:
        """Delete dependent rows first, then the entity row."""
        for dependent_table, column in dependents:
            await conn.execute(
                text(f"DELETE FROM {_quote(dependent_table)} WHERE {column} = :entity_id"),
                {"entity_id": entity_id},
            )
        result = await conn.execute(
            text(f"DELETE FROM {_quote(table)} WHERE id = :entity_id"),
            {"entity_id": entity_id},
        )
        return result.rowcount

    @staticmethod
    async def _fetch_one(conn: AsyncConnection, sql: str, params: Mapping[str, Any]) -> dict | None:
        row = (await conn.execute(text(sql), dict(params))).mappings().first()
        return dict(row) if row is not None else None

    # ---- users ----------------------------------------------------------------
    async def find_user_by_email(self, email: str) -> UserRecord | None:
        rows = await self.query(
            f'SELECT {_USER_COLUMNS} FROM "user" WHERE email = :email LIMIT 1',
            {"email": email},
            row_type=UserRecord,
            intent=f"find user {email}",
        )
        return rows[0] if rows else None

    async def find_user_by_id(self, user_id: str) -> UserRecord | None:
        rows = await self.query(
            f'SELECT {_USER_COLUMNS} FROM "user" WHERE id = :user_id LIMIT 1',
            {"user_id": user_id},
            row_type=UserRecord,
            intent=f"find user id {user_id}",
        )
        return rows[0] if rows else None

    async def delete_user_by_email(self, email: str) -> bool:
        async def work(conn: AsyncConnection) -> bool:
            row = await self._fetch_one(conn, 'SELECT id FROM "user" WHERE email = :email', {"email": email})
            if row is None:
                return False
            return await self._cascade_delete(conn, "user", row["id"], USER_DEPENDENTS) > 0

        deleted = await self._transaction(f"delete user {email}", work)
        if deleted:
            logger.info("Deleted user: %s", email)
        return deleted

    async def delete_user_by_id(self, user_id: str) -> bool:
        async def work(conn: AsyncConnection) -> bool:
            return await self._cascade_delete(conn, "user", user_id, USER_DEPENDENTS) > 0

        return await self._transaction(f"delete user id {user_id}", work)

    async def get_user_active_organization(self, user_id: str) -> str | None:
        rows = await self.query(
            "SELECT active_organization_id FROM session "
            "WHERE user_id = :user_id AND active_organization_id IS NOT NULL LIMIT 1",
            {"user_id": user_id},
            intent=f"active organization of {user_id}",
        )
        return rows[0]["active_organization_id"] if rows else None

    # ---- organizations --------------------------------------------------------
    async def find_organization_by_slug(self, slug: str) -> OrganizationRecord | None:
        rows = await self.query(
            f"SELECT {_ORGANIZATION_COLUMNS} FROM organization WHERE slug = :slug LIMIT 1",
            {"slug": slug},
            row_type=OrganizationRecord,
            intent=f"find organization {slug}",
        )
        return rows[0] if rows else None

    async def find_organization_by_id(self, organization_id: str) -> OrganizationRecord | None:
        rows = await self.query(
            f"SELECT {_ORGANIZATION_COLUMNS} FROM organization WHERE id = :organization_id LIMIT 1",
            {"organization_id": organization_id},
            row_type=OrganizationRecord,
            intent=f"find organization id {organization_id}",
        )
        return rows[0] if rows else None

    async def find_organization_members(self, organization_id: str) -> list[MemberRecord]:
        return await self.query(
            f"SELECT {_MEMBER_COLUMNS} FROM member WHERE organization_id = :organization_id",
            {"organization_id": organization_id},
            row_type=MemberRecord,
            intent=f"members of {organization_id}",
        )

    async def delete_organization_by_slug(self, slug: str) -> bool:
        async def work(conn: AsyncConnection) -> bool:
            row = await self._fetch_one(conn, "SELECT id FROM organization WHERE slug = :slug", {"slug": slug})
            if row is None:
                return False
            return await self._cascade_delete(conn, "organization", row["id"], ORGANIZATION_DEPENDENTS) > 0

        deleted = await self._transaction(f"delete organization {slug}", work)
        if deleted:
            logger.info("Deleted organization: %s", slug)
        return deleted

    async def delete_organization_by_id(self, organization_id: str) -> bool:
        async def work(conn: AsyncConnection) -> bool:
            return await self._cascade_delete(conn, "organization", organization_id, ORGANIZATION_DEPENDENTS) > 0

        return await self._transaction(f"delete organization id {organization_id}", work)

    # ---- sweeps ---------------------------------------------------------------
    async def cleanup_test_users(self, pattern: str = "%test%", keep: Sequence[str] = ()) -> int:
        """Delete every user whose email matches the LIKE pattern.

        Emails listed in `keep` survive the sweep even when they match.
        """
        sql = 'SELECT id FROM "user" WHERE email LIKE :pattern'
        params: dict[str, Any] = {"pattern": pattern}
        protected = [email for email in keep if email]
        if protected:
            sql += " AND email NOT IN :keep"
            params["keep"] = protected

        async def work(conn: AsyncConnection) -> int:
            statement = text(sql)
            if protected:
                statement = statement.bindparams(bindparam("keep", expanding=True))
            result = await conn.execute(statement, params)
            removed = 0
            for (user_id,) in result.all():
                removed += await self._cascade_delete(conn, "user", user_id, USER_DEPENDENTS)
            return removed

        count = await self._transaction(f"sweep users {pattern}", work)
        if count:
            logger.info("Cleaned up %d test users", count)
        return count

    async def cleanup_test_organizations(self, pattern: str = "%test%") -> int:
        """Delete every organization whose slug matches the LIKE pattern."""

        async def work(conn: AsyncConnection) -> int:
            result = await conn.execute(
                text("SELECT id FROM organization WHERE slug LIKE :pattern"), {"pattern": pattern}
            )
            removed = 0
            for (organization_id,) in result.all():
                removed += await self._cascade_delete(
                    conn, "organization", organization_id, ORGANIZATION_DEPENDENTS
                )
            return removed

        count = await self._transaction(f"sweep organizations {pattern}", work)
        if count:
            logger.info("Cleaned up %d test organizations", count)
        return count

    # ---- assertions -----------------------------------------------------------
    async def verify_user_exists(self, email: str) -> bool:
        return await self.find_user_by_email(email) is not None

    async def verify_organization_exists(self, slug: str) -> bool:
        return await self.find_organization_by_slug(slug) is not None

    async def verify_user_in_organization(self, email: str, slug: str) -> bool:
        rows = await self.query(
            'SELECT m.id FROM member m '
            'JOIN "user" u ON u.id = m.user_id '
            "JOIN organization o ON o.id = m.organization_id "
            "WHERE u.email = :email AND o.slug = :slug LIMIT 1",
            {"email": email, "slug": slug},
            intent=f"membership {email} in {slug}",
        )
        return bool(rows)

    async def _count(self, table: str) -> int:
        rows = await self.query(f"SELECT COUNT(*) AS count FROM {_quote(table)}", intent=f"count {table}")
        return int(rows[0]["count"]) if rows else 0

    async def get_user_count(self) -> int:
        return await self._count("user")

    async def get_organization_count(self) -> int:
        return await self._count("organization")

    async def get_member_count(self) -> int:
        return await self._count("member")
