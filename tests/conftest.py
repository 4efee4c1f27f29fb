"""Shared fixtures: throwaway SQLite stores built from the application schema."""
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

from portal_e2e.database import DatabaseClient
from portal_e2e.schema import create_schema, invitation, member, organization, session, user

NOW = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def store(sqlite_url):
    """Connected client over an empty store with the full schema.

    Foreign keys are enforced on every pooled connection, as on PostgreSQL.
    """
    engine = create_async_engine(sqlite_url)
    await create_schema(engine)
    await engine.dispose()

    client = DatabaseClient(sqlite_url, pool_size=2, connect_timeout=5, statement_timeout=5)
    await client.connect()
    event.listen(client._engine.sync_engine, "connect", _enable_foreign_keys)
    # Drop the probe connection so every connection from here on has the pragma.
    await client._engine.dispose()
    yield client
    await client.disconnect()


@pytest.fixture
def statements(store):
    """Statements issued through `store`, in execution order."""
    recorded = []

    def record(conn, cursor, statement, parameters, context, executemany):
        recorded.append(" ".join(statement.split()))

    event.listen(store._engine.sync_engine, "before_cursor_execute", record)
    yield recorded
    event.remove(store._engine.sync_engine, "before_cursor_execute", record)


async def add_user(store, user_id, email, name="Ada", surname="Lovelace"):
    async with store._engine.begin() as conn:
        await conn.execute(user.insert().values(id=user_id, name=name, surname=surname, email=email))


async def add_organization(store, organization_id, slug, name=None):
    async with store._engine.begin() as conn:
        await conn.execute(
            organization.insert().values(id=organization_id, name=name or slug, slug=slug, created_at=NOW)
        )


async def add_member(store, member_id, organization_id, user_id, role="owner"):
    async with store._engine.begin() as conn:
        await conn.execute(
            member.insert().values(
                id=member_id, organization_id=organization_id, user_id=user_id, role=role, created_at=NOW
            )
        )


async def add_session(store, session_id, user_id, active_organization_id=None):
    async with store._engine.begin() as conn:
        await conn.execute(
            session.insert().values(
                id=session_id,
                token=f"token-{session_id}",
                expires_at=NOW + timedelta(days=1),
                user_id=user_id,
                active_organization_id=active_organization_id,
            )
        )


async def add_invitation(store, invitation_id, organization_id, inviter_id, email):
    async with store._engine.begin() as conn:
        await conn.execute(
            invitation.insert().values(
                id=invitation_id,
                organization_id=organization_id,
                inviter_id=inviter_id,
                email=email,
                expires_at=NOW + timedelta(days=7),
            )
        )
