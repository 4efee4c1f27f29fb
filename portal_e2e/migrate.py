"""Provision the application schema in an empty database.

Run explicitly (CI job before the suite), never from a test run:

    python -m portal_e2e.migrate --database-url postgresql://user:pw@host/db
    portal-e2e-migrate            # uses DATABASE_URL

Exits with status 1 when anything fails.
"""
from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from portal_e2e.config import settings
from portal_e2e.database import normalize_database_url
from portal_e2e.logger import configure_logging, log
from portal_e2e.schema import create_schema


async def migrate_database(database_url: str) -> list[str]:
    log.info("🔄 Starting database migration...")
    engine = create_async_engine(normalize_database_url(database_url), pool_size=1, max_overflow=0)
    try:
        tables = await create_schema(engine)
    finally:
        await engine.dispose()
    for name in tables:
        log.success(f"Created {name} table")
    log.success("Database migration completed successfully")
    return tables


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--database-url",
        default=settings.database_url or "",
        help="Connection string (default: DATABASE_URL)",
    )
    args = parser.parse_args(argv)
    configure_logging(settings.log_level)

    if not args.database_url:
        log.error("No database URL given (set DATABASE_URL or pass --database-url)")
        return 1

    try:
        asyncio.run(migrate_database(args.database_url))
    except (SQLAlchemyError, OSError, ImportError) as exc:
        log.error("❌ Database migration failed", exc=exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
