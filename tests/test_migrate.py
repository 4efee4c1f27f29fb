"""
Schema provisioning: the coroutine in-process, the command in a subprocess.
"""
import os
import sqlite3
import subprocess
import sys

import pytest

from portal_e2e.env_defaults import REPO_ROOT
from portal_e2e.migrate import main, migrate_database
from portal_e2e.schema import metadata


def run_command(*args):
    return subprocess.run(
        [sys.executable, "-m", "portal_e2e.migrate", *args],
        cwd=REPO_ROOT,
        env={**os.environ, "PYTHONIOENCODING": "utf-8"},
        capture_output=True,
        encoding="utf-8",
        timeout=120,
    )


def table_names(path):
    with sqlite3.connect(path) as conn:
        return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}


@pytest.mark.asyncio
async def test_creates_all_tables(tmp_path):
    path = tmp_path / "fresh.db"
    tables = await migrate_database(f"sqlite+aiosqlite:///{path}")

    assert set(tables) == set(metadata.tables)
    assert tables.index("user") < tables.index("member")
    assert set(metadata.tables) <= table_names(path)


@pytest.mark.asyncio
async def test_rerun_is_harmless(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}"
    await migrate_database(url)
    assert await migrate_database(url)


def test_missing_url_fails():
    assert main(["--database-url", ""]) == 1


def test_command_succeeds(tmp_path):
    path = tmp_path / "cli.db"
    result = run_command("--database-url", f"sqlite+aiosqlite:///{path}")
    assert result.returncode == 0, result.stdout + result.stderr
    assert "migration completed" in result.stdout
    assert "organization" in table_names(path)


def test_command_invalid_url_fails():
    result = run_command("--database-url", "not-a-url")
    assert result.returncode == 1
    assert "migration failed" in result.stdout


def test_command_unreachable_store_fails(tmp_path):
    result = run_command("--database-url", f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'x.db'}")
    assert result.returncode == 1
