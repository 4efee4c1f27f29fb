"""Fixtures and hooks for the browser specs under `portal_e2e/tests`.

Store lifecycle:
    `run_lifecycle` (session, autouse) builds the one `DatabaseClient` of the
    worker, runs `RunLifecycle.setup()` before the first test and
    `teardown()` after the last one.

Per test:
    `cleanup_tracker` hands out a fresh `CleanupTracker`; its cleanup runs in
    the fixture teardown, so it fires on pass, on assertion failure and on
    unexpected errors alike.

Browser specs skip when BASE_URL does not answer, and database assertions
skip (via `require_database`) when the store is unavailable.
"""
import httpx
import pytest
import pytest_asyncio

from portal_e2e.browser import Browser
from portal_e2e.cleanup import CleanupTracker
from portal_e2e.config import settings
from portal_e2e.database import DatabaseClient
from portal_e2e.lifecycle import RunLifecycle
from portal_e2e.logger import configure_logging, log
from portal_e2e.playwright_client import PlaywrightClient
from portal_e2e.test_data import FixtureDataGenerator
from portal_e2e.workflows import sign_in


def pytest_configure(config):
    configure_logging(settings.log_level)


# ============================================================================
# Test start/end markers
# ============================================================================

def pytest_runtest_setup(item):
    log.test_start(item.nodeid)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.skipped:
        if report.when == "setup":
            log.info(f"SKIPPED: {item.nodeid}")
        return
    if report.when == "call" or (report.when == "setup" and report.failed):
        log.test_end(item.nodeid, report.passed)


# ============================================================================
# Store lifecycle
# ============================================================================

@pytest_asyncio.fixture(scope="session", loop_scope="session", autouse=True)
async def run_lifecycle():
    """Connect (and optionally sweep) once per run; disconnect at the end."""
    database = DatabaseClient.from_settings(settings)
    lifecycle = RunLifecycle(settings, database)
    await lifecycle.setup()
    yield database
    await lifecycle.teardown()


@pytest.fixture
def database(run_lifecycle) -> DatabaseClient:
    return run_lifecycle


@pytest.fixture
def require_database(database) -> DatabaseClient:
    """The shared client; skips the test when the store is unavailable."""
    if not database.is_connected():
        pytest.skip("Database verification unavailable (no DATABASE_URL or store unreachable)")
    return database


@pytest_asyncio.fixture
async def cleanup_tracker(database):
    tracker = CleanupTracker(database, store_enabled=settings.store_enabled)
    yield tracker
    report = await tracker.cleanup()
    for failure in report.failures:
        log.warning(f"Left behind {failure.kind.value} {failure.key}: {failure.error}")


@pytest.fixture
def data_generator() -> FixtureDataGenerator:
    return FixtureDataGenerator()


# ============================================================================
# Browser fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def live_app():
    """Skip browser specs when the application under test does not answer."""
    try:
        async with httpx.AsyncClient(timeout=settings.timeouts.short, verify=False) as client:
            response = await client.get(settings.base_url)
    except httpx.HTTPError as exc:
        pytest.skip(f"Application not reachable at {settings.base_url}: {exc}")
    return response.status_code


@pytest_asyncio.fixture()
async def playwright_client(live_app):
    async with PlaywrightClient() as client:
        yield client


@pytest_asyncio.fixture()
async def browser(playwright_client) -> Browser:
    return Browser(playwright_client.page)


@pytest_asyncio.fixture()
async def authenticated_browser(browser) -> Browser:
    """Signs in the default test account and waits for the dashboard."""
    if not settings.test_account.email or not settings.test_account.password:
        pytest.skip("TEST_USER_EMAIL / TEST_USER_PASSWORD not configured")
    log.info("🔐 Setting up authenticated session")
    await sign_in(browser, settings.test_account.email, settings.test_account.password)
    return browser
