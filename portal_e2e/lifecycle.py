"""Run-once store lifecycle around the whole test session.

`setup()` runs before the first test, `teardown()` after the last one. Both
degrade to "no database verification" instead of failing the run: every step
is guarded, logged, and followed by the next step.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

import anyio

from portal_e2e.config import Settings
from portal_e2e.database import DatabaseClient
from portal_e2e.logger import log


@dataclass
class LifecycleReport:
    connected: bool = False
    users_swept: Optional[int] = None
    organizations_swept: Optional[int] = None
    errors: List[str] = field(default_factory=list)


class RunLifecycle:
    """Owns connect/sweep/disconnect of the shared `DatabaseClient`."""

    def __init__(self, settings: Settings, database: DatabaseClient) -> None:
        self.settings = settings
        self.database = database

    @property
    def _step_timeout(self) -> float:
        return self.settings.timeouts.extra_long

    async def _guarded(self, report: LifecycleReport, label: str, step: Callable[[], Awaitable]):
        try:
            with anyio.fail_after(self._step_timeout):
                return await step()
        except Exception as exc:
            if isinstance(exc, TimeoutError):
                exc = TimeoutError(f"timed out after {self._step_timeout}s")
            log.warning(f"{label} failed", exc=exc)
            report.errors.append(f"{label}: {exc}")
            return None

    async def _sweep(self, report: LifecycleReport) -> None:
        report.users_swept = await self._guarded(
            report,
            "Cleanup of test users",
            lambda: self.database.cleanup_test_users(
                self.settings.user_sweep_pattern, keep=[self.settings.test_account.email]
            ),
        )
        report.organizations_swept = await self._guarded(
            report,
            "Cleanup of test organizations",
            lambda: self.database.cleanup_test_organizations(self.settings.organization_sweep_pattern),
        )
        log.success(
            f"Cleaned up {report.users_swept or 0} test users, "
            f"{report.organizations_swept or 0} test organizations"
        )

    async def setup(self) -> LifecycleReport:
        log.info("🚀 Starting global setup...")
        report = LifecycleReport()

        if not self.settings.store_enabled:
            reason = "CI without DATABASE_URL" if self.settings.ci else "no DATABASE_URL provided"
            log.info(f"Skipping database setup - {reason}")
            log.success("Global setup complete")
            return report

        await self._guarded(report, "Database connection", self.database.connect)
        report.connected = self.database.is_connected()
        if not report.connected:
            log.warning("Database connection failed, continuing without database...")
        elif self.settings.cleanup_on_start:
            log.info("Cleaning up old test data...")
            await self._sweep(report)

        log.success("Global setup complete")
        return report

    async def teardown(self) -> LifecycleReport:
        log.info("🧹 Starting global teardown...")
        report = LifecycleReport()
        try:
            if not self.settings.store_enabled:
                log.info("No DATABASE_URL found, skipping database cleanup")
            else:
                await self._guarded(report, "Database connection for teardown", self.database.connect)
                report.connected = self.database.is_connected()

                if self.settings.cleanup_on_end and report.connected:
                    log.info("Cleaning up test data...")
                    await self._sweep(report)
                else:
                    log.info("Skipping database cleanup (disabled or DB not connected)")

                if self.database.is_connected():
                    await self._guarded(report, "Database disconnect", self.database.disconnect)
            log.success("Global teardown complete")
        except Exception as exc:
            log.error("Global teardown had errors but continuing", exc=exc)
            report.errors.append(f"teardown: {exc}")
        return report
