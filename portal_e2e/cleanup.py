"""Per-test registry of created entities and their best-effort removal.

A test registers the natural key (email, slug) of everything it causes the
application to create, before it asserts anything. After the test body the
fixture calls `cleanup()` whatever the outcome. Cleanup is store hygiene, not
a rollback: it never raises, it reports per key what happened, and it always
forgets the registrations.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from portal_e2e.database import DatabaseClient
from portal_e2e.logger import SUCCESS

logger = logging.getLogger(__name__)


class EntityKind(str, enum.Enum):
    USER = "user"
    ORGANIZATION = "organization"


class TrackerState(str, enum.Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    CLEANING = "cleaning"
    DONE = "done"


@dataclass
class CleanupResult:
    kind: EntityKind
    key: str
    deleted: bool
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class CleanupReport:
    results: List[CleanupResult] = field(default_factory=list)
    skipped: bool = False
    skip_reason: str = ""

    @property
    def failures(self) -> List[CleanupResult]:
        return [r for r in self.results if r.failed]

    @property
    def deleted(self) -> List[CleanupResult]:
        return [r for r in self.results if r.deleted]

    @property
    def succeeded(self) -> bool:
        return not self.skipped and not self.failures


class CleanupTracker:
    """Collects natural keys during one test and deletes them afterwards."""

    def __init__(self, database: DatabaseClient | None = None, *, store_enabled: bool = True) -> None:
        self.database = database
        self.store_enabled = store_enabled
        self.state = TrackerState.IDLE
        self._users: list[str] = []
        self._organizations: list[str] = []

    @property
    def pending_users(self) -> tuple[str, ...]:
        return tuple(self._users)

    @property
    def pending_organizations(self) -> tuple[str, ...]:
        return tuple(self._organizations)

    def register_user(self, email: str) -> None:
        self._register(self._users, email, EntityKind.USER)

    def register_organization(self, slug: str) -> None:
        self._register(self._organizations, slug, EntityKind.ORGANIZATION)

    def _register(self, bucket: list[str], key: str, kind: EntityKind) -> None:
        if key not in bucket:
            bucket.append(key)
        self.state = TrackerState.TRACKING
        logger.debug("Registered %s for cleanup: %s", kind.value, key)

    def get_stats(self) -> dict[str, int]:
        return {"users": len(self._users), "organizations": len(self._organizations)}

    async def cleanup(self) -> CleanupReport:
        """Delete registered organizations, then users. Never raises."""
        self.state = TrackerState.CLEANING
        try:
            return await self._cleanup()
        except Exception as exc:  # never raised to the caller
            logger.error("Unexpected cleanup failure: %s", exc)
            return CleanupReport(skipped=True, skip_reason=f"unexpected failure: {exc}")
        finally:
            self._users.clear()
            self._organizations.clear()
            self.state = TrackerState.DONE

    async def _cleanup(self) -> CleanupReport:
        if not self._users and not self._organizations:
            return CleanupReport()

        if not self.store_enabled or self.database is None:
            return self._skip("store access disabled for this run")

        if not self.database.is_connected():
            try:
                await self.database.connect()
            except ConnectionError as exc:
                logger.warning("Could not connect to database for cleanup: %s", exc)
                return self._skip(f"database unavailable: {exc}")

        logger.info("Starting test cleanup...")
        report = CleanupReport()
        # Organizations first: their member rows reference users.
        for slug in list(self._organizations):
            report.results.append(
                await self._delete(EntityKind.ORGANIZATION, slug, self.database.delete_organization_by_slug)
            )
        for email in list(self._users):
            report.results.append(await self._delete(EntityKind.USER, email, self.database.delete_user_by_email))

        users = sum(1 for r in report.results if r.kind is EntityKind.USER)
        organizations = len(report.results) - users
        if report.failures:
            logger.warning(
                "Cleanup finished with %d failure(s): %d users, %d orgs",
                len(report.failures), users, organizations,
            )
        else:
            logger.log(SUCCESS, "Cleanup complete: %d users, %d orgs", users, organizations)
        return report

    @staticmethod
    async def _delete(kind: EntityKind, key: str, delete) -> CleanupResult:
        try:
            deleted = await delete(key)
        except Exception as exc:
            logger.warning("Failed to cleanup %s %s: %s", kind.value, key, exc)
            return CleanupResult(kind=kind, key=key, deleted=False, error=str(exc))
        logger.debug("Cleaned up %s: %s (deleted=%s)", kind.value, key, deleted)
        return CleanupResult(kind=kind, key=key, deleted=deleted)

    def _skip(self, reason: str) -> CleanupReport:
        logger.info("Skipping database cleanup - %s", reason)
        results = [CleanupResult(EntityKind.ORGANIZATION, slug, False) for slug in self._organizations]
        results += [CleanupResult(EntityKind.USER, email, False) for email in self._users]
        return CleanupReport(results=results, skipped=True, skip_reason=reason)
