"""Console logging for the suite.

Every module logs through `logging.getLogger(__name__)` below the
`portal_e2e` logger. `configure_logging()` attaches a single console handler
that prints timestamped, leveled lines, and `log` is the facade used by test
bodies and fixtures for steps and the start/end markers of each test.
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

ROOT_LOGGER = "portal_e2e"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_ICONS = {
    logging.DEBUG: "🔍",
    logging.INFO: "ℹ️ ",
    SUCCESS: "✅",
    logging.WARNING: "⚠️ ",
    logging.ERROR: "❌",
    logging.CRITICAL: "❌",
}

RULER = "=" * 80


class TimestampFormatter(logging.Formatter):
    """`[2024-01-01T12:00:00.000+00:00] ✅ SUCCESS: message`"""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds")
        icon = _ICONS.get(record.levelno, "")
        line = f"[{stamp}] {icon} {record.levelname}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach the console handler once; later calls only adjust the level."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_portal_e2e", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(TimestampFormatter())
        handler._portal_e2e = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


class RunLog:
    """Facade mirroring the levels a human scans for in console output."""

    def __init__(self, name: str = ROOT_LOGGER) -> None:
        self._logger = logging.getLogger(name)

    def debug(self, message: str, *args) -> None:
        self._logger.debug(message, *args)

    def info(self, message: str, *args) -> None:
        self._logger.info(message, *args)

    def success(self, message: str, *args) -> None:
        self._logger.log(SUCCESS, message, *args)

    def warning(self, message: str, *args, exc: BaseException | None = None) -> None:
        if exc is not None:
            message = f"{message}: {exc}"
        self._logger.warning(message, *args)

    def error(self, message: str, *args, exc: BaseException | None = None) -> None:
        if exc is not None:
            message = f"{message}: {exc}"
        self._logger.error(message, *args)

    def step(self, number: int, description: str) -> None:
        self._logger.info("📍 STEP %d: %s", number, description)

    def test_start(self, name: str) -> None:
        self._logger.info(RULER)
        self._logger.info("🚀 Starting Test: %s", name)
        self._logger.info(RULER)

    def test_end(self, name: str, passed: bool) -> None:
        self._logger.info(RULER)
        if passed:
            self._logger.log(SUCCESS, "PASSED: %s", name)
        else:
            self._logger.error("FAILED: %s", name)
        self._logger.info(RULER)


log = RunLog()
