"""Thin wrapper around Playwright for ergonomic assertions."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Pattern

import anyio
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from portal_e2e.config import settings

SUCCESS_TOAST = '[data-sonner-toast][data-type="success"]'


@dataclass
class ToolError(Exception):
    """Raised when a browser operation fails."""

    name: str
    payload: Dict[str, Any]
    message: str

    def __str__(self) -> str:  # pragma: no cover - human readable helper
        return f"{self.name} failed ({self.message}) with payload={self.payload}"


class Browser:
    """Convenience wrapper over a Playwright page; selectors are the caller's."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def page(self) -> Page:
        return self._page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, path: str, wait_until: str = "domcontentloaded") -> Dict[str, Any]:
        """Navigate to a path (relative to BASE_URL) or an absolute URL."""
        try:
            response = await self._page.goto(path, wait_until=wait_until)
            return {"url": self._page.url, "status": response.status if response else None}
        except PlaywrightError as exc:
            raise ToolError(name="goto", payload={"url": path}, message=str(exc)) from exc

    async def fill(self, selector: str, value: str) -> None:
        try:
            await self._page.fill(selector, value)
        except PlaywrightError as exc:
            raise ToolError(name="fill", payload={"selector": selector}, message=str(exc)) from exc

    async def click(self, selector: str) -> Dict[str, Any]:
        try:
            await self._page.click(selector)
            return {"selector": selector, "url": self._page.url}
        except PlaywrightError as exc:
            raise ToolError(name="click", payload={"selector": selector}, message=str(exc)) from exc

    async def check(self, selector: str, checked: bool = True) -> None:
        try:
            await self._page.set_checked(selector, checked)
        except PlaywrightError as exc:
            raise ToolError(name="check", payload={"selector": selector}, message=str(exc)) from exc

    async def text(self, selector: str, timeout: float | None = None) -> str:
        """Get text content of element."""
        timeout = timeout if timeout is not None else settings.timeouts.short
        try:
            text = await self._page.text_content(selector, timeout=settings.timeouts.ms(timeout))
            return (text or "").strip()
        except PlaywrightError as exc:
            raise ToolError(name="text", payload={"selector": selector}, message=str(exc)) from exc

    async def is_visible(self, selector: str, timeout: float | None = None) -> bool:
        """True once the element is visible, False if it never shows up."""
        timeout = timeout if timeout is not None else settings.timeouts.short
        try:
            await self._page.locator(selector).first.wait_for(
                state="visible", timeout=settings.timeouts.ms(timeout)
            )
            return True
        except PlaywrightTimeout:
            return False

    async def wait_for_url(self, pattern: str | Pattern[str], timeout: float | None = None) -> str:
        """Wait until the page URL matches a glob or regex."""
        timeout = timeout if timeout is not None else settings.timeouts.long
        try:
            await self._page.wait_for_url(pattern, timeout=settings.timeouts.ms(timeout))
        except PlaywrightTimeout as exc:
            raise AssertionError(f"Timed out waiting for URL {pattern!r}; at {self._page.url}") from exc
        return self._page.url

    async def wait_for_text(self, selector: str, expected: str, timeout: float = 5.0, interval: float = 0.5) -> str:
        """Poll for text content until it contains the expected substring."""
        deadline = anyio.current_time() + timeout
        last_error: ToolError | None = None

        while anyio.current_time() <= deadline:
            try:
                content = await self.text(selector, timeout=interval)
            except ToolError as exc:
                content = ""
                last_error = exc
            if expected in content:
                return content
            await anyio.sleep(interval)

        if last_error:
            raise AssertionError(
                f"Timed out waiting for '{expected}' in selector '{selector}'. Last error: {last_error}"
            ) from last_error
        raise AssertionError(f"Timed out waiting for '{expected}' in selector '{selector}'")

    async def toast_text(self, timeout: float | None = None) -> str | None:
        """Text of the newest success toast, or None if none appears."""
        if not await self.is_visible(SUCCESS_TOAST, timeout=timeout or settings.timeouts.medium):
            return None
        return (await self._page.locator(SUCCESS_TOAST).last.text_content() or "").strip()

    def path_matches(self, pattern: str) -> bool:
        return re.search(pattern, self._page.url) is not None
