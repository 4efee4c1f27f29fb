"""
Direct Playwright client for the suite.

Launches the configured browser in-process and prepares one context (base URL,
viewport, default timeout) and one page per test.

Usage:
    async with PlaywrightClient() as client:
        await client.page.goto("/")
        await client.page.click("a:has-text('Sign In')")
"""

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from portal_e2e.config import settings

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}


class PlaywrightClient:
    """
    Direct Playwright client with full API access.

    Example:
        async with PlaywrightClient(base_url="http://localhost:3001") as client:
            page = client.page
            await page.goto("/dashboard")
    """

    def __init__(
        self,
        browser_type: Optional[str] = None,
        headless: Optional[bool] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Initialize Playwright client.

        Args:
            browser_type: chromium, firefox or webkit (None = PLAYWRIGHT_BROWSER)
            headless: Run in headless mode (None = PLAYWRIGHT_HEADLESS)
            base_url: Base URL for relative navigation (None = BASE_URL)
            timeout: Default action timeout in milliseconds
        """
        self.browser_type = browser_type or settings.playwright_browser
        self.headless = settings.playwright_headless if headless is None else headless
        self.base_url = base_url or settings.base_url
        self.timeout = timeout or settings.timeouts.ms(settings.timeouts.medium)

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self):
        """Launch the browser and open the default context and page."""
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_type, None)
        if launcher is None:
            await self.close()
            raise ValueError(f"Unsupported browser type: {self.browser_type}")

        try:
            self._browser = await launcher.launch(headless=self.headless)
            self._context = await self._browser.new_context(
                base_url=self.base_url,
                viewport=DEFAULT_VIEWPORT,
                ignore_https_errors=True,
            )
            self._context.set_default_timeout(self.timeout)
            self._context.set_default_navigation_timeout(settings.timeouts.ms(settings.timeouts.long))
            self._page = await self._context.new_page()
        except Exception:
            await self.close()
            raise

    async def close(self):
        """Close all connections and cleanup resources."""
        if self._page:
            await self._page.close()
            self._page = None

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @property
    def context(self) -> BrowserContext:
        if not self._context:
            raise RuntimeError("Client not connected")
        return self._context

    @property
    def page(self) -> Page:
        if not self._page:
            raise RuntimeError("Client not connected or page not created")
        return self._page
