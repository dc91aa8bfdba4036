# site_render/crawler/pool.py
"""
Page pool: a small fixed set of pre-configured browser pages reused by all
route tasks.

Each page gets a fixed viewport, request interception (images and fonts are
aborted unless CSS inlining needs them) and console/page-error forwarding to
the event stream. Pages are created once and closed once, when the pool's
context exits, together with the browser.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Sequence

from playwright.async_api import Browser, Page, Playwright, Route, async_playwright
from playwright.async_api import Error as PlaywrightError

from site_render.crawler.models import EventEmitter
from site_render.errors import EngineLaunchError
from site_render.logger import logger

__all__ = ("POOL_CAP", "VIEWPORT", "BROWSER_ARGS", "pool_size", "PagePool", "BrowserSession")

POOL_CAP = 3
VIEWPORT = {"width": 1200, "height": 800}
BROWSER_ARGS = ("--no-sandbox", "--disable-setuid-sandbox", "--disable-web-security")
_BLOCKED_RESOURCES = frozenset({"image", "font"})


def pool_size(concurrency: int, cap: int = POOL_CAP) -> int:
    return max(1, min(concurrency, cap))


class PagePool:
    """Fixed-size pool of pages on one browser.

    Usage::

        async with PagePool(browser, concurrency=8, inline_css=True, events=ev) as pool:
            page = pool.page_for(task_index)
    """

    def __init__(
        self,
        browser: Any,
        concurrency: int,
        *,
        inline_css: bool = False,
        events: Optional[EventEmitter] = None,
        cap: int = POOL_CAP,
    ) -> None:
        self.browser = browser
        self.size = pool_size(concurrency, cap)
        self.inline_css = inline_css
        self._events = events or EventEmitter()
        self.pages: List[Page] = []
        self._locks: List[asyncio.Lock] = []

    async def __aenter__(self) -> PagePool:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    async def acquire(self) -> Sequence[Page]:
        """Create and configure ``size`` pages."""
        for _ in range(self.size - len(self.pages)):
            page = await self.browser.new_page(viewport=VIEWPORT)
            await self._configure(page)
            self.pages.append(page)
            self._locks.append(asyncio.Lock())
        return self.pages

    def page_for(self, task_index: int) -> Page:
        """Round-robin page assignment by task index."""
        if not self.pages:
            raise RuntimeError("Page pool not acquired")
        return self.pages[task_index % len(self.pages)]

    @asynccontextmanager
    async def checkout(self, task_index: int) -> AsyncIterator[Page]:
        """Hold the round-robin page for *task_index* exclusively.

        With concurrency above the pool size, tasks mapped to the same page wait
        here for each other.
        """
        page = self.page_for(task_index)
        async with self._locks[task_index % len(self._locks)]:
            yield page

    async def release(self) -> None:
        pages, self.pages = self.pages, []
        self._locks = []
        for page in pages:
            try:
                await page.close()
            except PlaywrightError as exc:
                self._events.debug("page_close_failed", f"Page close failed: {exc}")

    async def _configure(self, page: Page) -> None:
        if not self.inline_css:
            await page.route("**/*", self._route_handler)
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)

    @staticmethod
    async def _route_handler(route: Route) -> None:
        if route.request.resource_type in _BLOCKED_RESOURCES:
            await route.abort()
        else:
            await route.continue_()

    def _on_console(self, message: Any) -> None:
        if message.type == "error":
            self._events.warning("browser_console", f"Browser console error: {message.text}")

    def _on_page_error(self, error: Any) -> None:
        self._events.warning("page_error", f"Page error: {getattr(error, 'message', error)}")


class BrowserSession:
    """Start Playwright and a headless Chromium; both are shut down on exit."""

    def __init__(self, *, headless: bool = True, args: Sequence[str] = BROWSER_ARGS) -> None:
        self.headless = headless
        self.args = list(args)
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def __aenter__(self) -> Browser:
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(headless=self.headless, args=self.args)
        except PlaywrightError as exc:
            await self._shutdown()
            raise EngineLaunchError(f"Failed to launch headless browser: {exc}") from exc
        return self.browser

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self.browser is not None:
            try:
                await self.browser.close()
            except PlaywrightError as exc:
                logger.debug("Browser close failed: %s", exc)
            self.browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
