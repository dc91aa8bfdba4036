# site_render/crawler/executor.py
"""
Route crawl executor: drives one route through

    Pending -> CacheCheck -> Skipped
                          -> Navigating -> ReadinessWait -> Settling -> Extracting
                             -> Transforming -> Persisting -> Succeeded

Any error between Navigating and Persisting moves the route to Failed; the
error is turned into a ``failed`` CrawlResult and never propagates to the
scheduler. A diagnostic screenshot is attempted on failure; its own failure
is only reported.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_render.crawler.cache import ContentHashCache, source_path_for
from site_render.crawler.models import ConcreteRoute, CrawlResult, CrawlStatus, EventEmitter, RouteState
from site_render.crawler.output import output_path_for, write_html
from site_render.errors import CssInlineError, NavigationError, PersistError, ReadinessTimeout
from site_render.transform import inject_hydration_script, inline_critical_css
from site_render.utils import format_bytes, join_route, sanitize_route

__all__ = ("ExecutorSettings", "RouteCrawlExecutor", "CONTENT_PREDICATE")

CONTENT_PREDICATE = "() => document.body && document.body.children.length > 0 && document.body.textContent.trim().length > 0"

StateListener = Callable[[str, RouteState], None]


def _existing_size(path: Path) -> Optional[int]:
    return path.stat().st_size if path.is_file() else None


@dataclass(frozen=True)
class ExecutorSettings:
    """Per-run values every route task needs."""

    origin: str
    input_dir: Path
    out_dir: Path
    selectors: Tuple[str, ...]
    default_timeout: int = 30000
    base_path: str = ""
    flat_output: bool = False
    inline_css: bool = False
    hydrate_bundle: Optional[str] = None
    screenshot_dir: Optional[Path] = None
    selector_timeout: int = 5000
    fallback_timeout: int = 10000
    settle_delay: float = 1.0


class RouteCrawlExecutor:
    """Runs single routes against a page handed in by the scheduler."""

    def __init__(
        self,
        settings: ExecutorSettings,
        cache: ContentHashCache,
        events: Optional[EventEmitter] = None,
        *,
        on_state: Optional[StateListener] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self._events = events or EventEmitter()
        self._on_state = on_state
        self._sleep = sleep

    def _enter(self, route: str, state: RouteState) -> RouteState:
        self._events.debug("route_state", state.value, route=route)
        if self._on_state is not None:
            self._on_state(route, state)
        return state

    async def run(self, route: ConcreteRoute, page: Any) -> CrawlResult:
        path = route.path
        started = time.monotonic()
        state = self._enter(path, RouteState.PENDING)
        source = source_path_for(self.settings.input_dir, path)

        state = self._enter(path, RouteState.CACHE_CHECK)
        if self.cache.enabled and await asyncio.to_thread(self.cache.should_skip, path, source):
            self._enter(path, RouteState.SKIPPED)
            return await self._skipped(path)

        try:
            state = self._enter(path, RouteState.NAVIGATING)
            url = f"{self.settings.origin}{join_route(self.settings.base_path, path)}"
            self._events.info("route_start", f"Crawling '{url}'", route=path)
            await self._navigate(page, path, url, route.timeout or self.settings.default_timeout)

            state = self._enter(path, RouteState.READINESS_WAIT)
            await self._wait_ready(page, path)

            state = self._enter(path, RouteState.SETTLING)
            await self._sleep(self.settings.settle_delay)

            state = self._enter(path, RouteState.EXTRACTING)
            html = await page.content()

            state = self._enter(path, RouteState.TRANSFORMING)
            html = await self._transform(path, html)

            state = self._enter(path, RouteState.PERSISTING)
            output, size = await self._persist(path, html)
            await asyncio.to_thread(self.cache.update, path, source)
        except Exception as exc:
            self._enter(path, RouteState.FAILED)
            return await self._failed(page, path, state, exc, started)

        self._enter(path, RouteState.SUCCEEDED)
        duration_ms = (time.monotonic() - started) * 1000
        self._events.info(
            "route_success",
            f"'{path}' -> '{output}' ({format_bytes(size)}) {duration_ms / 1000:.2f}s",
            route=path,
        )
        return CrawlResult(
            route=path,
            status=CrawlStatus.SUCCESS,
            output_path=str(output),
            byte_size=size,
            duration_ms=duration_ms,
        )

    # ------------------------------------------------------------------ #
    # States                                                              #
    # ------------------------------------------------------------------ #

    async def _skipped(self, path: str) -> CrawlResult:
        output = output_path_for(self.settings.out_dir, path, self.settings.flat_output)
        size = await asyncio.to_thread(_existing_size, output)
        self._events.info("route_skipped", f"Skipped '{path}' (unchanged)", route=path)
        return CrawlResult(
            route=path,
            status=CrawlStatus.SKIPPED,
            output_path=str(output),
            byte_size=size,
            duration_ms=0.0,
        )

    async def _navigate(self, page: Any, path: str, url: str, timeout: int) -> None:
        try:
            await page.goto(url, wait_until="networkidle", timeout=timeout)
        except PlaywrightError as exc:
            raise NavigationError(path, f"Navigation to '{url}' failed: {exc}") from exc

    async def _wait_ready(self, page: Any, path: str) -> str:
        """Wait for the first matching readiness selector, else the generic content predicate."""
        for selector in self.settings.selectors:
            try:
                await page.wait_for_selector(selector, state="attached", timeout=self.settings.selector_timeout)
            except PlaywrightError as exc:
                self._events.warning(
                    "selector_miss", f"Selector '{selector}' not found, trying next: {exc}", route=path
                )
                continue
            self._events.info("selector_hit", f"Content found with selector '{selector}'", route=path)
            return selector

        self._events.warning(
            "fallback_wait", "No framework content selectors found, waiting for general content", route=path
        )
        try:
            await page.wait_for_function(CONTENT_PREDICATE, timeout=self.settings.fallback_timeout)
        except PlaywrightTimeoutError as exc:
            raise ReadinessTimeout(
                path,
                f"Content did not render within {self.settings.fallback_timeout} ms "
                f"(selectors tried: {', '.join(self.settings.selectors) or 'none'})",
            ) from exc
        return ""

    async def _transform(self, path: str, html: str) -> str:
        if self.settings.inline_css:
            try:
                html = await asyncio.to_thread(
                    inline_critical_css, html, self.settings.input_dir, self.settings.base_path
                )
                self._events.info("css_inlined", "CSS inlined", route=path)
            except CssInlineError as exc:
                self._events.warning("css_inline_failed", f"CSS inlining failed: {exc}", route=path)
        if self.settings.hydrate_bundle:
            html = inject_hydration_script(html, self.settings.hydrate_bundle, self.settings.base_path)
            self._events.info(
                "hydration_injected", f"Hydration script injected: '{self.settings.hydrate_bundle}'", route=path
            )
        return html

    async def _persist(self, path: str, html: str) -> Tuple[Path, int]:
        output = output_path_for(self.settings.out_dir, path, self.settings.flat_output)
        try:
            size = await asyncio.to_thread(write_html, output, html)
        except OSError as exc:
            raise PersistError(path, f"Could not write '{output}': {exc}") from exc
        return output, size

    async def _failed(
        self, page: Any, path: str, state: RouteState, exc: Exception, started: float
    ) -> CrawlResult:
        message = str(exc) or type(exc).__name__
        self._events.error(
            "route_failed", f"Crawling failed during {state.value}: {message}", route=path, state=state.value
        )
        await self._capture_screenshot(page, path)
        return CrawlResult(
            route=path,
            status=CrawlStatus.FAILED,
            duration_ms=(time.monotonic() - started) * 1000,
            error=message,
        )

    async def _capture_screenshot(self, page: Any, path: str) -> Optional[Path]:
        target_dir = self.settings.screenshot_dir
        if target_dir is None:
            return None
        target = target_dir / f"{sanitize_route(path)}.png"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(target))
        except Exception as exc:  # скриншот не влияет на статус маршрута
            self._events.warning("screenshot_failed", f"Could not save debug screenshot: {exc}", route=path)
            return None
        self._events.info("screenshot_saved", f"Debug screenshot saved: '{target}'", route=path)
        return target
