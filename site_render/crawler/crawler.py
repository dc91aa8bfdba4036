# === FILE: site_render/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any, AsyncContextManager, Callable, List, Optional

from site_render.config import CrawlConfig
from site_render.crawler.cache import ContentHashCache
from site_render.crawler.executor import ExecutorSettings, RouteCrawlExecutor
from site_render.crawler.models import ConcreteRoute, CrawlResult, EventEmitter, EventObserver, readiness_selectors
from site_render.crawler.output import copy_assets, output_path_for
from site_render.crawler.pool import BrowserSession, PagePool
from site_render.crawler.scheduler import CrawlScheduler
from site_render.routes import expand
from site_render.sitemap import emit_sitemap
from site_render.transform import find_bundle

__all__ = ("Prerenderer", "crawl_routes", "resolve_hydration_bundle")

BrowserFactory = Callable[[], AsyncContextManager[Any]]


def _missing_outputs(routes: List[ConcreteRoute], outputs: List[Path]) -> List[str]:
    return [route.path for route, output in zip(routes, outputs) if not output.is_file()]


def resolve_hydration_bundle(config: CrawlConfig, events: EventEmitter) -> Optional[str]:
    """Bundle path relative to input_dir, or None when hydration is off or nothing usable exists."""
    if not config.hydrate:
        return None
    bundle = config.hydrate_bundle or find_bundle(config.input_dir)
    if bundle is None:
        events.warning("hydration_bundle_missing", f"No hydration bundle found in '{config.input_dir}'. Skipping script injection")
        return None
    if not (Path(config.input_dir) / bundle).is_file():
        events.warning(
            "hydration_bundle_missing",
            f"Hydration bundle '{bundle}' not found in '{config.input_dir}'. Skipping script injection",
        )
        return None
    events.info("hydration_bundle", f"Using hydration bundle: '{bundle}'")
    return bundle


class Prerenderer:
    """Предрендеринг маршрутов через пул страниц headless-браузера.

    Контекст владеет браузером и пулом страниц: они создаются в ``__aenter__``
    и закрываются в ``__aexit__`` на любом пути выхода.

    Пример::

        async with serve_directory(cfg.input_dir, cfg.port, cfg.base_path) as origin:
            async with Prerenderer(cfg, origin) as renderer:
                results = await renderer.crawl()
    """

    def __init__(
        self,
        config: CrawlConfig,
        origin: str,
        *,
        observer: Optional[EventObserver] = None,
        browser_factory: Optional[BrowserFactory] = None,
        settle_delay: float = 1.0,
    ) -> None:
        self.config = config
        self.origin = origin.rstrip("/")
        self.events = EventEmitter(observer)
        self._browser_factory = browser_factory or BrowserSession
        self._settle_delay = settle_delay
        self._stack: Optional[AsyncExitStack] = None
        self.pool: Optional[PagePool] = None
        self.cache = ContentHashCache(config.cache_file, enabled=config.incremental, events=self.events)
        self._scheduler: Optional[CrawlScheduler] = None
        self._stop_requested = False
        self.logger = logging.getLogger("SiteRender")

    async def __aenter__(self) -> Prerenderer:
        stack = AsyncExitStack()
        try:
            browser = await stack.enter_async_context(self._browser_factory())
            self.pool = await stack.enter_async_context(
                PagePool(browser, self.config.concurrency, inline_css=self.config.inline_css, events=self.events)
            )
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stack is not None:
            stack, self._stack = self._stack, None
            await stack.aclose()
        self.pool = None

    def routes(self) -> List[ConcreteRoute]:
        return expand(self.config.routes, self.config.exclude_routes, self.config.timeout)

    def stop(self) -> None:
        """Прекратить приём новых маршрутов и пакетов."""
        self._stop_requested = True
        if self._scheduler is not None:
            self._scheduler.stop()

    async def crawl(self) -> List[CrawlResult]:
        if self.pool is None:
            raise RuntimeError("Prerenderer must be used as an async context manager")
        cfg = self.config
        started = time.monotonic()

        routes = self.routes()
        self.cache.load()
        keep = [output_path_for(cfg.out_dir, r.path, cfg.flat_output) for r in routes] if cfg.incremental else []
        for path in await asyncio.to_thread(_missing_outputs, routes, keep):
            self.cache.forget(path)
        await asyncio.to_thread(copy_assets, cfg.input_dir, cfg.out_dir, keep)
        self.events.info("assets_copied", f"Copied '{cfg.input_dir}' -> '{cfg.out_dir}'")

        settings = ExecutorSettings(
            origin=self.origin,
            input_dir=Path(cfg.input_dir),
            out_dir=Path(cfg.out_dir),
            selectors=readiness_selectors(cfg.framework, cfg.custom_selectors),
            default_timeout=cfg.timeout,
            base_path=cfg.formatted_base_path,
            flat_output=cfg.flat_output,
            inline_css=cfg.inline_css,
            hydrate_bundle=resolve_hydration_bundle(cfg, self.events),
            screenshot_dir=cfg.screenshot_dir,
            settle_delay=self._settle_delay,
        )
        executor = RouteCrawlExecutor(settings, self.cache, self.events)
        self._scheduler = CrawlScheduler(
            executor,
            self.pool,
            concurrency=cfg.concurrency,
            batch_size=cfg.batch_size,
            events=self.events,
        )
        if self._stop_requested:
            self._scheduler.stop()

        try:
            results = await self._scheduler.run(routes)
        finally:
            self.cache.persist()

        if cfg.sitemap:
            sitemap = await asyncio.to_thread(
                emit_sitemap, cfg.routes, cfg.site_url, cfg.formatted_base_path, cfg.out_dir
            )
            self.events.info("sitemap_written", f"Sitemap generated: '{sitemap}'")

        self.logger.debug("Crawl of %d routes finished in %.2fs", len(routes), time.monotonic() - started)
        return results


async def crawl_routes(
    config: CrawlConfig,
    origin: str,
    *,
    observer: Optional[EventObserver] = None,
    browser_factory: Optional[BrowserFactory] = None,
    settle_delay: float = 1.0,
) -> List[CrawlResult]:
    """Запускает Prerenderer в контексте и возвращает результаты по маршрутам."""
    async with Prerenderer(
        config, origin, observer=observer, browser_factory=browser_factory, settle_delay=settle_delay
    ) as renderer:
        return await renderer.crawl()
