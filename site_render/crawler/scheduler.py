# site_render/crawler/scheduler.py
"""
Crawl scheduler: fixed-size batches run strictly one after another; inside a
batch at most ``concurrency`` routes are in flight at once.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Iterator, List, Optional, Sequence

from site_render.crawler.executor import RouteCrawlExecutor
from site_render.crawler.models import ConcreteRoute, CrawlResult, CrawlStatus, EventEmitter
from site_render.crawler.pool import PagePool

__all__ = ("CrawlScheduler", "batches")


def batches(routes: Sequence[ConcreteRoute], size: int) -> Iterator[Sequence[ConcreteRoute]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(routes), size):
        yield routes[start:start + size]


class CrawlScheduler:
    """Feeds routes to the executor through a bounded limiter and the page pool."""

    def __init__(
        self,
        executor: RouteCrawlExecutor,
        pool: PagePool,
        *,
        concurrency: int,
        batch_size: int,
        events: Optional[EventEmitter] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.executor = executor
        self.pool = pool
        self.concurrency = concurrency
        self.batch_size = batch_size
        self._events = events or EventEmitter()
        self._limiter = asyncio.Semaphore(concurrency)
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        """Stop admitting new tasks and batches; in-flight tasks finish."""
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def run(self, routes: Sequence[ConcreteRoute]) -> List[CrawlResult]:
        """Process *routes*; results are returned in completion order."""
        results: List[CrawlResult] = []
        total = (len(routes) + self.batch_size - 1) // self.batch_size
        for number, batch in enumerate(batches(routes, self.batch_size), start=1):
            if self.stopping:
                self._events.warning("batch_skipped", f"Stopping before batch {number}/{total}")
                break
            self._events.info("batch_start", f"Processing batch {number}/{total} ({len(batch)} routes)")
            started = time.monotonic()
            await asyncio.gather(*(self._run_one(index, route, results) for index, route in enumerate(batch)))
            self._events.info(
                "batch_done", f"Batch {number} completed in {time.monotonic() - started:.2f}s", batch=number
            )
        return results

    async def _run_one(self, index: int, route: ConcreteRoute, results: List[CrawlResult]) -> None:
        async with self._limiter:
            if self.stopping:
                return
            try:
                async with self.pool.checkout(index) as page:
                    result = await self.executor.run(route, page)
            except Exception as exc:
                result = self._isolated_failure(route, exc)
            results.append(result)

    def _isolated_failure(self, route: ConcreteRoute, exc: Any) -> CrawlResult:
        message = str(exc) or type(exc).__name__
        self._events.error("route_failed", f"Task failed: {message}", route=route.path)
        return CrawlResult(route=route.path, status=CrawlStatus.FAILED, error=message)
