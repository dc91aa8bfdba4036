# File: tests/test_scheduler.py
from __future__ import annotations

from typing import List, Tuple

import pytest

from conftest import FakeBrowser, no_sleep
from site_render.crawler.cache import ContentHashCache
from site_render.crawler.executor import ExecutorSettings, RouteCrawlExecutor
from site_render.crawler.models import ConcreteRoute, CrawlStatus, EventEmitter, RouteState
from site_render.crawler.pool import VIEWPORT, PagePool, pool_size
from site_render.crawler.scheduler import CrawlScheduler, batches

IN_FLIGHT_STATES = {RouteState.NAVIGATING, RouteState.READINESS_WAIT}


class StateTracker:
    """Counts routes currently in Navigating/ReadinessWait and remembers the peak."""

    def __init__(self) -> None:
        self.active: set[str] = set()
        self.peak = 0
        self.log: List[Tuple[str, RouteState]] = []

    def __call__(self, route: str, state: RouteState) -> None:
        self.log.append((route, state))
        if state in IN_FLIGHT_STATES:
            self.active.add(route)
        else:
            self.active.discard(route)
        self.peak = max(self.peak, len(self.active))


def make_executor(tmp_path, build_dir, tracker, events) -> RouteCrawlExecutor:
    settings = ExecutorSettings(
        origin="http://localhost:3000",
        input_dir=build_dir,
        out_dir=tmp_path / "out",
        selectors=("#root > *",),
        screenshot_dir=tmp_path / "shots",
        settle_delay=0,
    )
    return RouteCrawlExecutor(
        settings,
        ContentHashCache(tmp_path / "ssg.json", enabled=False),
        EventEmitter(events.append),
        on_state=tracker,
        sleep=no_sleep,
    )


def routes(*paths: str) -> List[ConcreteRoute]:
    return [ConcreteRoute(p) for p in paths]


def test_batches():
    chunks = list(batches(routes("/1", "/2", "/3", "/4", "/5"), 2))
    assert [[r.path for r in c] for c in chunks] == [["/1", "/2"], ["/3", "/4"], ["/5"]]
    with pytest.raises(ValueError):
        list(batches(routes("/1"), 0))


@pytest.mark.parametrize("concurrency,expected", [(1, 1), (2, 2), (3, 3), (10, 3)])
def test_pool_size(concurrency, expected):
    assert pool_size(concurrency) == expected


@pytest.mark.asyncio()
async def test_pool_configures_pages(events):
    browser = FakeBrowser()
    async with PagePool(browser, concurrency=8, inline_css=False, events=EventEmitter(events.append)) as pool:
        assert len(pool.pages) == 3
        assert all(p.viewport == VIEWPORT for p in pool.pages)
        assert all(p.intercepted == ["**/*"] for p in pool.pages)
        assert set(pool.pages[0].listeners) == {"console", "pageerror"}
        assert pool.page_for(4) is pool.pages[1]
    assert all(p.closed for p in browser.pages)


@pytest.mark.asyncio()
async def test_pool_keeps_resources_for_css_inlining():
    browser = FakeBrowser()
    async with PagePool(browser, concurrency=1, inline_css=True) as pool:
        assert pool.pages[0].intercepted == []


@pytest.mark.asyncio()
async def test_concurrency_bound(tmp_path, build_dir, events):
    tracker = StateTracker()
    browser = FakeBrowser(goto_delay=0.02)
    async with PagePool(browser, concurrency=2) as pool:
        scheduler = CrawlScheduler(
            make_executor(tmp_path, build_dir, tracker, events), pool, concurrency=2, batch_size=50
        )
        results = await scheduler.run(routes("/1", "/2", "/3", "/4", "/5"))

    assert len(results) == 5
    assert all(r.status is CrawlStatus.SUCCESS for r in results)
    assert tracker.peak == 2


@pytest.mark.asyncio()
async def test_concurrency_above_pool_size_never_shares_a_page(tmp_path, build_dir, events):
    tracker = StateTracker()
    browser = FakeBrowser(goto_delay=0.02)
    async with PagePool(browser, concurrency=6) as pool:
        scheduler = CrawlScheduler(
            make_executor(tmp_path, build_dir, tracker, events), pool, concurrency=6, batch_size=50
        )
        results = await scheduler.run(routes(*(f"/p{i}" for i in range(6))))

    assert {r.route for r in results} == {f"/p{i}" for i in range(6)}
    assert all(r.status is CrawlStatus.SUCCESS for r in results)
    assert tracker.peak <= 3
    assert sum(len(p.visits) for p in browser.pages) == 6


@pytest.mark.asyncio()
async def test_failure_is_isolated(tmp_path, build_dir, events):
    tracker = StateTracker()
    browser = FakeBrowser(broken={"/bad"})
    async with PagePool(browser, concurrency=3) as pool:
        scheduler = CrawlScheduler(
            make_executor(tmp_path, build_dir, tracker, events), pool, concurrency=3, batch_size=3
        )
        results = await scheduler.run(routes("/a", "/bad", "/c"))

    by_route = {r.route: r for r in results}
    assert by_route["/bad"].status is CrawlStatus.FAILED
    assert by_route["/bad"].error
    assert by_route["/a"].status is CrawlStatus.SUCCESS
    assert by_route["/c"].status is CrawlStatus.SUCCESS


@pytest.mark.asyncio()
async def test_unexpected_executor_error_becomes_failed_result(tmp_path, build_dir, events):
    class ExplodingExecutor:
        async def run(self, route, page):
            if route.path == "/boom":
                raise RuntimeError("kaboom")
            return await inner.run(route, page)

    inner = make_executor(tmp_path, build_dir, StateTracker(), events)
    async with PagePool(FakeBrowser(), concurrency=2) as pool:
        scheduler = CrawlScheduler(
            ExplodingExecutor(), pool, concurrency=2, batch_size=10, events=EventEmitter(events.append)
        )
        results = await scheduler.run(routes("/boom", "/ok"))

    by_route = {r.route: r for r in results}
    assert by_route["/boom"].status is CrawlStatus.FAILED
    assert by_route["/boom"].error == "kaboom"
    assert by_route["/ok"].status is CrawlStatus.SUCCESS


@pytest.mark.asyncio()
async def test_batches_run_sequentially(tmp_path, build_dir, events):
    tracker = StateTracker()
    async with PagePool(FakeBrowser(goto_delay=0.01), concurrency=2) as pool:
        scheduler = CrawlScheduler(
            make_executor(tmp_path, build_dir, tracker, events),
            pool,
            concurrency=2,
            batch_size=2,
            events=EventEmitter(events.append),
        )
        await scheduler.run(routes("/1", "/2", "/3", "/4", "/5"))

    def position(route: str, state: RouteState) -> int:
        return tracker.log.index((route, state))

    for first, second in ((("/1", "/2"), ("/3", "/4")), (("/3", "/4"), ("/5",))):
        last_done = max(position(r, RouteState.SUCCEEDED) for r in first)
        first_start = min(position(r, RouteState.PENDING) for r in second)
        assert last_done < first_start
    assert [e.kind for e in events].count("batch_start") == 3


@pytest.mark.asyncio()
async def test_stop_prevents_new_batches(tmp_path, build_dir, events):
    async with PagePool(FakeBrowser(), concurrency=1) as pool:
        def stop_after_first(route, state):
            if state is RouteState.SUCCEEDED:
                scheduler.stop()

        executor = make_executor(tmp_path, build_dir, stop_after_first, events)
        scheduler = CrawlScheduler(executor, pool, concurrency=1, batch_size=1)
        results = await scheduler.run(routes("/1", "/2", "/3"))

    assert [r.route for r in results] == ["/1"]
    assert scheduler.stopping


def test_invalid_concurrency(tmp_path, build_dir, events):
    with pytest.raises(ValueError):
        CrawlScheduler(make_executor(tmp_path, build_dir, StateTracker(), events), None, concurrency=0, batch_size=1)
