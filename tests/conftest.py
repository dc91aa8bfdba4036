# File: tests/conftest.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_render.config import CrawlConfig
from site_render.crawler.models import CrawlEvent


def default_markup(path: str) -> str:
    return (
        '<html><head><link rel="stylesheet" href="/static/app.css"></head>'
        f'<body><div id="root"><h1 class="title">Page {path}</h1></div></body></html>'
    )


class FakePage:
    """
    In-memory stand-in for a Playwright Page: only the methods the crawler uses.
    Routes listed in *broken* never become ready (every selector and the
    fallback predicate time out).
    """

    def __init__(
        self,
        *,
        render: Callable[[str], str] = default_markup,
        broken: Iterable[str] = (),
        goto_delay: float = 0.0,
        screenshot_error: Optional[Exception] = None,
    ) -> None:
        self.render = render
        self.broken = set(broken)
        self.goto_delay = goto_delay
        self.screenshot_error = screenshot_error
        self.url = "about:blank"
        self.visits: List[str] = []
        self.screenshots: List[str] = []
        self.intercepted: List[str] = []
        self.listeners: Dict[str, Callable] = {}
        self.closed = False

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30000) -> None:
        self.url = url
        self.visits.append(url)
        await asyncio.sleep(self.goto_delay)

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: int = 30000):
        if self.path in self.broken:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for '{selector}'")
        return object()

    async def wait_for_function(self, expression: str, timeout: int = 30000):
        if self.path in self.broken:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        return True

    async def content(self) -> str:
        return self.render(self.path)

    async def screenshot(self, path: str) -> bytes:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(path)
        return b"\x89PNG"

    async def route(self, pattern: str, handler) -> None:
        self.intercepted.append(pattern)

    def on(self, event: str, callback: Callable) -> None:
        self.listeners[event] = callback

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, **page_kwargs) -> None:
        self.page_kwargs = page_kwargs
        self.pages: List[FakePage] = []
        self.closed = False

    async def new_page(self, viewport=None) -> FakePage:
        page = FakePage(**self.page_kwargs)
        page.viewport = viewport
        self.pages.append(page)
        return page


def fake_browser_factory(browser: FakeBrowser):
    """browser_factory for Prerenderer/start_render that hands out *browser*."""

    @asynccontextmanager
    async def factory():
        try:
            yield browser
        finally:
            browser.closed = True

    return factory


async def no_sleep(_delay: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture()
def build_dir(tmp_path: Path) -> Path:
    """
    Minimal prebuilt SPA: index.html, about/index.html, contact.html,
    a stylesheet and a client bundle.
    """
    root = tmp_path / "build"
    (root / "about").mkdir(parents=True)
    (root / "static").mkdir()
    (root / "index.html").write_text(
        '<html><head><link rel="stylesheet" href="/static/app.css"></head>'
        '<body><div id="root"></div><script src="/static/main.js"></script></body></html>',
        encoding="utf-8",
    )
    (root / "about" / "index.html").write_text("<html><body>about v1</body></html>", encoding="utf-8")
    (root / "contact.html").write_text("<html><body>contact</body></html>", encoding="utf-8")
    (root / "static" / "app.css").write_text(
        ".title { color: red; }\n.unused { color: blue; }\n", encoding="utf-8"
    )
    (root / "static" / "main.js").write_text("console.log('app');", encoding="utf-8")
    return root


@pytest.fixture()
def render_config(tmp_path: Path, build_dir: Path) -> CrawlConfig:
    """A valid CrawlConfig whose tool-private directories live under tmp_path."""
    return CrawlConfig(
        routes=["/", "/about"],
        input_dir=build_dir,
        out_dir=tmp_path / "out",
        cache_dir=tmp_path / ".cache",
        debug_dir=tmp_path / ".debug",
        base_url="https://example.com",
    )


@pytest.fixture()
def events() -> List[CrawlEvent]:
    return []
