# File: tests/test_server.py
from __future__ import annotations

from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio

from site_render.errors import ConfigurationError
from site_render.server import mime_type, resolve_request_path, serve_directory


@pytest_asyncio.fixture
async def origin(build_dir, unused_tcp_port: int) -> AsyncIterator[str]:
    async with serve_directory(build_dir, unused_tcp_port) as url:
        yield url


@pytest_asyncio.fixture
async def origin_with_base(build_dir, unused_tcp_port: int) -> AsyncIterator[str]:
    async with serve_directory(build_dir, unused_tcp_port, base_path="app/") as url:
        yield url


async def fetch(url: str, headers: dict | None = None) -> tuple[int, dict, str]:
    async with aiohttp.ClientSession() as session:
        async with session.get(url, headers=headers or {}) as resp:
            return resp.status, dict(resp.headers), await resp.text()


@pytest.mark.parametrize(
    "url,expected",
    [
        ("/", "index.html"),
        ("/?q=1#top", "index.html"),
        ("/about", "about/index.html"),
        ("/about/", "about/index.html"),
        ("/contact", "contact.html"),
        ("/static/app.css", "static/app.css"),
        ("/dashboard/settings", "index.html"),
    ],
)
def test_resolve_request_path(build_dir, url, expected):
    assert resolve_request_path(build_dir, url) == (build_dir / expected).resolve()


@pytest.mark.parametrize("url", ["/missing.png", "/static/missing.js", "/../secret", "/%2e%2e/secret"])
def test_resolve_request_path_not_found(build_dir, url):
    (build_dir.parent / "secret").write_text("nope", encoding="utf-8")
    assert resolve_request_path(build_dir, url) is None


def test_resolve_request_path_strips_base(build_dir):
    assert resolve_request_path(build_dir, "/app/about", "/app") == (build_dir / "about" / "index.html").resolve()
    assert resolve_request_path(build_dir, "/app", "/app") == build_dir.resolve() / "index.html"


@pytest.mark.parametrize(
    "name,expected",
    [("a.html", "text/html"), ("a.JS", "text/javascript"), ("f.woff2", "font/woff2"), ("x.bin", "application/octet-stream")],
)
def test_mime_type(name, expected):
    assert mime_type(name) == expected


@pytest.mark.asyncio()
async def test_serves_index_and_fallbacks(origin: str):
    status, headers, body = await fetch(f"{origin}/")
    assert status == 200
    assert headers["Content-Type"].startswith("text/html")
    assert headers["Cache-Control"] == "no-cache"
    assert '<div id="root"></div>' in body

    status, _, body = await fetch(f"{origin}/contact")
    assert (status, body) == (200, "<html><body>contact</body></html>")

    status, _, body = await fetch(f"{origin}/users/42")
    assert status == 200
    assert '<div id="root"></div>' in body


@pytest.mark.asyncio()
async def test_not_found_text(origin: str, build_dir):
    status, headers, body = await fetch(f"{origin}/missing.png")
    assert status == 404
    assert headers["Content-Type"].startswith("text/plain")
    assert body == f"Not found: '/missing.png'\nEnsure the file exists in '{build_dir}'"


@pytest.mark.asyncio()
async def test_conditional_get(origin: str):
    status, headers, _ = await fetch(f"{origin}/static/main.js")
    assert status == 200
    assert headers["Content-Type"].startswith("text/javascript")

    status, _, _ = await fetch(f"{origin}/static/main.js", {"If-Modified-Since": headers["Last-Modified"]})
    assert status == 304

    _, html_headers, _ = await fetch(f"{origin}/")
    status, _, _ = await fetch(f"{origin}/", {"If-Modified-Since": html_headers["Last-Modified"]})
    assert status == 200


@pytest.mark.asyncio()
async def test_base_path(origin_with_base: str):
    assert origin_with_base.startswith("http://localhost:")
    status, _, body = await fetch(f"{origin_with_base}/app/about")
    assert (status, body) == (200, "<html><body>about v1</body></html>")


@pytest.mark.asyncio()
async def test_missing_index_is_configuration_error(tmp_path, unused_tcp_port: int):
    (tmp_path / "empty").mkdir()
    with pytest.raises(ConfigurationError):
        async with serve_directory(tmp_path / "empty", unused_tcp_port):
            pass
