# File: site_render/server.py
"""site_render.server: Локальный HTTP-сервер собранного приложения (origin для браузера).

Правила разрешения пути:

* base path (``/app``) снимается с начала URL, query и fragment отбрасываются;
* ``/`` и каталоги -> ``index.html``;
* путь без расширения без прямого файла -> ``{path}.html``;
* иначе, если в URL нет точки, -> корневой ``index.html`` (SPA fallback);
* всё остальное -> 404 с текстом, называющим путь и каталог.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from email.utils import formatdate
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Dict, Optional, Union
from urllib.parse import unquote

from aiohttp import web

from site_render.errors import ConfigurationError
from site_render.logger import logger
from site_render.utils import format_base_path

__all__ = ["MIME_TYPES", "mime_type", "resolve_request_path", "create_app", "serve_directory"]

MIME_TYPES: Dict[str, str] = {
    ".html": "text/html",
    ".js": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
}
_LONG_CACHE = "public, max-age=31536000"


def mime_type(path: Union[str, Path]) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")


def _inside(root: Path, candidate: Path) -> bool:
    return candidate == root or root in candidate.parents


def resolve_request_path(input_dir: Union[str, Path], url: str, base_path: str = "") -> Optional[Path]:
    """Файл, которым отвечает сервер на *url*, или None (404)."""
    root = Path(input_dir).resolve()
    url = url.split("?", 1)[0].split("#", 1)[0] or "/"
    prefix = format_base_path(base_path)
    if prefix and url.startswith(prefix):
        url = url[len(prefix):] or "/"

    rel = unquote(url).lstrip("/")
    file_path = (root / rel).resolve() if rel else root / "index.html"
    if not _inside(root, file_path):
        return None

    if file_path.is_dir():
        file_path = file_path / "index.html"

    if not file_path.exists() and not PurePosixPath(rel).suffix:
        html = file_path.with_name(file_path.name + ".html")
        if html.exists():
            file_path = html

    if not file_path.exists():
        index = root / "index.html"
        if index.exists() and "." not in url:
            return index
        return None
    return file_path


def create_app(input_dir: Union[str, Path], base_path: str = "") -> web.Application:
    """aiohttp-приложение, отдающее *input_dir*."""
    root = Path(input_dir)

    async def handle(request: web.Request) -> web.StreamResponse:
        url = request.raw_path
        file_path = resolve_request_path(root, url, base_path)
        if file_path is None:
            return web.Response(
                status=404,
                text=f"Not found: '{url}'\nEnsure the file exists in '{root}'",
                content_type="text/plain",
            )
        try:
            stats = file_path.stat()
            mime = mime_type(file_path)
            last_modified = formatdate(stats.st_mtime, usegmt=True)
            if request.headers.get("If-Modified-Since") == last_modified and mime != "text/html":
                return web.Response(status=304)
            body = await asyncio.to_thread(file_path.read_bytes)
        except OSError as exc:
            logger.error("Server error for '%s': %s", url, exc)
            return web.Response(status=500, text="Internal Server Error", content_type="text/plain")

        long_cache = mime.startswith("image/") or "font" in mime
        return web.Response(
            body=body,
            headers={
                "Content-Type": mime,
                "Last-Modified": last_modified,
                "Cache-Control": _LONG_CACHE if long_cache else "no-cache",
            },
        )

    app = web.Application()
    app.router.add_get("/{tail:.*}", handle)
    return app


@asynccontextmanager
async def serve_directory(
    input_dir: Union[str, Path], port: int, base_path: str = "", host: str = "localhost"
) -> AsyncIterator[str]:
    """Запускает сервер на *port*, отдаёт origin (``http://localhost:3000``), гарантирует остановку."""
    root = Path(input_dir)
    if not root.is_dir() or not (root / "index.html").is_file():
        raise ConfigurationError(f"Input directory '{root}' does not exist or is missing index.html")

    runner = web.AppRunner(create_app(root, base_path))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    try:
        await site.start()
    except OSError as exc:
        await runner.cleanup()
        raise ConfigurationError(f"Cannot listen on port {port}: {exc}") from exc
    origin = f"http://{host}:{port}"
    logger.info("Serving %s at %s%s", root, origin, format_base_path(base_path))
    try:
        yield origin
    finally:
        await runner.cleanup()
