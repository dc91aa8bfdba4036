# site_render/crawler/cache.py
"""
Content-hash cache for incremental runs.

Maps a route path to the digest of the prebuilt HTML file the route is served
from. The crawl owns the in-memory mapping for the whole run: it is loaded
once, mutated as routes succeed, and persisted once at the end.
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Dict, Optional, Union

from site_render.crawler.models import EventEmitter

__all__ = ("ContentHashCache", "file_digest", "source_path_for")

_CHUNK = 1 << 16


def file_digest(path: Union[str, Path]) -> str:
    """MD5 over the full file content; used for change detection only."""
    h = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def source_path_for(input_dir: Union[str, Path], route: str) -> Path:
    """Prebuilt file a route corresponds to.

    ``/`` -> ``index.html``; otherwise ``{route}/index.html``, or
    ``{route}.html`` when the former is missing and the route has no extension.
    The returned path may not exist.
    """
    root = Path(input_dir)
    if route == "/":
        return root / "index.html"
    rel = route.strip("/")
    candidate = root / rel / "index.html"
    if not candidate.exists() and not Path(rel).suffix:
        html = root / f"{rel}.html"
        if html.exists():
            return html
    return candidate


class ContentHashCache:
    """Route -> source digest mapping with best-effort persistence."""

    def __init__(self, path: Union[str, Path], *, enabled: bool = True, events: Optional[EventEmitter] = None) -> None:
        self.path = Path(path)
        self.enabled = enabled
        self.entries: Dict[str, str] = {}
        self._events = events or EventEmitter()

    def load(self) -> Dict[str, str]:
        """Read the cache file. A missing or unreadable file yields an empty mapping."""
        self.entries = {}
        if not self.enabled or not self.path.exists():
            return self.entries
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._events.warning("cache_load_failed", f"Failed to load cache '{self.path}': {exc}")
            return self.entries
        if not isinstance(data, dict):
            self._events.warning("cache_load_failed", f"Ignoring cache '{self.path}': not a mapping")
            return self.entries
        self.entries = {str(k): str(v) for k, v in data.items()}
        self._events.info("cache_loaded", f"Loaded cache from '{self.path}' ({len(self.entries)} entries)")
        return self.entries

    def should_skip(self, route: str, source: Union[str, Path]) -> bool:
        """True only if incremental mode is on, *source* exists and its digest is cached."""
        if not self.enabled:
            return False
        source = Path(source)
        if not source.is_file():
            self._events.warning(
                "cache_missing_source",
                f"No source file found at '{source}'. Crawling without cache",
                route=route,
            )
            return False
        digest = file_digest(source)
        cached = self.entries.get(route)
        self._events.debug("cache_check", f"hash={digest} cached={cached or 'none'}", route=route)
        return cached == digest

    def update(self, route: str, source: Union[str, Path]) -> Optional[str]:
        """Record the current digest of *source* for *route*, if the file exists."""
        if not self.enabled:
            return None
        source = Path(source)
        if not source.is_file():
            return None
        digest = file_digest(source)
        self.entries[route] = digest
        return digest

    def forget(self, route: str) -> bool:
        """Drop the cached digest for *route* so the next check cannot skip it."""
        if self.entries.pop(route, None) is None:
            return False
        self._events.info("cache_invalidated", f"Output missing, re-rendering '{route}'", route=route)
        return True

    def persist(self, path: Union[str, Path, None] = None) -> bool:
        """Write the mapping as JSON. Failures are reported, never raised."""
        if not self.enabled:
            return False
        target = Path(path) if path is not None else self.path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(self.entries, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            self._events.warning("cache_save_failed", f"Failed to save cache '{target}': {exc}")
            return False
        self._events.info("cache_saved", f"Cache saved: '{target}'")
        return True
