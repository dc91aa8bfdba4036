# site_render/crawler/models.py
"""
Data models for the SiteRender crawler.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


@dataclass(frozen=True, slots=True)
class ConcreteRoute:
    """A placeholder-free route ready to be crawled."""

    path: str
    timeout: Optional[int] = None


class CrawlStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class RouteState(str, Enum):
    """States of a single route crawl."""

    PENDING = "pending"
    CACHE_CHECK = "cache_check"
    SKIPPED = "skipped"
    NAVIGATING = "navigating"
    READINESS_WAIT = "readiness_wait"
    SETTLING = "settling"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Framework(str, Enum):
    """Framework variants and the mount-point selectors each one populates."""

    REACT = "react"
    VITE = "vite"
    VUE = "vue"
    SVELTE = "svelte"

    @property
    def selectors(self) -> Tuple[str, ...]:
        return _FRAMEWORK_SELECTORS[self]


_FRAMEWORK_SELECTORS: Dict[Framework, Tuple[str, ...]] = {
    Framework.REACT: ("#root > *", "#app > *", "[data-reactroot]"),
    Framework.VITE: ("#root > *", "#app > *"),
    Framework.VUE: ("#app > *",),
    Framework.SVELTE: ("[data-svelte]", "body > div > *"),
}


def readiness_selectors(framework: Framework | str, custom: Tuple[str, ...] | list[str] = ()) -> Tuple[str, ...]:
    """Custom selectors, when any are configured, replace the framework defaults."""
    if custom:
        return tuple(custom)
    return Framework(framework).selectors


@dataclass(slots=True)
class CrawlResult:
    """Outcome of one ConcreteRoute."""

    route: str
    status: CrawlStatus
    output_path: Optional[str] = None
    byte_size: Optional[int] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True, slots=True)
class CrawlEvent:
    """Structured diagnostic emitted by the crawler core."""

    kind: str
    message: str
    route: Optional[str] = None
    level: int = logging.INFO
    extra: Dict[str, Any] = field(default_factory=dict)


EventObserver = Callable[[CrawlEvent], None]


class EventEmitter:
    """Thin wrapper that stamps levels onto events and hands them to an observer."""

    def __init__(self, observer: Optional[EventObserver] = None) -> None:
        self._observer = observer

    def emit(self, kind: str, message: str, *, route: Optional[str] = None, level: int = logging.INFO, **extra: Any) -> None:
        if self._observer is None:
            return
        self._observer(CrawlEvent(kind=kind, message=message, route=route, level=level, extra=extra))

    def info(self, kind: str, message: str, **kw: Any) -> None:
        self.emit(kind, message, level=logging.INFO, **kw)

    def debug(self, kind: str, message: str, **kw: Any) -> None:
        self.emit(kind, message, level=logging.DEBUG, **kw)

    def warning(self, kind: str, message: str, **kw: Any) -> None:
        self.emit(kind, message, level=logging.WARNING, **kw)

    def error(self, kind: str, message: str, **kw: Any) -> None:
        self.emit(kind, message, level=logging.ERROR, **kw)
