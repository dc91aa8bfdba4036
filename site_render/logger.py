"""Site‑wide logging configuration for the **SiteRender** project.

Highlights
----------
* Unified format for console and optional file output (with rotation).
* Single, importable instance :data:`logger` – simply::

      from site_render.logger import logger
      logger.info("Rendering started")
* Re‑configurable at runtime via :func:`configure`.
* :func:`log_event` – the default observer for the crawler's event stream.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Final, Union

if TYPE_CHECKING:
    from site_render.crawler.models import CrawlEvent

# --------------------------------------------------------------------------- #
# Constants & basic types                                                     #
# --------------------------------------------------------------------------- #

_DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOGGER_NAME: Final[str] = "SiteRender"
DEFAULT_LOG_FILE: Final[Path] = Path(".site_render/debug/logs/ssg.log")

_LevelT = Union[int, str]


# --------------------------------------------------------------------------- #
# Helper builders                                                             #
# --------------------------------------------------------------------------- #


def _stdout_handler(fmt: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _file_handler(file: Path | str, fmt: str) -> RotatingFileHandler:
    Path(file).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(file),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the global project logger.

    Parameters
    ----------
    level
        Numeric or textual logging level (e.g. ``"DEBUG"``).
    log_file
        Path to a logfile. *None* → console‑only output.
    log_format
        Format string for :class:`logging.Formatter`.
    replace_handlers
        *True* – remove existing handlers; *False* – just append new one(s).
    """
    lg = logging.getLogger(_LOGGER_NAME)
    lg.setLevel(level)

    if replace_handlers:
        for handler in lg.handlers:
            handler.close()
        lg.handlers.clear()

    lg.addHandler(_stdout_handler(log_format))

    if log_file is not None:
        lg.addHandler(_file_handler(log_file, log_format))

    lg.propagate = False
    return lg


def init_logging(level: _LevelT = "INFO", log_file: str | Path | None = None) -> logging.Logger:
    """Console‑only setup used on import; the CLI re-configures with a file."""
    return configure(level=level, log_file=log_file, replace_handlers=True)


def log_event(event: CrawlEvent) -> None:
    """Forward a crawler event to the project logger at the event's level."""
    lg = logging.getLogger(_LOGGER_NAME)
    if event.route:
        lg.log(event.level, "[%s] %s", event.route, event.message)
    else:
        lg.log(event.level, "%s", event.message)


# --------------------------------------------------------------------------- #
# Ready‑to‑use instance                                                       #
# --------------------------------------------------------------------------- #

logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "log_event", "DEFAULT_LOG_FILE"]
