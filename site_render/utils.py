# File: site_render/utils.py
"""site_render.utils: Утилиты для путей маршрутов, размеров файлов и служебных каталогов."""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Sequence, Union

from site_render.logger import logger

__all__: Sequence[str] = (
    "format_base_path",
    "join_route",
    "sanitize_route",
    "format_bytes",
    "clear_cache",
    "clear_debug",
)

_SLASHES_RE = re.compile(r"/+")


def format_base_path(base_path: str | None) -> str:
    """Приводит base path к виду ``/app``; пустая строка для ``""`` и ``"/"``."""
    if not base_path or base_path == "/":
        return ""
    base = base_path if base_path.startswith("/") else f"/{base_path}"
    return base.rstrip("/")


def join_route(base_path: str, route: str) -> str:
    """Склеивает base path и маршрут, схлопывая повторяющиеся слеши."""
    return _SLASHES_RE.sub("/", f"{base_path}{route}")


def sanitize_route(route: str) -> str:
    """Имя файла для маршрута: ``/users/1`` -> ``_users_1``."""
    return _SLASHES_RE.sub("_", route) or "_"


def format_bytes(size: int) -> str:
    """Человекочитаемый размер в десятичных единицах (1 kB = 1000 B)."""
    value = float(size)
    for unit in ("B", "kB", "MB", "GB"):
        if abs(value) < 1000 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.3g} {unit}"
        value /= 1000
    return f"{size} B"  # pragma: no cover


def clear_cache(cache_dir: Union[str, Path]) -> bool:
    """Удаляет файл инкрементального кэша. True, если было что удалять."""
    cache_file = Path(cache_dir) / "ssg.json"
    if cache_file.exists():
        cache_file.unlink()
        logger.info("Removed cache file %s", cache_file)
        return True
    return False


def clear_debug(debug_dir: Union[str, Path]) -> bool:
    """Удаляет лог-файлы и отладочные скриншоты."""
    removed = False
    debug = Path(debug_dir)
    for target in (debug / "logs", debug / "screenshots" / "ssg"):
        if target.exists():
            shutil.rmtree(target)
            logger.info("Removed %s", target)
            removed = True
    return removed
