# File: site_render/sitemap.py
"""site_render.sitemap: Генерация sitemap.xml по объявленным маршрутам."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from lxml import etree

from site_render.routes import iter_paths
from site_render.utils import format_base_path

__all__ = ["SITEMAP_NS", "build_sitemap", "emit_sitemap"]

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"


def build_sitemap(locations: Iterable[str], lastmod: Optional[datetime] = None) -> bytes:
    """Строит XML-документ sitemap с одной записью ``<url>`` на каждый адрес."""
    stamp = (lastmod or datetime.now(timezone.utc)).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    urlset = etree.Element(f"{{{SITEMAP_NS}}}urlset", nsmap={None: SITEMAP_NS})
    for loc in locations:
        url = etree.SubElement(urlset, f"{{{SITEMAP_NS}}}url")
        etree.SubElement(url, f"{{{SITEMAP_NS}}}loc").text = loc
        etree.SubElement(url, f"{{{SITEMAP_NS}}}lastmod").text = stamp
    return etree.tostring(urlset, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def emit_sitemap(
    routes: Sequence,
    base_url: str,
    base_path: str,
    out_dir: Union[str, Path],
    lastmod: Optional[datetime] = None,
) -> Path:
    """Записывает ``{out_dir}/sitemap.xml`` и возвращает путь к нему.

    Маршруты раскрываются так же, как для обхода, но без фильтра исключений:
    sitemap перечисляет все объявленные маршруты.

    Пример:
    ```python
    emit_sitemap(["/", "/about"], "https://example.com", "/app", "build-ssg")
    # <loc>https://example.com/app/</loc>, <loc>https://example.com/app/about</loc>
    ```
    """
    site = str(base_url).rstrip("/")
    prefix = format_base_path(base_path)
    locations: List[str] = [f"{site}{prefix}{path}" for path in iter_paths(routes)]

    target = Path(out_dir) / "sitemap.xml"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(build_sitemap(locations, lastmod))
    return target
