# site_render/routes.py
"""
Route expansion: turns declared routes (literal paths or ``:name`` templates
with parameter sets) into concrete crawl targets, and filters them through
exclude patterns.

Exclude patterns use a tiny grammar: literal text plus ``*``,
which matches any (possibly empty) sequence of characters. The whole path
must match. Every other character is literal: paths containing regex
metacharacters (``.``, ``+``, ``(``…) never change the meaning of a pattern.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from site_render.config import RouteEntry, RouteSpec
from site_render.crawler.models import ConcreteRoute
from site_render.logger import logger

__all__ = (
    "ExcludePattern",
    "compile_excludes",
    "substitute",
    "iter_paths",
    "expand",
    "auto_detect_routes",
    "parse_route_arg",
)

_TEMPLATE_ARG_RE = re.compile(r"^(?P<path>.+):(?P<name>\w+)\[(?P<values>.*)\]$")


class ExcludePattern:
    """Compiled glob-like pattern (literal segments + ``*``)."""

    __slots__ = ("source", "_regex")

    def __init__(self, source: str) -> None:
        self.source = source
        body = ".*".join(re.escape(part) for part in source.split("*"))
        self._regex = re.compile(rf"\A{body}\Z", re.DOTALL)

    def matches(self, path: str) -> bool:
        return self._regex.match(path) is not None

    def __repr__(self) -> str:
        return f"ExcludePattern({self.source!r})"


def compile_excludes(patterns: Iterable[str]) -> List[ExcludePattern]:
    return [ExcludePattern(p) for p in patterns if p]


def substitute(template: str, params: Mapping[str, str]) -> str:
    """Replace ``:key`` tokens with their values.

    Each key replaces its first occurrence only; placeholders with no value in
    *params* stay in the path literally.
    """
    path = template
    for key, value in params.items():
        path = path.replace(f":{key}", str(value), 1)
    return path


def _spec_of(entry: Union[RouteEntry, Mapping]) -> Union[str, RouteSpec]:
    if isinstance(entry, (str, RouteSpec)):
        return entry
    return RouteSpec.model_validate(entry)


def _iter_entry(entry: Union[RouteEntry, Mapping]) -> Iterator[tuple[str, Optional[int]]]:
    spec = _spec_of(entry)
    if isinstance(spec, str):
        yield spec, None
    elif spec.params:
        for params in spec.params:
            yield substitute(spec.path, params), spec.timeout
    else:
        yield spec.path, spec.timeout


def iter_paths(routes: Sequence[Union[RouteEntry, Mapping]]) -> Iterator[str]:
    """Concrete paths of all declared routes, without exclusion filtering."""
    for entry in routes:
        for path, _ in _iter_entry(entry):
            yield path


def expand(
    routes: Sequence[Union[RouteEntry, Mapping]],
    exclude_patterns: Iterable[str] = (),
    default_timeout: Optional[int] = None,
) -> List[ConcreteRoute]:
    """Expand declared routes into ConcreteRoutes.

    Order follows the declaration order, then parameter order within a spec.
    Duplicates are kept. A route whose concrete path matches any exclude
    pattern is dropped.
    """
    excludes = compile_excludes(exclude_patterns)
    result: List[ConcreteRoute] = []
    for entry in routes:
        for path, timeout in _iter_entry(entry):
            if any(p.matches(path) for p in excludes):
                logger.debug("Route excluded: %s", path)
                continue
            result.append(ConcreteRoute(path=path, timeout=timeout or default_timeout))
    return result


def auto_detect_routes(input_dir: Union[str, Path]) -> List[str]:
    """Routes for every prebuilt HTML page under *input_dir*.

    ``dir/index.html`` becomes ``/dir``, ``page.html`` becomes ``/page``;
    ``/`` is always present and first.
    """
    root = Path(input_dir)
    routes = {"/": None}
    if not root.is_dir():
        return list(routes)
    for html in sorted(root.rglob("*.html")):
        rel = html.relative_to(root)
        if html.name == "index.html":
            parts = rel.parent.parts
        else:
            parts = (*rel.parent.parts, html.stem)
        routes["/" + "/".join(parts) if parts else "/"] = None
    return list(routes)


def parse_route_arg(value: str) -> List[RouteEntry]:
    """Parse the CLI route list: ``/,/about,/users/:id[1,2]``.

    Commas inside ``[...]`` belong to the template's values.
    """
    items: List[str] = []
    depth = 0
    current = ""
    for ch in value:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            items.append(current)
            current = ""
        else:
            current += ch
    items.append(current)

    routes: List[RouteEntry] = []
    for raw in (i.strip() for i in items):
        if not raw:
            continue
        match = _TEMPLATE_ARG_RE.match(raw)
        if match:
            name = match.group("name")
            values = [v.strip() for v in match.group("values").split(",") if v.strip()]
            routes.append(
                RouteSpec(path=f"{match.group('path')}:{name}", params=[{name: v} for v in values])
            )
        else:
            routes.append(raw)
    return routes
