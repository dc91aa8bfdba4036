# site_render/crawler/output.py
"""
Output materialization: where each route's HTML lands and how it gets there.
"""
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, Union

__all__ = ("output_path_for", "copy_assets", "write_html")


def output_path_for(out_dir: Union[str, Path], route: str, flat: bool = False) -> Path:
    """``/`` -> ``index.html``; ``/about`` -> ``about/index.html`` or ``about.html`` (flat)."""
    out = Path(out_dir)
    rel = route.strip("/")
    if not rel:
        return out / "index.html"
    if flat:
        return out / f"{rel}.html"
    return out / rel / "index.html"


def copy_assets(
    input_dir: Union[str, Path], out_dir: Union[str, Path], keep: Iterable[Union[str, Path]] = ()
) -> Path:
    """Copy the whole input tree into *out_dir* (merging with existing content).

    Files listed in *keep* that already exist in *out_dir* are left as they are;
    incremental runs pass the outputs of the routes they may skip.
    """
    src = Path(input_dir).resolve()
    dst = Path(out_dir).resolve()
    ignore = None
    if src in dst.parents:
        # out_dir nested in input_dir: do not copy it into itself
        top = dst.relative_to(src).parts[0]
        ignore = lambda directory, names: [top] if Path(directory).resolve() == src else []  # noqa: E731
    kept = {Path(p).resolve() for p in keep}

    def _copy(source: str, target: str) -> str:
        if kept and Path(target).resolve() in kept and Path(target).exists():
            return target
        return shutil.copy2(source, target)

    shutil.copytree(src, dst, dirs_exist_ok=True, ignore=ignore, copy_function=_copy)
    return dst


def write_html(path: Union[str, Path], html: str) -> int:
    """Write *html*, creating parent directories; returns the size on disk."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(html, encoding="utf-8")
    return target.stat().st_size
