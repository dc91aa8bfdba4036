# File: site_render/transform.py
"""site_render.transform: Пост-обработка отрендеренной разметки.

* :func:`inline_critical_css` – встраивает используемые страницей CSS-правила
  в ``<style>`` и переводит исходные ``<link rel="stylesheet">`` на
  неблокирующую загрузку (подход Critters: ``media="print"`` + ``onload``).
* :func:`inject_hydration_script` – добавляет ``<script defer>`` с клиентским
  бандлом перед ``</body>``.
* :func:`find_bundle` – ищет клиентский бандл в собранном приложении.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from site_render.errors import CssInlineError
from site_render.logger import logger

__all__ = ["inline_critical_css", "filter_css", "inject_hydration_script", "find_bundle"]

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_PSEUDO_RE = re.compile(r"::?[a-zA-Z-]+(?:\([^)]*\))?")

_Rule = Tuple[str, Optional[str]]


def _split_rules(css: str) -> List[_Rule]:
    """Разбивает CSS на (prelude, block) верхнего уровня; для ``@import x;`` block = None."""
    rules: List[_Rule] = []
    depth = 0
    quote: Optional[str] = None
    prelude_start = 0
    block_start = 0
    prelude = ""
    i = 0
    while i < len(css):
        ch = css[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            if depth == 0:
                prelude = css[prelude_start:i].strip()
                block_start = i + 1
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                rules.append((prelude, css[block_start:i]))
                prelude_start = i + 1
            elif depth < 0:
                raise ValueError(f"Unbalanced '}}' at offset {i}")
        elif ch == ";" and depth == 0:
            statement = css[prelude_start:i].strip()
            if statement:
                rules.append((statement, None))
            prelude_start = i + 1
        i += 1
    if depth != 0:
        raise ValueError("Unterminated CSS block")
    return rules


def _selector_used(soup: BeautifulSoup, selector: str) -> bool:
    plain = _PSEUDO_RE.sub("", selector).strip()
    if not plain or plain.endswith((">", "+", "~")):
        return True
    try:
        return soup.select_one(plain) is not None
    except (SelectorSyntaxError, NotImplementedError):  # селектор не поддерживается: правило оставляем
        return True


def filter_css(css: str, soup: BeautifulSoup) -> str:
    """Оставляет только правила, селекторы которых находят элементы в *soup*.

    ``@media`` фильтруется рекурсивно; прочие at-правила сохраняются как есть.
    """
    out: List[str] = []
    for prelude, block in _split_rules(_COMMENT_RE.sub("", css)):
        if block is None:
            out.append(f"{prelude};")
        elif prelude.lower().startswith("@media"):
            inner = filter_css(block, soup)
            if inner:
                out.append(f"{prelude}{{{inner}}}")
        elif prelude.startswith("@"):
            out.append(f"{prelude}{{{block.strip()}}}")
        elif any(_selector_used(soup, s) for s in prelude.split(",")):
            out.append(f"{prelude}{{{block.strip()}}}")
    return "".join(out)


def _local_stylesheet(href: str, asset_root: Path, base_path: str) -> Optional[Path]:
    parsed = urlparse(href)
    if parsed.scheme or parsed.netloc:
        return None
    path = parsed.path
    if base_path and path.startswith(base_path + "/"):
        path = path[len(base_path):]
    candidate = (asset_root / path.lstrip("/")).resolve()
    root = asset_root.resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate


def inline_critical_css(html: str, asset_root: Union[str, Path], base_path: str = "") -> str:
    """Встраивает критический CSS локальных таблиц стилей.

    Args:
        html: отрендеренная разметка страницы.
        asset_root: каталог, от которого разрешаются ``href`` таблиц стилей.
        base_path: префикс приложения (``/app``), снимаемый с ``href``.

    Returns:
        Разметку со встроенными ``<style>``.

    Raises:
        CssInlineError: при любой ошибке чтения или разбора CSS.
    """
    root = Path(asset_root)
    try:
        soup = BeautifulSoup(html, "html.parser")
        for link in soup.find_all("link", rel="stylesheet"):
            href = link.get("href")
            if not href or link.get("media") == "print":
                continue
            sheet = _local_stylesheet(href, root, base_path)
            if sheet is None:
                continue
            critical = filter_css(sheet.read_text(encoding="utf-8"), soup)
            if critical:
                style = soup.new_tag("style")
                style.string = critical
                link.insert_before(style)
            noscript = soup.new_tag("noscript")
            noscript.append(soup.new_tag("link", rel="stylesheet", href=href))
            link["media"] = "print"
            link["onload"] = "this.media='all'"
            link.insert_after(noscript)
            logger.debug("Inlined %d bytes of critical CSS from %s", len(critical), sheet)
        return str(soup)
    except Exception as exc:
        raise CssInlineError(str(exc)) from exc


def inject_hydration_script(html: str, bundle: str, base_path: str = "") -> str:
    """Добавляет ``<script src="{base}/{bundle}" defer>`` перед последним ``</body>``."""
    bundle = bundle.replace("\\", "/").lstrip("/")
    src = f"{base_path}/{bundle}"
    tag = f'<script src="{src}" defer></script>'
    idx = html.lower().rfind("</body>")
    if idx == -1:
        return html + tag
    return html[:idx] + tag + html[idx:]


def find_bundle(input_dir: Union[str, Path]) -> Optional[str]:
    """Находит клиентский бандл (путь относительно *input_dir*, через ``/``).

    Сначала проверяются ``<script src="*.js">`` из ``index.html``, затем любой
    ``.js`` в дереве, в имени которого нет ``chunk`` и ``vendor``.
    """
    root = Path(input_dir)
    index = root / "index.html"
    if index.is_file():
        soup = BeautifulSoup(index.read_text(encoding="utf-8"), "html.parser")
        for script in soup.find_all("script", src=True):
            src = urlparse(script["src"]).path.lstrip("/")
            if src.endswith(".js") and (root / src).is_file():
                return src
    for js in sorted(root.rglob("*.js")):
        if "chunk" not in js.name and "vendor" not in js.name:
            return js.relative_to(root).as_posix()
    return None
