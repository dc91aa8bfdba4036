# File: site_render/report/html_report.py
"""site_render.report.html_report: Генерация HTML-отчёта с помощью Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_render.aggregator import RenderReport
from site_render.utils import format_bytes

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_html(
    report: RenderReport,
    template_dir: Union[Path, str, None],
    output_path: Union[Path, str],
) -> Path:
    """Рендерит HTML-отчёт из шаблона и сохраняет его по указанному пути.

    Args:
        report: объект RenderReport.
        template_dir: директория с шаблоном ``report.html.j2``
            (None: встроенный шаблон пакета).
        output_path: путь к итоговому HTML-файлу.

    Returns:
        Path до сохранённого HTML-файла.
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    env.filters["bytes"] = lambda v: format_bytes(v) if v is not None else "-"
    template = env.get_template("report.html.j2")

    context: dict[str, Any] = {
        "report": report,
        "results": [r.to_dict() for r in report.results],
    }

    html_content = template.render(**context)
    output_path.write_text(html_content, encoding="utf-8")

    return output_path
