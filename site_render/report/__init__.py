"""site_render.report: Сохранение отчёта о предрендеринге (JSON и HTML) для CLI и тестов."""

from __future__ import annotations

from site_render.report.html_report import DEFAULT_TEMPLATE_DIR, render_html
from site_render.report.json_report import render_json

__all__ = ["render_json", "render_html", "DEFAULT_TEMPLATE_DIR"]
