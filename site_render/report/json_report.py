# site_render/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteRender.

Сериализация объекта RenderReport в файл.
"""
import json
from pathlib import Path

from site_render.aggregator import RenderReport


def render_json(report: RenderReport, output_path: Path | str) -> Path:
    """
    Сохраняет отчёт report в формате JSON по указанному пути.

    :param report: объект RenderReport с результатами маршрутов
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_render.report.json_report import render_json
    report_path = render_json(report, 'reports/render.json')
    print(f"JSON report saved to: {report_path}")
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)

    return output
