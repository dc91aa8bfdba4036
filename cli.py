# cli.py

"""
Точка входа для запуска SiteRender без установки пакета.

Пример запуска:
    python cli.py build --input-dir build --out-dir build-ssg --routes "/,/about" --sitemap
    python cli.py --config site_render.yaml build --json reports/report.json --html reports/report.html
"""
from site_render.cli import cli

if __name__ == '__main__':
    cli()
