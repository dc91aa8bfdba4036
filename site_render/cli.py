# === FILE: site_render/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска SiteRender через командную строку.

Команды:
  build     Поднять локальный сервер, отрендерить маршруты и записать HTML
  routes    Показать раскрытый список маршрутов (dry-run)
  config    Показать итоговую конфигурацию
  clean     Удалить инкрементальный кэш, логи и отладочные скриншоты

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (по умолчанию site_render.yaml или package.json)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (по умолчанию .site_render/debug/logs/ssg.log)
  --log-format FORMAT Формат логирования

Дополнительно:
  --version, -v       Показать версию SiteRender

Пример:
  site-render build -i build -o build-ssg --routes "/,/about,/users/:id[1,2]" --sitemap
  site-render build --incremental --watch
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import click
from watchfiles import DefaultFilter, awatch

from site_render import __version__
from site_render.aggregator import RenderReport
from site_render.config import CrawlConfig, load_config
from site_render.engine import start_render
from site_render.errors import EngineLaunchError, SiteRenderError
from site_render.logger import configure
from site_render.report.html_report import render_html
from site_render.report.json_report import render_json
from site_render.routes import auto_detect_routes, expand, parse_route_arg
from site_render.utils import clear_cache, clear_debug

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _split(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _load(ctx: click.Context, *, check_input: bool = True, **overrides: Any) -> CrawlConfig:
    routes_arg = overrides.pop("routes", None)
    if routes_arg is not None and routes_arg.strip() != "auto":
        overrides["routes"] = parse_route_arg(routes_arg)
    try:
        cfg, source = load_config(ctx.obj['config_path'], check_input=check_input, **overrides)
        if routes_arg is not None and routes_arg.strip() == "auto":
            cfg = cfg.with_overrides(routes=auto_detect_routes(cfg.input_dir))
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.obj['config_source'] = source
    return cfg


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteRender, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteRender CLI."""
    configure(level=log_level, log_file=None, log_format=log_format)
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['log'] = {'level': log_level, 'log_file': log_file, 'log_format': log_format}


@cli.command('build', context_settings=CONTEXT_SETTINGS)
@click.option('--routes', default=None, help='Маршруты через запятую (/,/about,/users/:id[1,2]) или "auto"')
@click.option('--base-path', 'base_path', default=None, help='Базовый путь приложения')
@click.option('--base-url', 'base_url', default=None, help='Публичный URL для sitemap')
@click.option('--input-dir', '-i', 'input_dir', default=None, type=click.Path(path_type=Path), help='Каталог сборки')
@click.option('--out-dir', '-o', 'out_dir', default=None, type=click.Path(path_type=Path), help='Каталог результата')
@click.option('--port', '-p', type=int, default=None, help='Порт локального сервера')
@click.option('--concurrency', type=int, default=None, help='Число одновременно обрабатываемых маршрутов')
@click.option('--flat-output/--no-flat-output', 'flat_output', default=None, help='about.html вместо about/index.html')
@click.option('--hydrate/--no-hydrate', default=None, help='Вставить скрипт гидратации')
@click.option('--hydrate-bundle', 'hydrate_bundle', default=None, help='Путь к бандлу относительно input-dir')
@click.option('--framework', type=click.Choice(['react', 'vite', 'vue', 'svelte']), default=None, help='Фреймворк')
@click.option('--batch-size', 'batch_size', type=int, default=None, help='Маршрутов в пакете')
@click.option('--incremental/--no-incremental', default=None, help='Пропускать неизменившиеся маршруты')
@click.option('--timeout', type=int, default=None, help='Таймаут маршрута (мс)')
@click.option('--inline-css/--no-inline-css', 'inline_css', default=None, help='Инлайнить критический CSS')
@click.option('--sitemap/--no-sitemap', default=None, help='Сгенерировать sitemap.xml')
@click.option('--exclude-routes', 'exclude_routes', default=None, help='Исключения через запятую (/api/*)')
@click.option('--custom-selectors', 'custom_selectors', default=None, help='Селекторы готовности через запятую')
@click.option('--dry-run', 'dry_run', is_flag=True, help='Показать маршруты без записи файлов')
@click.option('--watch', '-w', 'watch', is_flag=True, help='Пересобирать при изменениях в input-dir')
@click.option('--json', '-j', 'json_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path), help='Сохранить JSON-отчёт в файл')
@click.option('--html', '-h', 'html_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path), help='Сохранить HTML-отчёт в файл')
@click.option('--template', '-t', 'template_dir', default=None,
              type=click.Path(exists=True, file_okay=False, path_type=Path), help='Папка с Jinja2-шаблоном report.html.j2')
@click.pass_context
def build(ctx, dry_run, watch, json_output, html_output, template_dir, exclude_routes, custom_selectors, **options):
    """Отрендерить маршруты в статический HTML."""
    cfg = _load(
        ctx,
        check_input=not dry_run,
        exclude_routes=_split(exclude_routes),
        custom_selectors=_split(custom_selectors),
        **options,
    )
    if dry_run:
        click.echo('Dry run mode: previewing routes ...')
        _echo_routes(cfg)
        return

    log = ctx.obj['log']
    configure(level=log['level'], log_file=log['log_file'] or cfg.log_file, log_format=log['log_format'])
    click.echo(f"Rendering {len(cfg.routes)} route declaration(s) from '{cfg.input_dir}' "
               f"(config: {ctx.obj['config_source']})")

    try:
        report = asyncio.run(start_render(cfg, handle_signals=True))
    except EngineLaunchError as e:
        print_error(f'Не удалось запустить браузер: {e}')
    except (KeyboardInterrupt, asyncio.CancelledError):
        print_error('Прервано пользователем')
    except Exception as e:
        print_error(f'Ошибка при рендеринге: {e}')

    _report(report, json_output, html_output, template_dir)

    if watch:
        click.echo(f"Watching '{cfg.input_dir}' for changes (Ctrl+C to stop) ...")
        try:
            asyncio.run(_watch(cfg, lambda r: _report(r, json_output, html_output, template_dir)))
        except KeyboardInterrupt:
            click.echo('Watch stopped')


def _report(report: RenderReport, json_output: Optional[Path], html_output: Optional[Path],
            template_dir: Optional[Path]) -> None:
    click.echo(report.summary())
    if report.failed:
        click.secho(f'{report.successful} route(s) processed successfully, {report.failed} failed', fg='yellow')
    else:
        click.secho(f'All {report.total} route(s) processed successfully', fg='green')

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


class BuildFilter(DefaultFilter):
    """Фильтр watchfiles: игнорирует собственный out_dir, если он лежит внутри input_dir."""

    def __init__(self, out_dir: Path) -> None:
        super().__init__()
        self.out_dir = Path(out_dir).resolve()

    def __call__(self, change, path: str) -> bool:
        target = Path(path).resolve()
        if target == self.out_dir or self.out_dir in target.parents:
            return False
        return super().__call__(change, path)


async def _watch(cfg: CrawlConfig, on_report: Callable[[RenderReport], None]) -> None:
    async for changes in awatch(cfg.input_dir, watch_filter=BuildFilter(cfg.out_dir)):
        click.echo(f'{len(changes)} change(s) detected, rebuilding ...')
        try:
            report = await start_render(cfg)
        except (SiteRenderError, OSError) as e:
            click.secho(f'Ошибка при пересборке: {e}', fg='red', err=True)
            continue
        on_report(report)


def _echo_routes(cfg: CrawlConfig) -> None:
    for route in expand(cfg.routes, cfg.exclude_routes, cfg.timeout):
        click.echo(f"Route: '{route.path}'")


@cli.command('routes', context_settings=CONTEXT_SETTINGS)
@click.option('--routes', default=None, help='Маршруты через запятую (перекрывают конфиг)')
@click.option('--exclude-routes', 'exclude_routes', default=None, help='Исключения через запятую')
@click.pass_context
def show_routes(ctx, routes, exclude_routes):
    """Показать раскрытый и отфильтрованный список маршрутов."""
    cfg = _load(ctx, check_input=False, routes=routes, exclude_routes=_split(exclude_routes))
    _echo_routes(cfg)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = _load(ctx, check_input=False)
    data: Dict[str, Any] = cfg.model_dump(mode='json')
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@cli.command('clean', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def clean(ctx):
    """Удалить кэш, логи и отладочные скриншоты."""
    cfg = _load(ctx, check_input=False)
    removed = clear_cache(cfg.cache_dir)
    removed = clear_debug(cfg.debug_dir) or removed
    click.echo('Cleaned' if removed else 'Nothing to clean')


if __name__ == "__main__":
    cli()
