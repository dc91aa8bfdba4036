# File: site_render/engine.py
"""site_render.engine: Orchestration layer: сервер + предрендеринг + агрегация результатов."""

from __future__ import annotations

import asyncio
import signal
import time
from typing import Optional, Tuple

from site_render.aggregator import RenderReport, aggregate_results
from site_render.config import ConfigSource, CrawlConfig, load_config
from site_render.crawler.crawler import BrowserFactory, Prerenderer
from site_render.crawler.models import EventObserver
from site_render.logger import log_event, logger
from site_render.server import serve_directory

__all__ = ["Engine", "start_render"]


def _install_interrupt(renderer: Prerenderer) -> bool:
    """Первый Ctrl+C останавливает приём маршрутов, второй отменяет запуск."""
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    state = {"hits": 0}

    def _on_sigint() -> None:
        state["hits"] += 1
        if state["hits"] == 1:
            logger.warning("Received Ctrl+C, finishing in-flight routes ...")
            renderer.stop()
        elif main_task is not None:
            logger.warning("Received second Ctrl+C, aborting")
            main_task.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _remove_interrupt() -> None:
    asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)


async def start_render(
    cfg: CrawlConfig,
    *,
    observer: Optional[EventObserver] = log_event,
    browser_factory: Optional[BrowserFactory] = None,
    handle_signals: bool = False,
) -> RenderReport:
    """
    Поднимает локальный сервер, выполняет предрендеринг и возвращает RenderReport.

    Parameters
    ----------
    cfg : CrawlConfig
        Конфигурация запуска.
    observer
        Получатель событий краулера (по умолчанию логгер проекта).
    browser_factory
        Фабрика async-контекста браузера (для тестов).
    handle_signals
        Перехватывать SIGINT для мягкой остановки.
    """
    started = time.monotonic()
    async with serve_directory(cfg.input_dir, cfg.port, cfg.base_path) as origin:
        async with Prerenderer(cfg, origin, observer=observer, browser_factory=browser_factory) as renderer:
            installed = handle_signals and _install_interrupt(renderer)
            try:
                results = await renderer.crawl()
            finally:
                if installed:
                    _remove_interrupt()
    return aggregate_results(results, (time.monotonic() - started) * 1000)


class Engine:
    """Фасад для CLI и тестов: загрузка конфига, запуск предрендеринга и агрегация результатов."""

    @staticmethod
    def load_config(path: Optional[str], **overrides) -> Tuple[CrawlConfig, ConfigSource]:
        """Загружает конфиг из YAML/JSON/package.json или использует значения по умолчанию."""
        return load_config(path, **overrides)

    def __init__(self, config: CrawlConfig, *, browser_factory: Optional[BrowserFactory] = None) -> None:
        """Инициализирует Engine с заданной конфигурацией."""
        self.config = config
        self.browser_factory = browser_factory

    def run(self) -> RenderReport:
        """Запускает предрендеринг в новом event loop и возвращает отчёт."""
        logger.info("Starting prerender of %d route declaration(s)…", len(self.config.routes))
        try:
            return asyncio.run(
                start_render(self.config, browser_factory=self.browser_factory, handle_signals=True)
            )
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.error("Prerendering aborted by user")
            raise
        except Exception as exc:
            logger.error("Prerendering failed: %s", exc)
            raise
