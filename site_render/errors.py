"""site_render.errors: Иерархия исключений SiteRender."""

from __future__ import annotations


class SiteRenderError(Exception):
    """Базовое исключение проекта."""


class ConfigurationError(SiteRenderError):
    """Неверная или неполная конфигурация; прерывает запуск до начала обхода."""


class EngineLaunchError(SiteRenderError):
    """Headless-браузер не удалось запустить."""


class RouteError(SiteRenderError):
    """Ошибка обработки одного маршрута. Не прерывает пакет."""

    def __init__(self, route: str, message: str) -> None:
        super().__init__(message)
        self.route = route


class NavigationError(RouteError):
    """Навигация не завершилась (таймаут или сетевой сбой)."""


class ReadinessTimeout(RouteError):
    """Ни один селектор готовности и общий предикат не сработали."""


class PersistError(RouteError):
    """Не удалось записать HTML на диск."""


class CssInlineError(SiteRenderError):
    """Инлайнинг CSS не удался; вызывающий код откатывается к исходной разметке."""


__all__ = [
    "SiteRenderError",
    "ConfigurationError",
    "EngineLaunchError",
    "RouteError",
    "NavigationError",
    "ReadinessTimeout",
    "PersistError",
    "CssInlineError",
]
