# === FILE: site_render/config.py ===
"""
Модуль для загрузки и валидации конфигурации SiteRender.
Используется Pydantic для описания схемы и проверки данных.

Ключи принимаются как в snake_case (``flat_output``), так и в camelCase
(``flatOutput``), чтобы существующие конфиги переносились без правок.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from site_render.crawler.models import Framework
from site_render.utils import format_base_path


class RouteSpec(BaseModel):
    """Параметризованный маршрут: шаблон с ``:name`` и наборы значений."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., min_length=1, description="Шаблон пути, например /user/:id.")
    params: List[Dict[str, str]] = Field(default_factory=list, description="Наборы значений параметров.")
    timeout: Optional[int] = Field(None, ge=1, description="Таймаут маршрута (мс), перекрывает общий.")

    @field_validator("params", mode="before")
    def _stringify_values(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [
                {str(k): str(val) for k, val in item.items()} if isinstance(item, dict) else item
                for item in v
            ]
        return v


RouteEntry = Union[str, RouteSpec]


class CrawlConfig(BaseModel):
    """Полностью разрешённая конфигурация одного запуска предрендеринга."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    routes: List[RouteEntry] = Field(default_factory=lambda: ["/"], min_length=1, description="Маршруты для рендеринга.")
    base_path: str = Field("", description="Префикс, под которым приложение раздаётся.")
    base_url: HttpUrl = Field("http://localhost:3000", description="Публичный URL для sitemap.")
    input_dir: Path = Field(Path("build"), description="Каталог собранного приложения.")
    out_dir: Path = Field(Path("build-ssg"), description="Каталог результата.")
    port: int = Field(3000, ge=1, le=65535, description="Порт локального сервера.")
    concurrency: int = Field(3, ge=1, description="Максимум одновременно обрабатываемых маршрутов.")
    flat_output: bool = Field(False, description="about.html вместо about/index.html.")
    hydrate: bool = Field(False, description="Вставлять скрипт гидратации.")
    hydrate_bundle: Optional[str] = Field(None, description="Путь к бандлу относительно input_dir.")
    framework: Framework = Field(Framework.REACT, description="Фреймворк (селекторы готовности).")
    batch_size: int = Field(50, ge=1, description="Маршрутов в одном пакете.")
    incremental: bool = Field(False, description="Пропускать неизменившиеся маршруты.")
    timeout: int = Field(30000, ge=1, description="Таймаут навигации на маршрут (мс).")
    inline_css: bool = Field(True, description="Инлайнить критический CSS.")
    sitemap: bool = Field(False, description="Генерировать sitemap.xml.")
    exclude_routes: List[str] = Field(default_factory=list, description="Glob-шаблоны исключений (*).")
    custom_selectors: List[str] = Field(default_factory=list, description="Собственные селекторы готовности.")
    cache_dir: Path = Field(
        Path(".site_render/cache"),
        validation_alias=AliasChoices("cache_dir", "cacheDir"),
        description="Каталог инкрементального кэша.",
    )
    debug_dir: Path = Field(
        Path(".site_render/debug"),
        validation_alias=AliasChoices("debug_dir", "debugDir"),
        description="Каталог логов и отладочных скриншотов.",
    )
    check_input: bool = Field(
        True,
        exclude=True,
        description="Проверять наличие input_dir/index.html (выключается для dry-run).",
    )

    @field_validator("base_url", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("framework", mode="before")
    def _lower_framework(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_input_dir(self) -> CrawlConfig:
        if not self.check_input:
            return self
        if not self.input_dir.is_dir():
            raise FileNotFoundError(errno.ENOENT, "Input directory does not exist", str(self.input_dir))
        index = self.input_dir / "index.html"
        if not index.is_file():
            raise FileNotFoundError(errno.ENOENT, "No index.html found in input directory", str(index))
        return self

    # ------------------------------------------------------------------ #
    # Derived values                                                      #
    # ------------------------------------------------------------------ #

    @property
    def formatted_base_path(self) -> str:
        return format_base_path(self.base_path)

    @property
    def site_url(self) -> str:
        """base_url без завершающего слеша (HttpUrl всегда добавляет его к пустому пути)."""
        return str(self.base_url).rstrip("/")

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / "ssg.json"

    @property
    def screenshot_dir(self) -> Path:
        return self.debug_dir / "screenshots" / "ssg"

    @property
    def log_file(self) -> Path:
        return self.debug_dir / "logs" / "ssg.log"

    def with_overrides(self, **overrides: Any) -> CrawlConfig:
        """Новая проверенная конфигурация с заменёнными полями (None игнорируется)."""
        data = self.model_dump(mode="json")
        data["check_input"] = self.check_input
        data.update({k: v for k, v in overrides.items() if v is not None})
        return CrawlConfig.model_validate(data)


_CONFIG_CANDIDATES: Tuple[Path, ...] = (
    Path("site_render.yaml"),
    Path("site_render.yml"),
    Path("site_render.json"),
)
_PACKAGE_JSON = Path("package.json")

ConfigSource = Literal["file", "package.json", "defaults"]


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def _read_file(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path)
    elif suffix == ".json":
        data = _read_json(path)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")
    # Допускается обёртка {"ssg": {...}}, как в package.json
    if set(data) == {"ssg"} and isinstance(data["ssg"], dict):
        return data["ssg"]
    return data


def read_config_data(path: Union[str, Path, None]) -> Tuple[dict[str, Any], ConfigSource]:
    """
    Находит и читает сырые данные конфигурации без валидации.

    Порядок поиска без явного пути: site_render.yaml/.yml/.json в текущем каталоге,
    затем секция ``siteRender.ssg`` в package.json, иначе значения по умолчанию.
    """
    if path is not None:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))
        return _read_file(path_obj), "file"

    for candidate in _CONFIG_CANDIDATES:
        if candidate.is_file():
            return _read_file(candidate), "file"

    if _PACKAGE_JSON.is_file():
        pkg = _read_json(_PACKAGE_JSON)
        section = pkg.get("siteRender", {})
        if isinstance(section, dict) and isinstance(section.get("ssg"), dict):
            return section["ssg"], "package.json"

    return {}, "defaults"


def load_config(path: Union[str, Path, None] = None, **overrides: Any) -> Tuple[CrawlConfig, ConfigSource]:
    """
    Читает YAML/JSON (или package.json) и возвращает проверенный CrawlConfig и источник.
    Переданные overrides (не None) перекрывают значения из файла.
    """
    data, source = read_config_data(path)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return CrawlConfig.model_validate(data), source


__all__ = ["RouteSpec", "RouteEntry", "CrawlConfig", "load_config", "read_config_data"]
