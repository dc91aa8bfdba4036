# File: site_render/aggregator.py
"""site_render.aggregator: Сводный отчёт по результатам предрендеринга."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from site_render.crawler.models import CrawlResult, CrawlStatus


@dataclass(slots=True)
class RenderReport:
    """Итоги запуска: счётчики по статусам, время и результаты маршрутов."""

    successful: int = 0
    skipped: int = 0
    failed: int = 0
    total_duration_ms: float = 0.0
    results: List[CrawlResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def average_ms(self) -> float:
        return self.total_duration_ms / self.total if self.total else 0.0

    @property
    def failed_routes(self) -> List[CrawlResult]:
        return [r for r in self.results if r.status is CrawlStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful": self.successful,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
            "total_duration_ms": round(self.total_duration_ms, 1),
            "average_ms": round(self.average_ms, 1),
            "results": [r.to_dict() for r in self.results],
        }

    def json(self, *, pretty: bool = False) -> str:
        """Возвращает JSON-представление отчёта."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)

    def summary(self) -> str:
        """Текстовая сводка для консоли."""
        return (
            "• Reports\n"
            f"  Successful  : {_plural(self.successful)}\n"
            f"  Skipped     : {_plural(self.skipped)}\n"
            f"  Failed      : {_plural(self.failed)}\n"
            f"  Total       : {_plural(self.total)}\n"
            "\n• Performance\n"
            f"  Duration    : {self.total_duration_ms / 1000:.1f}s\n"
            f"  Average     : {self.average_ms / 1000:.2f}s per route"
        )


def _plural(count: int) -> str:
    return f"{count} route{'s' if count != 1 else ''}"


def aggregate_results(results: Sequence[CrawlResult], total_duration_ms: float = 0.0) -> RenderReport:
    """Собирает результаты маршрутов в RenderReport."""
    report = RenderReport(results=list(results), total_duration_ms=total_duration_ms)
    for result in report.results:
        if result.status is CrawlStatus.SUCCESS:
            report.successful += 1
        elif result.status is CrawlStatus.SKIPPED:
            report.skipped += 1
        else:
            report.failed += 1
    return report
