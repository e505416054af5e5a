"""Bounded-concurrency fan-out with per-item error isolation."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, TypeVar

from flask import current_app

T = TypeVar('T')


@dataclass
class FanOutReport:
    """Outcome of a fan-out: successful results and isolated failures."""

    results: list[tuple[Any, Any]] = field(default_factory=list)
    failures: list[tuple[Any, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)


def fan_out(
    items: Iterable[T],
    worker: Callable[[T], Any],
    concurrency: int | None = None,
    key: Callable[[T], Any] | None = None,
) -> FanOutReport:
    """
    Apply ``worker`` to every item with at most ``concurrency`` in flight.

    Each worker thread runs inside its own application context, so it gets its
    own database session. A failing item is logged and recorded in the report;
    it never stops the remaining items.

    Args:
        items: Items to process
        worker: Callable invoked once per item
        concurrency: Maximum parallel workers (config FANOUT_CONCURRENCY);
            1 runs inline in the calling context
        key: Maps an item to the identifier used in the report

    Returns:
        FanOutReport
    """
    app = current_app._get_current_object()
    limit = concurrency if concurrency is not None else app.config.get('FANOUT_CONCURRENCY', 8)
    label = key or (lambda item: item)
    items = list(items)
    report = FanOutReport()

    def run(item: T) -> tuple[bool, Any]:
        try:
            return True, worker(item)
        except Exception as e:
            app.logger.error(f"Fan-out item {label(item)} failed: {e}")
            return False, str(e)

    def run_in_context(item: T) -> tuple[bool, Any]:
        with app.app_context():
            return run(item)

    if limit <= 1 or len(items) <= 1:
        outcomes = [run(item) for item in items]
    else:
        with ThreadPoolExecutor(max_workers=limit) as executor:
            outcomes = list(executor.map(run_in_context, items))

    for item, (ok, value) in zip(items, outcomes):
        if ok:
            report.results.append((label(item), value))
        else:
            report.failures.append((label(item), value))
    return report


__all__ = ['fan_out', 'FanOutReport']
