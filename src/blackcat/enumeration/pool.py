"""Bounded fan-out over independent work units.

Every item is attempted exactly once by a
:class:`~concurrent.futures.ThreadPoolExecutor` whose ``max_workers`` is the
throttle limit, so no more than that many units are ever in flight. A unit
that raises is recorded as a failed :class:`~blackcat.models.UnitResult`; the
rest of the batch carries on.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Hashable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

from blackcat.exceptions import InvalidArgumentError
from blackcat.models import BatchSummary, UnitResult

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)


def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Any],
    throttle_limit: int,
    label: Callable[[T], str] = str,
    on_result: Optional[Callable[[UnitResult], None]] = None,
) -> BatchSummary:
    """Run *worker* over *items* with at most *throttle_limit* in flight.

    Duplicate items are collapsed so each distinct unit runs once.

    Args:
        items: Work units.
        worker: Called once per unit. Its return value becomes the
            unit's ``value``; raising marks the unit failed.
        throttle_limit: Maximum concurrent units; must be at least 1.
        label: Renders a unit as the result's ``target``.
        on_result: Called with each result as it lands (progress bars).

    Returns:
        A :class:`~blackcat.models.BatchSummary`; ``results`` are in
        completion order.

    Raises:
        InvalidArgumentError: If *throttle_limit* is below 1.
    """
    if isinstance(throttle_limit, bool) or not isinstance(throttle_limit, int) or throttle_limit < 1:
        raise InvalidArgumentError(f"throttle_limit must be a positive integer, got {throttle_limit!r}")

    units = list(dict.fromkeys(items))
    summary = BatchSummary(attempted=len(units))
    if not units:
        return summary

    lock = threading.Lock()

    def _run(unit: T) -> None:
        target = label(unit)
        try:
            result = UnitResult(target=target, ok=True, value=worker(unit))
        except Exception as exc:
            logger.debug("%s failed: %s", target, exc)
            result = UnitResult(target=target, ok=False, error=str(exc) or type(exc).__name__)
        with lock:
            summary.results.append(result)
            if result.ok:
                summary.succeeded += 1
            else:
                summary.failed += 1
            if on_result is not None:
                on_result(result)

    with ThreadPoolExecutor(max_workers=min(throttle_limit, len(units))) as executor:
        futures = [executor.submit(_run, unit) for unit in units]
        for future in futures:
            future.result()

    return summary
