"""Turn a counter snapshot into the status of its day."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .models import AttendanceEntry, Counters, DayStatus, ScrapeResult

LOGGER = logging.getLogger(__name__)


def previous_entry(
    result: ScrapeResult, history: Iterable[AttendanceEntry]
) -> Optional[AttendanceEntry]:
    """Latest entry dated strictly before the pull; same-day rows never count."""
    earlier = [e for e in sorted(history, key=lambda e: e.date) if e.date < result.date]
    return earlier[-1] if earlier else None


def _baseline_status(counters: Counters) -> DayStatus:
    if counters.present > 0:
        return DayStatus.PRESENT
    if counters.absent > 0:
        return DayStatus.ABSENT
    return DayStatus.INITIAL_DATA


def classify(result: ScrapeResult, history: Iterable[AttendanceEntry]) -> DayStatus:
    """Classify ``result`` against the time series it is about to join.

    Without a usable previous day (none at all, or an Error day) the
    snapshot is a baseline. Otherwise counter increases are checked in the
    order absent, leave, present and the first one wins.
    """
    previous = previous_entry(result, history)
    new = result.counters

    if previous is None or previous.counters is None:
        status = _baseline_status(new)
        LOGGER.debug("%s: baseline day -> %s", result.date, status)
        return status

    old = previous.counters
    if new.absent > old.absent:
        return DayStatus.ABSENT
    if new.leave > old.leave:
        return DayStatus.LEAVE
    if new.present > old.present:
        return DayStatus.PRESENT

    # decreases are not validated, they read as "No Change"
    if new.absent < old.absent or new.leave < old.leave or new.present < old.present:
        LOGGER.warning(
            "%s: counters went down since %s (%s -> %s)",
            result.date,
            previous.date,
            old.to_dict(),
            new.to_dict(),
        )
    return DayStatus.NO_CHANGE
