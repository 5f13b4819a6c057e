"""When should a pull happen without anyone asking for it."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from .models import AttendanceEntry, Holiday

AUTO_FETCH_HOUR = 10
# Friday and Saturday (date.weekday() numbering)
WEEKLY_HOLIDAYS = frozenset({4, 5})


def should_auto_fetch(last_fetched: Optional[datetime], now: datetime) -> bool:
    """Once a day, the first check-in at or after 10:00 triggers a pull."""
    if last_fetched is None:
        return True

    if last_fetched.tzinfo is not None and now.tzinfo is not None:
        last_fetched = last_fetched.astimezone(now.tzinfo)

    if last_fetched.date() == now.date():
        return now.hour >= AUTO_FETCH_HOUR and last_fetched.hour < AUTO_FETCH_HOUR
    return now.hour >= AUTO_FETCH_HOUR


def last_fetched(history: Iterable[AttendanceEntry]) -> Optional[datetime]:
    # entries are unique by date, and legacy rows carry naive stamps
    entries = list(history)
    if not entries:
        return None
    return max(entries, key=lambda entry: entry.date).fetched_at


def was_scraped_today(history: Iterable[AttendanceEntry], today: date) -> bool:
    return any(entry.date == today for entry in history)


def is_day_off(day: date, holidays: Iterable[Holiday]) -> bool:
    if day.weekday() in WEEKLY_HOLIDAYS:
        return True
    return any(holiday.date == day for holiday in holidays)


def should_auto_scrape_today(
    history: Iterable[AttendanceEntry], holidays: Iterable[Holiday], today: date
) -> bool:
    """Pull on working days that have no entry yet."""
    if is_day_off(today, holidays):
        return False
    return not was_scraped_today(history, today)
