"""Holiday list kept in ``holidays.json``."""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from pathlib import Path
from typing import List

from .models import Holiday
from .state import write_json_atomic

LOGGER = logging.getLogger(__name__)


class HolidayStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read_all(self) -> List[Holiday]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []

        try:
            return [Holiday.from_dict(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            LOGGER.warning("%s unreadable -> no holidays", self.path)
            return []

    def _write(self, holidays: List[Holiday]) -> None:
        ordered = sorted(holidays, key=lambda h: h.date)
        write_json_atomic(self.path, [h.to_dict() for h in ordered])

    def add(self, holiday: Holiday) -> List[Holiday]:
        if not holiday.name:
            raise ValueError("Holiday name is required.")

        holidays = self.read_all()
        if any(h.date == holiday.date for h in holidays):
            raise ValueError(f"A holiday for {holiday.date} already exists.")

        holidays.append(holiday)
        self._write(holidays)
        LOGGER.info("Added holiday %s (%s)", holiday.date, holiday.name)
        return sorted(holidays, key=lambda h: h.date)

    def add_range(self, start: date, end: date, name: str) -> List[Holiday]:
        """Add one holiday per day from ``start`` to ``end`` inclusive.

        Every day carries the same ``range_id`` and ``total_days``. Days that
        already have a holiday are left as they are.
        """
        name = name.strip()
        if not name:
            raise ValueError("Holiday name is required.")
        if end < start:
            raise ValueError(f"Range end {end} is before its start {start}.")

        days = [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
        range_id = f"{days[0].isoformat()}_{days[-1].isoformat()}_{name}"

        holidays = self.read_all()
        taken = {h.date for h in holidays}
        new = [
            Holiday(date=day, name=name, is_range=True, range_id=range_id, total_days=len(days))
            for day in days
            if day not in taken
        ]
        if not new:
            raise ValueError(f"Every day from {start} to {end} already has a holiday.")
        skipped = len(days) - len(new)
        if skipped:
            LOGGER.warning("Skipped %d day(s) in %s that already have a holiday", skipped, range_id)

        holidays.extend(new)
        self._write(holidays)
        LOGGER.info("Added %d holiday(s) for %s", len(new), range_id)
        return sorted(holidays, key=lambda h: h.date)

    def remove(self, day: date) -> List[Holiday]:
        holidays = self.read_all()
        remaining = [h for h in holidays if h.date != day]
        if len(remaining) == len(holidays):
            raise KeyError(f"no holiday on {day}")

        self._write(remaining)
        LOGGER.info("Removed holiday %s", day)
        return remaining


def parse_day(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` string, rejecting any other shape."""
    try:
        if len(text) != 10:
            raise ValueError(text)
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Invalid date {text!r}, expected YYYY-MM-DD") from exc
