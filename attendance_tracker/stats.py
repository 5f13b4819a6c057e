"""Monthly counts of classified days."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .models import AttendanceEntry, DayStatus, Holiday
from .scheduler import is_day_off


@dataclass(frozen=True)
class MonthlySummary:
    year: int
    month: int
    present: int = 0
    absent: int = 0
    leave: int = 0

    @property
    def working_days(self) -> int:
        return self.present + self.absent + self.leave


def summarize_month(
    history: Iterable[AttendanceEntry], year: int, month: int, holidays: Iterable[Holiday] = ()
) -> MonthlySummary:
    """Count Present/Absent/Leave days, skipping Error rows and days off."""
    holiday_list: List[Holiday] = list(holidays)
    counts = {DayStatus.PRESENT: 0, DayStatus.ABSENT: 0, DayStatus.LEAVE: 0}

    for entry in history:
        if (entry.date.year, entry.date.month) != (year, month):
            continue
        if entry.day_status is DayStatus.ERROR or is_day_off(entry.date, holiday_list):
            continue
        if entry.day_status in counts:
            counts[entry.day_status] += 1

    return MonthlySummary(
        year=year,
        month=month,
        present=counts[DayStatus.PRESENT],
        absent=counts[DayStatus.ABSENT],
        leave=counts[DayStatus.LEAVE],
    )
