# attendance_tracker/gate.py
"""Decide whether a day's status is worth a notification."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from .models import AttendanceEntry, DayStatus, NotificationDecision

LOGGER = logging.getLogger(__name__)


def entry_for(day: date, history: Iterable[AttendanceEntry]) -> Optional[AttendanceEntry]:
    for entry in history:
        if entry.date == day:
            return entry
    return None


def decide(
    new_status: DayStatus, today: date, history: Iterable[AttendanceEntry]
) -> NotificationDecision:
    """At most one notification per (date, status).

    Rules, first match wins:
    1. nothing stored for today yet
    2. stored status differs from the new one
    3. stored status matches but the notification never went out
    otherwise suppress.
    """
    existing = entry_for(today, history)

    if existing is None:
        decision = NotificationDecision(True, "first fetch for today")
    elif existing.day_status != new_status:
        decision = NotificationDecision(
            True, f"status changed from {existing.day_status} to {new_status}"
        )
    elif not existing.notification_sent:
        decision = NotificationDecision(True, "not sent previously")
    else:
        decision = NotificationDecision(False, "already sent and unchanged")

    LOGGER.debug("%s (%s): should=%s, %s", today, new_status, decision.should, decision.reason)
    return decision
