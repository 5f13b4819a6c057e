# attendance_tracker/notifier.py

from __future__ import annotations

import logging
import time
from typing import Dict, Optional, Protocol, Tuple

import requests

from .models import DayStatus

LOGGER = logging.getLogger(__name__)

MESSAGES: Dict[DayStatus, Tuple[str, str]] = {
    DayStatus.PRESENT: ("✅ Attendance Status", "You are marked PRESENT today!"),
    DayStatus.ABSENT: ("❌ Attendance Alert", "You are marked ABSENT today!"),
    DayStatus.LEAVE: ("🏖️ Attendance Status", "You are on LEAVE today!"),
    DayStatus.NO_CHANGE: ("📊 Attendance Status", "No attendance change detected today."),
}
DEFAULT_MESSAGE = ("📝 Attendance Update", "Attendance data updated successfully.")

# colour bar on the embed
STATUS_COLOURS: Dict[DayStatus, int] = {
    DayStatus.PRESENT: 0x2ECC71,
    DayStatus.ABSENT: 0xE74C3C,
    DayStatus.LEAVE: 0xF1C40F,
}


class Notifier(Protocol):
    def send(self, status: DayStatus, student_name: str) -> bool: ...


def notification_message(status: DayStatus) -> Tuple[str, str]:
    """Title and body shown for ``status``."""
    return MESSAGES.get(status, DEFAULT_MESSAGE)


def _post_with_rate_limit(webhook_url: str, payload: dict) -> None:
    """Post to the Discord webhook, waiting and retrying on 429."""
    while True:
        resp = requests.post(webhook_url, json=payload, timeout=10)

        if resp.status_code == 429:
            try:
                retry_after = float(resp.json().get("retry_after", 1.0))
            except (ValueError, AttributeError):
                retry_after = 1.0
            LOGGER.warning("Discord rate limit, waiting %.1fs", retry_after)
            time.sleep(retry_after)
            continue

        resp.raise_for_status()
        return


def _build_embed(status: DayStatus, student_name: str) -> dict:
    title, message = notification_message(status)
    embed = {"title": title, "description": message}
    if student_name:
        embed["footer"] = {"text": student_name}
    if status in STATUS_COLOURS:
        embed["color"] = STATUS_COLOURS[status]
    return embed


class DiscordNotifier:
    """Deliver day-status notifications to a Discord webhook."""

    def __init__(self, webhook_url: str) -> None:
        self.webhook_url = webhook_url

    def send(self, status: DayStatus, student_name: str) -> bool:
        payload = {
            "allowed_mentions": {"parse": []},
            "embeds": [_build_embed(status, student_name)],
        }
        _post_with_rate_limit(self.webhook_url, payload)
        LOGGER.info("Notification sent: %s", notification_message(status)[0])
        return True


class LogNotifier:
    """Fallback when no webhook is configured: log, report nothing delivered."""

    def send(self, status: DayStatus, student_name: str) -> bool:
        title, message = notification_message(status)
        LOGGER.info("No webhook configured, not delivered: %s - %s", title, message)
        return False


def build_notifier(webhook_url: Optional[str]) -> Notifier:
    if webhook_url:
        return DiscordNotifier(webhook_url)
    return LogNotifier()
