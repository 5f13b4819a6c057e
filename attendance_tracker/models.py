"""Data models for the attendance tracker."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional


def parse_timestamp(text: str) -> datetime:
    """``datetime.fromisoformat`` that also takes a trailing ``Z`` for UTC."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class DayStatus(str, Enum):
    """Classified label attached to one calendar date."""

    PRESENT = "Present"
    ABSENT = "Absent"
    LEAVE = "Leave"
    NO_CHANGE = "No Change"
    INITIAL_DATA = "Initial Data"
    ERROR = "Error"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Counters:
    """Cumulative attendance totals reported by the portal."""

    working_days: int
    present: int
    absent: int
    leave: int

    def __post_init__(self) -> None:
        for name in ("working_days", "present", "absent", "leave"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    def to_dict(self) -> Dict[str, int]:
        return {
            "workingDays": self.working_days,
            "present": self.present,
            "absent": self.absent,
            "leave": self.leave,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Counters":
        return cls(
            working_days=int(data.get("workingDays", 0)),
            present=int(data.get("present", 0)),
            absent=int(data.get("absent", 0)),
            leave=int(data.get("leave", 0)),
        )


@dataclass(frozen=True)
class ScrapeResult:
    """A successful pull: one counter snapshot for one date."""

    date: date
    student_name: str
    counters: Counters


@dataclass(frozen=True)
class ScrapeFailure:
    """A pull the portal client could not complete.

    ``error_kind`` is one of the ``kind`` values in :mod:`errors`.
    """

    error_kind: str
    error_message: str


@dataclass(frozen=True)
class AttendanceEntry:
    """One row of the attendance time series, unique by ``date``."""

    date: date
    name: str
    counters: Optional[Counters]
    day_status: DayStatus
    fetched_at: datetime
    notification_sent: bool = False
    notification_sent_at: Optional[datetime] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        # counters is null iff the day is an Error day
        if (self.counters is None) != (self.day_status is DayStatus.ERROR):
            raise ValueError(
                f"entry for {self.date}: counters must be None exactly when status is Error"
            )

    def with_notification(
        self, sent: bool, sent_at: Optional[datetime]
    ) -> "AttendanceEntry":
        return replace(self, notification_sent=sent, notification_sent_at=sent_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "name": self.name,
            "counters": self.counters.to_dict() if self.counters else None,
            "dayStatus": self.day_status.value,
            "fetchedAt": self.fetched_at.isoformat(),
            "notificationSent": self.notification_sent,
            "notificationSentAt": (
                self.notification_sent_at.isoformat()
                if self.notification_sent_at
                else None
            ),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendanceEntry":
        # older files stored the counters under "data" and had no fetchedAt
        raw_counters = data.get("counters", data.get("data"))
        day = date.fromisoformat(data["date"])
        fetched_at = data.get("fetchedAt")
        sent_at = data.get("notificationSentAt")
        return cls(
            date=day,
            name=data.get("name") or "",
            counters=Counters.from_dict(raw_counters) if raw_counters else None,
            day_status=DayStatus(data["dayStatus"]),
            fetched_at=(
                parse_timestamp(fetched_at)
                if fetched_at
                else datetime(day.year, day.month, day.day)
            ),
            notification_sent=bool(data.get("notificationSent", False)),
            notification_sent_at=parse_timestamp(sent_at) if sent_at else None,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ProgressState:
    """The single current progress record of an ingestion run."""

    message: str
    progress: int
    timestamp: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.progress in (100, -1)

    @property
    def failed(self) -> bool:
        return self.progress == -1

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message, "progress": self.progress}
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressState":
        stamp = data.get("timestamp")
        return cls(
            message=str(data.get("message", "")),
            progress=int(data.get("progress", 0)),
            timestamp=parse_timestamp(stamp) if stamp else None,
        )


@dataclass(frozen=True)
class NotificationDecision:
    should: bool
    reason: str


@dataclass(frozen=True)
class Holiday:
    """A named non-working day, optionally part of a multi-day range."""

    date: date
    name: str
    is_range: bool = False
    range_id: Optional[str] = None
    total_days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"date": self.date.isoformat(), "name": self.name}
        if self.is_range and self.range_id:
            data["isRange"] = True
            data["rangeId"] = self.range_id
            data["totalDays"] = self.total_days
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Holiday":
        return cls(
            date=date.fromisoformat(data["date"]),
            name=data["name"],
            is_range=bool(data.get("isRange", False)),
            range_id=data.get("rangeId"),
            total_days=data.get("totalDays"),
        )


@dataclass
class IngestionOutcome:
    """What one orchestrator pass produced."""

    entry: Optional[AttendanceEntry] = None
    error: Optional[Exception] = None
    decision: Optional[NotificationDecision] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def needs_configuration(self) -> bool:
        return getattr(self.error, "kind", None) == "config"
