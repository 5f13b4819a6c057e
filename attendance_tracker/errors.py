"""Error taxonomy for an ingestion run.

Every failure a pull can end in is one of the classes below. Each carries a
short ``kind`` used in persisted records and a fixed ``user_message`` shown
to the operator; the exception's own text holds the technical detail.
"""

from __future__ import annotations

from typing import Dict, Type


class AttendanceError(Exception):
    kind = "unknown"
    user_message = "An unexpected error occurred during scraping."

    @property
    def retryable(self) -> bool:
        return False


class NetworkError(AttendanceError):
    """Portal unreachable, or a navigation/request timed out."""

    kind = "network"
    user_message = "Network timeout or connection issue. Check your internet connection."

    @property
    def retryable(self) -> bool:
        return True


class AuthError(AttendanceError):
    """The portal rejected the configured credentials."""

    kind = "auth"
    user_message = "Invalid credentials. Please check your username and password."


class StructureError(AttendanceError):
    """Expected fields were missing from the portal page."""

    kind = "structure"
    user_message = "Unable to extract attendance data. Website structure may have changed."


class ConfigError(AttendanceError):
    """Credentials missing or invalid; raised before any network I/O."""

    kind = "config"
    user_message = "Credentials not set. Please update them in Settings."


class UnknownError(AttendanceError):
    pass


class IngestionInProgressError(RuntimeError):
    """Another ingestion run holds the single-flight lock."""


ERROR_KINDS: Dict[str, Type[AttendanceError]] = {
    cls.kind: cls
    for cls in (NetworkError, AuthError, StructureError, ConfigError, UnknownError)
}


def from_kind(kind: str, message: str) -> AttendanceError:
    """Build the error class registered for ``kind`` (UnknownError if none)."""
    return ERROR_KINDS.get(kind, UnknownError)(message)


def classify_exception(exc: BaseException) -> AttendanceError:
    """Map an arbitrary exception onto the taxonomy."""
    if isinstance(exc, AttendanceError):
        return exc
    if isinstance(exc, TimeoutError):
        return NetworkError(str(exc) or "operation timed out")
    return UnknownError(f"{type(exc).__name__}: {exc}")
