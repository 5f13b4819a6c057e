"""One ingestion pass: pull, classify, decide, persist, report.

Progress checkpoints written on entry to each stage::

    Init 0 -> Authenticating 10 -> Fetching 25 -> Classifying 40
    -> Deciding 60 -> Persisting 75 -> Done 100      (any -> Failed -1)

Runs are single-flight: a second :meth:`Ingestion.run` while one is in
progress raises :class:`IngestionInProgressError` instead of racing it.
Instances built by :meth:`Ingestion.from_settings` also hold a
:class:`RunLock` in the data directory, which covers separate processes.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import date, datetime
from functools import partial
from typing import Callable, List, Optional, Protocol, Union

import requests

from .classifier import classify
from .config import Settings, UserConfig, load_config
from .crawler import PortalClient
from .errors import (
    AttendanceError,
    ConfigError,
    IngestionInProgressError,
    NetworkError,
    classify_exception,
    from_kind,
)
from .gate import decide, entry_for
from .models import (
    AttendanceEntry,
    DayStatus,
    IngestionOutcome,
    ProgressState,
    ScrapeFailure,
    ScrapeResult,
)
from .notifier import Notifier, build_notifier
from .state import (
    AttendanceStore,
    JsonAttendanceStore,
    JsonProgressStore,
    ProgressReporter,
    RunLock,
)

LOGGER = logging.getLogger(__name__)


class PortalSession(Protocol):
    def login(self, username: str, password: str) -> None: ...

    def fetch(self, day: date) -> Union[ScrapeResult, ScrapeFailure]: ...

    def close(self) -> None: ...


class Ingestion:
    def __init__(
        self,
        store: AttendanceStore,
        reporter: ProgressReporter,
        *,
        config_loader: Callable[[], UserConfig],
        portal_factory: Callable[[], PortalSession],
        notifier: Notifier,
        clock: Callable[[], datetime] = datetime.now,
        timeout: float = 30,
        run_lock: Optional[RunLock] = None,
    ) -> None:
        self.store = store
        self.reporter = reporter
        self._config_loader = config_loader
        self._portal_factory = portal_factory
        self._notifier = notifier
        self._clock = clock
        self.timeout = timeout
        self._lock = threading.Lock()
        self._run_lock = run_lock

    @classmethod
    def from_settings(cls, settings: Settings) -> "Ingestion":
        """Wire the JSON stores, portal client and notifier from settings."""

        def clock() -> datetime:
            return datetime.now(settings.tz)

        return cls(
            JsonAttendanceStore(settings.attendance_path),
            ProgressReporter(JsonProgressStore(settings.status_path), clock=clock),
            config_loader=partial(load_config, settings.config_path),
            portal_factory=partial(
                PortalClient, settings.portal_base_url, timeout=settings.scrape_timeout
            ),
            notifier=build_notifier(settings.discord_webhook_url),
            clock=clock,
            # login is two requests, each bounded by scrape_timeout
            timeout=settings.scrape_timeout * 2,
            run_lock=RunLock(settings.lock_path),
        )

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def get_progress(self) -> ProgressState:
        return self.reporter.snapshot()

    def get_time_series(self) -> List[AttendanceEntry]:
        return sorted(self.store.read_all(), key=lambda e: e.date)

    def run(self) -> IngestionOutcome:
        if not self._lock.acquire(blocking=False):
            raise IngestionInProgressError("an ingestion run is already in progress")
        try:
            if self._run_lock is None:
                return self._run()
            if not self._run_lock.acquire():
                raise IngestionInProgressError(
                    f"another process holds {self._run_lock.path}"
                )
            try:
                return self._run()
            finally:
                self._run_lock.release()
        finally:
            self._lock.release()

    def _run(self) -> IngestionOutcome:
        today = self._clock().date()
        self.reporter.update("Initializing scraper...", 0)

        try:
            config = self._config_loader()
            config.require_credentials()

            result = self._pull(config, today)
            return self._reconcile(result, config)
        except ConfigError as exc:
            LOGGER.error("Configuration error: %s", exc)
            self.reporter.update(f"Error: {exc.user_message}", -1)
            return IngestionOutcome(error=exc)
        except Exception as exc:  # noqa: BLE001
            return self._fail(classify_exception(exc), today)

    def _call(self, func: Callable, *args):
        """Run a portal call, giving up after ``timeout`` seconds."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="portal")
        future = executor.submit(func, *args)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout as exc:
            name = getattr(func, "__name__", "portal call")
            raise NetworkError(f"{name} did not finish within {self.timeout}s") from exc
        finally:
            executor.shutdown(wait=False)

    def _pull(self, config: UserConfig, today: date) -> ScrapeResult:
        portal = self._portal_factory()
        try:
            self.reporter.update("Logging in...", 10)
            self._call(portal.login, config.username, config.password)

            self.reporter.update("Fetching attendance data...", 25)
            result = self._call(portal.fetch, today)
        finally:
            portal.close()

        if isinstance(result, ScrapeFailure):
            raise from_kind(result.error_kind, result.error_message)
        return result

    def _deliver(self, status: DayStatus, student_name: str) -> bool:
        try:
            return self._notifier.send(status, student_name)
        except requests.RequestException as exc:
            # delivery problems never fail the pull; next run retries
            LOGGER.warning("Failed to send notification: %s", exc)
            return False

    def _reconcile(self, result: ScrapeResult, config: UserConfig) -> IngestionOutcome:
        self.reporter.update("Classifying attendance...", 40)
        history = self.store.read_all()
        status = classify(result, history)
        LOGGER.info("Day status for %s: %s", result.date, status)

        self.reporter.update("Checking notifications...", 60)
        existing = entry_for(result.date, history)
        sent = existing.notification_sent if existing else False
        sent_at = existing.notification_sent_at if existing else None
        decision = None
        if config.notifications:
            decision = decide(status, result.date, history)
            if decision.should:
                delivered = self._deliver(status, result.student_name)
                sent, sent_at = delivered, self._clock() if delivered else None
                LOGGER.info("Notification %s: %s", "sent" if delivered else "failed", decision.reason)
            else:
                LOGGER.info("Notification not sent: %s", decision.reason)

        self.reporter.update("Saving attendance...", 75)
        entry = AttendanceEntry(
            date=result.date,
            name=result.student_name,
            counters=result.counters,
            day_status=status,
            fetched_at=self._clock(),
            notification_sent=sent,
            notification_sent_at=sent_at,
        )
        self.store.upsert(entry)

        self.reporter.update("Scraping complete!", 100)
        return IngestionOutcome(entry=entry, decision=decision)

    def _fail(self, error: AttendanceError, today: date) -> IngestionOutcome:
        LOGGER.error(
            "Ingestion failed (%s, retryable=%s): %s", error.kind, error.retryable, error
        )
        entry: Optional[AttendanceEntry] = None
        try:
            history = self.get_time_series()
            existing = entry_for(today, history)
            named = [e.name for e in history if e.name]
            entry = AttendanceEntry(
                date=today,
                name=named[-1] if named else "",
                counters=None,
                day_status=DayStatus.ERROR,
                fetched_at=self._clock(),
                notification_sent=existing.notification_sent if existing else False,
                notification_sent_at=existing.notification_sent_at if existing else None,
                error=error.user_message,
            )
            self.store.upsert(entry)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Could not record the error entry for %s", today)
            entry = None

        self.reporter.update(f"Error: {error.user_message}", -1)
        return IngestionOutcome(entry=entry, error=error)
