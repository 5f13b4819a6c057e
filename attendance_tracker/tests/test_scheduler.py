from datetime import date, datetime, timedelta, timezone

from attendance_tracker.models import AttendanceEntry, Counters, DayStatus, Holiday
from attendance_tracker.scheduler import (
    last_fetched,
    should_auto_fetch,
    should_auto_scrape_today,
    was_scraped_today,
)

# 2025-03-04 is a Tuesday
TUESDAY = date(2025, 3, 4)


def _entry(day, fetched_at):
    return AttendanceEntry(
        date=day,
        name="Student",
        counters=Counters(1, 1, 0, 0),
        day_status=DayStatus.PRESENT,
        fetched_at=fetched_at,
    )


def test_never_fetched_triggers():
    assert should_auto_fetch(None, datetime(2025, 3, 4, 8, 0)) is True


def test_crossing_ten_on_the_same_day_triggers_once():
    assert should_auto_fetch(datetime(2025, 3, 4, 9, 59), datetime(2025, 3, 4, 10, 1)) is True
    assert should_auto_fetch(datetime(2025, 3, 4, 10, 1), datetime(2025, 3, 4, 14, 0)) is False
    assert should_auto_fetch(datetime(2025, 3, 4, 8, 0), datetime(2025, 3, 4, 9, 30)) is False


def test_next_day_after_ten_triggers():
    assert should_auto_fetch(datetime(2025, 3, 3, 14, 0), datetime(2025, 3, 4, 10, 1)) is True


def test_next_day_before_ten_waits():
    assert should_auto_fetch(datetime(2025, 3, 3, 14, 0), datetime(2025, 3, 4, 9, 0)) is False


def test_aware_timestamps_compare_in_the_same_zone():
    dhaka = timezone(timedelta(hours=6))
    # 03:59 UTC is 09:59 in Dhaka, same local day as 10:01
    last = datetime(2025, 3, 4, 3, 59, tzinfo=timezone.utc)
    now = datetime(2025, 3, 4, 10, 1, tzinfo=dhaka)

    assert should_auto_fetch(last, now) is True


def test_last_fetched_and_scraped_today():
    history = [
        _entry(date(2025, 3, 3), datetime(2025, 3, 3, 10, 0)),
        _entry(TUESDAY, datetime(2025, 3, 4, 11, 0)),
    ]

    assert last_fetched(history) == datetime(2025, 3, 4, 11, 0)
    assert last_fetched([]) is None
    assert was_scraped_today(history, TUESDAY) is True
    assert was_scraped_today(history, date(2025, 3, 5)) is False


def test_last_fetched_with_legacy_naive_rows():
    dhaka = timezone(timedelta(hours=6))
    history = [
        _entry(date(2025, 3, 3), datetime(2025, 3, 3)),
        _entry(TUESDAY, datetime(2025, 3, 4, 10, 5, tzinfo=dhaka)),
    ]

    assert last_fetched(history) == datetime(2025, 3, 4, 10, 5, tzinfo=dhaka)
    assert should_auto_fetch(last_fetched(history[:1]), datetime(2025, 3, 4, 10, 0, tzinfo=dhaka))


def test_auto_scrape_today_on_a_working_day_without_data():
    assert should_auto_scrape_today([], [], TUESDAY) is True


def test_auto_scrape_today_skips_days_with_data():
    history = [_entry(TUESDAY, datetime(2025, 3, 4, 10, 0))]

    assert should_auto_scrape_today(history, [], TUESDAY) is False


def test_auto_scrape_today_skips_weekly_holidays():
    assert should_auto_scrape_today([], [], date(2025, 3, 7)) is False  # Friday
    assert should_auto_scrape_today([], [], date(2025, 3, 8)) is False  # Saturday


def test_auto_scrape_today_skips_listed_holidays():
    holidays = [Holiday(date=TUESDAY, name="Independence Day")]

    assert should_auto_scrape_today([], holidays, TUESDAY) is False
