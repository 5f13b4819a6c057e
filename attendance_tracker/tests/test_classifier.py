from datetime import date, datetime

from attendance_tracker.classifier import classify, previous_entry
from attendance_tracker.models import AttendanceEntry, Counters, DayStatus, ScrapeResult

FETCHED = datetime(2025, 3, 1, 10, 30)


def _result(day, present=0, absent=0, leave=0):
    return ScrapeResult(
        date=day,
        student_name="Student",
        counters=Counters(working_days=present + absent + leave, present=present, absent=absent, leave=leave),
    )


def _entry(day, present, absent, leave, status=DayStatus.NO_CHANGE):
    return AttendanceEntry(
        date=day,
        name="Student",
        counters=Counters(working_days=present + absent + leave, present=present, absent=absent, leave=leave),
        day_status=status,
        fetched_at=FETCHED,
    )


def _error_entry(day):
    return AttendanceEntry(
        date=day,
        name="Student",
        counters=None,
        day_status=DayStatus.ERROR,
        fetched_at=FETCHED,
        error="Network timeout or connection issue.",
    )


def test_baseline_without_history():
    today = date(2025, 3, 4)

    assert classify(_result(today, present=1), []) == DayStatus.PRESENT
    assert classify(_result(today, absent=1), []) == DayStatus.ABSENT
    assert classify(_result(today), []) == DayStatus.INITIAL_DATA


def test_baseline_prefers_present_over_absent():
    assert classify(_result(date(2025, 3, 4), present=3, absent=2), []) == DayStatus.PRESENT


def test_absent_beats_leave_beats_present():
    history = [_entry(date(2025, 3, 3), present=5, absent=1, leave=0)]

    result = _result(date(2025, 3, 4), present=5, absent=2, leave=1)

    assert classify(result, history) == DayStatus.ABSENT


def test_leave_beats_present():
    history = [_entry(date(2025, 3, 3), present=5, absent=1, leave=0)]

    result = _result(date(2025, 3, 4), present=6, absent=1, leave=1)

    assert classify(result, history) == DayStatus.LEAVE


def test_present_increase():
    history = [_entry(date(2025, 3, 3), present=5, absent=1, leave=0)]

    assert classify(_result(date(2025, 3, 4), present=6, absent=1), history) == DayStatus.PRESENT


def test_equal_counters_are_no_change():
    history = [_entry(date(2025, 3, 3), present=5, absent=1, leave=2)]

    result = _result(date(2025, 3, 4), present=5, absent=1, leave=2)

    assert classify(result, history) == DayStatus.NO_CHANGE


def test_decrease_falls_through_to_no_change():
    history = [_entry(date(2025, 3, 3), present=5, absent=2, leave=0)]

    result = _result(date(2025, 3, 4), present=5, absent=1, leave=0)

    assert classify(result, history) == DayStatus.NO_CHANGE


def test_error_day_is_not_a_baseline():
    history = [_error_entry(date(2025, 3, 3))]

    assert classify(_result(date(2025, 3, 4), present=1), history) == DayStatus.PRESENT


def test_same_day_entry_is_ignored():
    """A second pull on the same day compares with the previous day, not itself."""
    today = date(2025, 3, 4)
    history = [
        _entry(date(2025, 3, 3), present=5, absent=1, leave=0),
        _entry(today, present=6, absent=1, leave=0, status=DayStatus.PRESENT),
    ]

    assert classify(_result(today, present=6, absent=1), history) == DayStatus.PRESENT


def test_unsorted_history_uses_latest_earlier_day():
    history = [
        _entry(date(2025, 3, 3), present=6, absent=1, leave=0),
        _entry(date(2025, 2, 27), present=2, absent=0, leave=0),
        _entry(date(2025, 3, 10), present=9, absent=1, leave=0),
    ]
    result = _result(date(2025, 3, 4), present=6, absent=1)

    assert previous_entry(result, history).date == date(2025, 3, 3)
    assert classify(result, history) == DayStatus.NO_CHANGE
