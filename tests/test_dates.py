from datetime import date, datetime

import pytest

from progman.utils.dates import (
    as_days, compute_elapsed_progress, compute_end_date, days_between,
    inclusive_duration, parse_iso, shift,
)
from progman.utils.formatting import clamp_progress, delay_label, md, normalize_section_name, round_to_step, ymd


def test_end_date_is_inclusive():
    assert compute_end_date("2024-01-01", 1) == date(2024, 1, 1)
    assert compute_end_date("2024-01-01", 5) == date(2024, 1, 5)
    assert compute_end_date(date(2024, 2, 28), 2) == date(2024, 2, 29)


@pytest.mark.parametrize("start,duration", [
    ("2024-01-01", 0),
    ("2024-01-01", -3),
    ("2024-01-01", None),
    ("2024-01-01", "abc"),
    (None, 5),
    ("not-a-date", 5),
    ("2024-13-40", 5),
])
def test_end_date_absent_for_bad_input(start, duration):
    assert compute_end_date(start, duration) is None


def test_end_date_accepts_numeric_strings():
    assert compute_end_date("2024-01-01", "3") == date(2024, 1, 3)
    assert compute_end_date("2024-01-01T09:30:00", 2) == date(2024, 1, 2)


def test_elapsed_progress_bounds():
    start = date(2024, 1, 1)
    assert compute_elapsed_progress(start, 10, today=date(2023, 12, 31)) == 0
    assert compute_elapsed_progress(start, 10, today=start) == 0
    assert compute_elapsed_progress(start, 10, today=date(2024, 1, 6)) == 50
    assert compute_elapsed_progress(start, 10, today=date(2024, 1, 11)) == 100
    assert compute_elapsed_progress(start, 10, today=date(2025, 1, 1)) == 100
    assert compute_elapsed_progress(None, 10) == 0
    assert compute_elapsed_progress(start, 0) == 0


def test_elapsed_progress_is_monotonic():
    start = date(2024, 3, 1)
    values = [compute_elapsed_progress(start, 7, today=shift(start, d)) for d in range(-2, 12)]
    assert values == sorted(values)
    assert all(0 <= v <= 100 for v in values)


def test_parse_iso():
    assert parse_iso("2024-05-01") == date(2024, 5, 1)
    assert parse_iso(" 2024-5-1 ") == date(2024, 5, 1)
    assert parse_iso(datetime(2024, 5, 1, 12, 0)) == date(2024, 5, 1)
    assert parse_iso("") is None
    assert parse_iso("05/01/2024") is None
    assert parse_iso("2024-02-30") is None


def test_day_helpers():
    assert as_days(True) is None
    assert as_days("4.0") == 4
    assert days_between("2024-01-10", "2024-01-15") == 5
    assert days_between("2024-01-10", "2024-01-06") == -4
    assert days_between(None, "2024-01-06") is None
    assert inclusive_duration("2024-01-01", "2024-01-05") == 5
    assert inclusive_duration("2024-01-05", "2024-01-01") == 1
    assert shift(None, 3) is None


def test_labels():
    assert md("2024-03-07") == "3/7"
    assert ymd(date(2024, 3, 7)) == "2024/3/7"
    assert md("bad") == ""
    assert delay_label(5) == "5 days late"
    assert delay_label(-1) == "1 day early"
    assert delay_label(0) is None
    assert delay_label(None) is None


def test_progress_helpers():
    assert clamp_progress(150) == 100
    assert clamp_progress(-5) == 0
    assert clamp_progress("42.6") == 43
    assert clamp_progress("abc") == 0
    assert clamp_progress(float("inf")) == 0
    assert round_to_step(62) == 60
    assert round_to_step(63) == 65
    assert round_to_step(97.5) == 100
    assert round_to_step(3) == 5


def test_normalize_section_name():
    assert normalize_section_name("  Ｄｅｓｉｇｎ ") == "Design"
    assert normalize_section_name(None) == ""


def test_end_date_outside_calendar_fails_soft():
    assert compute_end_date("9999-12-30", 5) is None
    assert compute_end_date("2024-01-01", 10**7) is None
    assert compute_end_date("2024-01-01", "1e400") is None
    assert as_days("1e400") is None
    assert as_days(float("inf")) is None
