"""Unit tests for calendar month arithmetic"""

from datetime import date

from lease_engine.utils.date_utils import add_months, lease_end_date, month_key, parse_iso_date


def test_add_months_keeps_day_of_month():
    assert add_months(date(2026, 2, 1), 1) == date(2026, 3, 1)
    assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)


def test_add_months_clamps_to_month_end():
    """Jan 31 never rolls over into March"""
    start = date(2026, 1, 31)
    assert add_months(start, 1) == date(2026, 2, 28)
    assert add_months(start, 2) == date(2026, 3, 31)
    assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)


def test_lease_end_date():
    assert lease_end_date(date(2026, 2, 1), 12) == date(2027, 1, 31)
    assert lease_end_date(date(2026, 1, 31), 1) == date(2026, 2, 27)
    assert lease_end_date(date(2026, 2, 1), None) is None


def test_month_key():
    assert month_key(date(2026, 2, 1)) == "2026:02"
    assert month_key(date(2026, 2, 1), sep="-") == "2026-02"


def test_parse_iso_date():
    assert parse_iso_date("2026-02-01") == date(2026, 2, 1)
    assert parse_iso_date("2026-2-1") is None
    assert parse_iso_date("2026-02-29") is None
    assert parse_iso_date(20260201) is None
