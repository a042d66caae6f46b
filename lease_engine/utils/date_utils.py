"""Date manipulation utilities"""

import calendar
import re
from datetime import date, timedelta
from typing import Optional

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(raw: object) -> Optional[date]:
    """Parse a strict YYYY-MM-DD string, None if malformed or not a real date"""
    if not isinstance(raw, str) or not ISO_DATE_RE.match(raw):
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def add_months(start: date, months: int) -> date:
    """
    Same day-of-month, `months` calendar months later.

    When the day does not exist in the target month it is clamped to that
    month's last day: Jan 31 + 1 -> Feb 28 (Feb 29 in leap years), + 2 -> Mar 31.
    The result is strictly increasing in `months`.
    """
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def lease_end_date(start: date, term_months: Optional[int]) -> Optional[date]:
    """Inclusive end of a lease: start + term months - 1 day"""
    if not term_months:
        return None
    return add_months(start, term_months) - timedelta(days=1)


def month_key(day: date, sep: str = ":") -> str:
    """YYYY<sep>MM for keys like rent:2026:02 (obligations) or rent:2026-02 (charges)"""
    return f"{day.year:04d}{sep}{day.month:02d}"
