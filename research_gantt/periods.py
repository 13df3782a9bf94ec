"""Time-bucket labels: granularity detection, date-to-bucket mapping, period parsing."""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Literal, Optional

Granularity = Literal["year", "quarter", "month", "week"]

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

_YEAR_RE = re.compile(r"^(\d{4})$")
_QUARTER_RE = re.compile(r"^Q([1-4])\s(\d{4})$")
_MONTH_RE = re.compile(r"^([A-Za-z]{3})\s(\d{4})$")
_WEEK_RE = re.compile(r"^W(\d{1,2})\s(\d{4})$")


def detect_granularity(label: str) -> Optional[Granularity]:
    label = (label or "").strip()
    if _YEAR_RE.match(label):
        return "year"
    if _QUARTER_RE.match(label):
        return "quarter"
    if _MONTH_RE.match(label):
        return "month"
    if _WEEK_RE.match(label):
        return "week"
    return None


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def bucket_label(day: date, granularity: Granularity) -> str:
    if granularity == "year":
        return str(day.year)
    if granularity == "quarter":
        return f"Q{quarter_of(day)} {day.year}"
    if granularity == "month":
        return f"{MONTH_ABBR[day.month - 1]} {day.year}"
    iso_year, iso_week, _ = day.isocalendar()
    return f"W{iso_week} {iso_year}"


def interval_for_span(start: date, end: date) -> Granularity:
    """Pick the bucket size for a horizon: weeks up to 3 months, months up to a year,
    quarters up to 3 years, years beyond."""
    months = (end.year - start.year) * 12 + (end.month - start.month) + 1
    if months <= 3:
        return "week"
    if months <= 12:
        return "month"
    if months <= 36:
        return "quarter"
    return "year"


def _month_index(token: str) -> Optional[int]:
    token = token[:3].title()
    if token in MONTH_ABBR:
        return MONTH_ABBR.index(token) + 1
    return None


def period_bounds(text: str) -> Optional[tuple[date, date]]:
    """Parse a date or bucket label into an inclusive ``(first_day, last_day)`` span.

    Accepts ISO dates (``2025-11-14``), ``2025-11``, ``Nov 2025``/``November 2025``,
    ``Q4 2025``, ``W46 2025`` and ``2025``. Returns None for anything else.
    """
    raw = (text or "").strip()
    if not raw:
        return None
    try:
        day = datetime.fromisoformat(raw).date()
        return day, day
    except ValueError:
        pass
    m = re.match(r"^(\d{4})-(\d{1,2})$", raw)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        if 1 <= month <= 12:
            return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
        return None
    m = _YEAR_RE.match(raw)
    if m:
        year = int(m.group(1))
        return date(year, 1, 1), date(year, 12, 31)
    m = _QUARTER_RE.match(raw)
    if m:
        quarter, year = int(m.group(1)), int(m.group(2))
        first_month = (quarter - 1) * 3 + 1
        last_month = first_month + 2
        return date(year, first_month, 1), date(year, last_month, calendar.monthrange(year, last_month)[1])
    m = _WEEK_RE.match(raw)
    if m:
        week, year = int(m.group(1)), int(m.group(2))
        try:
            monday = date.fromisocalendar(year, week, 1)
        except ValueError:
            return None
        return monday, monday + timedelta(days=6)
    m = re.match(r"^([A-Za-z]+)\.?\s+(\d{4})$", raw)
    if m:
        month = _month_index(m.group(1))
        if month is None:
            return None
        year = int(m.group(2))
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    return None
