"""
Natural-language date phrases → calendar days.

    resolve_date("tomorrow")         → today + 1
    resolve_date("in 3 weeks")       → today + 21
    resolve_date("next friday")      → next Friday strictly after today
    resolve_date("2025-01-15")       → date(2025, 1, 15)
    resolve_date("garbage text")     → None

Every function takes an explicit reference day so callers (and tests)
control what "today" means.
"""
import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


DayRef = Union[date, datetime, None]

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_IN_DAYS = re.compile(r"in\s+(\d+)\s+day")
_IN_WEEKS = re.compile(r"in\s+(\d+)\s+week")
_WEEKDAY = re.compile(r"(next\s+)?(monday|tuesday|wednesday|thursday|friday|saturday|sunday)")

# Parsed years at or below this are treated as nonsense
MIN_PARSED_YEAR = 2000


def as_day(today: DayRef = None) -> date:
    """Normalize a reference (date, datetime or None for now) to a calendar day."""
    if today is None:
        return date.today()
    if isinstance(today, datetime):
        return today.date()
    return today


def resolve_date(phrase: str, today: DayRef = None) -> Optional[date]:
    """Resolve a date phrase relative to `today`. Returns None if nothing matches."""
    if not phrase:
        return None
    day = as_day(today)
    lower = phrase.strip().lower()

    if lower in ("today", "end of day", "eod"):
        return day
    if lower in ("tomorrow", "tmr", "tmrw"):
        return day + timedelta(days=1)
    if lower == "next week":
        return day + timedelta(days=7)
    if lower == "next month":
        return day + relativedelta(months=1)

    m = _IN_DAYS.search(lower)
    if m:
        return _shift(day, days=int(m.group(1)))
    m = _IN_WEEKS.search(lower)
    if m:
        return _shift(day, weeks=int(m.group(1)))

    m = _WEEKDAY.search(lower)
    if m:
        offset = (WEEKDAYS.index(m.group(2)) - day.weekday()) % 7
        return day + timedelta(days=offset or 7)

    return _parse_direct(lower, day)


def _shift(day: date, **delta) -> Optional[date]:
    # Offsets past date.max resolve to nothing
    try:
        return day + timedelta(**delta)
    except OverflowError:
        return None


def _parse_direct(text: str, day: date) -> Optional[date]:
    default = datetime(day.year, day.month, day.day)
    try:
        parsed = date_parser.parse(text, default=default)
    except (ValueError, OverflowError):
        return None
    if parsed.year <= MIN_PARSED_YEAR:
        return None
    return parsed.date()


# -------------------- due-date predicates --------------------

def is_overdue(due_date: Optional[date], today: DayRef = None) -> bool:
    """True once the whole due day has passed."""
    if due_date is None:
        return False
    return due_date < as_day(today)


def is_due_today(due_date: Optional[date], today: DayRef = None) -> bool:
    return due_date is not None and due_date == as_day(today)


def is_due_this_week(due_date: Optional[date], today: DayRef = None) -> bool:
    """Due between today and the coming Sunday, inclusive."""
    if due_date is None:
        return False
    day = as_day(today)
    end_of_week = day + timedelta(days=6 - day.weekday())
    return day <= due_date <= end_of_week
