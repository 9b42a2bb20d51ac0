# familybrief/week_range.py
import os
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

import pytz
from dateutil import parser as dateparser

from .errors import BriefInputError

WEEK_TZ = os.getenv("WEEKLY_BRIEF_TIMEZONE", "UTC")


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO date/datetime into an aware UTC datetime.

    Date-only values land on midnight UTC; naive datetimes are taken as UTC.
    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        try:
            dt = dateparser.isoparse(str(value).strip())
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_date_only(value: Any) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    s = str(value or "").strip()
    return len(s) == 10 and s[4] == "-" and s[7] == "-"


def parse_date(value: Any) -> Optional[date]:
    dt = parse_datetime(value)
    return dt.date() if dt else None


def to_iso_date(d: date) -> str:
    return d.isoformat()


def today_local() -> date:
    return datetime.now(pytz.timezone(WEEK_TZ)).date()


def resolve_week_range(week_start_input: Any = None) -> Dict[str, Any]:
    """Monday-aligned week containing the given date (today when omitted)."""
    base = parse_date(week_start_input) if week_start_input else today_local()
    if base is None:
        raise BriefInputError("Invalid weekStart date")

    week_start = base - timedelta(days=base.weekday())
    week_end = week_start + timedelta(days=6)
    return {
        "week_start_date": to_iso_date(week_start),
        "week_end_date": to_iso_date(week_end),
        "week_start": week_start,
        "week_end": week_end,
    }


def previous_week_start(week_start: date) -> date:
    return week_start - timedelta(days=7)


def format_week_range(week_start: date, week_end: date) -> str:
    start = f"{week_start:%B} {week_start.day}, {week_start.year}"
    if week_start.year == week_end.year:
        end = f"{week_end:%B} {week_end.day}"
    else:
        end = f"{week_end:%B} {week_end.day}, {week_end.year}"
    return f"{start}–{end}"
