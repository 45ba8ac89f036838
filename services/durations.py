"""
Calendar-day arithmetic shared by duration labels, due dates and fines.
All instants are reduced to local calendar dates in a fixed UTC offset before counting.
Nothing here raises on bad input: unparseable values become None.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

from config import settings
from schemas.derivation import DurationInfoSchema

log = logging.getLogger(__name__)

LOCAL_TZ = settings.local_tz

MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)

RANGE_SEPARATOR = " — "

_DMY_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})")
_LABEL_DATE_RE = re.compile(r"^\s*(\d{1,2})\s+([A-Za-z]+)\s+(\d{4})\s*$")


def parse_local_date(value: Any, tz: timezone = LOCAL_TZ) -> Optional[date]:
    """
    Reduce a date-like value to a local calendar date.
    Accepts date, datetime (naive is taken as already local), ISO strings (with or without Z)
    and day-first strings like 31/01/2025 or 31-01-25.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        try:
            return value.astimezone(tz).date()
        except (OverflowError, ValueError):
            log.warning("Instant %r cannot be shifted into the local zone", value)
            return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    iso = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return parse_local_date(datetime.fromisoformat(iso), tz)
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    match = _DMY_RE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def format_date_id(value: date) -> str:
    """Format a date as '10 Januari 2025'."""
    return f"{value.day} {MONTHS_ID[value.month - 1]} {value.year}"


def parse_date_id(text: str) -> Optional[date]:
    match = _LABEL_DATE_RE.match(text or "")
    if not match:
        return None
    day, month_name, year = match.groups()
    lowered = [m.lower() for m in MONTHS_ID]
    if month_name.lower() not in lowered:
        return None
    try:
        return date(int(year), lowered.index(month_name.lower()) + 1, int(day))
    except ValueError:
        return None


def inclusive_days(start: date, end: date) -> int:
    """Calendar days covered by [start, end], order-insensitive; the same day counts as 1."""
    return abs((end - start).days) + 1


def duration_info(start: Any, end: Any, tz: timezone = LOCAL_TZ) -> Optional[DurationInfoSchema]:
    """Inclusive day count plus '<n> hari' and a '<start> — <end>' range label, or None."""
    start_day = parse_local_date(start, tz)
    end_day = parse_local_date(end, tz)
    if start_day is None or end_day is None:
        if start is not None and end is not None:
            log.warning("Cannot compute duration between %r and %r", start, end)
        return None
    days = inclusive_days(start_day, end_day)
    return DurationInfoSchema(
        days=days,
        label=f"{days} hari",
        range_label=f"{format_date_id(start_day)}{RANGE_SEPARATOR}{format_date_id(end_day)}",
        start=start_day,
        end=end_day,
    )


def days_from_range_label(range_label: str) -> Optional[int]:
    """Re-derive the inclusive day count from a range label produced by duration_info."""
    if not range_label or RANGE_SEPARATOR not in range_label:
        return None
    left, right = range_label.split(RANGE_SEPARATOR, 1)
    start_day = parse_date_id(left)
    end_day = parse_date_id(right)
    if start_day is None or end_day is None:
        return None
    return inclusive_days(start_day, end_day)


def calendar_days_after(due: date, reference: date) -> int:
    """Whole calendar days strictly after `due` up to `reference`; never negative."""
    return max(0, (reference - due).days)
