"""
Effective due date: the submitted return date, replaced by the requested date of the
latest approved extension once any extension has been approved.
Pending and rejected extensions never move the date.
"""
from __future__ import annotations

import logging
from datetime import date, timezone
from typing import Any, Iterable, Optional

from services.durations import LOCAL_TZ, parse_local_date
from services.statuses import EXTENSION_APPROVED, normalize_extension_decision

log = logging.getLogger(__name__)


def _history(value: Any) -> list[dict[str, Any]]:
    # Legacy rows store a single extension as a bare dict.
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [e for e in value if isinstance(e, dict)]


def latest_approved_extension(extend_history: Iterable[Any] | None) -> Optional[dict[str, Any]]:
    """Last entry, in submission order, whose decision reads as approved."""
    latest = None
    for entry in _history(extend_history):
        raw = entry.get("approve_status", entry.get("approveStatus"))
        if normalize_extension_decision(raw) == EXTENSION_APPROVED:
            latest = entry
    return latest


def resolve_effective_due_date(
    submitted_return_date: Any,
    extend_history: Iterable[Any] | None,
    tz: timezone = LOCAL_TZ,
) -> Optional[date]:
    approved_dates: list[date] = []
    for entry in _history(extend_history):
        raw = entry.get("approve_status", entry.get("approveStatus"))
        if normalize_extension_decision(raw) != EXTENSION_APPROVED:
            continue
        requested = entry.get("requested_return_date", entry.get("requestedReturnDate"))
        parsed = parse_local_date(requested, tz)
        if parsed is None:
            log.warning("Skipping approved extension with unparseable date %r", requested)
            continue
        approved_dates.append(parsed)
    if approved_dates:
        return approved_dates[-1]
    return parse_local_date(submitted_return_date, tz)


def submitted_return_date(snapshot: dict[str, Any]) -> Any:
    """The borrower's planned return date, falling back to use date, then submission time."""
    for field in ("return_date", "use_date", "submitted_at"):
        value = snapshot.get(field)
        if value:
            return value
    return None


def effective_due_date_for_loan(snapshot: dict[str, Any], tz: timezone = LOCAL_TZ) -> Optional[date]:
    return resolve_effective_due_date(submitted_return_date(snapshot), snapshot.get("extend_status"), tz)
