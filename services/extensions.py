"""
Extension (perpanjangan) requests.

An entry is pending while approve_status is None, then approved or rejected for good.
Only approved entries move the due date (see services.due_dates).
"""
from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from services.durations import LOCAL_TZ, parse_local_date
from services.errors import StateConflictError, ValidationError
from services.status_resolver import resolve_status
from services.statuses import (
    EXTENSION_APPROVED,
    EXTENSION_REJECTED,
    INACTIVE_STATUSES,
    OUTSTANDING_STATUSES,
    STATUS_LABELS,
    LoanStatus,
    normalize_extension_decision,
)

log = logging.getLogger(__name__)

_DECISION_ACTIONS = {
    "approve": EXTENSION_APPROVED,
    "approved": EXTENSION_APPROVED,
    "reject": EXTENSION_REJECTED,
    "rejected": EXTENSION_REJECTED,
}


def _entries(value: Any) -> list[dict[str, Any]]:
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    return [e for e in value if isinstance(e, dict)]


def _decision(entry: dict[str, Any]) -> Optional[str]:
    return normalize_extension_decision(entry.get("approve_status"))


def pending_extension(entries: Any) -> Optional[dict[str, Any]]:
    items = _entries(entries)
    if items and _decision(items[-1]) is None:
        return items[-1]
    return None


def latest_decision(entries: Any) -> Optional[dict[str, Any]]:
    """Most recent entry that has been approved or rejected."""
    for entry in reversed(_entries(entries)):
        if _decision(entry) is not None:
            return entry
    return None


def extension_summary(snapshot: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Badge shown next to an active loan's status; None once the loan is closed."""
    entries = _entries(snapshot.get("extend_status"))
    if not entries:
        return None
    resolution = resolve_status(snapshot)
    if resolution.status in INACTIVE_STATUSES:
        return None

    approved = [e for e in entries if _decision(e) == EXTENSION_APPROVED]
    rejected = [e for e in entries if _decision(e) == EXTENSION_REJECTED]
    if pending_extension(entries) is not None:
        return {"label": "Perpanjang Diajukan", "state": "pending", "approved_count": len(approved), "rejected_count": len(rejected)}
    if approved:
        last = approved[-1]
        return {
            "label": f"Diperpanjang ({len(approved)}x)" if len(approved) > 1 else "Diperpanjang",
            "state": EXTENSION_APPROVED,
            "approved_count": len(approved),
            "rejected_count": len(rejected),
            "tooltip": f"Diperpanjang sampai {last.get('requested_return_date')}",
        }
    return {
        "label": STATUS_LABELS[LoanStatus.BORROWED],
        "state": EXTENSION_REJECTED,
        "approved_count": 0,
        "rejected_count": len(rejected),
        "tooltip": f"Perpanjangan ditolak {len(rejected)}x",
    }


def submit_extension(
    snapshot: dict[str, Any],
    requested_return_date: Any,
    note: Any,
    requested_by: str,
    now: Optional[datetime] = None,
    tz: timezone = LOCAL_TZ,
) -> dict[str, Any]:
    note = str(note or "").strip()
    if not note:
        raise ValidationError("A reason for the extension is required")
    requested = parse_local_date(requested_return_date, tz)
    if requested is None:
        raise ValidationError(f"Invalid requested return date '{requested_return_date}'")

    entries = copy.deepcopy(_entries(snapshot.get("extend_status")))
    if pending_extension(entries) is not None:
        raise StateConflictError("An extension request is already waiting for a decision")
    resolution = resolve_status(snapshot)
    if resolution.status not in OUTSTANDING_STATUSES:
        raise StateConflictError(f"An extension cannot be requested while the loan is '{resolution.label}'")

    entry = {
        "id": f"ext_{uuid.uuid4().hex[:12]}",
        "requested_return_date": requested.isoformat(),
        "note": note,
        "request_by": requested_by,
        "request_at": (now or datetime.now(timezone.utc)).isoformat(),
        "previous_status": resolution.status.value,
        "approve_status": None,
    }
    entries.append(entry)
    log.info("Loan %s: extension to %s requested by %s", snapshot.get("id"), entry["requested_return_date"], requested_by)
    return {"extend_status": entries}


def decide_extension(
    snapshot: dict[str, Any],
    action: Any,
    decided_by: str,
    now: Optional[datetime] = None,
    note: Any = None,
) -> dict[str, Any]:
    decision = _DECISION_ACTIONS.get(str(action or "").strip().lower())
    if decision is None:
        raise ValidationError(f"Invalid extension decision '{action}'")
    entries = copy.deepcopy(_entries(snapshot.get("extend_status")))
    target = pending_extension(entries)
    if target is None:
        raise StateConflictError("There is no pending extension request")

    target.update(
        {
            "approve_status": decision,
            "approve_by": decided_by,
            "approve_at": (now or datetime.now(timezone.utc)).isoformat(),
            "approve_note": str(note).strip() if note else None,
        }
    )
    log.info("Loan %s: extension %s %s by %s", snapshot.get("id"), target.get("id"), decision, decided_by)
    return {"extend_status": entries}
