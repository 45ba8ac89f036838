"""
Submission, per-company approval and the warehouse hand-out step.
Each function validates against the canonical status and returns the field changes to persist.
"""
from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from services.errors import StateConflictError, ValidationError
from services.status_resolver import resolve_status
from services.statuses import STATUS_LABELS, LoanStatus

log = logging.getLogger(__name__)

WAREHOUSE_PROCESS = "process"
WAREHOUSE_REJECT = "reject"


def _iso(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _warehouse_has_acted(snapshot: dict[str, Any]) -> bool:
    return bool(str((snapshot.get("warehouse_status") or {}).get("status") or "").strip())


def submit_loan(snapshot: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """Turn a draft into a submitted loan awaiting one approval per company."""
    if not snapshot.get("is_draft"):
        raise StateConflictError("Loan has already been submitted")
    companies = [c for c in snapshot.get("company") or [] if str(c).strip()]
    if not companies:
        raise ValidationError("At least one company must be selected before submitting")

    log.info("Loan %s submitted for approval by %d companies", snapshot.get("id"), len(companies))
    return {
        "is_draft": False,
        "submitted_at": now or datetime.now(timezone.utc),
        "approvals": {str(c): {"approved": None} for c in companies},
    }


def apply_approval(
    snapshot: dict[str, Any],
    company: str,
    approved: bool,
    actor: str,
    now: Optional[datetime] = None,
    reason: Any = None,
    note: Any = None,
) -> dict[str, Any]:
    reason = str(reason or "").strip()
    if not approved and not reason:
        raise ValidationError("A rejection reason is required")
    if snapshot.get("is_draft"):
        raise StateConflictError("A draft loan cannot be approved")
    if _warehouse_has_acted(snapshot):
        raise StateConflictError("Approvals are closed once the warehouse has acted")
    approvals = copy.deepcopy(snapshot.get("approvals") or {})
    if company not in approvals:
        raise StateConflictError(f"Company '{company}' is not an approver of this loan")

    approvals[company] = {
        "approved": bool(approved),
        "approved_by": actor,
        "approved_at": _iso(now),
        "rejection_reason": None if approved else reason,
        "note": str(note).strip() if note else None,
    }
    log.info("Loan %s: %s %s by %s", snapshot.get("id"), company, "approved" if approved else "rejected", actor)
    return {"approvals": approvals}


def apply_warehouse_action(
    snapshot: dict[str, Any],
    action: Any,
    actor: str,
    now: Optional[datetime] = None,
    note: Any = None,
    reason: Any = None,
) -> dict[str, Any]:
    """Hand the item out ("Dipinjam") or refuse it ("Ditolak Gudang"). Returns are handled elsewhere."""
    action = str(action or "").strip().lower()
    if action not in (WAREHOUSE_PROCESS, WAREHOUSE_REJECT):
        raise ValidationError(f"Invalid warehouse action '{action}'")
    resolution = resolve_status(snapshot)
    if resolution.status != LoanStatus.APPROVED:
        raise StateConflictError(f"Warehouse cannot act while the loan is '{resolution.label}'")

    at = _iso(now)
    record: dict[str, Any] = {"processed_at": at, "processed_by": actor, "note": str(note).strip() if note else None}
    if action == WAREHOUSE_PROCESS:
        record["status"] = STATUS_LABELS[LoanStatus.BORROWED]
    else:
        reason = str(reason or "").strip()
        if not reason:
            raise ValidationError("A rejection reason is required")
        record["status"] = STATUS_LABELS[LoanStatus.WAREHOUSE_REJECTED]
        record["rejection_reason"] = reason

    log.info("Loan %s: warehouse %s by %s", snapshot.get("id"), record["status"], actor)
    return {"warehouse_status": record}
