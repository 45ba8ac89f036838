"""
Overdue and fine calculation.

A loan accrues a fixed amount per whole calendar day strictly after its effective due
date while it is still outstanding (borrowed, return requested, follow-up needed or
return rejected). A follow-up pauses accrual at the instant it was recorded; a return
completed in full waives the fine. Each call recomputes from the snapshot: the
total_denda cache is written from these results but never read back.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, NamedTuple, Optional, Union

from config import settings
from schemas.derivation import FineResultSchema, StatusResolutionSchema
from services.due_dates import effective_due_date_for_loan
from services.durations import LOCAL_TZ, calendar_days_after, parse_local_date
from services.return_threads import project_return_status
from services.status_resolver import resolve_status
from services.statuses import OUTSTANDING_STATUSES, LoanStatus

log = logging.getLogger(__name__)

FINE_PER_DAY = settings.fine_per_day


class FineUpdateBatch(NamedTuple):
    updates: list[dict[str, Any]]
    failed: list[str]


def is_status_eligible_for_fine(status: Union[LoanStatus, StatusResolutionSchema, None]) -> bool:
    if isinstance(status, StatusResolutionSchema):
        status = status.status
    return status in OUTSTANDING_STATUSES


def compute_fine(
    status: Union[LoanStatus, StatusResolutionSchema, None],
    due_date: Any,
    return_status: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
    fine_per_day: int = FINE_PER_DAY,
    tz: timezone = LOCAL_TZ,
) -> Optional[FineResultSchema]:
    """
    Days overdue and fine for one loan, or None when the loan is not eligible.
    An eligible loan that is not yet overdue yields days_overdue=0 and fine_amount=0.
    """
    if not is_status_eligible_for_fine(status):
        return None
    flags = return_status if isinstance(return_status, dict) else {}
    if flags.get("no_fine"):
        return None
    due = parse_local_date(due_date, tz)
    if due is None:
        if due_date is not None:
            log.warning("Cannot compute fine: invalid due date %r", due_date)
        return None

    now = now or datetime.now(timezone.utc)
    today = parse_local_date(now, tz)
    reference = today
    if flags.get("fine_paused"):
        paused_on = parse_local_date(flags.get("fine_paused_at") or flags.get("processed_at"), tz)
        if paused_on is not None and paused_on < today:
            reference = paused_on

    days = calendar_days_after(due, reference)
    return FineResultSchema(
        days_overdue=days,
        fine_amount=days * fine_per_day,
        overdue=days > 0,
        reference_date=reference,
        due_date=due,
        updated_at=now,
    )


def fine_flags(snapshot: dict[str, Any]) -> dict[str, Any]:
    """noFine/finePaused flags, taken from return history when present, else the cached summary."""
    projected = project_return_status(snapshot.get("return_request"), snapshot.get("warehouse_status"))
    if projected is not None:
        return projected
    return snapshot.get("return_status") or {}


def compute_fine_for_loan(
    snapshot: dict[str, Any],
    now: Optional[datetime] = None,
    fine_per_day: int = FINE_PER_DAY,
    tz: timezone = LOCAL_TZ,
) -> Optional[FineResultSchema]:
    if not isinstance(snapshot, dict) or snapshot.get("is_draft"):
        return None
    resolution = resolve_status(snapshot)
    return compute_fine(
        resolution.status,
        effective_due_date_for_loan(snapshot, tz),
        fine_flags(snapshot),
        now=now,
        fine_per_day=fine_per_day,
        tz=tz,
    )


def needs_fine_update(cached: Optional[dict[str, Any]], computed: Optional[FineResultSchema]) -> bool:
    """Only overdue results are written; an unchanged cache is left alone."""
    if computed is None or not computed.overdue:
        return False
    if not cached:
        return True
    try:
        same_days = int(cached.get("days_overdue", cached.get("daysOverdue"))) == computed.days_overdue
        same_fine = int(cached.get("fine_amount", cached.get("fineAmount"))) == computed.fine_amount
    except (TypeError, ValueError):
        return True
    return not (same_days and same_fine)


def fine_cache_payload(computed: FineResultSchema) -> dict[str, Any]:
    return {
        "days_overdue": computed.days_overdue,
        "fine_amount": computed.fine_amount,
        "updated_at": computed.updated_at.isoformat(),
    }


def collect_fine_updates(
    snapshots: Iterable[dict[str, Any]],
    now: Optional[datetime] = None,
    fine_per_day: int = FINE_PER_DAY,
    tz: timezone = LOCAL_TZ,
) -> FineUpdateBatch:
    """
    Compute cache updates for many loans. Loans are independent: one that fails is
    logged and reported in `failed`, the rest are still processed.
    """
    now = now or datetime.now(timezone.utc)
    seen: set[str] = set()
    updates: list[dict[str, Any]] = []
    failed: list[str] = []
    for snapshot in snapshots:
        loan_id = (snapshot or {}).get("id")
        if not loan_id or loan_id in seen:
            continue
        seen.add(loan_id)
        try:
            computed = compute_fine_for_loan(snapshot, now, fine_per_day, tz)
            if not needs_fine_update(snapshot.get("total_denda"), computed):
                continue
            updates.append({"id": loan_id, "total_denda": fine_cache_payload(computed)})
        except Exception:
            log.exception("Fine computation failed for loan %s", loan_id)
            failed.append(loan_id)
    return FineUpdateBatch(updates=updates, failed=failed)
