"""
Dashboard counters and the batch job that refreshes the cached total_denda column.
Both go through the canonical resolver and fine calculator only.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.durations import LOCAL_TZ
from services.errors import ConcurrencyConflictError
from services.fines import FINE_PER_DAY, collect_fine_updates, compute_fine_for_loan
from services.loan_store import list_loans, save_loan_changes
from services.normalization import normalize_loan
from services.return_threads import latest_thread_entry
from services.status_resolver import resolve_status
from services.statuses import INACTIVE_STATUSES, LoanStatus

log = logging.getLogger(__name__)

_DAMAGED_MARKERS = ("rusak", "cacat")
_INCOMPLETE_MARKER = "tidak lengkap"


def _empty_stats() -> dict[str, int]:
    return {
        "total_loans": 0,
        "active_loans": 0,
        "returned_complete": 0,
        "returned_incomplete": 0,
        "returned_damaged": 0,
        "overdue_loans": 0,
        "total_rejected": 0,
    }


def _return_condition(snapshot: dict[str, Any]) -> str:
    entry = latest_thread_entry(snapshot.get("return_request")) or snapshot.get("return_status") or {}
    return str(entry.get("condition") or "").lower()


def _tally(stats: dict[str, int], snapshot: dict[str, Any], now: datetime, fine_per_day: int, tz: timezone) -> None:
    status = resolve_status(snapshot).status
    if status is not None and status not in INACTIVE_STATUSES:
        stats["active_loans"] += 1

    condition = _return_condition(snapshot)
    if status == LoanStatus.RETURN_FOLLOWUP or any(m in condition for m in _DAMAGED_MARKERS):
        stats["returned_damaged"] += 1
    elif status in (LoanStatus.COMPLETED, LoanStatus.RETURNED):
        if _INCOMPLETE_MARKER in condition:
            stats["returned_incomplete"] += 1
        else:
            stats["returned_complete"] += 1

    if status in (LoanStatus.REJECTED, LoanStatus.WAREHOUSE_REJECTED):
        stats["total_rejected"] += 1

    fine = compute_fine_for_loan(snapshot, now, fine_per_day, tz)
    if fine is not None and fine.overdue:
        stats["overdue_loans"] += 1


def build_loan_summary_stats(
    snapshots: Iterable[dict[str, Any]],
    now: Optional[datetime] = None,
    fine_per_day: int = FINE_PER_DAY,
    tz: timezone = LOCAL_TZ,
) -> dict[str, int]:
    now = now or datetime.now(timezone.utc)
    stats = _empty_stats()
    for snapshot in snapshots:
        stats["total_loans"] += 1
        try:
            _tally(stats, snapshot, now, fine_per_day, tz)
        except Exception:
            log.exception("Could not count loan %s in summary stats", (snapshot or {}).get("id"))
    return stats


async def recompute_fines(
    session: AsyncSession,
    now: Optional[datetime] = None,
    fine_per_day: int = FINE_PER_DAY,
    tz: timezone = LOCAL_TZ,
) -> dict[str, int]:
    """
    Refresh total_denda for every overdue loan. Each write is guarded by the version
    read at the start of the run and runs in its own savepoint. A loan changed meanwhile,
    or one whose write the database refuses, is counted as failed and left for the next run.
    """
    now = now or datetime.now(timezone.utc)
    rows = await list_loans(session)
    versions = {row.id: row.version for row in rows}
    batch = collect_fine_updates((normalize_loan(row) for row in rows), now, fine_per_day, tz)

    failed = len(batch.failed)
    updated = 0
    for update in batch.updates:
        loan_id = update["id"]
        try:
            async with session.begin_nested():
                await save_loan_changes(session, loan_id, versions[loan_id], {"total_denda": update["total_denda"]})
            updated += 1
        except ConcurrencyConflictError:
            log.warning("Loan %s changed during fine recompute, skipped until next run", loan_id)
            failed += 1
        except SQLAlchemyError:
            log.exception("Could not save fine for loan %s", loan_id)
            failed += 1

    report = {
        "scanned": len(rows),
        "updated": updated,
        "skipped": len(rows) - updated - failed,
        "failed": failed,
    }
    log.info("Fine recompute finished: %s", report)
    return report
