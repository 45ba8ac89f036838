"""
Derived view of a loan: everything the list and the detail page show
that is computed rather than stored. Built fresh from the snapshot on every read.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from services.due_dates import effective_due_date_for_loan
from services.durations import LOCAL_TZ, duration_info
from services.extensions import extension_summary, latest_decision, pending_extension
from services.fines import FINE_PER_DAY, compute_fine_for_loan
from services.return_threads import can_warehouse_act, latest_accepted_entry, open_thread
from services.status_resolver import resolve_status
from services.statuses import INACTIVE_STATUSES


def build_loan_view(
    snapshot: dict[str, Any],
    now: Optional[datetime] = None,
    fine_per_day: int = FINE_PER_DAY,
    tz: timezone = LOCAL_TZ,
) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    resolution = resolve_status(snapshot)
    due = effective_due_date_for_loan(snapshot, tz)
    duration = duration_info(snapshot.get("out_date"), due, tz) if due else None
    fine = compute_fine_for_loan(snapshot, now, fine_per_day, tz)
    returns = snapshot.get("return_request")
    extensions = snapshot.get("extend_status")

    return {
        "status": resolution.status.value if resolution.status else resolution.raw,
        "status_label": resolution.label,
        "status_rule": resolution.rule,
        "status_path": resolution.path,
        "effective_return_date": due.isoformat() if due else None,
        "duration": duration.model_dump(mode="json") if duration else None,
        "fine": fine.model_dump(mode="json") if fine else None,
        "open_return_request": open_thread(returns),
        "can_warehouse_act_on_return": can_warehouse_act(returns),
        "latest_accepted_return": latest_accepted_entry(returns),
        "pending_extension": pending_extension(extensions),
        "latest_extension_decision": latest_decision(extensions),
        "extension_summary": extension_summary(snapshot),
        "is_active": resolution.status is not None and resolution.status not in INACTIVE_STATUSES,
    }
