"""
Read-only projections over a loan's return_request history.
Entries are kept in submission order; accept/reject/complete update an entry in place,
so the last element always carries the current state. Entries that share a root_id
form one thread (a request plus its post-rejection resubmissions).
"""
from __future__ import annotations

from typing import Any, Optional

from services.statuses import (
    RETURN_ACCEPTED,
    RETURN_COMPLETED,
    RETURN_FOLLOW_UP,
    RETURN_REQUESTED,
    STATUS_LABELS,
    LoanStatus,
)

ACCEPTED_LIKE = (RETURN_ACCEPTED, RETURN_FOLLOW_UP)


def _entries(entries: Any) -> list[dict[str, Any]]:
    if not isinstance(entries, list):
        return []
    return [e for e in entries if isinstance(e, dict)]


def latest_thread_entry(entries: Any) -> Optional[dict[str, Any]]:
    items = _entries(entries)
    return items[-1] if items else None


def open_thread(entries: Any) -> Optional[dict[str, Any]]:
    """The single entry still awaiting a warehouse decision, if any."""
    latest = latest_thread_entry(entries)
    if latest is not None and latest.get("status") == RETURN_REQUESTED:
        return latest
    return None


def can_warehouse_act(entries: Any) -> bool:
    """Accept/follow-up/reject are only permitted while a request is open."""
    return open_thread(entries) is not None


def latest_accepted_entry(entries: Any) -> Optional[dict[str, Any]]:
    """Most recent accepted or follow-up entry; it unlocks the completion action."""
    for entry in reversed(_entries(entries)):
        if entry.get("status") in ACCEPTED_LIKE:
            return entry
    return None


def group_threads(entries: Any) -> list[dict[str, Any]]:
    """Group entries by root_id, ordered by each thread's first submission."""
    threads: dict[str, dict[str, Any]] = {}
    for entry in _entries(entries):
        root = str(entry.get("root_id") or entry.get("id"))
        thread = threads.setdefault(root, {"root_id": root, "entries": []})
        thread["entries"].append(entry)
    out = []
    for thread in threads.values():
        last = thread["entries"][-1]
        thread["status"] = last.get("status")
        thread["is_open"] = last.get("status") == RETURN_REQUESTED
        out.append(thread)
    return out


def project_return_status(
    entries: Any, warehouse_status: Optional[dict[str, Any]] = None
) -> Optional[dict[str, Any]]:
    """
    Rebuild the cached return_status summary from history.
    previous_status always comes from the hand-out side, never from an earlier return state.
    """
    latest = latest_thread_entry(entries)
    if latest is None:
        return None
    warehouse = warehouse_status if isinstance(warehouse_status, dict) else {}
    previous = warehouse.get("status") or STATUS_LABELS[LoanStatus.BORROWED]
    completed = latest.get("status") == RETURN_COMPLETED
    photos = latest.get("photo_results")
    return {
        "status": latest.get("status"),
        "previous_status": previous,
        "request_id": latest.get("id"),
        "root_id": latest.get("root_id") or latest.get("id"),
        "note": (latest.get("completed_note") if completed else None) or latest.get("processed_note") or latest.get("note"),
        "processed_at": (latest.get("completed_at") if completed else None) or latest.get("processed_at"),
        "processed_by": (latest.get("completed_by") if completed else None) or latest.get("processed_by"),
        "photo_results": list(photos) if isinstance(photos, list) else [],
        "condition": latest.get("condition"),
        "no_fine": bool(latest.get("no_fine")),
        "fine_paused": bool(latest.get("fine_paused")),
        "fine_paused_at": latest.get("fine_paused_at"),
    }
