"""
Return-request state machine.

    requested -> accepted | follow_up | rejected
    accepted | follow_up -> completed
    rejected -> (new requested entry in the same thread)

Only the borrower's submission (initial or after a rejection) appends an entry.
Warehouse actions update the open entry in place and append to its `history`.
Every operation works on a copy and returns the field changes to persist:
the new `return_request` list and the `return_status` summary projected from it.
"""
from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from config import settings
from services.errors import StateConflictError, ValidationError
from services.return_threads import (
    latest_accepted_entry,
    latest_thread_entry,
    open_thread,
    project_return_status,
)
from services.status_resolver import resolve_status
from services.statuses import (
    RETURN_ACCEPTED,
    RETURN_COMPLETED,
    RETURN_FOLLOW_UP,
    RETURN_REJECTED,
    RETURN_REQUESTED,
    LoanStatus,
)

log = logging.getLogger(__name__)

MAX_PHOTOS = settings.max_return_photos

ACTION_ACCEPT = "accept"
ACTION_FOLLOW_UP = "follow_up"
ACTION_REJECT = "reject"
ACTION_COMPLETE = "complete"

_ACTION_ALIASES = {
    "accept": ACTION_ACCEPT,
    "approve": ACTION_ACCEPT,
    "returnaccepted": ACTION_ACCEPT,
    "return_accepted": ACTION_ACCEPT,
    "follow_up": ACTION_FOLLOW_UP,
    "followup": ACTION_FOLLOW_UP,
    "return_followup": ACTION_FOLLOW_UP,
    "reject": ACTION_REJECT,
    "return_rejected": ACTION_REJECT,
    "complete": ACTION_COMPLETE,
    "completed": ACTION_COMPLETE,
    "confirm": ACTION_COMPLETE,
}

# Item conditions recorded by the warehouse on acceptance
CONDITION_COMPLETE = "dikembalikan lengkap"
CONDITION_DAMAGED = "dikembalikan rusak/cacat"

RETURNABLE_STATUSES = frozenset({LoanStatus.BORROWED, LoanStatus.RETURN_REJECTED})


def _now(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _normalize_photos(photo_results: Any) -> list[dict[str, Any]]:
    photos = []
    for item in photo_results or []:
        if isinstance(item, str) and item.strip():
            photos.append({"filename": item.rsplit("/", 1)[-1], "url": item.strip()})
        elif isinstance(item, dict) and item.get("url"):
            photos.append({"filename": item.get("filename") or str(item["url"]).rsplit("/", 1)[-1], "url": item["url"]})
        else:
            raise ValidationError("Each photo must be a URL or an object with a url")
    return photos


def _changes(snapshot: dict[str, Any], entries: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "return_request": entries,
        "return_status": project_return_status(entries, snapshot.get("warehouse_status")),
    }


def submit_return_request(
    snapshot: dict[str, Any],
    note: Any,
    photo_results: Any,
    requested_by: str,
    now: Optional[datetime] = None,
    require_photo: bool = settings.return_request_requires_photo,
    max_photos: int = MAX_PHOTOS,
) -> dict[str, Any]:
    """Borrower submits a return. Reuses the root id of a thread whose last request was rejected."""
    note = _clean(note)
    if not note:
        raise ValidationError("A note describing the return is required")
    photos = _normalize_photos(photo_results)
    if require_photo and not photos:
        raise ValidationError("At least one photo of the returned item is required")
    if len(photos) > max_photos:
        raise ValidationError(f"At most {max_photos} photos are allowed")

    entries = copy.deepcopy(snapshot.get("return_request") or [])
    if open_thread(entries) is not None:
        raise StateConflictError("A return request is already waiting for the warehouse")
    resolution = resolve_status(snapshot)
    if resolution.status not in RETURNABLE_STATUSES:
        raise StateConflictError(f"A return cannot be requested while the loan is '{resolution.label}'")

    at = _now(now)
    entry_id = f"rr_{uuid.uuid4().hex[:12]}"
    latest = latest_thread_entry(entries)
    root_id = entry_id
    if latest is not None and latest.get("status") == RETURN_REJECTED:
        root_id = latest.get("root_id") or latest.get("id")

    entries.append(
        {
            "id": entry_id,
            "root_id": root_id,
            "requested_at": at,
            "requested_by": requested_by,
            "note": note,
            "photo_results": photos,
            "status": RETURN_REQUESTED,
            "history": [{"status": RETURN_REQUESTED, "at": at, "by": requested_by, "note": note}],
        }
    )
    log.info("Loan %s: return request %s submitted (thread %s)", snapshot.get("id"), entry_id, root_id)
    return _changes(snapshot, entries)


def normalize_return_action(action: Any) -> str:
    key = _clean(action).lower().replace("-", "_")
    if key not in _ACTION_ALIASES:
        raise ValidationError(f"Invalid return action '{action}'")
    return _ACTION_ALIASES[key]


def _check_request_id(target: dict[str, Any], request_id: Any) -> None:
    if request_id and str(request_id) not in (str(target.get("id")), str(target.get("root_id"))):
        raise StateConflictError(f"Return request {request_id} is not the one awaiting this action")


def apply_return_action(
    snapshot: dict[str, Any],
    action: Any,
    actor: str,
    now: Optional[datetime] = None,
    request_id: Any = None,
    note: Any = None,
    condition: Any = None,
) -> dict[str, Any]:
    """Warehouse accepts, flags for follow-up, rejects or completes the current return."""
    kind = normalize_return_action(action)
    note = _clean(note) or None
    condition = _clean(condition) or None
    entries = copy.deepcopy(snapshot.get("return_request") or [])
    at = _now(now)

    if kind == ACTION_COMPLETE:
        target = latest_accepted_entry(entries)
        if target is None:
            raise StateConflictError("There is no accepted return to complete")
        _check_request_id(target, request_id)
        target.update(
            {
                "status": RETURN_COMPLETED,
                "completed_at": at,
                "completed_by": actor,
                "completed_note": note,
            }
        )
    else:
        target = open_thread(entries)
        if target is None:
            raise StateConflictError("There is no open return request to act on")
        _check_request_id(target, request_id)
        if kind == ACTION_REJECT and not note:
            raise ValidationError("A reason is required to reject a return")

        state = {ACTION_ACCEPT: RETURN_ACCEPTED, ACTION_FOLLOW_UP: RETURN_FOLLOW_UP, ACTION_REJECT: RETURN_REJECTED}[kind]
        if kind == ACTION_ACCEPT and condition:
            if condition.lower() == CONDITION_COMPLETE:
                state = RETURN_COMPLETED
            elif condition.lower() == CONDITION_DAMAGED:
                state = RETURN_FOLLOW_UP
        target.update(
            {
                "status": state,
                "processed_at": at,
                "processed_by": actor,
                "processed_note": note,
                "condition": condition,
            }
        )
        if state == RETURN_FOLLOW_UP:
            target["fine_paused"] = True
            target["fine_paused_at"] = at
        elif state == RETURN_COMPLETED:
            # Returned complete and in good order on acceptance: no fine is charged.
            target.update({"completed_at": at, "completed_by": actor, "completed_note": note, "no_fine": True})

    target.setdefault("history", []).append(
        {"status": target["status"], "at": at, "by": actor, "note": note, "condition": condition}
    )
    log.info("Loan %s: return request %s -> %s by %s", snapshot.get("id"), target.get("id"), target["status"], actor)
    return _changes(snapshot, entries)
