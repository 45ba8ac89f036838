"""
Read-time normalization of a stored loan into the canonical snake_case snapshot
every derivation function consumes.

Legacy rows carry several shapes for the same data: camelCase keys, an approvals map
wrapped in {"companies": ...}, a single extension object instead of a list, Indonesian
decision labels, return outcomes pushed as separate entries that point back at the
request they processed, and return-completion fields leaked into warehouse_status.
This module repairs those on read. It never mutates its input and never raises on a
malformed sub-object: the sub-object is dropped and a warning is logged.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from services.statuses import (
    RETURN_ACCEPTED,
    RETURN_COMPLETED,
    RETURN_FOLLOW_UP,
    RETURN_REJECTED,
    RETURN_REQUESTED,
    STATUS_LABELS,
    LoanStatus,
    normalize_extension_decision,
    normalize_return_entry_status,
)
from utils.case import dict_keys_to_snake, to_snake_key

log = logging.getLogger(__name__)

WAREHOUSE_RETURN_FIELDS = ("returned_at", "returned_by", "return_proof_files", "return_status")

_OUTCOME_STATES = (RETURN_ACCEPTED, RETURN_FOLLOW_UP, RETURN_REJECTED, RETURN_COMPLETED)


def loan_row_to_dict(row: Any) -> dict[str, Any]:
    """Copy every mapped column of an ORM row into a plain dict."""
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


def normalize_loan(raw: Any) -> dict[str, Any]:
    """Return the canonical snapshot for an ORM row or a camelCase/snake_case dict."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        if not hasattr(raw, "__table__"):
            log.warning("Cannot normalize loan of type %s", type(raw).__name__)
            return {}
        raw = loan_row_to_dict(raw)

    data = {to_snake_key(str(k)): copy.deepcopy(v) for k, v in raw.items()}
    snapshot = dict(data)
    loan_id = data.get("id")

    snapshot["is_draft"] = bool(data.get("is_draft"))
    snapshot["company"] = _normalize_companies(data.get("company"))
    snapshot["loan_status"] = _clean_str(data.get("loan_status"))
    snapshot["approvals"] = _normalize_approvals(data.get("approvals"), loan_id)
    snapshot["extend_status"] = _normalize_extensions(data.get("extend_status"), loan_id)
    snapshot["return_request"] = _normalize_return_requests(data.get("return_request"), loan_id)
    snapshot["return_status"] = _as_record(data.get("return_status"), "return_status", loan_id)
    snapshot["warehouse_status"] = _normalize_warehouse(
        data.get("warehouse_status"), snapshot["return_status"], loan_id
    )
    snapshot["total_denda"] = _as_record(data.get("total_denda"), "total_denda", loan_id)
    return snapshot


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_companies(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v) for v in value if v]
    return []


def _as_record(value: Any, field: str, loan_id: Any) -> Optional[dict[str, Any]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        log.warning("Loan %s: ignoring malformed %s (%s)", loan_id, field, type(value).__name__)
        return None
    return dict_keys_to_snake(value)


def _normalize_approvals(value: Any, loan_id: Any) -> dict[str, dict[str, Any]]:
    if not value:
        return {}
    if not isinstance(value, dict):
        log.warning("Loan %s: ignoring malformed approvals", loan_id)
        return {}
    companies = value.get("companies") if isinstance(value.get("companies"), dict) else value
    out: dict[str, dict[str, Any]] = {}
    for company, entry in companies.items():
        if not isinstance(entry, dict):
            log.warning("Loan %s: ignoring malformed approval for %s", loan_id, company)
            continue
        record = dict_keys_to_snake(entry)
        approved = record.get("approved")
        record["approved"] = approved if isinstance(approved, bool) else None
        out[str(company)] = record
    return out


def _normalize_extensions(value: Any, loan_id: Any) -> list[dict[str, Any]]:
    if not value:
        return []
    entries = value if isinstance(value, list) else [value]
    out: list[dict[str, Any]] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            log.warning("Loan %s: ignoring malformed extension entry #%d", loan_id, index)
            continue
        record = dict_keys_to_snake(entry)
        record["approve_status"] = normalize_extension_decision(record.get("approve_status"))
        record.setdefault("id", f"ext-{index + 1}")
        out.append(record)
    return out


def _normalize_return_requests(value: Any, loan_id: Any) -> list[dict[str, Any]]:
    if not value:
        return []
    if not isinstance(value, list):
        value = [value]

    entries: list[dict[str, Any]] = []
    by_id: dict[str, dict[str, Any]] = {}
    for index, raw_entry in enumerate(value):
        if not isinstance(raw_entry, dict):
            log.warning("Loan %s: ignoring malformed return request #%d", loan_id, index)
            continue
        record = dict_keys_to_snake(raw_entry)
        state = normalize_return_entry_status(record.get("status"))
        if state is None:
            log.warning(
                "Loan %s: unrecognized return request status %r, treating as requested",
                loan_id,
                record.get("status"),
            )
            state = RETURN_REQUESTED
        record["status"] = state
        record.setdefault("id", f"rr-legacy-{index + 1}")
        record["id"] = str(record["id"])

        target = by_id.get(str(record.get("request_id"))) if record.get("request_id") else None
        if target is not None and state in _OUTCOME_STATES:
            _fold_outcome(target, record)
            continue

        record.setdefault("root_id", record["id"])
        record.setdefault("history", [])
        record.setdefault("photo_results", [])
        entries.append(record)
        by_id[record["id"]] = record
    return entries


def _fold_outcome(target: dict[str, Any], outcome: dict[str, Any]) -> None:
    """Merge a legacy outcome entry (pushed as its own element) into the request it processed."""
    state = outcome["status"]
    at = outcome.get("processed_at")
    by = outcome.get("processed_by")
    note = outcome.get("processed_note")
    target.setdefault("history", []).append({"status": state, "at": at, "by": by, "note": note})
    if state == RETURN_COMPLETED:
        target["completed_at"] = at
        target["completed_by"] = by
        target["completed_note"] = note
        if outcome.get("condition"):
            target["condition"] = outcome["condition"]
            target["no_fine"] = True
        if not target.get("processed_at"):
            target["processed_at"] = at
            target["processed_by"] = by
    else:
        target["processed_at"] = at
        target["processed_by"] = by
        target["processed_note"] = note
        if outcome.get("condition"):
            target["condition"] = outcome["condition"]
        if state == RETURN_FOLLOW_UP:
            target["fine_paused"] = True
    target["status"] = state


def _normalize_warehouse(
    value: Any, return_status: Optional[dict[str, Any]], loan_id: Any
) -> Optional[dict[str, Any]]:
    record = _as_record(value, "warehouse_status", loan_id)
    if record is None:
        return None
    for field in WAREHOUSE_RETURN_FIELDS:
        record.pop(field, None)

    ws = _clean_str(record.get("status"))
    rs = _clean_str((return_status or {}).get("status"))
    if ws and rs and ws == rs:
        restored = _clean_str((return_status or {}).get("previous_status")) or STATUS_LABELS[LoanStatus.BORROWED]
        if restored == ws:
            restored = STATUS_LABELS[LoanStatus.BORROWED]
        log.info("Loan %s: warehouse status %r mirrors return status, restoring %r", loan_id, ws, restored)
        record["status"] = restored
    return record
