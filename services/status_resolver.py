"""
Canonical status resolution for a loan snapshot.

Precedence is an ordered list of named rules. Each rule is a pure function of the
normalized snapshot returning a decision or None; the first decision wins. The
resolver never raises: unrecognized tokens are logged and either skipped (override)
or passed through verbatim (warehouse), and a snapshot that breaks a rule resolves
to PENDING_APPROVAL.

This is the only place the lifecycle precedence lives. List rows, the detail view,
fine computation, reporting and workflow guards all call resolve_status.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, NamedTuple, Optional

from schemas.derivation import StatusResolutionSchema
from services.return_threads import latest_thread_entry
from services.statuses import (
    OVERRIDE_ALIASES,
    RETURN_ENTRY_TO_STATUS,
    RETURN_SUMMARY_ALIASES,
    STATUS_LABELS,
    WAREHOUSE_ALIASES,
    LoanStatus,
    lookup_status,
)

log = logging.getLogger(__name__)

_RETURN_SUMMARY_STATUSES = frozenset(
    {
        LoanStatus.RETURN_REQUESTED,
        LoanStatus.RETURN_ACCEPTED,
        LoanStatus.RETURN_FOLLOWUP,
        LoanStatus.RETURN_REJECTED,
        LoanStatus.RETURNED,
        LoanStatus.COMPLETED,
    }
)


class Decision(NamedTuple):
    status: Optional[LoanStatus]
    raw: Optional[str] = None
    reason: str = ""


class Rule(NamedTuple):
    name: str
    evaluate: Callable[[dict[str, Any]], Optional[Decision]]


def _override_rule(loan: dict[str, Any]) -> Optional[Decision]:
    raw = loan.get("loan_status")
    if not raw:
        return None
    status = lookup_status(raw, OVERRIDE_ALIASES)
    if status is None:
        log.warning("Loan %s: unrecognized loan_status override %r ignored", loan.get("id"), raw)
        return None
    return Decision(status, raw, "explicit loan_status override")


def _return_thread_rule(loan: dict[str, Any]) -> Optional[Decision]:
    entry = latest_thread_entry(loan.get("return_request"))
    if entry is None:
        return None
    status = RETURN_ENTRY_TO_STATUS.get(entry.get("status"))
    if status is None:
        log.warning("Loan %s: return request %s has unknown state %r", loan.get("id"), entry.get("id"), entry.get("status"))
        return None
    return Decision(status, entry.get("status"), f"return request {entry.get('id')}")


def _return_summary_rule(loan: dict[str, Any]) -> Optional[Decision]:
    # Legacy loans only: the cached summary is ignored once history exists.
    if loan.get("return_request"):
        return None
    raw = (loan.get("return_status") or {}).get("status")
    status = lookup_status(raw, RETURN_SUMMARY_ALIASES)
    if status not in _RETURN_SUMMARY_STATUSES:
        return None
    return Decision(status, raw, "legacy return summary")


def _warehouse_rule(loan: dict[str, Any]) -> Optional[Decision]:
    raw = (loan.get("warehouse_status") or {}).get("status")
    if not raw or not str(raw).strip():
        return None
    status = lookup_status(raw, WAREHOUSE_ALIASES)
    if status is None:
        log.warning("Loan %s: unrecognized warehouse status %r passed through", loan.get("id"), raw)
    return Decision(status, str(raw), "warehouse has acted")


def _draft_rule(loan: dict[str, Any]) -> Optional[Decision]:
    if loan.get("is_draft"):
        return Decision(LoanStatus.DRAFT, reason="draft flag")
    return None


def _approvals_rule(loan: dict[str, Any]) -> Optional[Decision]:
    approvals = loan.get("approvals") or {}
    if not approvals:
        return Decision(LoanStatus.PENDING_APPROVAL, reason="no approvals recorded")
    entries = list(approvals.values())
    # Any single reasoned rejection rejects the whole loan; partial approval is never exposed.
    for company, entry in approvals.items():
        if entry.get("approved") is False and str(entry.get("rejection_reason") or "").strip():
            return Decision(LoanStatus.REJECTED, reason=f"rejected by {company}")
    if all(entry.get("approved") is True for entry in entries):
        return Decision(LoanStatus.APPROVED, reason="approved by all companies")
    return Decision(LoanStatus.PENDING_APPROVAL, reason="approvals outstanding")


RULES: tuple[Rule, ...] = (
    Rule("loan_status_override", _override_rule),
    Rule("return_thread", _return_thread_rule),
    Rule("return_summary", _return_summary_rule),
    Rule("warehouse_status", _warehouse_rule),
    Rule("draft", _draft_rule),
    Rule("approvals", _approvals_rule),
)


def resolve_status(loan: dict[str, Any]) -> StatusResolutionSchema:
    """
    Resolve the canonical status of a normalized loan snapshot.
    Returns the status, its display label, the rule that decided and the path of rules considered.
    """
    path: list[str] = []
    for rule in RULES:
        try:
            decision = rule.evaluate(loan or {})
        except (AttributeError, TypeError, ValueError) as e:
            log.warning("Loan %s: status rule %s failed on malformed data: %s", (loan or {}).get("id"), rule.name, e)
            path.append(f"{rule.name}:error")
            continue
        if decision is None:
            path.append(f"{rule.name}:skip")
            continue
        path.append(f"{rule.name}:match")
        if decision.status is None:
            return StatusResolutionSchema(
                status=None,
                label=decision.raw or "",
                rule=rule.name,
                reason=decision.reason,
                raw=decision.raw,
                recognized=False,
                path=path,
            )
        return StatusResolutionSchema(
            status=decision.status,
            label=STATUS_LABELS[decision.status],
            rule=rule.name,
            reason=decision.reason,
            raw=decision.raw,
            recognized=True,
            path=path,
        )

    path.append("fallback:match")
    return StatusResolutionSchema(
        status=LoanStatus.PENDING_APPROVAL,
        label=STATUS_LABELS[LoanStatus.PENDING_APPROVAL],
        rule="fallback",
        reason="no rule decided",
        path=path,
    )
