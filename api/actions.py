"""
Workflow endpoints. Each one reads the loan, runs a pure transition on the normalized
snapshot and writes the resulting changes against the version the client sent.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.loans import current_actor, loan_to_response
from config import settings
from database import get_db
from schemas.loan import (
    ApprovalAction,
    ExtensionCreate,
    ExtensionDecisionBody,
    ReturnRequestActionBody,
    ReturnRequestCreate,
    VersionedAction,
    WarehouseAction,
)
from services.approvals import apply_approval, apply_warehouse_action, submit_loan
from services.extensions import decide_extension, submit_extension
from services.loan_store import load_snapshot, save_loan_changes
from services.return_requests import apply_return_action, submit_return_request

router = APIRouter(prefix="/api/loans", tags=["loan-actions"])

Transition = Callable[[dict[str, Any], datetime], dict[str, Any]]


async def _run(db: AsyncSession, loan_id: str, version: int, transition: Transition, message: str) -> dict[str, Any]:
    _, snapshot = await load_snapshot(db, loan_id)
    now = datetime.now(timezone.utc)
    changes = transition(snapshot, now)
    saved = await save_loan_changes(db, loan_id, version, changes)
    return {"message": message, "loan": loan_to_response(saved, now)}


@router.post("/{loan_id}/submit")
async def submit(loan_id: str, body: VersionedAction, db: AsyncSession = Depends(get_db)):
    return await _run(db, loan_id, body.version, lambda s, now: submit_loan(s, now), "Loan submitted")


@router.post("/{loan_id}/approve")
async def approve(
    loan_id: str,
    body: ApprovalAction,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def transition(snapshot, now):
        return apply_approval(snapshot, body.company, body.approved, actor, now, reason=body.reason, note=body.note)

    message = f"{body.company} approved the loan" if body.approved else f"{body.company} rejected the loan"
    return await _run(db, loan_id, body.version, transition, message)


@router.post("/{loan_id}/warehouse")
async def warehouse(
    loan_id: str,
    body: WarehouseAction,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def transition(snapshot, now):
        return apply_warehouse_action(snapshot, body.action, actor, now, note=body.note, reason=body.reason)

    message = "Items handed out" if body.action == "process" else "Loan rejected by warehouse"
    return await _run(db, loan_id, body.version, transition, message)


@router.post("/{loan_id}/request-return")
async def request_return(
    loan_id: str,
    body: ReturnRequestCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def transition(snapshot, now):
        return submit_return_request(
            snapshot,
            body.note,
            body.photos(),
            actor,
            now,
            require_photo=settings.return_request_requires_photo,
            max_photos=settings.max_return_photos,
        )

    return await _run(db, loan_id, body.version, transition, "Return request submitted")


@router.post("/{loan_id}/request-return-action")
async def request_return_action(
    loan_id: str,
    body: ReturnRequestActionBody,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def transition(snapshot, now):
        return apply_return_action(
            snapshot,
            body.action,
            actor,
            now,
            request_id=body.request_id,
            note=body.note,
            condition=body.condition,
        )

    return await _run(db, loan_id, body.version, transition, f"Return request updated ({body.action})")


@router.post("/{loan_id}/extend")
async def extend(
    loan_id: str,
    body: ExtensionCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def transition(snapshot, now):
        return submit_extension(snapshot, body.requested_return_date, body.note, actor, now, tz=settings.local_tz)

    return await _run(db, loan_id, body.version, transition, "Extension requested")


@router.post("/{loan_id}/extend/decision")
async def extend_decision(
    loan_id: str,
    body: ExtensionDecisionBody,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def transition(snapshot, now):
        return decide_extension(snapshot, body.action, actor, now, note=body.note)

    return await _run(db, loan_id, body.version, transition, "Extension decision recorded")
