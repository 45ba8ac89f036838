from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models import Loan
from schemas.loan import LoanCreate
from services.approvals import submit_loan
from services.loan_store import create_loan, get_loan_or_404, list_loans
from services.loan_view import build_loan_view
from services.normalization import normalize_loan
from utils.case import dict_keys_to_camel

router = APIRouter(prefix="/api/loans", tags=["loans"])


def current_actor(x_actor: Optional[str] = Header(None, alias="X-Actor")) -> str:
    """Caller identity; authentication happens upstream."""
    return (x_actor or "").strip() or "system"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def loan_to_response(loan: Loan, now: Optional[datetime] = None) -> dict[str, Any]:
    """Serialize the normalized snapshot in camelCase, plus the derived `view` block."""
    snapshot = normalize_loan(loan)
    body = dict_keys_to_camel({k: _jsonable(v) for k, v in snapshot.items()}, data_keyed=("approvals",))
    view = build_loan_view(
        snapshot,
        now or datetime.now(timezone.utc),
        fine_per_day=settings.fine_per_day,
        tz=settings.local_tz,
    )
    body["view"] = dict_keys_to_camel(view)
    return body


@router.get("")
async def list_all_loans(db: AsyncSession = Depends(get_db)):
    now = datetime.now(timezone.utc)
    return [loan_to_response(loan, now) for loan in await list_loans(db)]


@router.get("/{loan_id}")
async def get_loan(loan_id: str, db: AsyncSession = Depends(get_db)):
    loan = await get_loan_or_404(db, loan_id)
    return loan_to_response(loan)


@router.post("", status_code=201)
async def create_new_loan(
    body: LoanCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(current_actor),
):
    values = body.model_dump(by_alias=False)
    values["borrower_id"] = values.get("borrower_id") or actor
    if not values["is_draft"]:
        values.update(submit_loan({"is_draft": True, "company": values["company"]}))
    loan = await create_loan(db, values)
    return loan_to_response(loan)
