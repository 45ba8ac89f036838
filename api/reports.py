from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from services.loan_store import list_loans
from services.normalization import normalize_loan
from services.reporting import build_loan_summary_stats, recompute_fines
from utils.case import dict_keys_to_camel

router = APIRouter(prefix="/api/loans", tags=["reports"])


@router.get("/stats")
async def loan_stats(db: AsyncSession = Depends(get_db)):
    loans = await list_loans(db)
    stats = build_loan_summary_stats(
        [normalize_loan(loan) for loan in loans],
        datetime.now(timezone.utc),
        fine_per_day=settings.fine_per_day,
        tz=settings.local_tz,
    )
    return dict_keys_to_camel(stats)


@router.post("/fines/recompute")
async def recompute(db: AsyncSession = Depends(get_db)):
    report = await recompute_fines(
        db,
        datetime.now(timezone.utc),
        fine_per_day=settings.fine_per_day,
        tz=settings.local_tz,
    )
    return {"message": "Fine recompute finished", **report}
