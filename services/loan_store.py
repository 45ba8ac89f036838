"""
Persistence for loans. Every workflow write is a compare-and-swap on the version column,
so two actors racing on the same loan cannot both win with stale reads.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Loan
from services.errors import ConcurrencyConflictError, LoanNotFoundError
from services.normalization import normalize_loan

log = logging.getLogger(__name__)


async def get_loan(session: AsyncSession, loan_id: str) -> Loan | None:
    result = await session.execute(select(Loan).where(Loan.id == loan_id))
    return result.scalar_one_or_none()


async def get_loan_or_404(session: AsyncSession, loan_id: str) -> Loan:
    loan = await get_loan(session, loan_id)
    if loan is None:
        raise LoanNotFoundError(f"Loan {loan_id} not found")
    return loan


async def load_snapshot(session: AsyncSession, loan_id: str) -> tuple[Loan, dict[str, Any]]:
    """Row plus its normalized snapshot; the row's version is the one a write must match."""
    loan = await get_loan_or_404(session, loan_id)
    return loan, normalize_loan(loan)


async def list_loans(session: AsyncSession) -> list[Loan]:
    result = await session.execute(select(Loan).order_by(Loan.created_at.desc(), Loan.id))
    return list(result.scalars().all())


async def create_loan(session: AsyncSession, values: dict[str, Any]) -> Loan:
    loan = Loan(id=f"loan-{uuid.uuid4().hex[:12]}", version=1, **values)
    session.add(loan)
    await session.flush()
    await session.refresh(loan)
    log.info("Created loan %s (draft=%s)", loan.id, loan.is_draft)
    return loan


async def save_loan_changes(
    session: AsyncSession,
    loan_id: str,
    expected_version: int,
    values: dict[str, Any],
) -> Loan:
    """
    Write `values` only if the stored version still equals `expected_version`.
    Raises ConcurrencyConflictError when another writer got there first.
    """
    stmt = (
        update(Loan)
        .where(Loan.id == loan_id, Loan.version == expected_version)
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        current = await get_loan_or_404(session, loan_id)
        log.warning(
            "Loan %s: write rejected, expected version %s but found %s", loan_id, expected_version, current.version
        )
        raise ConcurrencyConflictError(
            f"Loan {loan_id} was changed by someone else (version {current.version}); reload and retry"
        )
    await session.flush()
    refreshed = await session.get(Loan, loan_id, populate_existing=True)
    return refreshed
