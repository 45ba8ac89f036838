"""
Rewrite legacy loan rows into the canonical stored shape (the same repair normalize_loan
applies on read): approvals unwrapped from {"companies": ...}, extension lists, folded
return outcomes, warehouse_status without return fields, and a return_status summary
rebuilt from history.

Dry run by default; pass --apply to write. Each write is guarded by the row's version.
Run: python -m scripts.normalize_legacy_loans [--apply] (from the project root).
"""
import argparse
import asyncio
import logging
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import AsyncSessionLocal, init_db
from services.errors import ConcurrencyConflictError
from services.loan_store import list_loans, save_loan_changes
from services.normalization import loan_row_to_dict, normalize_loan
from services.return_threads import project_return_status

log = logging.getLogger(__name__)

REPAIRED_FIELDS = ("company", "approvals", "extend_status", "return_request", "warehouse_status", "return_status")


def plan_changes(row) -> dict:
    """Fields whose stored value differs from the canonical one."""
    stored = loan_row_to_dict(row)
    canonical = normalize_loan(stored)
    if canonical["return_request"]:
        canonical["return_status"] = project_return_status(canonical["return_request"], canonical["warehouse_status"])
    changes = {}
    for field in REPAIRED_FIELDS:
        value = canonical.get(field)
        if field != "company" and value in ({}, []):
            value = None
        if stored.get(field) != value:
            changes[field] = value
    return changes


async def normalize_all(session, apply: bool = False) -> dict:
    rows = await list_loans(session)
    report = {"scanned": len(rows), "changed": 0, "written": 0, "conflicts": 0}
    for row in rows:
        changes = plan_changes(row)
        if not changes:
            continue
        report["changed"] += 1
        print(f"Loan {row.id}: {', '.join(sorted(changes))}")
        if not apply:
            continue
        try:
            await save_loan_changes(session, row.id, row.version, changes)
            report["written"] += 1
        except ConcurrencyConflictError:
            log.warning("Loan %s changed while normalizing, left for the next run", row.id)
            report["conflicts"] += 1
    return report


async def main(apply: bool):
    await init_db()
    async with AsyncSessionLocal() as session:
        report = await normalize_all(session, apply=apply)
        if apply:
            await session.commit()
    mode = "Applied" if apply else "Dry run"
    print(f"{mode}: {report}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--apply", action="store_true", help="write the normalized fields back")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(args.apply))
