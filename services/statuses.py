"""
Closed vocabulary of canonical loan statuses and the alias tables used to map raw
stored tokens (English constants, Indonesian UI labels, legacy camelCase values) onto it.
Display labels stay in Indonesian to match existing stored values.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Optional


class LoanStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    WAREHOUSE_PENDING = "WAREHOUSE_PENDING"
    WAREHOUSE_PROCESSED = "WAREHOUSE_PROCESSED"
    BORROWED = "BORROWED"
    WAREHOUSE_REJECTED = "WAREHOUSE_REJECTED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURN_ACCEPTED = "RETURN_ACCEPTED"
    RETURN_FOLLOWUP = "RETURN_FOLLOWUP"
    RETURN_REJECTED = "RETURN_REJECTED"
    RETURNED = "RETURNED"
    COMPLETED = "COMPLETED"


STATUS_LABELS: dict[LoanStatus, str] = {
    LoanStatus.DRAFT: "Draft",
    LoanStatus.PENDING_APPROVAL: "Menunggu Approval",
    LoanStatus.PARTIALLY_APPROVED: "Sebagian Disetujui",
    LoanStatus.APPROVED: "Disetujui",
    LoanStatus.REJECTED: "Ditolak",
    LoanStatus.CANCELLED: "Dibatalkan",
    LoanStatus.WAREHOUSE_PENDING: "Menunggu Gudang",
    LoanStatus.WAREHOUSE_PROCESSED: "Diproses",
    LoanStatus.BORROWED: "Dipinjam",
    LoanStatus.WAREHOUSE_REJECTED: "Ditolak Gudang",
    LoanStatus.RETURN_REQUESTED: "Permintaan Pengembalian",
    LoanStatus.RETURN_ACCEPTED: "Pengembalian Diterima",
    LoanStatus.RETURN_FOLLOWUP: "Perlu Tindak Lanjut",
    LoanStatus.RETURN_REJECTED: "Pengembalian Ditolak",
    LoanStatus.RETURNED: "Dikembalikan",
    LoanStatus.COMPLETED: "Selesai",
}

# Still outstanding: the borrower holds the item, so overdue days accrue.
OUTSTANDING_STATUSES = frozenset(
    {
        LoanStatus.BORROWED,
        LoanStatus.RETURN_REQUESTED,
        LoanStatus.RETURN_FOLLOWUP,
        LoanStatus.RETURN_REJECTED,
    }
)

INACTIVE_STATUSES = frozenset(
    {
        LoanStatus.DRAFT,
        LoanStatus.REJECTED,
        LoanStatus.CANCELLED,
        LoanStatus.WAREHOUSE_REJECTED,
        LoanStatus.RETURNED,
        LoanStatus.COMPLETED,
    }
)

# Return-request entry states
RETURN_REQUESTED = "requested"
RETURN_ACCEPTED = "accepted"
RETURN_FOLLOW_UP = "follow_up"
RETURN_REJECTED = "rejected"
RETURN_COMPLETED = "completed"

# Extension decision values
EXTENSION_APPROVED = "approved"
EXTENSION_REJECTED = "rejected"


def normalize_token(value: object) -> str:
    """Upper-case a raw status and fold spaces, hyphens and slashes to underscores."""
    if value is None:
        return ""
    text = str(value).strip().upper()
    return re.sub(r"[\s\-/]+", "_", text)


def _label_aliases() -> dict[str, LoanStatus]:
    return {normalize_token(label): status for status, label in STATUS_LABELS.items()}


_LABEL_ALIASES = _label_aliases()

# loan_status override column: values written directly to storage
OVERRIDE_ALIASES: dict[str, LoanStatus] = {
    **{s.value: s for s in LoanStatus},
    **_LABEL_ALIASES,
    "PENDING": LoanStatus.PENDING_APPROVAL,
    "MENUNGGU": LoanStatus.PENDING_APPROVAL,
    "MENUNGGU_APPROVAL": LoanStatus.PENDING_APPROVAL,
    "DISETUJUI": LoanStatus.APPROVED,
    "DITOLAK": LoanStatus.REJECTED,
    "CANCELED": LoanStatus.CANCELLED,
    "DIBATALKAN": LoanStatus.CANCELLED,
    "DIPINJAM": LoanStatus.BORROWED,
    "RETURNREQUESTED": LoanStatus.RETURN_REQUESTED,
    "PENGEMBALIAN_DIMINTA": LoanStatus.RETURN_REQUESTED,
    "PERMINTAAN_PENGEMBALIAN": LoanStatus.RETURN_REQUESTED,
    "RETURNACCEPTED": LoanStatus.RETURN_ACCEPTED,
    "RETURN_FOLLOW_UP": LoanStatus.RETURN_FOLLOWUP,
    "RETURNFOLLOWUP": LoanStatus.RETURN_FOLLOWUP,
    "FOLLOW_UP": LoanStatus.RETURN_FOLLOWUP,
    "PERLU_TINDAK_LANJUT": LoanStatus.RETURN_FOLLOWUP,
    "RETURNREJECTED": LoanStatus.RETURN_REJECTED,
    "PENGEMBALIAN_DITOLAK": LoanStatus.RETURN_REJECTED,
    "DIKEMBALIKAN": LoanStatus.RETURNED,
    "COMPLETE": LoanStatus.COMPLETED,
    "SELESAI": LoanStatus.COMPLETED,
}

WAREHOUSE_ALIASES: dict[str, LoanStatus] = {
    **_LABEL_ALIASES,
    "PENDING": LoanStatus.WAREHOUSE_PENDING,
    "WAITING": LoanStatus.WAREHOUSE_PENDING,
    "MENUNGGU_GUDANG": LoanStatus.WAREHOUSE_PENDING,
    "PROCESSED": LoanStatus.WAREHOUSE_PROCESSED,
    "DIPROSES": LoanStatus.WAREHOUSE_PROCESSED,
    "BORROWED": LoanStatus.BORROWED,
    "DIPINJAM": LoanStatus.BORROWED,
    "RETURNED": LoanStatus.RETURNED,
    "DIKEMBALIKAN": LoanStatus.RETURNED,
    "REJECTED": LoanStatus.WAREHOUSE_REJECTED,
    "WHREJECTED": LoanStatus.WAREHOUSE_REJECTED,
    "DITOLAK_GUDANG": LoanStatus.WAREHOUSE_REJECTED,
}

# Legacy return-request entry tokens -> canonical entry state
RETURN_ENTRY_ALIASES: dict[str, str] = {
    "REQUESTED": RETURN_REQUESTED,
    "RETURNREQUESTED": RETURN_REQUESTED,
    "RETURN_REQUESTED": RETURN_REQUESTED,
    "SUBMITTED": RETURN_REQUESTED,
    "PENDING": RETURN_REQUESTED,
    "PERMINTAAN_PENGEMBALIAN": RETURN_REQUESTED,
    "ACCEPTED": RETURN_ACCEPTED,
    "RETURNACCEPTED": RETURN_ACCEPTED,
    "RETURN_ACCEPTED": RETURN_ACCEPTED,
    "APPROVED": RETURN_ACCEPTED,
    "FOLLOW_UP": RETURN_FOLLOW_UP,
    "FOLLOWUP": RETURN_FOLLOW_UP,
    "RETURN_FOLLOWUP": RETURN_FOLLOW_UP,
    "RETURN_FOLLOW_UP": RETURN_FOLLOW_UP,
    "PERLU_TINDAK_LANJUT": RETURN_FOLLOW_UP,
    "REJECTED": RETURN_REJECTED,
    "RETURN_REJECTED": RETURN_REJECTED,
    "RETURNREJECTED": RETURN_REJECTED,
    "PENGEMBALIAN_DITOLAK": RETURN_REJECTED,
    "COMPLETED": RETURN_COMPLETED,
    "COMPLETE": RETURN_COMPLETED,
    "SELESAI": RETURN_COMPLETED,
    "DIKEMBALIKAN": RETURN_COMPLETED,
}

RETURN_ENTRY_TO_STATUS: dict[str, LoanStatus] = {
    RETURN_REQUESTED: LoanStatus.RETURN_REQUESTED,
    RETURN_ACCEPTED: LoanStatus.RETURN_ACCEPTED,
    RETURN_FOLLOW_UP: LoanStatus.RETURN_FOLLOWUP,
    RETURN_REJECTED: LoanStatus.RETURN_REJECTED,
    RETURN_COMPLETED: LoanStatus.COMPLETED,
}

# Cached return_status.status on legacy loans, keyed like return-request entries
RETURN_SUMMARY_ALIASES: dict[str, LoanStatus] = {
    **{token: RETURN_ENTRY_TO_STATUS[state] for token, state in RETURN_ENTRY_ALIASES.items()},
    **{token: status for token, status in _LABEL_ALIASES.items() if status.name.startswith("RETURN")},
    **{status.value: status for status in RETURN_ENTRY_TO_STATUS.values()},
    "RETURNED": LoanStatus.RETURNED,
    "DIKEMBALIKAN": LoanStatus.RETURNED,
}


def lookup_status(raw: object, aliases: dict[str, LoanStatus]) -> Optional[LoanStatus]:
    token = normalize_token(raw)
    if not token:
        return None
    return aliases.get(token)


def normalize_return_entry_status(raw: object) -> Optional[str]:
    """Map a stored return-request status to one of the five entry states, or None."""
    token = normalize_token(raw)
    if not token:
        return None
    return RETURN_ENTRY_ALIASES.get(token)


_AFFIRMATIVE_TOKENS = ("approved", "approve", "setuju", "accept")
_NEGATIVE_TOKENS = ("reject", "tolak", "disapprov", "declin")


def normalize_extension_decision(raw: object) -> Optional[str]:
    """
    Map a stored extension approve_status to "approved", "rejected" or None (pending).
    Case-insensitive substring match; "Disetujui" and "Ditolak" are legacy labels.
    """
    if raw is None:
        return None
    text = str(raw).strip().casefold()
    if not text:
        return None
    if any(tok in text for tok in _NEGATIVE_TOKENS):
        return EXTENSION_REJECTED
    if any(tok in text for tok in _AFFIRMATIVE_TOKENS):
        return EXTENSION_APPROVED
    return None
