from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from services.statuses import LoanStatus


class StatusResolutionSchema(BaseModel):
    status: Optional[LoanStatus] = None
    label: str
    rule: str
    reason: str = ""
    raw: Optional[str] = None
    recognized: bool = True
    path: list[str] = Field(default_factory=list)


class DurationInfoSchema(BaseModel):
    days: int
    label: str
    range_label: str
    start: date
    end: date


class FineResultSchema(BaseModel):
    days_overdue: int
    fine_amount: int
    overdue: bool
    reference_date: date
    due_date: date
    updated_at: datetime
