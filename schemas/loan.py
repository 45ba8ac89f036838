from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class PhotoResultSchema(BaseModel):
    filename: Optional[str] = None
    url: str


class LoanCreate(BaseModel):
    borrower_name: str = Field(..., alias="borrowerName")
    borrower_id: Optional[str] = Field(None, alias="borrowerId")
    entitas_id: Optional[str] = Field(None, alias="entitasId")
    company: list[str] = Field(default_factory=list)
    need_type: Optional[str] = Field(None, alias="needType")
    out_date: Optional[str] = Field(None, alias="outDate")
    use_date: Optional[str] = Field(None, alias="useDate")
    return_date: Optional[str] = Field(None, alias="returnDate")
    product_details: Optional[str] = Field(None, alias="productDetails")
    pickup_method: Optional[str] = Field(None, alias="pickupMethod")
    note: Optional[str] = None
    is_draft: bool = Field(True, alias="isDraft")

    model_config = {"populate_by_name": True}


class VersionedAction(BaseModel):
    """Every write carries the version the client read; a stale version is rejected."""

    version: int

    model_config = {"populate_by_name": True}


class ApprovalAction(VersionedAction):
    company: str
    approved: bool
    reason: Optional[str] = None
    note: Optional[str] = None


class WarehouseAction(VersionedAction):
    action: Literal["process", "reject"]
    note: Optional[str] = None
    reason: Optional[str] = None


class ReturnRequestCreate(VersionedAction):
    note: str
    photo_results: list[Union[PhotoResultSchema, str]] = Field(default_factory=list, alias="photoResults")

    def photos(self) -> list[Any]:
        return [p.model_dump() if isinstance(p, PhotoResultSchema) else p for p in self.photo_results]


class ReturnRequestActionBody(VersionedAction):
    action: str
    request_id: Optional[str] = Field(None, alias="requestId")
    note: Optional[str] = None
    condition: Optional[str] = None


class ExtensionCreate(VersionedAction):
    requested_return_date: str = Field(..., alias="requestedReturnDate")
    note: str


class ExtensionDecisionBody(VersionedAction):
    action: str
    note: Optional[str] = None
