from schemas.derivation import DurationInfoSchema, FineResultSchema, StatusResolutionSchema
from schemas.loan import (
    ApprovalAction,
    ExtensionCreate,
    ExtensionDecisionBody,
    LoanCreate,
    PhotoResultSchema,
    ReturnRequestActionBody,
    ReturnRequestCreate,
    WarehouseAction,
)

__all__ = [
    "ApprovalAction",
    "DurationInfoSchema",
    "ExtensionCreate",
    "ExtensionDecisionBody",
    "FineResultSchema",
    "LoanCreate",
    "PhotoResultSchema",
    "ReturnRequestActionBody",
    "ReturnRequestCreate",
    "StatusResolutionSchema",
    "WarehouseAction",
]
