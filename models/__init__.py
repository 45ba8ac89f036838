from models.loan import Loan

__all__ = [
    "Loan",
]
