"""
Error taxonomy for loan workflow actions.
Derivation code never raises these; it logs and degrades to a safe default instead.
"""


class LoanWorkflowError(Exception):
    """Base class for errors reported back to the caller of a workflow action."""

    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LoanWorkflowError):
    """Missing or invalid caller input (note, reason, photo evidence, date). Never persisted."""

    status_code = 400


class StateConflictError(LoanWorkflowError):
    """The loan's sub-state does not satisfy the action's precondition. No partial write."""

    status_code = 409


class ConcurrencyConflictError(LoanWorkflowError):
    """The stored version changed since it was read; reload and retry."""

    status_code = 409
    retryable = True


class LoanNotFoundError(LoanWorkflowError):
    status_code = 404
