"""
Typed error taxonomy for the posting engine and document lifecycle.

Every error carries a stable machine-readable ``code`` and a human-readable
message. Callers catch by type; the API layer maps types to HTTP statuses.

    LedgerError
    +-- ValidationError
    |   +-- InvalidAccountError
    |   +-- PeriodNotFoundError
    |   +-- AccountInUseError
    |   +-- SelfApprovalError
    +-- NotFoundError
    +-- StateError
    +-- ConflictError
    +-- PostingImbalanceError
    +-- AllocationError
    |   +-- OverAllocationError
    |   +-- AllocationMismatchError
    +-- PeriodClosedError
    +-- InfrastructureError
"""

from typing import Any


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""

    code: str = "LEDGER_ERROR"
    retryable: bool = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": self.message, **self.details}


class ValidationError(LedgerError):
    """Malformed input, empty line list, missing required field."""

    code = "VALIDATION_ERROR"


class InvalidAccountError(ValidationError):
    code = "INVALID_ACCOUNT"


class PeriodNotFoundError(ValidationError):
    code = "FISCAL_PERIOD_NOT_FOUND"


class AccountInUseError(ValidationError):
    code = "ACCOUNT_IN_USE"


class SelfApprovalError(ValidationError):
    code = "SELF_APPROVAL_NOT_ALLOWED"


class NotFoundError(LedgerError):
    code = "NOT_FOUND"


class StateError(LedgerError):
    """Illegal lifecycle transition, e.g. posting a draft."""

    code = "INVALID_STATE_TRANSITION"


class ConflictError(LedgerError):
    """Concurrent state change; the caller should re-fetch and retry."""

    code = "CONFLICT"
    retryable = True


class PostingImbalanceError(LedgerError):
    """Generated journal lines do not balance; indicates a code defect."""

    code = "POSTING_IMBALANCE"


class AllocationError(LedgerError):
    code = "ALLOCATION_ERROR"


class OverAllocationError(AllocationError):
    code = "OVER_ALLOCATION"


class AllocationMismatchError(AllocationError):
    code = "ALLOCATION_MISMATCH"


class PeriodClosedError(LedgerError):
    code = "FISCAL_PERIOD_CLOSED"


class InfrastructureError(LedgerError):
    """Storage failure or timeout. Only idempotent reads are retried."""

    code = "INFRASTRUCTURE_ERROR"
    retryable = True
