"""Error taxonomy for ledger operations.

Every failure surfaced by the engine is one of these types. They are raised
inside the transaction scope, so the session rolls back before the caller
sees them and no operation leaves partial writes behind.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": self.message}


class NotFoundError(LedgerError):
    """Entity id is unknown."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidTransitionError(LedgerError):
    """Raised when a status change is not in the transition table."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidStateError(LedgerError):
    """A multi-step operation's precondition does not hold."""

    code = "INVALID_STATE"


class ValidationError(LedgerError):
    """Malformed or out-of-range input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class PaymentExceedsOutstandingError(ValidationError):
    """Payment amount is above the invoice's outstanding balance."""

    def __init__(self, amount: Decimal, outstanding: Decimal):
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment amount ({amount}) exceeds outstanding balance ({outstanding})",
            field="amount",
        )


class ConflictError(LedgerError):
    """Operation forbidden by a business rule given the current data."""

    code = "CONFLICT"


class StoreError(LedgerError):
    """Transaction or commit failure in the document store. Safe to retry."""

    code = "STORE_ERROR"


class SequenceNotConfiguredError(LedgerError):
    """A document number sequence row is missing.

    This is a configuration problem; retrying will not help.
    """

    code = "SEQUENCE_NOT_CONFIGURED"

    def __init__(self, sequence_type: str):
        self.sequence_type = sequence_type
        super().__init__(f"Number sequence '{sequence_type}' is not configured")
