"""Estimate and invoice state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from estimate_ledger.errors import InvalidTransitionError


class EstimateStatus(str, Enum):
    """Estimate status values."""

    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


class InvoiceStatus(str, Enum):
    """Stored invoice status values.

    OVERDUE is derived on read from due_date and is never persisted.
    """

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"


class RevisionType(str, Enum):
    PRICE_ADJUSTMENT = "price_adjustment"
    SCOPE_CHANGE = "scope_change"
    CLIENT_REQUEST = "client_request"
    CORRECTION = "correction"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StateMachine:
    """Table-driven transition validation shared by both document types."""

    # {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: ClassVar[dict[str, list[str]]] = {}

    # Transitions that exist in the graph but only as side effects of
    # another operation (conversion, voiding)
    SYSTEM_ONLY: ClassVar[set[tuple[str, str]]] = set()

    STATUS_TYPE: ClassVar[type[Enum]]

    @classmethod
    def is_known_status(cls, status: str) -> bool:
        return status in {s.value for s in cls.STATUS_TYPE}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is in the graph."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def can_request(cls, from_status: str, to_status: str) -> bool:
        """Check if a caller may request this transition directly."""
        return (
            cls.can_transition(from_status, to_status)
            and (from_status, to_status) not in cls.SYSTEM_ONLY
        )

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def validate_request(cls, from_status: str, to_status: str) -> None:
        """Validate a caller-requested transition."""
        if not cls.is_known_status(to_status):
            raise InvalidTransitionError(from_status, to_status, "unknown status")
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)
        if (from_status, to_status) in cls.SYSTEM_ONLY:
            raise InvalidTransitionError(
                from_status, to_status, "only reachable through a document operation"
            )

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return [s for s in cls.VALID_TRANSITIONS.get(current_status, [])]

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)


class EstimateStateMachine(StateMachine):
    """State machine for estimate status transitions.

    Allowed transitions:
    - draft → sent
    - sent → approved | rejected
    - approved → rejected
    - approved → converted (conversion only)
    - converted → approved (invoice void only)
    """

    STATUS_TYPE = EstimateStatus

    VALID_TRANSITIONS = {
        EstimateStatus.DRAFT: [EstimateStatus.SENT],
        EstimateStatus.SENT: [EstimateStatus.APPROVED, EstimateStatus.REJECTED],
        EstimateStatus.APPROVED: [EstimateStatus.REJECTED, EstimateStatus.CONVERTED],
        EstimateStatus.REJECTED: [],  # Terminal state
        EstimateStatus.CONVERTED: [EstimateStatus.APPROVED],
    }

    SYSTEM_ONLY = {
        (EstimateStatus.APPROVED, EstimateStatus.CONVERTED),
        (EstimateStatus.CONVERTED, EstimateStatus.APPROVED),
    }

    # Statuses where commercial fields may be edited in place
    EDITABLE = {EstimateStatus.DRAFT}

    # Statuses where changes must go through a revision
    REVISABLE = {EstimateStatus.SENT, EstimateStatus.APPROVED}

    DELETABLE = {EstimateStatus.DRAFT}

    @classmethod
    def can_edit(cls, status: str) -> bool:
        return status in cls.EDITABLE

    @classmethod
    def can_revise(cls, status: str) -> bool:
        return status in cls.REVISABLE

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def can_convert(cls, status: str) -> bool:
        return status == EstimateStatus.APPROVED


class InvoiceStateMachine(StateMachine):
    """State machine for invoice status transitions.

    Allowed transitions:
    - draft → sent (assigns the invoice number)
    - sent → paid, paid → sent (manual correction)
    - draft | sent → void (terminal, requires a reason)
    """

    STATUS_TYPE = InvoiceStatus

    VALID_TRANSITIONS = {
        InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.VOID],
        InvoiceStatus.SENT: [InvoiceStatus.PAID, InvoiceStatus.VOID],
        InvoiceStatus.PAID: [InvoiceStatus.SENT],
        InvoiceStatus.VOID: [],  # Terminal state
    }

    EDITABLE = {InvoiceStatus.DRAFT}

    # Statuses whose paid/sent state follows the payment balance
    SETTLEABLE = {InvoiceStatus.SENT, InvoiceStatus.PAID}

    @classmethod
    def can_edit(cls, status: str) -> bool:
        return status in cls.EDITABLE

    @classmethod
    def accepts_payments(cls, status: str) -> bool:
        return status in cls.SETTLEABLE

    @classmethod
    def requires_number(cls, from_status: str, to_status: str) -> bool:
        return from_status == InvoiceStatus.DRAFT and to_status == InvoiceStatus.SENT

    @classmethod
    def is_void(cls, to_status: str) -> bool:
        return to_status == InvoiceStatus.VOID

    @classmethod
    def settled_status(cls, paid_amount, total_amount) -> str:
        """Status implied by the payment balance for a sent/paid invoice."""
        if paid_amount >= total_amount:
            return InvoiceStatus.PAID.value
        return InvoiceStatus.SENT.value
