"""Audit event types for document lifecycle operations.

All events are:
- Immutable (frozen dataclasses)
- Attributed (actor, timestamp, correlation id in metadata)
- Self-describing field changes (field name, old value, new value)
- Serializable for an external audit or notification sink

The engine emits these facts; persisting or delivering them is the sink's job.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    ESTIMATE = "estimate"
    REVISION = "revision"
    INVOICE = "invoice"
    PAYMENT = "payment"
    SEQUENCE = "sequence"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every event."""

    event_id: UUID
    timestamp: datetime
    actor: str
    correlation_id: UUID  # Shared by all events of one operation
    version: int = 1

    @classmethod
    def create(
        cls,
        actor: str = "system",
        correlation_id: UUID | None = None,
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            actor=actor,
            correlation_id=correlation_id or uuid4(),
        )


@dataclass(frozen=True)
class FieldChange:
    """One audited field change."""

    field_name: str
    old_value: Any
    new_value: Any


def diff_fields(before: dict[str, Any], after: dict[str, Any]) -> tuple[FieldChange, ...]:
    """Field changes between two snapshots, in the order of `after`."""
    return tuple(
        FieldChange(name, before.get(name), value)
        for name, value in after.items()
        if before.get(name) != value
    )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all events."""

    metadata: EventMetadata
    changes: tuple[FieldChange, ...]

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type
        data["category"] = self.category
        return _serialize_dict(data)

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    return obj


# =============================================================================
# Estimate Events
# =============================================================================


@dataclass(frozen=True)
class EstimateCreated(DomainEvent):
    estimate_id: UUID
    estimate_number: str
    total_amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.ESTIMATE


@dataclass(frozen=True)
class EstimateUpdated(DomainEvent):
    """A draft estimate was edited in place."""

    estimate_id: UUID

    @property
    def category(self) -> EventCategory:
        return EventCategory.ESTIMATE


@dataclass(frozen=True)
class EstimateStatusChanged(DomainEvent):
    estimate_id: UUID
    from_status: str
    to_status: str
    note: str | None = None

    @property
    def category(self) -> EventCategory:
        return EventCategory.ESTIMATE


@dataclass(frozen=True)
class EstimateDeleted(DomainEvent):
    estimate_id: UUID
    estimate_number: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.ESTIMATE


@dataclass(frozen=True)
class EstimateRevised(DomainEvent):
    """A new version of an estimate superseded the previous one."""

    estimate_id: UUID
    source_estimate_id: UUID
    revision_id: UUID
    revision_number: int
    revision_type: str
    total_delta: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.REVISION


@dataclass(frozen=True)
class EstimateConverted(DomainEvent):
    estimate_id: UUID
    invoice_id: UUID
    total_amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.ESTIMATE


# =============================================================================
# Invoice Events
# =============================================================================


@dataclass(frozen=True)
class InvoiceCreated(DomainEvent):
    invoice_id: UUID
    estimate_id: UUID | None
    total_amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceUpdated(DomainEvent):
    invoice_id: UUID

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceNumberAssigned(DomainEvent):
    invoice_id: UUID
    invoice_number: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceStatusChanged(DomainEvent):
    invoice_id: UUID
    from_status: str
    to_status: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


@dataclass(frozen=True)
class InvoiceVoided(DomainEvent):
    invoice_id: UUID
    invoice_number: str | None
    reason: str
    reverted_estimate_id: UUID | None = None

    @property
    def category(self) -> EventCategory:
        return EventCategory.INVOICE


# =============================================================================
# Payment Events
# =============================================================================


@dataclass(frozen=True)
class PaymentRecorded(DomainEvent):
    invoice_id: UUID
    payment_id: UUID
    amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentUpdated(DomainEvent):
    invoice_id: UUID
    payment_id: UUID

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


@dataclass(frozen=True)
class PaymentDeleted(DomainEvent):
    invoice_id: UUID
    payment_id: UUID
    amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYMENT


# =============================================================================
# Sequence Events
# =============================================================================


@dataclass(frozen=True)
class DocumentNumberAllocated(DomainEvent):
    sequence_type: str
    document_number: str

    @property
    def category(self) -> EventCategory:
        return EventCategory.SEQUENCE
