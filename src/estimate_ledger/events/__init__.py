"""Audit events package.

This package provides:
- Typed, immutable events for every document operation
- Event emitter and per-transaction batches for publishing them
"""

from estimate_ledger.events.emitter import EventBatch, EventEmitter, EventHandler
from estimate_ledger.events.types import (
    # Base
    DomainEvent,
    EventCategory,
    EventMetadata,
    FieldChange,
    diff_fields,
    # Estimate Events
    EstimateConverted,
    EstimateCreated,
    EstimateDeleted,
    EstimateRevised,
    EstimateStatusChanged,
    EstimateUpdated,
    # Invoice Events
    InvoiceCreated,
    InvoiceNumberAssigned,
    InvoiceStatusChanged,
    InvoiceUpdated,
    InvoiceVoided,
    # Payment Events
    PaymentDeleted,
    PaymentRecorded,
    PaymentUpdated,
    # Sequence Events
    DocumentNumberAllocated,
)

__all__ = [
    "EventBatch",
    "EventEmitter",
    "EventHandler",
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    "FieldChange",
    "diff_fields",
    "EstimateConverted",
    "EstimateCreated",
    "EstimateDeleted",
    "EstimateRevised",
    "EstimateStatusChanged",
    "EstimateUpdated",
    "InvoiceCreated",
    "InvoiceNumberAssigned",
    "InvoiceStatusChanged",
    "InvoiceUpdated",
    "InvoiceVoided",
    "PaymentDeleted",
    "PaymentRecorded",
    "PaymentUpdated",
    "DocumentNumberAllocated",
]
