"""Estimate ledger services."""

from estimate_ledger.services.conversion_service import ConversionService
from estimate_ledger.services.estimate_service import EstimateService
from estimate_ledger.services.invoice_service import InvoiceService
from estimate_ledger.services.payment_service import PaymentService, settle_invoice
from estimate_ledger.services.revision_service import RevisionResult, RevisionService
from estimate_ledger.services.sequence_service import (
    SequenceAllocator,
    SequenceType,
    ensure_sequences,
)
from estimate_ledger.services.state_machine import (
    EstimateStateMachine,
    EstimateStatus,
    InvoiceStateMachine,
    InvoiceStatus,
)

__all__ = [
    "ConversionService",
    "EstimateService",
    "InvoiceService",
    "PaymentService",
    "settle_invoice",
    "RevisionResult",
    "RevisionService",
    "SequenceAllocator",
    "SequenceType",
    "ensure_sequences",
    "EstimateStateMachine",
    "EstimateStatus",
    "InvoiceStateMachine",
    "InvoiceStatus",
]
