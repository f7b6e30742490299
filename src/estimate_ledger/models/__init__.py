"""ORM models for the estimate ledger."""

from estimate_ledger.models.base import Base, TimestampMixin, UpdatedAtMixin
from estimate_ledger.models.estimate import Estimate, EstimateRevision, ProjectArea
from estimate_ledger.models.invoice import Invoice, Payment
from estimate_ledger.models.sequence import NumberSequence, format_number

__all__ = [
    "Base",
    "TimestampMixin",
    "UpdatedAtMixin",
    "Estimate",
    "EstimateRevision",
    "ProjectArea",
    "Invoice",
    "Payment",
    "NumberSequence",
    "format_number",
]
