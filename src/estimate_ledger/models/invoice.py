"""Invoice and payment models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estimate_ledger.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from estimate_ledger.models.estimate import ProjectArea


class Invoice(Base, TimestampMixin, UpdatedAtMixin):
    """A billable document, optionally converted from an approved estimate."""

    __tablename__ = "invoice"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    estimate_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("estimate.id"), nullable=True
    )
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_terms: Mapped[str] = mapped_column(String, nullable=False, default="Net 30")
    terms_and_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("invoice_number", name="invoice_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'sent', 'paid', 'void')",
            name="invoice_status_check",
        ),
        CheckConstraint(
            "invoice_number IS NOT NULL OR status IN ('draft', 'void')",
            name="invoice_number_assigned_check",
        ),
        CheckConstraint(
            "status <> 'void' OR (voided_at IS NOT NULL AND void_reason IS NOT NULL)",
            name="invoice_void_fields_check",
        ),
        CheckConstraint("paid_amount >= 0", name="invoice_paid_amount_check"),
        CheckConstraint("total_amount >= 0", name="invoice_total_amount_check"),
    )

    # Relationships
    project_areas: Mapped[list[ProjectArea]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="ProjectArea.position",
        lazy="selectin",
    )
    payments: Mapped[list[Payment]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.payment_date",
        lazy="selectin",
    )

    @property
    def outstanding_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    def is_overdue(self, as_of: date) -> bool:
        """Overdue is derived on read, never stored."""
        return (
            self.status == "sent"
            and self.due_date is not None
            and self.due_date < as_of
        )

    def effective_status(self, as_of: date) -> str:
        return "overdue" if self.is_overdue(as_of) else self.status


class Payment(Base, TimestampMixin):
    """A payment applied against an invoice."""

    __tablename__ = "payment"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String, nullable=False, default="Cash")
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="payment_amount_positive_check"),
    )

    # Relationships
    invoice: Mapped[Invoice] = relationship(back_populates="payments")
