"""Payment ledger - records, corrects and deletes payments against invoices.

paid_amount is never adjusted incrementally. Every mutation recomputes it
from the invoice's full set of payment rows with settle_invoice, which is
also the only place an invoice's paid/sent status follows its balance.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.calculators import money_sum, round2
from estimate_ledger.errors import (
    InvalidStateError,
    NotFoundError,
    PaymentExceedsOutstandingError,
    ValidationError,
)
from estimate_ledger.events.emitter import EventBatch
from estimate_ledger.events.types import (
    FieldChange,
    InvoiceStatusChanged,
    PaymentDeleted,
    PaymentRecorded,
    PaymentUpdated,
)
from estimate_ledger.models import Invoice, Payment
from estimate_ledger.services.invoice_service import InvoiceService
from estimate_ledger.services.state_machine import InvoiceStateMachine, InvoiceStatus

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("amount", "payment_method", "payment_date", "reference_number", "notes")

DEFAULT_PAYMENT_METHOD = "Cash"


def settle_invoice(invoice: Invoice) -> tuple[FieldChange, ...]:
    """Recompute paid_amount from payment rows and re-evaluate status.

    Returns the field changes it made.
    """
    old_paid, old_status = invoice.paid_amount, invoice.status
    invoice.paid_amount = money_sum(payment.amount for payment in invoice.payments)
    if InvoiceStateMachine.accepts_payments(invoice.status):
        invoice.status = InvoiceStateMachine.settled_status(
            invoice.paid_amount, invoice.total_amount
        )

    changes = []
    if old_paid != invoice.paid_amount:
        changes.append(FieldChange("paid_amount", old_paid, invoice.paid_amount))
    if old_status != invoice.status:
        changes.append(FieldChange("status", old_status, invoice.status))
    return tuple(changes)


def _parse_payment_amount(value: Any) -> Decimal:
    if value is None:
        raise ValidationError("Payment amount is required", field="amount")
    try:
        amount = round2(value)
    except ValueError as exc:
        raise ValidationError("Payment amount is not a valid amount", field="amount") from exc
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than 0", field="amount")
    return amount


class PaymentService:
    """Service for the payment ledger.

    Constraints:
    - Payments are recorded only against sent invoices
    - 0 < amount <= outstanding, checked inside the transaction
    - Corrections may not push the payment total above the invoice total
    """

    def __init__(self, session: AsyncSession, events: EventBatch | None = None):
        self.session = session
        self.events = events if events is not None else EventBatch()
        self.invoices = InvoiceService(session, self.events)

    async def get_payment(self, payment_id: UUID) -> Payment | None:
        result = await self.session.execute(select(Payment).where(Payment.id == payment_id))
        return result.scalar_one_or_none()

    async def list_payments(self, invoice_id: UUID) -> Sequence[Payment]:
        """Payments of an invoice, most recent payment date first."""
        await self.invoices.require_invoice(invoice_id)
        result = await self.session.execute(
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
        )
        return result.scalars().all()

    async def record_payment(
        self,
        invoice_id: UUID,
        amount: Any,
        payment_method: str | None = None,
        payment_date: date | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Apply a payment to a sent invoice.

        Draft invoices reject payments with InvalidStateError, since a payment
        would settle them as paid before they are sent and numbered. Paid and
        void invoices reject them the same way.
        """
        amount = _parse_payment_amount(amount)
        invoice = await self.invoices.require_invoice(invoice_id, for_update=True)
        if invoice.status != InvoiceStatus.SENT:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number or invoice.id} is {invoice.status}; "
                "payments can only be recorded against sent invoices"
            )

        # Outstanding from the rows themselves, not the cached paid_amount
        outstanding = invoice.total_amount - money_sum(p.amount for p in invoice.payments)
        if amount > outstanding:
            raise PaymentExceedsOutstandingError(amount, outstanding)

        payment = Payment(
            id=uuid4(),
            amount=amount,
            payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
            payment_date=payment_date or date.today(),
            reference_number=reference_number,
            notes=notes,
        )
        invoice.payments.append(payment)
        from_status = invoice.status
        changes = settle_invoice(invoice)
        await self.session.flush()

        self.events.add(
            PaymentRecorded(
                metadata=self.events.metadata(),
                changes=changes,
                invoice_id=invoice.id,
                payment_id=payment.id,
                amount=amount,
            )
        )
        self._status_event(invoice, from_status)
        logger.info(
            "Recorded payment %s on invoice %s: paid %s of %s",
            amount,
            invoice.invoice_number,
            invoice.paid_amount,
            invoice.total_amount,
        )
        return invoice

    async def update_payment(self, payment_id: UUID, changes: Mapping[str, Any]) -> Invoice:
        """Correct a payment and re-settle its invoice."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Field(s) not editable: {', '.join(sorted(unknown))}")

        invoice, payment = await self._load_for_change(payment_id)
        before = {name: getattr(payment, name) for name in EDITABLE_FIELDS}

        if "amount" in changes:
            amount = _parse_payment_amount(changes["amount"])
            others = money_sum(p.amount for p in invoice.payments if p.id != payment.id)
            ceiling = invoice.total_amount - others
            if amount > ceiling:
                raise PaymentExceedsOutstandingError(amount, ceiling)
            payment.amount = amount
        if "payment_method" in changes:
            payment.payment_method = changes["payment_method"] or DEFAULT_PAYMENT_METHOD
        if "payment_date" in changes:
            if changes["payment_date"] is None:
                raise ValidationError("payment_date is required", field="payment_date")
            payment.payment_date = changes["payment_date"]
        for name in ("reference_number", "notes"):
            if name in changes:
                setattr(payment, name, changes[name])

        from_status = invoice.status
        payment_changes = tuple(
            FieldChange(name, before[name], getattr(payment, name))
            for name in EDITABLE_FIELDS
            if before[name] != getattr(payment, name)
        )
        changes_made = payment_changes + settle_invoice(invoice)
        await self.session.flush()

        self.events.add(
            PaymentUpdated(
                metadata=self.events.metadata(),
                changes=changes_made,
                invoice_id=invoice.id,
                payment_id=payment.id,
            )
        )
        self._status_event(invoice, from_status)
        return invoice

    async def delete_payment(self, payment_id: UUID) -> Invoice:
        """Remove a payment and re-settle its invoice."""
        invoice, payment = await self._load_for_change(payment_id)

        invoice.payments.remove(payment)
        from_status = invoice.status
        changes = settle_invoice(invoice)
        await self.session.flush()

        self.events.add(
            PaymentDeleted(
                metadata=self.events.metadata(),
                changes=changes,
                invoice_id=invoice.id,
                payment_id=payment.id,
                amount=payment.amount,
            )
        )
        self._status_event(invoice, from_status)
        logger.info(
            "Deleted payment %s from invoice %s", payment.amount, invoice.invoice_number
        )
        return invoice

    async def _load_for_change(self, payment_id: UUID) -> tuple[Invoice, Payment]:
        found = await self.get_payment(payment_id)
        if found is None:
            raise NotFoundError("Payment", payment_id)

        invoice = await self.invoices.require_invoice(found.invoice_id, for_update=True)
        if not InvoiceStateMachine.accepts_payments(invoice.status):
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number or invoice.id} is {invoice.status}; "
                "its payments can no longer be changed"
            )
        for payment in invoice.payments:
            if payment.id == payment_id:
                return invoice, payment
        # Deleted by a concurrent transaction after the first read
        raise NotFoundError("Payment", payment_id)

    def _status_event(self, invoice: Invoice, from_status: str) -> None:
        if invoice.status == from_status:
            return
        self.events.add(
            InvoiceStatusChanged(
                metadata=self.events.metadata(),
                changes=(FieldChange("status", from_status, invoice.status),),
                invoice_id=invoice.id,
                from_status=from_status,
                to_status=invoice.status,
            )
        )
