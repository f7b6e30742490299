"""Invoice service - standalone invoices, draft edits and status transitions."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.calculators import compute_totals
from estimate_ledger.config import get_settings
from estimate_ledger.errors import InvalidStateError, NotFoundError, ValidationError
from estimate_ledger.events.emitter import EventBatch
from estimate_ledger.events.types import (
    FieldChange,
    InvoiceCreated,
    InvoiceNumberAssigned,
    InvoiceStatusChanged,
    InvoiceUpdated,
    InvoiceVoided,
    diff_fields,
)
from estimate_ledger.models import Invoice
from estimate_ledger.models.base import utcnow
from estimate_ledger.services.areas import build_areas, parse_amount
from estimate_ledger.services.estimate_service import EstimateService
from estimate_ledger.services.sequence_service import SequenceAllocator, SequenceType
from estimate_ledger.services.state_machine import (
    EstimateStatus,
    InvoiceStateMachine,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "client_id",
    "title",
    "description",
    "total_amount",
    "due_date",
    "payment_terms",
    "terms_and_notes",
    "project_areas",
)


def invoice_snapshot(invoice: Invoice) -> dict[str, Any]:
    return {
        "title": invoice.title,
        "description": invoice.description,
        "total_amount": invoice.total_amount,
        "due_date": invoice.due_date,
        "payment_terms": invoice.payment_terms,
        "terms_and_notes": invoice.terms_and_notes,
    }


def _positive_total(value: Any) -> Decimal:
    total = parse_amount(value, "total_amount", allow_none=False)
    if total <= 0:
        raise ValidationError("Total amount must be greater than 0", field="total_amount")
    return total


class InvoiceService:
    """Service for the invoice lifecycle.

    Transitions and their side effects:
    - draft → sent: assign the invoice number exactly once
    - sent ⇄ paid: manual correction
    - draft | sent → void: requires a reason, reverts a converted estimate
    """

    def __init__(self, session: AsyncSession, events: EventBatch | None = None):
        self.session = session
        self.events = events if events is not None else EventBatch()
        self.allocator = SequenceAllocator(session, self.events)
        self.estimates = EstimateService(session, self.events)

    async def get_invoice(
        self, invoice_id: UUID, for_update: bool = False
    ) -> Invoice | None:
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def require_invoice(self, invoice_id: UUID, for_update: bool = False) -> Invoice:
        invoice = await self.get_invoice(invoice_id, for_update=for_update)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def list_invoices(
        self,
        status: str | None = None,
        client_id: UUID | None = None,
        overdue: bool | None = None,
        as_of: date | None = None,
    ) -> Sequence[Invoice]:
        """List invoices. status="overdue" is the same as overdue=True."""
        as_of = as_of or date.today()
        if status == InvoiceStatus.OVERDUE:
            status, overdue = None, True

        stmt = select(Invoice)
        if status is not None:
            stmt = stmt.where(Invoice.status == status)
        if client_id is not None:
            stmt = stmt.where(Invoice.client_id == client_id)
        if overdue is True:
            stmt = stmt.where(
                Invoice.status == InvoiceStatus.SENT.value,
                Invoice.due_date.is_not(None),
                Invoice.due_date < as_of,
            )
        stmt = stmt.order_by(Invoice.created_at.desc())
        result = await self.session.execute(stmt)
        invoices = result.scalars().all()
        if overdue is False:
            invoices = [inv for inv in invoices if not inv.is_overdue(as_of)]
        return invoices

    async def list_overdue(self, as_of: date | None = None) -> Sequence[Invoice]:
        """Sent invoices past their due date, oldest due date first."""
        invoices = await self.list_invoices(overdue=True, as_of=as_of)
        return sorted(invoices, key=lambda inv: (inv.due_date, inv.created_at))

    async def create_invoice(
        self,
        client_id: UUID,
        title: str,
        project_areas: Sequence[Mapping[str, Any]] | None = None,
        total_amount: Any = None,
        description: str | None = None,
        due_date: date | None = None,
        payment_terms: str | None = None,
        terms_and_notes: str | None = None,
    ) -> Invoice:
        """Create a standalone draft invoice.

        The total is taken from total_amount when given, otherwise derived
        from the project areas without markup.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required", field="title")
        areas = build_areas(project_areas or [])
        if total_amount is None:
            if not areas:
                raise ValidationError(
                    "total_amount or project areas are required", field="total_amount"
                )
            total_amount = compute_totals(areas, Decimal("0")).total_amount
        total = _positive_total(total_amount)

        invoice = Invoice(
            id=uuid4(),
            invoice_number=None,
            estimate_id=None,
            client_id=client_id,
            title=title,
            description=description,
            status=InvoiceStatus.DRAFT.value,
            total_amount=total,
            paid_amount=Decimal("0.00"),
            due_date=due_date,
            payment_terms=payment_terms or get_settings().default_payment_terms,
            terms_and_notes=terms_and_notes,
            project_areas=areas,
            payments=[],
        )
        self.session.add(invoice)
        await self.session.flush()

        self.events.add(
            InvoiceCreated(
                metadata=self.events.metadata(),
                changes=diff_fields({}, invoice_snapshot(invoice)),
                invoice_id=invoice.id,
                estimate_id=None,
                total_amount=invoice.total_amount,
            )
        )
        logger.info("Created standalone invoice %s total=%s", invoice.id, total)
        return invoice

    async def update_invoice(self, invoice_id: UUID, changes: Mapping[str, Any]) -> Invoice:
        """Edit a draft invoice in place."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Field(s) not editable: {', '.join(sorted(unknown))}")

        invoice = await self.require_invoice(invoice_id, for_update=True)
        if not InvoiceStateMachine.can_edit(invoice.status):
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number or invoice.id} is {invoice.status}; "
                "only draft invoices can be edited"
            )

        before = invoice_snapshot(invoice)
        for name, value in changes.items():
            if name == "title":
                title = (value or "").strip()
                if not title:
                    raise ValidationError("title is required", field="title")
                invoice.title = title
            elif name == "total_amount":
                invoice.total_amount = _positive_total(value)
            elif name == "project_areas":
                invoice.project_areas = build_areas(value or [])
            elif name == "payment_terms":
                invoice.payment_terms = value or get_settings().default_payment_terms
            elif name == "client_id":
                if value is None:
                    raise ValidationError("client_id is required", field="client_id")
                invoice.client_id = value
            else:
                setattr(invoice, name, value)
        await self.session.flush()

        self.events.add(
            InvoiceUpdated(
                metadata=self.events.metadata(),
                changes=diff_fields(before, invoice_snapshot(invoice)),
                invoice_id=invoice.id,
            )
        )
        return invoice

    async def transition_invoice(
        self,
        invoice_id: UUID,
        to_status: str,
        void_reason: str | None = None,
    ) -> Invoice:
        """Apply a caller-requested status change with its side effects.

        Raises InvalidTransitionError for anything outside the transition
        table (including the derived "overdue"), and ValidationError when
        voiding without a reason.
        """
        invoice = await self.require_invoice(invoice_id, for_update=True)
        from_status = invoice.status
        InvoiceStateMachine.validate_request(from_status, to_status)
        to_status = InvoiceStatus(to_status).value

        if InvoiceStateMachine.is_void(to_status):
            return await self._void(invoice, void_reason)

        if InvoiceStateMachine.requires_number(from_status, to_status):
            await self._assign_number(invoice)

        invoice.status = to_status
        await self.session.flush()
        self._status_changed(invoice, from_status)
        return invoice

    async def _assign_number(self, invoice: Invoice) -> None:
        # A number, once assigned, is never replaced
        if invoice.invoice_number is not None:
            return
        invoice.invoice_number = await self.allocator.next(SequenceType.INVOICE)
        self.events.add(
            InvoiceNumberAssigned(
                metadata=self.events.metadata(),
                changes=(FieldChange("invoice_number", None, invoice.invoice_number),),
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
            )
        )

    async def _void(self, invoice: Invoice, void_reason: str | None) -> Invoice:
        reason = (void_reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to void an invoice", field="void_reason")

        from_status = invoice.status
        invoice.status = InvoiceStatus.VOID.value
        invoice.voided_at = utcnow()
        invoice.void_reason = reason
        await self.session.flush()

        reverted_estimate_id = None
        if invoice.estimate_id is not None:
            estimate = await self.estimates.get_estimate(invoice.estimate_id, for_update=True)
            if estimate is not None and estimate.status == EstimateStatus.CONVERTED:
                label = invoice.invoice_number or str(invoice.id)
                await self.estimates.apply_system_transition(
                    estimate,
                    EstimateStatus.APPROVED.value,
                    note=f"Invoice {label} voided: {reason}",
                )
                reverted_estimate_id = estimate.id

        self._status_changed(invoice, from_status)
        self.events.add(
            InvoiceVoided(
                metadata=self.events.metadata(),
                changes=(
                    FieldChange("voided_at", None, invoice.voided_at),
                    FieldChange("void_reason", None, reason),
                ),
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                reason=reason,
                reverted_estimate_id=reverted_estimate_id,
            )
        )
        logger.info(
            "Voided invoice %s (%s); reverted estimate %s",
            invoice.invoice_number or invoice.id,
            reason,
            reverted_estimate_id,
        )
        return invoice

    def _status_changed(self, invoice: Invoice, from_status: str) -> None:
        self.events.add(
            InvoiceStatusChanged(
                metadata=self.events.metadata(),
                changes=(FieldChange("status", from_status, invoice.status),),
                invoice_id=invoice.id,
                from_status=from_status,
                to_status=invoice.status,
            )
        )
        logger.info(
            "Invoice %s: %s -> %s",
            invoice.invoice_number or invoice.id,
            from_status,
            invoice.status,
        )
