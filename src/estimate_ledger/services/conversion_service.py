"""Conversion of approved estimates into draft invoices."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.config import get_settings
from estimate_ledger.errors import InvalidStateError
from estimate_ledger.events.emitter import EventBatch
from estimate_ledger.events.types import (
    EstimateConverted,
    FieldChange,
    InvoiceCreated,
    diff_fields,
)
from estimate_ledger.models import Invoice
from estimate_ledger.services.areas import copy_areas
from estimate_ledger.services.estimate_service import EstimateService
from estimate_ledger.services.invoice_service import invoice_snapshot
from estimate_ledger.services.state_machine import (
    EstimateStateMachine,
    EstimateStatus,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)


class ConversionService:
    """Turns an approved estimate into a draft invoice in one transaction.

    The invoice starts without a number; it is assigned when the invoice is
    first sent. Project areas are copied by value, so later edits to either
    document never reach the other.
    """

    def __init__(self, session: AsyncSession, events: EventBatch | None = None):
        self.session = session
        self.events = events if events is not None else EventBatch()
        self.estimates = EstimateService(session, self.events)

    async def convert_estimate(
        self,
        estimate_id: UUID,
        due_date: date | None = None,
        payment_terms: str | None = None,
    ) -> Invoice:
        estimate = await self.estimates.require_estimate(estimate_id, for_update=True)
        if estimate.is_superseded:
            raise InvalidStateError(
                f"Estimate {estimate.estimate_number} has been superseded by a revision"
            )
        if not EstimateStateMachine.can_convert(estimate.status):
            raise InvalidStateError(
                f"Estimate {estimate.estimate_number} is {estimate.status}; "
                "only approved estimates can be converted to invoices"
            )

        invoice = Invoice(
            id=uuid4(),
            invoice_number=None,
            estimate_id=estimate.id,
            client_id=estimate.client_id,
            title=estimate.title,
            description=estimate.description,
            status=InvoiceStatus.DRAFT.value,
            total_amount=estimate.total_amount,
            paid_amount=Decimal("0.00"),
            due_date=due_date,
            payment_terms=payment_terms or get_settings().default_payment_terms,
            terms_and_notes=estimate.terms_and_notes,
            project_areas=copy_areas(estimate.project_areas),
            payments=[],
        )
        self.session.add(invoice)
        await self.session.flush()

        # The version counter makes this a conditional update: a concurrent
        # change to the estimate fails the flush instead of being overwritten
        await self.estimates.apply_system_transition(
            estimate,
            EstimateStatus.CONVERTED.value,
            note=f"Converted to invoice {invoice.id}",
        )

        self.events.add(
            InvoiceCreated(
                metadata=self.events.metadata(),
                changes=diff_fields({}, invoice_snapshot(invoice)),
                invoice_id=invoice.id,
                estimate_id=estimate.id,
                total_amount=invoice.total_amount,
            )
        )
        self.events.add(
            EstimateConverted(
                metadata=self.events.metadata(),
                changes=(FieldChange("invoice_id", None, invoice.id),),
                estimate_id=estimate.id,
                invoice_id=invoice.id,
                total_amount=invoice.total_amount,
            )
        )
        logger.info(
            "Converted estimate %s to invoice %s (total=%s)",
            estimate.estimate_number,
            invoice.id,
            invoice.total_amount,
        )
        return invoice
