"""EstimateLedger facade - the single integration path for document operations.

Usage:
    engine = get_engine()
    factory = create_session_factory(engine)
    await bootstrap(engine, factory)

    ledger = EstimateLedger(factory, emitter)
    estimate = await ledger.create_estimate(client_id, "Interior repaint", areas)
    await ledger.transition_estimate(estimate.id, "sent")

The facade:
- Runs every operation in exactly one store transaction
- Retries StoreError (and only StoreError) settings.store_retries times
- Dispatches audit events only after the transaction commits
- Returns fully loaded ORM objects that are safe to use after the session closes
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from estimate_ledger.config import Settings, get_settings
from estimate_ledger.database import create_schema, transaction
from estimate_ledger.errors import StoreError
from estimate_ledger.events.emitter import EventBatch, EventEmitter
from estimate_ledger.models import Estimate, EstimateRevision, Invoice, Payment
from estimate_ledger.services.conversion_service import ConversionService
from estimate_ledger.services.estimate_service import EstimateService
from estimate_ledger.services.invoice_service import InvoiceService
from estimate_ledger.services.payment_service import PaymentService
from estimate_ledger.services.revision_service import (
    RevisionResult,
    RevisionService,
    VersionSnapshot,
)
from estimate_ledger.services.sequence_service import SequenceAllocator, ensure_sequences

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[AsyncSession, EventBatch], Awaitable[T]]


async def bootstrap(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> list[str]:
    """Create missing tables and seed number sequences.

    Returns the sequence types that were seeded.
    """
    await create_schema(engine)
    async with transaction(session_factory) as session:
        return await ensure_sequences(session, settings)


class EstimateLedger:
    """Facade over the estimate, revision, invoice and payment services."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        emitter: EventEmitter | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.emitter = emitter or EventEmitter()
        self.settings = settings or get_settings()

    async def _run(self, operation: Operation[T], actor: str = "system") -> T:
        attempts = max(self.settings.store_retries, 0) + 1
        for attempt in range(1, attempts + 1):
            try:
                with EventBatch(self.emitter, actor=actor) as batch:
                    async with transaction(self.session_factory) as session:
                        return await operation(session, batch)
            except StoreError:
                if attempt == attempts:
                    logger.error("Store error persisted after %d attempt(s)", attempts)
                    raise
                logger.warning("Store error on attempt %d/%d, retrying", attempt, attempts)
                await asyncio.sleep(self.settings.store_retry_backoff * attempt)
        raise AssertionError("unreachable")

    # =========================================================================
    # Sequences
    # =========================================================================

    async def allocate_number(self, sequence_type: str, actor: str = "system") -> str:
        return await self._run(
            lambda s, e: SequenceAllocator(s, e).next(sequence_type), actor
        )

    async def current_sequences(self) -> dict[str, int]:
        return await self._run(lambda s, e: SequenceAllocator(s, e).current_numbers())

    # =========================================================================
    # Estimates
    # =========================================================================

    async def create_estimate(
        self,
        client_id: UUID,
        title: str,
        project_areas: Sequence[Mapping[str, Any]],
        markup_percentage: Any = None,
        description: str | None = None,
        valid_until: date | None = None,
        terms_and_notes: str | None = None,
        actor: str = "system",
    ) -> Estimate:
        return await self._run(
            lambda s, e: EstimateService(s, e).create_estimate(
                client_id,
                title,
                project_areas,
                markup_percentage=markup_percentage,
                description=description,
                valid_until=valid_until,
                terms_and_notes=terms_and_notes,
            ),
            actor,
        )

    async def update_estimate(
        self, estimate_id: UUID, changes: Mapping[str, Any], actor: str = "system"
    ) -> Estimate:
        return await self._run(
            lambda s, e: EstimateService(s, e).update_estimate(estimate_id, changes), actor
        )

    async def get_estimate(self, estimate_id: UUID) -> Estimate:
        return await self._run(lambda s, e: EstimateService(s, e).require_estimate(estimate_id))

    async def list_estimates(
        self,
        status: str | None = None,
        client_id: UUID | None = None,
        current_only: bool = True,
    ) -> Sequence[Estimate]:
        return await self._run(
            lambda s, e: EstimateService(s, e).list_estimates(
                status=status, client_id=client_id, current_only=current_only
            )
        )

    async def transition_estimate(
        self,
        estimate_id: UUID,
        to_status: str,
        note: str | None = None,
        actor: str = "system",
    ) -> Estimate:
        return await self._run(
            lambda s, e: EstimateService(s, e).transition_estimate(estimate_id, to_status, note),
            actor,
        )

    async def delete_estimate(self, estimate_id: UUID, actor: str = "system") -> None:
        await self._run(lambda s, e: EstimateService(s, e).delete_estimate(estimate_id), actor)

    # =========================================================================
    # Revisions
    # =========================================================================

    async def revise_estimate(
        self,
        estimate_id: UUID,
        changes: Mapping[str, Any],
        revision_type: str,
        change_summary: str | None = None,
        approval_status: str = "pending",
        actor: str = "system",
    ) -> RevisionResult:
        return await self._run(
            lambda s, e: RevisionService(s, e).revise_estimate(
                estimate_id,
                changes,
                revision_type,
                change_summary=change_summary,
                created_by=actor,
                approval_status=approval_status,
            ),
            actor,
        )

    async def version_history(self, estimate_id: UUID) -> Sequence[Estimate]:
        return await self._run(lambda s, e: RevisionService(s, e).version_history(estimate_id))

    async def revision_timeline(self, estimate_id: UUID) -> list[VersionSnapshot]:
        return await self._run(lambda s, e: RevisionService(s, e).revision_timeline(estimate_id))

    async def list_revisions(self, estimate_id: UUID) -> Sequence[EstimateRevision]:
        return await self._run(lambda s, e: RevisionService(s, e).list_revisions(estimate_id))

    # =========================================================================
    # Conversion and invoices
    # =========================================================================

    async def convert_estimate(
        self,
        estimate_id: UUID,
        due_date: date | None = None,
        payment_terms: str | None = None,
        actor: str = "system",
    ) -> Invoice:
        return await self._run(
            lambda s, e: ConversionService(s, e).convert_estimate(
                estimate_id, due_date=due_date, payment_terms=payment_terms
            ),
            actor,
        )

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
        actor: str = "system",
    ) -> Invoice:
        return await self._run(
            lambda s, e: InvoiceService(s, e).create_invoice(
                client_id,
                title,
                project_areas=project_areas,
                total_amount=total_amount,
                description=description,
                due_date=due_date,
                payment_terms=payment_terms,
                terms_and_notes=terms_and_notes,
            ),
            actor,
        )

    async def update_invoice(
        self, invoice_id: UUID, changes: Mapping[str, Any], actor: str = "system"
    ) -> Invoice:
        return await self._run(
            lambda s, e: InvoiceService(s, e).update_invoice(invoice_id, changes), actor
        )

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        return await self._run(lambda s, e: InvoiceService(s, e).require_invoice(invoice_id))

    async def list_invoices(
        self,
        status: str | None = None,
        client_id: UUID | None = None,
        overdue: bool | None = None,
        as_of: date | None = None,
    ) -> Sequence[Invoice]:
        return await self._run(
            lambda s, e: InvoiceService(s, e).list_invoices(
                status=status, client_id=client_id, overdue=overdue, as_of=as_of
            )
        )

    async def list_overdue_invoices(self, as_of: date | None = None) -> Sequence[Invoice]:
        return await self._run(lambda s, e: InvoiceService(s, e).list_overdue(as_of))

    async def transition_invoice(
        self,
        invoice_id: UUID,
        to_status: str,
        void_reason: str | None = None,
        actor: str = "system",
    ) -> Invoice:
        return await self._run(
            lambda s, e: InvoiceService(s, e).transition_invoice(
                invoice_id, to_status, void_reason
            ),
            actor,
        )

    # =========================================================================
    # Payments
    # =========================================================================

    async def record_payment(
        self,
        invoice_id: UUID,
        amount: Any,
        payment_method: str | None = None,
        payment_date: date | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
        actor: str = "system",
    ) -> Invoice:
        return await self._run(
            lambda s, e: PaymentService(s, e).record_payment(
                invoice_id,
                amount,
                payment_method=payment_method,
                payment_date=payment_date,
                reference_number=reference_number,
                notes=notes,
            ),
            actor,
        )

    async def update_payment(
        self, payment_id: UUID, changes: Mapping[str, Any], actor: str = "system"
    ) -> Invoice:
        return await self._run(
            lambda s, e: PaymentService(s, e).update_payment(payment_id, changes), actor
        )

    async def delete_payment(self, payment_id: UUID, actor: str = "system") -> Invoice:
        return await self._run(
            lambda s, e: PaymentService(s, e).delete_payment(payment_id), actor
        )

    async def list_payments(self, invoice_id: UUID) -> Sequence[Payment]:
        return await self._run(lambda s, e: PaymentService(s, e).list_payments(invoice_id))
