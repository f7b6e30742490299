"""Invoice API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from estimate_ledger.api.dependencies import Actor, Ledger
from estimate_ledger.api.schemas import (
    ErrorResponse,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResponse,
)

router = APIRouter(prefix="/invoices", tags=["invoices"])

ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_invoice(
    ledger: Ledger, actor: Actor, payload: InvoiceCreate
) -> InvoiceResponse:
    """Create a standalone draft invoice."""
    areas = None
    if payload.project_areas is not None:
        areas = [area.model_dump(exclude_unset=True) for area in payload.project_areas]
    invoice = await ledger.create_invoice(
        payload.client_id,
        payload.title,
        project_areas=areas,
        total_amount=payload.total_amount,
        description=payload.description,
        due_date=payload.due_date,
        payment_terms=payload.payment_terms,
        terms_and_notes=payload.terms_and_notes,
        actor=actor,
    )
    return InvoiceResponse.from_invoice(invoice)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    ledger: Ledger,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    client_id: UUID | None = None,
    overdue: bool | None = None,
) -> InvoiceListResponse:
    today = date.today()
    invoices = await ledger.list_invoices(
        status=status_filter, client_id=client_id, overdue=overdue, as_of=today
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.from_invoice(inv, today) for inv in invoices],
        total=len(invoices),
    )


@router.get("/overdue", response_model=InvoiceListResponse)
async def list_overdue_invoices(
    ledger: Ledger, as_of: date | None = None
) -> InvoiceListResponse:
    """Sent invoices past their due date."""
    as_of = as_of or date.today()
    invoices = await ledger.list_overdue_invoices(as_of)
    return InvoiceListResponse(
        items=[InvoiceResponse.from_invoice(inv, as_of) for inv in invoices],
        total=len(invoices),
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS)
async def get_invoice(ledger: Ledger, invoice_id: UUID) -> InvoiceResponse:
    invoice = await ledger.get_invoice(invoice_id)
    return InvoiceResponse.from_invoice(invoice)


@router.patch("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS)
async def update_invoice(
    ledger: Ledger, actor: Actor, invoice_id: UUID, payload: InvoiceUpdate
) -> InvoiceResponse:
    """Edit a draft invoice."""
    invoice = await ledger.update_invoice(
        invoice_id, payload.model_dump(exclude_unset=True), actor=actor
    )
    return InvoiceResponse.from_invoice(invoice)


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse, responses=ERRORS)
async def update_invoice_status(
    ledger: Ledger, actor: Actor, invoice_id: UUID, payload: InvoiceStatusUpdate
) -> InvoiceResponse:
    invoice = await ledger.transition_invoice(
        invoice_id, payload.status, void_reason=payload.void_reason, actor=actor
    )
    return InvoiceResponse.from_invoice(invoice)


# ============================================================================
# Payments
# ============================================================================


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def record_payment(
    ledger: Ledger, actor: Actor, invoice_id: UUID, payload: PaymentCreate
) -> InvoiceResponse:
    """Record a payment against a sent invoice."""
    invoice = await ledger.record_payment(
        invoice_id,
        payload.amount,
        payment_method=payload.payment_method,
        payment_date=payload.payment_date,
        reference_number=payload.reference_number,
        notes=payload.notes,
        actor=actor,
    )
    return InvoiceResponse.from_invoice(invoice)


@router.get(
    "/{invoice_id}/payments",
    response_model=list[PaymentResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_payments(ledger: Ledger, invoice_id: UUID) -> list[PaymentResponse]:
    payments = await ledger.list_payments(invoice_id)
    return [PaymentResponse.model_validate(p) for p in payments]
