"""Payment correction endpoints and sequence inspection."""

from uuid import UUID

from fastapi import APIRouter

from estimate_ledger.api.dependencies import Actor, Ledger
from estimate_ledger.api.schemas import (
    ErrorResponse,
    InvoiceResponse,
    PaymentUpdate,
    SequencesResponse,
)

router = APIRouter(tags=["payments"])

ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.patch("/payments/{payment_id}", response_model=InvoiceResponse, responses=ERRORS)
async def update_payment(
    ledger: Ledger, actor: Actor, payment_id: UUID, payload: PaymentUpdate
) -> InvoiceResponse:
    """Correct a payment; returns the re-settled invoice."""
    invoice = await ledger.update_payment(
        payment_id, payload.model_dump(exclude_unset=True), actor=actor
    )
    return InvoiceResponse.from_invoice(invoice)


@router.delete("/payments/{payment_id}", response_model=InvoiceResponse, responses=ERRORS)
async def delete_payment(ledger: Ledger, actor: Actor, payment_id: UUID) -> InvoiceResponse:
    """Delete a payment; returns the re-settled invoice."""
    invoice = await ledger.delete_payment(payment_id, actor=actor)
    return InvoiceResponse.from_invoice(invoice)


@router.get("/sequences", response_model=SequencesResponse)
async def current_sequences(ledger: Ledger) -> SequencesResponse:
    """Last issued value of each document number sequence."""
    return SequencesResponse(sequences=await ledger.current_sequences())
