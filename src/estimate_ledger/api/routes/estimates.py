"""Estimate API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from estimate_ledger.api.dependencies import Actor, Ledger
from estimate_ledger.api.schemas import (
    ConvertRequest,
    ErrorResponse,
    EstimateCreate,
    EstimateListResponse,
    EstimateResponse,
    EstimateRevisionCreate,
    EstimateStatusUpdate,
    EstimateUpdate,
    InvoiceResponse,
    RevisionResponse,
    RevisionResultResponse,
    VersionSnapshotResponse,
)

router = APIRouter(prefix="/estimates", tags=["estimates"])

ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Estimate CRUD
# ============================================================================


@router.post(
    "",
    response_model=EstimateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_estimate(
    ledger: Ledger, actor: Actor, payload: EstimateCreate
) -> EstimateResponse:
    """Create a new estimate in draft status."""
    estimate = await ledger.create_estimate(
        payload.client_id,
        payload.title,
        [area.model_dump(exclude_unset=True) for area in payload.project_areas],
        markup_percentage=payload.markup_percentage,
        description=payload.description,
        valid_until=payload.valid_until,
        terms_and_notes=payload.terms_and_notes,
        actor=actor,
    )
    return EstimateResponse.model_validate(estimate)


@router.get("", response_model=EstimateListResponse)
async def list_estimates(
    ledger: Ledger,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    client_id: UUID | None = None,
    include_superseded: bool = False,
) -> EstimateListResponse:
    """List estimates, current versions only unless asked otherwise."""
    estimates = await ledger.list_estimates(
        status=status_filter,
        client_id=client_id,
        current_only=not include_superseded,
    )
    return EstimateListResponse(
        items=[EstimateResponse.model_validate(e) for e in estimates],
        total=len(estimates),
    )


@router.get("/{estimate_id}", response_model=EstimateResponse, responses=ERRORS)
async def get_estimate(ledger: Ledger, estimate_id: UUID) -> EstimateResponse:
    estimate = await ledger.get_estimate(estimate_id)
    return EstimateResponse.model_validate(estimate)


@router.patch("/{estimate_id}", response_model=EstimateResponse, responses=ERRORS)
async def update_estimate(
    ledger: Ledger, actor: Actor, estimate_id: UUID, payload: EstimateUpdate
) -> EstimateResponse:
    """Edit a draft estimate."""
    estimate = await ledger.update_estimate(
        estimate_id, payload.model_dump(exclude_unset=True), actor=actor
    )
    return EstimateResponse.model_validate(estimate)


@router.delete(
    "/{estimate_id}", status_code=status.HTTP_204_NO_CONTENT, responses=ERRORS
)
async def delete_estimate(ledger: Ledger, actor: Actor, estimate_id: UUID) -> Response:
    """Delete a draft estimate."""
    await ledger.delete_estimate(estimate_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{estimate_id}/status", response_model=EstimateResponse, responses=ERRORS)
async def update_estimate_status(
    ledger: Ledger, actor: Actor, estimate_id: UUID, payload: EstimateStatusUpdate
) -> EstimateResponse:
    estimate = await ledger.transition_estimate(
        estimate_id, payload.status, note=payload.notes, actor=actor
    )
    return EstimateResponse.model_validate(estimate)


# ============================================================================
# Revisions and history
# ============================================================================


@router.post(
    "/{estimate_id}/revisions",
    response_model=RevisionResultResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def revise_estimate(
    ledger: Ledger, actor: Actor, estimate_id: UUID, payload: EstimateRevisionCreate
) -> RevisionResultResponse:
    """Create a new version of a sent or approved estimate."""
    result = await ledger.revise_estimate(
        estimate_id,
        payload.changes(),
        payload.revision_type,
        change_summary=payload.change_summary,
        approval_status=payload.approval_status,
        actor=actor,
    )
    return RevisionResultResponse.model_validate(result)


@router.get(
    "/{estimate_id}/revisions",
    response_model=list[RevisionResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_revisions(ledger: Ledger, estimate_id: UUID) -> list[RevisionResponse]:
    revisions = await ledger.list_revisions(estimate_id)
    return [RevisionResponse.model_validate(r) for r in revisions]


@router.get(
    "/{estimate_id}/versions",
    response_model=list[EstimateResponse],
    responses={404: {"model": ErrorResponse}},
)
async def version_history(ledger: Ledger, estimate_id: UUID) -> list[EstimateResponse]:
    versions = await ledger.version_history(estimate_id)
    return [EstimateResponse.model_validate(v) for v in versions]


@router.get(
    "/{estimate_id}/timeline",
    response_model=list[VersionSnapshotResponse],
    responses={404: {"model": ErrorResponse}},
)
async def revision_timeline(
    ledger: Ledger, estimate_id: UUID
) -> list[VersionSnapshotResponse]:
    timeline = await ledger.revision_timeline(estimate_id)
    return [VersionSnapshotResponse.model_validate(s) for s in timeline]


# ============================================================================
# Conversion
# ============================================================================


@router.post(
    "/{estimate_id}/convert",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def convert_estimate(
    ledger: Ledger,
    actor: Actor,
    estimate_id: UUID,
    payload: ConvertRequest | None = None,
) -> InvoiceResponse:
    """Turn an approved estimate into a draft invoice."""
    payload = payload or ConvertRequest()
    invoice = await ledger.convert_estimate(
        estimate_id,
        due_date=payload.due_date,
        payment_terms=payload.payment_terms,
        actor=actor,
    )
    return InvoiceResponse.from_invoice(invoice)
