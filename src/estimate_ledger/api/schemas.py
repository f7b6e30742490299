"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from estimate_ledger.models import Invoice


# ============================================================================
# Project area schemas
# ============================================================================


class ProjectAreaInput(BaseModel):
    """A room or surface line item supplied by the caller."""

    area_name: str = Field(min_length=1)
    area_type: str = "indoor"
    surface_type: str | None = None
    square_footage: Decimal | None = Field(default=None, ge=0)
    ceiling_height: Decimal | None = Field(default=None, ge=0)
    prep_requirements: str | None = None
    paint_type: str | None = None
    paint_brand: str | None = None
    paint_color: str | None = None
    finish_type: str | None = None
    number_of_coats: int = Field(default=2, ge=1)
    labor_hours: Decimal | None = Field(default=None, ge=0)
    labor_rate: Decimal | None = Field(default=None, ge=0)
    material_cost: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class ProjectAreaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    area_name: str
    area_type: str
    surface_type: str | None = None
    square_footage: Decimal | None = None
    ceiling_height: Decimal | None = None
    prep_requirements: str | None = None
    paint_type: str | None = None
    paint_brand: str | None = None
    paint_color: str | None = None
    finish_type: str | None = None
    number_of_coats: int
    labor_hours: Decimal | None = None
    labor_rate: Decimal | None = None
    material_cost: Decimal | None = None
    labor_cost: Decimal
    notes: str | None = None


# ============================================================================
# Estimate schemas
# ============================================================================


class EstimateCreate(BaseModel):
    """Schema for creating a new estimate in draft status."""

    client_id: UUID
    title: str = Field(min_length=1)
    description: str | None = None
    markup_percentage: Decimal | None = None
    valid_until: date | None = None
    terms_and_notes: str | None = None
    project_areas: list[ProjectAreaInput] = Field(min_length=1)


class EstimateUpdate(BaseModel):
    """Schema for editing a draft estimate. Only set fields are applied."""

    client_id: UUID | None = None
    title: str | None = None
    description: str | None = None
    markup_percentage: Decimal | None = None
    valid_until: date | None = None
    terms_and_notes: str | None = None
    project_areas: list[ProjectAreaInput] | None = None


class EstimateResponse(BaseModel):
    """Schema for estimate response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    estimate_number: str
    client_id: UUID
    title: str
    description: str | None = None
    status: str
    labor_cost: Decimal
    material_cost: Decimal
    markup_percentage: Decimal
    total_amount: Decimal
    valid_until: date | None = None
    terms_and_notes: str | None = None
    revision_number: int
    version_group_id: UUID
    is_current_version: bool
    parent_estimate_id: UUID | None = None
    superseded_by: UUID | None = None
    superseded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    project_areas: list[ProjectAreaResponse] = []


class EstimateListResponse(BaseModel):
    items: list[EstimateResponse]
    total: int


class EstimateStatusUpdate(BaseModel):
    status: str
    notes: str | None = None


# ============================================================================
# Revision schemas
# ============================================================================


class AreaRevision(BaseModel):
    """Cost changes for the project area at `position`."""

    position: int = Field(ge=0)
    labor_hours: Decimal | None = None
    labor_rate: Decimal | None = None
    material_cost: Decimal | None = None


class EstimateRevisionCreate(BaseModel):
    """Schema for revising a sent or approved estimate."""

    revision_type: str
    change_summary: str | None = None
    approval_status: str = "pending"
    title: str | None = None
    description: str | None = None
    markup_percentage: Decimal | None = None
    valid_until: date | None = None
    terms_and_notes: str | None = None
    project_areas: list[AreaRevision] | None = None

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually set, minus the revision metadata."""
        return self.model_dump(
            exclude_unset=True,
            exclude={"revision_type", "change_summary", "approval_status"},
        )


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    estimate_id: UUID
    source_estimate_id: UUID
    revision_number: int
    revision_type: str
    change_summary: str | None = None
    change_details: dict[str, Any]
    previous_total_amount: Decimal
    new_total_amount: Decimal
    previous_labor_cost: Decimal
    new_labor_cost: Decimal
    previous_material_cost: Decimal
    new_material_cost: Decimal
    previous_markup_percentage: Decimal
    new_markup_percentage: Decimal
    total_delta: Decimal
    approval_status: str
    created_by: str
    created_at: datetime


class RevisionResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    estimate: EstimateResponse
    revision: RevisionResponse


class VersionSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    revision_number: int
    labor_cost: Decimal
    material_cost: Decimal
    markup_percentage: Decimal
    total_amount: Decimal
    revision_type: str | None = None
    change_summary: str | None = None
    approval_status: str | None = None
    created_at: datetime | None = None
    changed_fields: list[str] = []


# ============================================================================
# Invoice schemas
# ============================================================================


class ConvertRequest(BaseModel):
    due_date: date | None = None
    payment_terms: str | None = None


class InvoiceCreate(BaseModel):
    """Schema for creating a standalone draft invoice."""

    client_id: UUID
    title: str = Field(min_length=1)
    description: str | None = None
    total_amount: Decimal | None = None
    due_date: date | None = None
    payment_terms: str | None = None
    terms_and_notes: str | None = None
    project_areas: list[ProjectAreaInput] | None = None


class InvoiceUpdate(BaseModel):
    client_id: UUID | None = None
    title: str | None = None
    description: str | None = None
    total_amount: Decimal | None = None
    due_date: date | None = None
    payment_terms: str | None = None
    terms_and_notes: str | None = None
    project_areas: list[ProjectAreaInput] | None = None


class InvoiceStatusUpdate(BaseModel):
    status: str
    void_reason: str | None = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_method: str
    payment_date: date
    reference_number: str | None = None
    notes: str | None = None
    created_at: datetime


class InvoiceResponse(BaseModel):
    """Schema for invoice response.

    `status` is the stored status; `display_status` reports "overdue" for
    sent invoices past their due date.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str | None = None
    estimate_id: UUID | None = None
    client_id: UUID
    title: str
    description: str | None = None
    status: str
    display_status: str
    total_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    due_date: date | None = None
    payment_terms: str
    terms_and_notes: str | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    project_areas: list[ProjectAreaResponse] = []
    payments: list[PaymentResponse] = []

    @classmethod
    def from_invoice(cls, invoice: Invoice, as_of: date | None = None) -> "InvoiceResponse":
        as_of = as_of or date.today()
        data = {
            name: getattr(invoice, name)
            for name in cls.model_fields
            if name not in ("display_status", "project_areas", "payments")
        }
        return cls(
            **data,
            display_status=invoice.effective_status(as_of),
            project_areas=[
                ProjectAreaResponse.model_validate(area) for area in invoice.project_areas
            ],
            payments=[PaymentResponse.model_validate(p) for p in invoice.payments],
        )


class InvoiceListResponse(BaseModel):
    items: list[InvoiceResponse]
    total: int


# ============================================================================
# Payment schemas
# ============================================================================


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_method: str = "Cash"
    payment_date: date
    reference_number: str | None = None
    notes: str | None = None


class PaymentUpdate(BaseModel):
    amount: Decimal | None = None
    payment_method: str | None = None
    payment_date: date | None = None
    reference_number: str | None = None
    notes: str | None = None


# ============================================================================
# Misc
# ============================================================================


class SequencesResponse(BaseModel):
    sequences: dict[str, int]


class ErrorResponse(BaseModel):
    """Standard error response."""

    code: str
    detail: str
    field: str | None = None
