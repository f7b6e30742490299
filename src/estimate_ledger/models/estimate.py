"""Estimate, project area and revision models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estimate_ledger.calculators import area_labor_cost
from estimate_ledger.models.base import Base, JSONType, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from estimate_ledger.models.invoice import Invoice

# Columns copied by value whenever an area moves to another document
AREA_COPY_FIELDS = (
    "position",
    "area_name",
    "area_type",
    "surface_type",
    "square_footage",
    "ceiling_height",
    "prep_requirements",
    "paint_type",
    "paint_brand",
    "paint_color",
    "finish_type",
    "number_of_coats",
    "labor_hours",
    "labor_rate",
    "material_cost",
    "notes",
)


class Estimate(Base, TimestampMixin, UpdatedAtMixin):
    """A priced proposal. Each accepted revision is a new immutable row."""

    __tablename__ = "estimate"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    estimate_number: Mapped[str] = mapped_column(String(40), nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")

    labor_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    material_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    markup_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0.00")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    valid_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    terms_and_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Version chain
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    version_group_id: Mapped[UUID] = mapped_column(nullable=False)
    is_current_version: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    parent_estimate_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("estimate.id"), nullable=True
    )
    superseded_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("estimate.id"), nullable=True
    )
    superseded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("estimate_number", name="estimate_number_unique"),
        UniqueConstraint(
            "version_group_id", "revision_number", name="estimate_group_revision_unique"
        ),
        Index(
            "estimate_one_current_per_group",
            "version_group_id",
            unique=True,
            postgresql_where=text("is_current_version"),
            sqlite_where=text("is_current_version = 1"),
        ),
        CheckConstraint(
            "status IN ('draft', 'sent', 'approved', 'rejected', 'converted')",
            name="estimate_status_check",
        ),
        CheckConstraint(
            "markup_percentage >= 0 AND markup_percentage <= 100",
            name="estimate_markup_range_check",
        ),
        CheckConstraint("revision_number >= 1", name="estimate_revision_number_check"),
    )

    # Relationships
    project_areas: Mapped[list[ProjectArea]] = relationship(
        back_populates="estimate",
        cascade="all, delete-orphan",
        order_by="ProjectArea.position",
        lazy="selectin",
    )

    @property
    def is_superseded(self) -> bool:
        return not self.is_current_version


class ProjectArea(Base, TimestampMixin):
    """A room or surface line item, owned by one estimate or one invoice."""

    __tablename__ = "project_area"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    estimate_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("estimate.id", ondelete="CASCADE"), nullable=True
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoice.id", ondelete="CASCADE"), nullable=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    area_name: Mapped[str] = mapped_column(String, nullable=False)
    area_type: Mapped[str] = mapped_column(String(16), nullable=False, default="indoor")
    surface_type: Mapped[str | None] = mapped_column(String, nullable=True)
    square_footage: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    ceiling_height: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    prep_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    paint_type: Mapped[str | None] = mapped_column(String, nullable=True)
    paint_brand: Mapped[str | None] = mapped_column(String, nullable=True)
    paint_color: Mapped[str | None] = mapped_column(String, nullable=True)
    finish_type: Mapped[str | None] = mapped_column(String, nullable=True)
    number_of_coats: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    labor_hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    labor_rate: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    material_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(estimate_id IS NULL) <> (invoice_id IS NULL)",
            name="project_area_single_owner_check",
        ),
        CheckConstraint(
            "area_type IN ('indoor', 'outdoor')",
            name="project_area_type_check",
        ),
    )

    # Relationships
    estimate: Mapped[Estimate | None] = relationship(back_populates="project_areas")
    invoice: Mapped[Invoice | None] = relationship(back_populates="project_areas")

    @property
    def labor_cost(self) -> Decimal:
        return area_labor_cost(self.labor_hours, self.labor_rate)

    def copy(self) -> ProjectArea:
        """Detached copy by value, with no owner."""
        return ProjectArea(**{name: getattr(self, name) for name in AREA_COPY_FIELDS})

    def snapshot(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in AREA_COPY_FIELDS}


class EstimateRevision(Base, TimestampMixin):
    """Append-only audit record of a commercial change to an estimate.

    estimate_id is the version row the revision produced, source_estimate_id
    the row it superseded.
    """

    __tablename__ = "estimate_revision"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    estimate_id: Mapped[UUID] = mapped_column(
        ForeignKey("estimate.id"), nullable=False
    )
    source_estimate_id: Mapped[UUID] = mapped_column(
        ForeignKey("estimate.id"), nullable=False
    )
    version_group_id: Mapped[UUID] = mapped_column(nullable=False)
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False)
    revision_type: Mapped[str] = mapped_column(String(32), nullable=False)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    previous_total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    new_total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_labor_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    new_labor_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_material_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    new_material_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    previous_markup_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False
    )
    new_markup_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    approval_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )
    created_by: Mapped[str] = mapped_column(String, nullable=False, default="system")

    __table_args__ = (
        UniqueConstraint(
            "version_group_id", "revision_number", name="estimate_revision_number_unique"
        ),
        CheckConstraint(
            "revision_type IN ('price_adjustment', 'scope_change', 'client_request', 'correction')",
            name="estimate_revision_type_check",
        ),
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="estimate_revision_approval_check",
        ),
    )

    @property
    def total_delta(self) -> Decimal:
        return self.new_total_amount - self.previous_total_amount
