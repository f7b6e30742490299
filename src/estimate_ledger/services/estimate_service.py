"""Estimate service - creation, draft edits, status transitions and deletion."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.calculators import compute_totals
from estimate_ledger.config import get_settings
from estimate_ledger.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from estimate_ledger.events.emitter import EventBatch
from estimate_ledger.events.types import (
    EstimateCreated,
    EstimateDeleted,
    EstimateStatusChanged,
    EstimateUpdated,
    FieldChange,
    diff_fields,
)
from estimate_ledger.models import Estimate
from estimate_ledger.services.areas import build_areas, validate_markup
from estimate_ledger.services.sequence_service import SequenceAllocator, SequenceType
from estimate_ledger.services.state_machine import EstimateStateMachine, EstimateStatus

logger = logging.getLogger(__name__)

# Fields a caller may set on a draft estimate
EDITABLE_FIELDS = (
    "client_id",
    "title",
    "description",
    "markup_percentage",
    "valid_until",
    "terms_and_notes",
    "project_areas",
)


def apply_totals(estimate: Estimate) -> None:
    """Recompute the derived money fields from areas and markup."""
    totals = compute_totals(estimate.project_areas, estimate.markup_percentage)
    estimate.labor_cost = totals.labor_cost
    estimate.material_cost = totals.material_cost
    estimate.markup_percentage = totals.markup_percentage
    estimate.total_amount = totals.total_amount


def commercial_snapshot(estimate: Estimate) -> dict[str, Any]:
    """Fields tracked in audit events and revision diffs."""
    return {
        "title": estimate.title,
        "description": estimate.description,
        "valid_until": estimate.valid_until,
        "terms_and_notes": estimate.terms_and_notes,
        "labor_cost": estimate.labor_cost,
        "material_cost": estimate.material_cost,
        "markup_percentage": estimate.markup_percentage,
        "total_amount": estimate.total_amount,
    }


def _require_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", field="title")
    return title


class EstimateService:
    """Service for the estimate lifecycle.

    Operations:
    - create_estimate: allocate a number, derive totals, start in draft
    - update_estimate: free edits while draft
    - transition_estimate: caller-requested status changes
    - delete_estimate: drafts only
    """

    def __init__(self, session: AsyncSession, events: EventBatch | None = None):
        self.session = session
        self.events = events if events is not None else EventBatch()
        self.allocator = SequenceAllocator(session, self.events)

    async def get_estimate(
        self, estimate_id: UUID, for_update: bool = False
    ) -> Estimate | None:
        stmt = select(Estimate).where(Estimate.id == estimate_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def require_estimate(
        self, estimate_id: UUID, for_update: bool = False
    ) -> Estimate:
        estimate = await self.get_estimate(estimate_id, for_update=for_update)
        if estimate is None:
            raise NotFoundError("Estimate", estimate_id)
        return estimate

    async def list_estimates(
        self,
        status: str | None = None,
        client_id: UUID | None = None,
        current_only: bool = True,
    ) -> Sequence[Estimate]:
        stmt = select(Estimate)
        if status is not None:
            stmt = stmt.where(Estimate.status == status)
        if client_id is not None:
            stmt = stmt.where(Estimate.client_id == client_id)
        if current_only:
            stmt = stmt.where(Estimate.is_current_version.is_(True))
        stmt = stmt.order_by(Estimate.created_at.desc(), Estimate.estimate_number.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_estimate(
        self,
        client_id: UUID,
        title: str,
        project_areas: Sequence[Mapping[str, Any]],
        markup_percentage: Any = None,
        description: str | None = None,
        valid_until: date | None = None,
        terms_and_notes: str | None = None,
    ) -> Estimate:
        """Create a draft estimate with a freshly allocated number."""
        title = _require_title(title)
        if not project_areas:
            raise ValidationError(
                "At least one project area is required", field="project_areas"
            )
        if markup_percentage is None:
            markup_percentage = get_settings().default_markup_percentage
        markup = validate_markup(markup_percentage)
        areas = build_areas(project_areas)

        estimate = Estimate(
            id=uuid4(),
            estimate_number=await self.allocator.next(SequenceType.ESTIMATE),
            client_id=client_id,
            title=title,
            description=description,
            status=EstimateStatus.DRAFT.value,
            markup_percentage=markup,
            valid_until=valid_until,
            terms_and_notes=terms_and_notes,
            revision_number=1,
            version_group_id=uuid4(),
            is_current_version=True,
            project_areas=areas,
        )
        apply_totals(estimate)
        self.session.add(estimate)
        await self.session.flush()

        self.events.add(
            EstimateCreated(
                metadata=self.events.metadata(),
                changes=diff_fields({}, commercial_snapshot(estimate)),
                estimate_id=estimate.id,
                estimate_number=estimate.estimate_number,
                total_amount=estimate.total_amount,
            )
        )
        logger.info(
            "Created estimate %s total=%s", estimate.estimate_number, estimate.total_amount
        )
        return estimate

    async def update_estimate(
        self, estimate_id: UUID, changes: Mapping[str, Any]
    ) -> Estimate:
        """Edit a draft estimate in place. Areas are replaced wholesale."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Field(s) not editable: {', '.join(sorted(unknown))}"
            )

        estimate = await self.require_estimate(estimate_id, for_update=True)
        if not EstimateStateMachine.can_edit(estimate.status):
            raise InvalidStateError(
                f"Estimate {estimate.estimate_number} is {estimate.status}; "
                "changes must go through a revision"
            )

        before = commercial_snapshot(estimate)
        for name, value in changes.items():
            if name == "title":
                estimate.title = _require_title(value)
            elif name == "markup_percentage":
                estimate.markup_percentage = validate_markup(value)
            elif name == "project_areas":
                if not value:
                    raise ValidationError(
                        "At least one project area is required", field="project_areas"
                    )
                estimate.project_areas = build_areas(value)
            elif name == "client_id":
                if value is None:
                    raise ValidationError("client_id is required", field="client_id")
                estimate.client_id = value
            else:
                setattr(estimate, name, value)
        apply_totals(estimate)
        await self.session.flush()

        self.events.add(
            EstimateUpdated(
                metadata=self.events.metadata(),
                changes=diff_fields(before, commercial_snapshot(estimate)),
                estimate_id=estimate.id,
            )
        )
        return estimate

    async def transition_estimate(
        self,
        estimate_id: UUID,
        to_status: str,
        note: str | None = None,
    ) -> Estimate:
        """Apply a caller-requested status change.

        Raises InvalidStateError for superseded versions and
        InvalidTransitionError for anything outside the transition table.
        """
        estimate = await self.require_estimate(estimate_id, for_update=True)
        if estimate.is_superseded:
            raise InvalidStateError(
                f"Estimate {estimate.estimate_number} has been superseded by a revision"
            )
        EstimateStateMachine.validate_request(estimate.status, to_status)
        return await self._set_status(estimate, to_status, note)

    async def apply_system_transition(
        self, estimate: Estimate, to_status: str, note: str | None = None
    ) -> Estimate:
        """Status change performed as a side effect of conversion or voiding."""
        EstimateStateMachine.validate_transition(estimate.status, to_status)
        return await self._set_status(estimate, to_status, note)

    async def _set_status(
        self, estimate: Estimate, to_status: str, note: str | None
    ) -> Estimate:
        from_status = estimate.status
        estimate.status = EstimateStatus(to_status).value
        await self.session.flush()

        self.events.add(
            EstimateStatusChanged(
                metadata=self.events.metadata(),
                changes=(FieldChange("status", from_status, estimate.status),),
                estimate_id=estimate.id,
                from_status=from_status,
                to_status=estimate.status,
                note=note,
            )
        )
        logger.info(
            "Estimate %s: %s -> %s", estimate.estimate_number, from_status, estimate.status
        )
        return estimate

    async def delete_estimate(self, estimate_id: UUID) -> None:
        """Delete a draft estimate and its areas."""
        estimate = await self.require_estimate(estimate_id, for_update=True)
        if not EstimateStateMachine.can_delete(estimate.status):
            raise ConflictError(
                f"Estimate {estimate.estimate_number} is {estimate.status}; "
                "only draft estimates can be deleted"
            )

        await self.session.delete(estimate)
        await self.session.flush()

        self.events.add(
            EstimateDeleted(
                metadata=self.events.metadata(),
                changes=(FieldChange("status", estimate.status, None),),
                estimate_id=estimate.id,
                estimate_number=estimate.estimate_number,
            )
        )
        logger.info("Deleted estimate %s", estimate.estimate_number)
