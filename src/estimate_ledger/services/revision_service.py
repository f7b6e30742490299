"""Revision service - immutable version chain for estimates.

Every accepted revision inserts a new Estimate row and supersedes the
previous one. The EstimateRevision row records the change as audit data; it
is never the mutation mechanism and is never updated or deleted.

Version chain for one group:

    EST-0007 (r1) --superseded_by--> EST-0007-R2 (r2) --> EST-0007-R3 (r3, current)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.errors import InvalidStateError, ValidationError
from estimate_ledger.events.emitter import EventBatch
from estimate_ledger.events.types import EstimateRevised, diff_fields
from estimate_ledger.models import Estimate, EstimateRevision
from estimate_ledger.models.base import utcnow
from estimate_ledger.services.areas import copy_areas, parse_amount, validate_markup
from estimate_ledger.services.estimate_service import (
    EstimateService,
    apply_totals,
    commercial_snapshot,
)
from estimate_ledger.services.state_machine import (
    ApprovalStatus,
    EstimateStateMachine,
    RevisionType,
)

logger = logging.getLogger(__name__)

# Estimate fields a revision may change directly
REVISABLE_FIELDS = (
    "title",
    "description",
    "markup_percentage",
    "valid_until",
    "terms_and_notes",
)

# Per-area inputs a revision may change, addressed by area position
AREA_REVISABLE_FIELDS = ("labor_hours", "labor_rate", "material_cost")

# Money fields reconstructed by timeline replay
TIMELINE_FIELDS = ("labor_cost", "material_cost", "markup_percentage", "total_amount")


@dataclass
class RevisionResult:
    """Outcome of one accepted revision."""

    estimate: Estimate  # the new current version
    superseded: Estimate
    revision: EstimateRevision


@dataclass
class VersionSnapshot:
    """One point of a replayed revision timeline."""

    revision_number: int
    labor_cost: Decimal
    material_cost: Decimal
    markup_percentage: Decimal
    total_amount: Decimal
    revision_type: str | None = None
    change_summary: str | None = None
    approval_status: str | None = None
    created_at: datetime | None = None
    changed_fields: list[str] = field(default_factory=list)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _root_number(estimate: Estimate) -> str:
    if estimate.revision_number > 1:
        return estimate.estimate_number.rsplit("-R", 1)[0]
    return estimate.estimate_number


class RevisionService:
    """Service for revising sent/approved estimates and reading their history."""

    def __init__(self, session: AsyncSession, events: EventBatch | None = None):
        self.session = session
        self.events = events if events is not None else EventBatch()
        self.estimates = EstimateService(session, self.events)

    async def revise_estimate(
        self,
        estimate_id: UUID,
        changes: Mapping[str, Any],
        revision_type: str,
        change_summary: str | None = None,
        created_by: str | None = None,
        approval_status: str = ApprovalStatus.PENDING.value,
    ) -> RevisionResult:
        """Create a new version of an estimate with the given changes applied.

        Totals of the new version are recomputed from its areas and markup;
        totals supplied in `changes` are rejected.
        """
        revision_type = self._parse_enum(RevisionType, revision_type, "revision_type")
        approval_status = self._parse_enum(
            ApprovalStatus, approval_status, "approval_status"
        )
        unknown = set(changes) - set(REVISABLE_FIELDS) - {"project_areas"}
        if unknown:
            raise ValidationError(
                f"Field(s) not revisable: {', '.join(sorted(unknown))}"
            )

        source = await self.estimates.require_estimate(estimate_id, for_update=True)
        if source.is_superseded:
            raise InvalidStateError(
                f"Estimate {source.estimate_number} has been superseded by a revision"
            )
        if not EstimateStateMachine.can_revise(source.status):
            raise InvalidStateError(
                f"Estimate {source.estimate_number} is {source.status}; "
                "only sent or approved estimates can be revised"
            )

        revision_number = source.revision_number + 1
        candidate = Estimate(
            id=uuid4(),
            estimate_number=f"{_root_number(source)}-R{revision_number}",
            client_id=source.client_id,
            title=source.title,
            description=source.description,
            status=source.status,
            markup_percentage=source.markup_percentage,
            valid_until=source.valid_until,
            terms_and_notes=source.terms_and_notes,
            revision_number=revision_number,
            version_group_id=source.version_group_id,
            is_current_version=True,
            parent_estimate_id=source.id,
            project_areas=copy_areas(source.project_areas),
        )
        self._apply_changes(candidate, changes)
        apply_totals(candidate)

        before = commercial_snapshot(source)
        after = commercial_snapshot(candidate)
        details = {
            name: {"old": _json_value(before[name]), "new": _json_value(value)}
            for name, value in after.items()
            if before[name] != value
        }
        area_details = self._area_diff(source, candidate)
        if area_details:
            details["project_areas"] = area_details
        if not details:
            raise ValidationError("Revision does not change anything")

        # Release the current-version slot before the new row claims it
        source.is_current_version = False
        source.superseded_at = utcnow()
        await self.session.flush()

        self.session.add(candidate)
        await self.session.flush()

        source.superseded_by = candidate.id
        revision = EstimateRevision(
            id=uuid4(),
            estimate_id=candidate.id,
            source_estimate_id=source.id,
            version_group_id=source.version_group_id,
            revision_number=revision_number,
            revision_type=revision_type,
            change_summary=change_summary,
            change_details=details,
            previous_total_amount=source.total_amount,
            new_total_amount=candidate.total_amount,
            previous_labor_cost=source.labor_cost,
            new_labor_cost=candidate.labor_cost,
            previous_material_cost=source.material_cost,
            new_material_cost=candidate.material_cost,
            previous_markup_percentage=source.markup_percentage,
            new_markup_percentage=candidate.markup_percentage,
            approval_status=approval_status,
            created_by=created_by or self.events.actor,
        )
        self.session.add(revision)
        await self.session.flush()

        self.events.add(
            EstimateRevised(
                metadata=self.events.metadata(),
                changes=diff_fields(before, after),
                estimate_id=candidate.id,
                source_estimate_id=source.id,
                revision_id=revision.id,
                revision_number=revision_number,
                revision_type=revision_type,
                total_delta=revision.total_delta,
            )
        )
        logger.info(
            "Revised estimate %s -> %s (%s, total %s -> %s)",
            source.estimate_number,
            candidate.estimate_number,
            revision_type,
            source.total_amount,
            candidate.total_amount,
        )
        return RevisionResult(estimate=candidate, superseded=source, revision=revision)

    @staticmethod
    def _parse_enum(enum_type, value: Any, field_name: str) -> str:
        try:
            return enum_type(value).value
        except ValueError as exc:
            allowed = ", ".join(member.value for member in enum_type)
            raise ValidationError(
                f"{field_name} must be one of {allowed}", field=field_name
            ) from exc

    @staticmethod
    def _apply_changes(candidate: Estimate, changes: Mapping[str, Any]) -> None:
        for name, value in changes.items():
            if name == "markup_percentage":
                candidate.markup_percentage = validate_markup(value)
            elif name == "title":
                title = (value or "").strip()
                if not title:
                    raise ValidationError("title is required", field="title")
                candidate.title = title
            elif name == "project_areas":
                RevisionService._apply_area_changes(candidate, value or [])
            else:
                setattr(candidate, name, value)

    @staticmethod
    def _apply_area_changes(
        candidate: Estimate, area_changes: Sequence[Mapping[str, Any]]
    ) -> None:
        by_position = {area.position: area for area in candidate.project_areas}
        for item in area_changes:
            position = item.get("position")
            if position not in by_position:
                raise ValidationError(
                    f"No project area at position {position}", field="project_areas"
                )
            unknown = set(item) - set(AREA_REVISABLE_FIELDS) - {"position"}
            if unknown:
                raise ValidationError(
                    f"Area field(s) not revisable: {', '.join(sorted(unknown))}",
                    field="project_areas",
                )
            area = by_position[position]
            for name in AREA_REVISABLE_FIELDS:
                if name in item:
                    setattr(area, name, parse_amount(item[name], name))

    @staticmethod
    def _area_diff(source: Estimate, candidate: Estimate) -> list[dict[str, Any]]:
        diffs = []
        for old, new in zip(source.project_areas, candidate.project_areas):
            fields = {
                name: {
                    "old": _json_value(getattr(old, name)),
                    "new": _json_value(getattr(new, name)),
                }
                for name in AREA_REVISABLE_FIELDS
                if getattr(old, name) != getattr(new, name)
            }
            if fields:
                diffs.append({"position": new.position, "changes": fields})
        return diffs

    async def version_history(self, estimate_id: UUID) -> Sequence[Estimate]:
        """Every version of the estimate's group, oldest first."""
        estimate = await self.estimates.require_estimate(estimate_id)
        result = await self.session.execute(
            select(Estimate)
            .where(Estimate.version_group_id == estimate.version_group_id)
            .order_by(Estimate.revision_number)
        )
        return result.scalars().all()

    async def list_revisions(self, estimate_id: UUID) -> Sequence[EstimateRevision]:
        estimate = await self.estimates.require_estimate(estimate_id)
        result = await self.session.execute(
            select(EstimateRevision)
            .where(EstimateRevision.version_group_id == estimate.version_group_id)
            .order_by(EstimateRevision.revision_number)
        )
        return result.scalars().all()

    async def revision_timeline(self, estimate_id: UUID) -> list[VersionSnapshot]:
        """Replay revision rows into a deterministic timeline of totals.

        Starts from the first revision's previous_* values. A field missing
        from a revision's diff keeps the value it had before that revision.
        """
        revisions = await self.list_revisions(estimate_id)
        if not revisions:
            estimate = await self.estimates.require_estimate(estimate_id)
            return [
                VersionSnapshot(
                    revision_number=estimate.revision_number,
                    created_at=estimate.created_at,
                    **{name: getattr(estimate, name) for name in TIMELINE_FIELDS},
                )
            ]

        first = revisions[0]
        state = {
            name: getattr(first, f"previous_{name}") for name in TIMELINE_FIELDS
        }
        timeline = [VersionSnapshot(revision_number=first.revision_number - 1, **state)]
        for revision in revisions:
            details = revision.change_details or {}
            changed = []
            for name in TIMELINE_FIELDS:
                if name in details:
                    state[name] = Decimal(str(details[name]["new"]))
                    changed.append(name)
            timeline.append(
                VersionSnapshot(
                    revision_number=revision.revision_number,
                    revision_type=revision.revision_type,
                    change_summary=revision.change_summary,
                    approval_status=revision.approval_status,
                    created_at=revision.created_at,
                    changed_fields=changed,
                    **state,
                )
            )
        return timeline
