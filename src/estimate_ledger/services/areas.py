"""Project area input handling shared by estimates and invoices."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from estimate_ledger.calculators import is_valid_markup, round2, to_decimal
from estimate_ledger.errors import ValidationError
from estimate_ledger.models import ProjectArea
from estimate_ledger.models.estimate import AREA_COPY_FIELDS

AREA_TYPES = ("indoor", "outdoor")

# Inputs that must be non-negative amounts when present
AMOUNT_FIELDS = (
    "labor_hours",
    "labor_rate",
    "material_cost",
    "square_footage",
    "ceiling_height",
)


def parse_amount(value: Any, field: str, allow_none: bool = True) -> Decimal | None:
    """Parse a non-negative money/quantity input, rounded to cents."""
    if value is None:
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", field=field)
    try:
        amount = round2(value)
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid amount", field=field) from exc
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    return amount


def build_area(data: Mapping[str, Any], position: int) -> ProjectArea:
    """Validate one area input and build an unowned ProjectArea."""
    unknown = set(data) - set(AREA_COPY_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown project area field(s): {', '.join(sorted(unknown))}",
            field="project_areas",
        )

    area_name = (data.get("area_name") or "").strip()
    if not area_name:
        raise ValidationError("Project area name is required", field="area_name")

    area_type = data.get("area_type") or "indoor"
    if area_type not in AREA_TYPES:
        raise ValidationError(
            f"area_type must be one of {', '.join(AREA_TYPES)}", field="area_type"
        )

    coats = data.get("number_of_coats")
    if coats is None:
        coats = 2
    try:
        coats = int(coats)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "number_of_coats must be a whole number", field="number_of_coats"
        ) from exc
    if coats < 1:
        raise ValidationError("number_of_coats must be at least 1", field="number_of_coats")

    values = {name: data.get(name) for name in AREA_COPY_FIELDS}
    for name in AMOUNT_FIELDS:
        values[name] = parse_amount(values[name], name)
    values.update(
        position=position,
        area_name=area_name,
        area_type=area_type,
        number_of_coats=coats,
    )
    return ProjectArea(**values)


def build_areas(items: Iterable[Mapping[str, Any]]) -> list[ProjectArea]:
    """Build areas in input order; position is the input index."""
    return [build_area(item, position) for position, item in enumerate(items)]


def copy_areas(areas: Iterable[ProjectArea]) -> list[ProjectArea]:
    """Copy areas by value so the copies share nothing with the originals."""
    return [area.copy() for area in areas]


def validate_markup(value: Any) -> Decimal:
    try:
        markup = to_decimal(value)
    except ValueError as exc:
        raise ValidationError(
            "markup_percentage is not a number", field="markup_percentage"
        ) from exc
    if not is_valid_markup(markup):
        raise ValidationError(
            "markup_percentage must be between 0 and 100", field="markup_percentage"
        )
    return round2(markup)
