"""Document number sequences."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from estimate_ledger.models.base import Base


class NumberSequence(Base):
    """One monotonic counter per document type.

    current_number is the last value handed out; it is only ever changed by
    an atomic increment.
    """

    __tablename__ = "number_sequence"

    sequence_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    current_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("current_number >= 0", name="number_sequence_non_negative_check"),
        CheckConstraint("width >= 1", name="number_sequence_width_check"),
    )

    def format(self, value: int) -> str:
        return format_number(self.prefix, self.width, value)


def format_number(prefix: str, width: int, value: int) -> str:
    """EST-0001, INV-1001, ..."""
    return f"{prefix}{str(value).zfill(width)}"
