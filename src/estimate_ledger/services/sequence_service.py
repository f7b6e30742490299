"""Sequence allocator for human-readable document numbers.

Numbers are minted from one counter row per document type. The counter is
advanced by a single UPDATE ... RETURNING statement, so concurrent callers
serialize on the row and never observe the same value.
"""

from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from estimate_ledger.config import Settings, get_settings
from estimate_ledger.errors import SequenceNotConfiguredError
from estimate_ledger.events.emitter import EventBatch
from estimate_ledger.events.types import DocumentNumberAllocated, FieldChange
from estimate_ledger.models import NumberSequence, format_number

logger = logging.getLogger(__name__)


class SequenceType(str, Enum):
    ESTIMATE = "estimate"
    INVOICE = "invoice"


SEQUENCE_PREFIXES = {
    SequenceType.ESTIMATE: "EST-",
    SequenceType.INVOICE: "INV-",
}


class SequenceAllocator:
    """Issues the next number of a named counter inside the caller's transaction.

    The allocation is part of the surrounding transaction: if the caller
    rolls back, the counter increment is rolled back with it.
    """

    def __init__(self, session: AsyncSession, events: EventBatch | None = None):
        self.session = session
        self.events = events if events is not None else EventBatch()

    async def next(self, sequence_type: str) -> str:
        """Advance the counter and return the formatted number.

        Raises SequenceNotConfiguredError if the sequence row is missing.
        """
        if isinstance(sequence_type, SequenceType):
            sequence_type = sequence_type.value
        result = await self.session.execute(
            update(NumberSequence)
            .where(NumberSequence.sequence_type == sequence_type)
            .values(current_number=NumberSequence.current_number + 1)
            .returning(
                NumberSequence.prefix,
                NumberSequence.width,
                NumberSequence.current_number,
            )
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            logger.error("Number sequence %r is not configured", sequence_type)
            raise SequenceNotConfiguredError(sequence_type)

        prefix, width, value = row
        number = format_number(prefix, width, value)
        self.events.add(
            DocumentNumberAllocated(
                metadata=self.events.metadata(),
                changes=(FieldChange("current_number", value - 1, value),),
                sequence_type=sequence_type,
                document_number=number,
            )
        )
        logger.debug("Allocated %s from sequence %s", number, sequence_type)
        return number

    async def current_numbers(self) -> dict[str, int]:
        """Current counter value per sequence, for display."""
        result = await self.session.execute(
            select(NumberSequence.sequence_type, NumberSequence.current_number).order_by(
                NumberSequence.sequence_type
            )
        )
        return {sequence_type: current for sequence_type, current in result.all()}


async def ensure_sequences(
    session: AsyncSession, settings: Settings | None = None
) -> list[str]:
    """Seed missing sequence rows. Existing counters are never touched.

    Returns the sequence types that were created.
    """
    settings = settings or get_settings()
    starts = {
        SequenceType.ESTIMATE: settings.estimate_sequence_start,
        SequenceType.INVOICE: settings.invoice_sequence_start,
    }

    result = await session.execute(select(NumberSequence.sequence_type))
    existing = set(result.scalars().all())

    created = []
    for sequence_type, prefix in SEQUENCE_PREFIXES.items():
        if sequence_type.value in existing:
            continue
        session.add(
            NumberSequence(
                sequence_type=sequence_type.value,
                prefix=prefix,
                width=settings.sequence_width,
                current_number=starts[sequence_type],
            )
        )
        created.append(sequence_type.value)

    if created:
        await session.flush()
        logger.info("Seeded number sequences: %s", ", ".join(created))
    return created
