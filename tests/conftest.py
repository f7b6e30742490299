"""Pytest fixtures for estimate ledger tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from estimate_ledger.config import Settings, get_settings
from estimate_ledger.database import create_schema, create_session_factory
from estimate_ledger.events import DomainEvent, EventBatch, EventEmitter
from estimate_ledger.ledger import EstimateLedger, bootstrap
from estimate_ledger.services.sequence_service import ensure_sequences

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 36h x 50/h labor + 350 material = 2150.00 subtotal; 15% markup = 2472.50
LIVING_ROOM = {
    "area_name": "Living room",
    "area_type": "indoor",
    "surface_type": "drywall",
    "square_footage": "420",
    "labor_hours": "36",
    "labor_rate": "50",
    "material_cost": "350",
}


def area(**overrides: Any) -> dict[str, Any]:
    """Project area input based on the living room fixture."""
    return {**LIVING_ROOM, **overrides}


class EventRecorder:
    """Handler that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    def __call__(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    @property
    def types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with deterministic defaults, independent of the environment."""
    return replace(
        get_settings(),
        store_retries=1,
        store_retry_backoff=0.0,
        default_markup_percentage=Decimal("15"),
        default_payment_terms="Net 30",
        estimate_sequence_start=0,
        invoice_sequence_start=1000,
        sequence_width=4,
    )


@pytest_asyncio.fixture
async def engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory, settings) -> AsyncGenerator[AsyncSession, None]:
    """Session with seeded sequences for service-level tests.

    Service calls flush but never commit; everything is rolled back at the end.
    """
    async with session_factory() as session:
        await ensure_sequences(session, settings)
        yield session
        await session.rollback()


@pytest.fixture
def events() -> EventBatch:
    """Collect-only event batch for service-level tests."""
    return EventBatch(actor="tester")


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest_asyncio.fixture
async def ledger(engine, session_factory, settings, recorder) -> EstimateLedger:
    """Facade over the in-memory database with every event recorded."""
    await bootstrap(engine, session_factory, settings)
    emitter = EventEmitter()
    emitter.on_all(recorder)
    return EstimateLedger(session_factory, emitter, settings)


@pytest_asyncio.fixture
async def file_ledger(tmp_path, settings) -> AsyncGenerator[EstimateLedger, None]:
    """Facade over a file database with one connection per transaction.

    Used for concurrency tests, where each caller needs its own connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        echo=False,
        poolclass=NullPool,
    )
    factory = create_session_factory(engine)
    retrying = replace(settings, store_retries=25, store_retry_backoff=0.01)
    await bootstrap(engine, factory, retrying)
    yield EstimateLedger(factory, EventEmitter(), retrying)
    await engine.dispose()


@pytest.fixture
def client_id():
    return uuid4()


@pytest.fixture
def make_estimate(ledger, client_id):
    """Create an estimate and walk it to the requested status."""

    async def _make(status: str = "draft", **kwargs: Any):
        kwargs.setdefault("project_areas", [area()])
        kwargs.setdefault("title", "Interior repaint")
        estimate = await ledger.create_estimate(client_id=client_id, **kwargs)
        path = {
            "draft": [],
            "sent": ["sent"],
            "approved": ["sent", "approved"],
            "rejected": ["sent", "rejected"],
        }[status]
        for step in path:
            estimate = await ledger.transition_estimate(estimate.id, step)
        return estimate

    return _make


@pytest.fixture
def make_invoice(ledger, make_estimate):
    """Convert an approved estimate and optionally send the invoice."""

    async def _make(status: str = "draft", due_date: date | None = None, **kwargs: Any):
        estimate = await make_estimate("approved", **kwargs)
        invoice = await ledger.convert_estimate(estimate.id, due_date=due_date)
        if status == "sent":
            invoice = await ledger.transition_invoice(invoice.id, "sent")
        return invoice

    return _make
