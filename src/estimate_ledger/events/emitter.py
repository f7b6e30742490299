"""Event emitter for publishing audit events to an external sink.

The emitter provides:
- Handler registration with type and category filtering
- Error isolation (handler failures don't break other handlers)
- Per-transaction batches that are dispatched only after commit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable
from uuid import UUID, uuid4

from estimate_ledger.events.types import DomainEvent, EventCategory, EventMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)


@runtime_checkable
class EventHandler(Protocol):
    """Protocol for event handlers."""

    def __call__(self, event: DomainEvent) -> None:
        """Handle an event."""
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: EventHandler
    event_types: set[str] | None  # None = all events
    categories: set[EventCategory] | None  # None = all categories


class EventEmitter:
    """Synchronous event emitter.

    Usage:
        emitter = EventEmitter()
        emitter.on(InvoiceVoided, notify_bookkeeper)
        emitter.on_category(EventCategory.PAYMENT, log_payment)

        with emitter.batch(actor="jane") as batch:
            batch.add(event)
        # Events are dispatched when the block exits cleanly
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: EventHandler,
    ) -> None:
        """Register handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=types, categories=None)
        )

    def on_category(
        self,
        category: EventCategory | list[EventCategory],
        handler: EventHandler,
    ) -> None:
        """Register handler for event category(ies)."""
        cats = set(category) if isinstance(category, list) else {category}
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None, categories=cats)
        )

    def on_all(self, handler: EventHandler) -> None:
        """Register handler for all events."""
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None, categories=None)
        )

    def off(self, handler: EventHandler) -> None:
        """Unregister a handler."""
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Returns list of any exceptions raised by handlers.
        """
        errors: list[Exception] = []
        event_type = event.event_type
        event_category = event.category

        for reg in self._handlers:
            if reg.event_types and event_type not in reg.event_types:
                continue
            if reg.categories and event_category not in reg.categories:
                continue
            try:
                reg.handler(event)
            except Exception as e:
                logger.exception(
                    "Handler %s failed for event %s",
                    reg.handler,
                    event_type,
                )
                errors.append(e)

        return errors

    def batch(self, actor: str = "system") -> EventBatch:
        """Create a batch bound to this emitter."""
        return EventBatch(self, actor=actor)


class EventBatch:
    """Events collected during one transaction.

    Each batch owns its buffer, so concurrent operations never see each
    other's events. On clean exit the events are dispatched; if the block
    raises, they are discarded along with the rolled-back transaction.
    A batch without an emitter only collects.
    """

    def __init__(
        self,
        emitter: EventEmitter | None = None,
        actor: str = "system",
        correlation_id: UUID | None = None,
    ) -> None:
        self._emitter = emitter
        self.actor = actor
        self.correlation_id = correlation_id or uuid4()
        self._events: list[DomainEvent] = []
        self._errors: list[Exception] = []
        self.dispatched: list[DomainEvent] = []

    def __enter__(self) -> EventBatch:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.flush()
        else:
            self.discard()

    def metadata(self) -> EventMetadata:
        return EventMetadata.create(actor=self.actor, correlation_id=self.correlation_id)

    def add(self, event: DomainEvent) -> None:
        self._events.append(event)

    def flush(self) -> list[Exception]:
        """Dispatch collected events to the emitter."""
        events, self._events = self._events, []
        self.dispatched.extend(events)
        if self._emitter is None:
            return []
        for event in events:
            self._errors.extend(self._emitter.emit(event))
        return self._errors

    def discard(self) -> None:
        if self._events:
            logger.debug("Discarding %d event(s) from failed operation", len(self._events))
        self._events = []

    @property
    def events(self) -> list[DomainEvent]:
        """Events collected and not yet dispatched."""
        return list(self._events)

    @property
    def errors(self) -> list[Exception]:
        """Errors from handler execution (available after dispatch)."""
        return self._errors
