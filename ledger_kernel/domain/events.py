"""
In-process domain events.

Services publish these after the savepoint that made the change has been
released.  The enclosing transaction is still owned by the caller, so a
subscriber that needs durable effects should act after commit.

Subscribers run synchronously in registration order.  A subscriber that
raises is logged and skipped; it never undoes or fails the operation that
published the event.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.events")


@dataclass(frozen=True)
class JournalPosted:
    entry_id: UUID
    company_id: UUID
    journal_number: str
    journal_date: date
    total_amount: Decimal
    posted_by: UUID
    posted_at: datetime


@dataclass(frozen=True)
class JournalReversed:
    original_entry_id: UUID
    reversal_entry_id: UUID
    company_id: UUID
    reversal_date: date
    reason: str
    reversed_by: UUID
    reversed_at: datetime


@dataclass(frozen=True)
class TransactionReconciled:
    transaction_id: UUID
    bank_account_id: UUID
    reconciled_type: str
    reconciled_id: UUID
    reconciled_by: str
    reconciled_at: datetime


@dataclass(frozen=True)
class TransactionUnreconciled:
    transaction_id: UUID
    bank_account_id: UUID
    previous_type: str
    previous_id: UUID
    actor_id: str | None


LedgerEvent = JournalPosted | JournalReversed | TransactionReconciled | TransactionUnreconciled

Handler = Callable[[LedgerEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe bus keyed by event class.

    Guarantees:
        - Every subscriber of an event's class is called once per publish.
        - Subscriber exceptions are logged, never propagated.
        - The last ``max_history`` published events are kept for inspection.
    """

    def __init__(self, max_history: int = 1000):
        self._subscribers: dict[type, list[Handler]] = {}
        self._history: deque[LedgerEvent] = deque(maxlen=max_history)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: LedgerEvent) -> None:
        self._history.append(event)
        handlers = list(self._subscribers.get(type(event), ()))
        logger.debug(
            "event_published",
            extra={"event_type": type(event).__name__, "handler_count": len(handlers)},
        )
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": type(event).__name__,
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                    },
                )

    def history(self, event_type: type | None = None) -> list[LedgerEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if isinstance(e, event_type)]
