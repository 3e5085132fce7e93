"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every mutating service.  Services receive a SQLAlchemy ``Session`` and
    use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback the outer transaction
      themselves.  Each mutating operation runs inside a SAVEPOINT
      (``session.begin_nested()``) so a failure leaves no partial rows
      while the caller's earlier work survives.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_config
from ledger_kernel.db.base import Base
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.events import EventBus

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a caller-owned ``Session`` plus optional clock, settings
        and event bus.  Missing collaborators default to the system clock,
        the active configuration and a private bus.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-side queries; those live in selectors/.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        event_bus: EventBus | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or get_active_config()
        self.event_bus = event_bus or EventBus()
