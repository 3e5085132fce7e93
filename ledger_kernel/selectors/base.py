"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for the read-only query selectors that
    back the ledger, balance sheet, trial balance and bank summary views.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    the pure helpers in domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - Balances are replayed from journal lines at query time; nothing is
      cached between calls.
    - Only lines of posted or reversed entries are ever read.

Failure modes:
    - AccountNotFoundError / InvalidDateRangeError raised by subclasses for
      bad inputs.
"""

from abc import ABC
from decimal import Decimal
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_config
from ledger_kernel.db.base import Base
from ledger_kernel.db.types import round_money

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return frozen DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        self.session = session
        self.settings = settings or get_active_config()

    def _money(self, value: Decimal) -> Decimal:
        """Round a replayed figure to the currency precision for output."""
        return round_money(value, self.settings.money.decimal_places)
