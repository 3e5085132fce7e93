"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable inputs to the posting services (LineSpec, DraftMetadata) and
    the AccountInfo snapshot returned by the account registry.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from the service layer.

Failure modes:
    - ValueError on LineSpec with a non-Decimal amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.models.journal import EntryType

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel


@dataclass(frozen=True)
class LineSpec:
    """
    One requested journal line.

    Contract:
        Exactly one of debit/credit should be non-zero.  This class only
        checks the Python types; the amount rules (sign, precision, one
        side) are validated by JournalService so the error can name the
        offending line index.
    """

    account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None

    def __post_init__(self) -> None:
        for name in ("debit", "credit"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or isinstance(value, bool):
                raise ValueError(
                    f"LineSpec.{name} must be Decimal, got {type(value).__name__}"
                )

    @classmethod
    def dr(cls, account_id: UUID, amount: Decimal | str, description: str | None = None) -> LineSpec:
        """Debit line shorthand."""
        return cls(account_id=account_id, debit=Decimal(amount), description=description)

    @classmethod
    def cr(cls, account_id: UUID, amount: Decimal | str, description: str | None = None) -> LineSpec:
        """Credit line shorthand."""
        return cls(account_id=account_id, credit=Decimal(amount), description=description)


@dataclass(frozen=True)
class DraftMetadata:
    """Header fields of a draft journal entry."""

    journal_date: date
    description: str | None = None
    entry_type: EntryType = EntryType.MANUAL
    source_type: str | None = None
    source_number: str | None = None


@dataclass(frozen=True)
class AccountInfo:
    """
    Pure domain representation of an account.

    Contract:
        Immutable snapshot of account state used by posting validation and
        by callers that must not hold ORM objects.
    """

    id: UUID
    company_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    is_active: bool
    parent_id: UUID | None = None

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            company_id=model.company_id,
            code=model.code,
            name=model.name,
            account_type=model.type,
            normal_balance=model.normal_balance,
            is_active=model.is_active,
            parent_id=model.parent_id,
        )
