"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique within a company (uq_account_company_code).
    - code, account_type and company_id are immutable once the account is
      referenced by a posted line (db/immutability.py).
    - normal_balance is never stored: it is derived from account_type so the
      two can never disagree.

Failure modes:
    - IntegrityError on duplicate (company_id, code).
    - ImmutabilityViolationError on structural change of a referenced account.
    - AccountReferencedError on deletion of a referenced account.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


BALANCE_SHEET_TYPES = frozenset(
    {AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY}
)
PROFIT_AND_LOSS_TYPES = frozenset({AccountType.INCOME, AccountType.EXPENSE})


class Account(TrackedBase):
    """
    Chart of accounts entry for one company.

    Contract:
        (company_id, code) is unique.  Once a posted JournalLine references
        the account, code, account_type and company_id MUST NOT change.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, EQUITY, INCOME, EXPENSE.
        - normal_balance is DEBIT for asset/expense and CREDIT otherwise.

    Non-goals:
        - Parent/child roll-ups.  parent_id is carried for display grouping
          only; balances are never summed through the hierarchy here.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_company_type", "company_id", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # Human-readable account code, e.g. "1100"
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Inactive accounts reject new postings but keep their history
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def type(self) -> AccountType:
        return AccountType(self.account_type)

    @property
    def normal_balance(self) -> NormalBalance:
        return self.type.normal_balance
