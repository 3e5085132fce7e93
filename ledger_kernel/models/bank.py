"""
Module: ledger_kernel.models.bank
Responsibility: ORM persistence for bank accounts and imported bank statement
    lines, including their reconciliation link.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - amount > 0; direction lives in transaction_type (ck_bank_tx_positive).
    - A transaction is reconciled iff reconciled_type and reconciled_id are
      both set (ck_bank_tx_link_consistent).
    - Rows are created by statement import and never deleted; only the
      reconciliation columns change, through ReconciliationService.

Failure modes:
    - IntegrityError when the link columns disagree with is_reconciled.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class TransactionType(str, Enum):
    """Direction of money on the bank statement."""

    CREDIT = "credit"  # money in
    DEBIT = "debit"  # money out


class ReconciledType(str, Enum):
    """Kind of ledger item a bank transaction can be linked to."""

    PAYMENT = "payment"
    EXPENSE = "expense"
    PAYROLL = "payroll"
    TAX_PAYMENT = "tax_payment"
    TRANSFER = "transfer"
    CONTRACTOR = "contractor"
    SALARY = "salary"
    EXPENSE_CLAIM = "expense_claim"
    SUBSCRIPTION = "subscription"
    LOAN_PAYMENT = "loan_payment"
    ASSET_MAINTENANCE = "asset_maintenance"
    JOURNAL_ENTRY = "journal_entry"


class BankAccount(TrackedBase):
    """A company bank account whose statements are reconciled."""

    __tablename__ = "bank_accounts"

    __table_args__ = (Index("idx_bank_account_company", "company_id"),)

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Chart-of-accounts asset backing this bank account, if mapped
    ledger_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    transactions: Mapped[list["BankTransaction"]] = relationship(
        back_populates="bank_account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<BankAccount {self.name} {self.account_number}>"


class BankTransaction(TrackedBase):
    """
    One line of an imported bank statement.

    Contract:
        is_reconciled, reconciled_type, reconciled_id, reconciled_by and
        reconciled_at move together: all set on reconcile, all cleared on
        unreconcile.
    """

    __tablename__ = "bank_transactions"

    __table_args__ = (
        Index("idx_bank_tx_account_date", "bank_account_id", "transaction_date"),
        Index("idx_bank_tx_reconciled", "bank_account_id", "is_reconciled"),
        CheckConstraint("amount > 0", name="ck_bank_tx_positive"),
        CheckConstraint(
            "(is_reconciled AND reconciled_type IS NOT NULL AND reconciled_id IS NOT NULL)"
            " OR (NOT is_reconciled AND reconciled_type IS NULL AND reconciled_id IS NULL)",
            name="ck_bank_tx_link_consistent",
        ),
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bank_accounts.id"),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(10),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    reference_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    cheque_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    is_reconciled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    reconciled_type: Mapped[ReconciledType | None] = mapped_column(
        String(30),
        nullable=True,
    )

    reconciled_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Free-form actor label: a user id or "auto-reconcile"
    reconciled_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    reconciled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    bank_account: Mapped["BankAccount"] = relationship(
        back_populates="transactions",
    )

    def __repr__(self) -> str:
        return (
            f"<BankTransaction {self.transaction_date} {self.transaction_type} "
            f"{self.amount} reconciled={self.is_reconciled}>"
        )
