"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth.  Every balance in the system is derived
    by replaying these rows; none is stored.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - journal_number is unique per company (uq_journal_company_number).
    - Each line carries a debit or a credit, never both, never negative
      (ck_line_one_side, ck_line_non_negative).
    - Posted/reversed entries and their lines are immutable apart from the
      posted -> reversed flip (db/immutability.py).
    - At most one entry may reverse a given entry (uq_journal_reversal_of).

Failure modes:
    - IntegrityError on duplicate journal number or second reversal row.
    - ImmutabilityViolationError on UPDATE/DELETE of a posted entry or line.

Audit relevance:
    A mistake in a posted entry is corrected by a reversal entry that swaps
    every line's debit and credit.  The original stays visible in every
    ledger; the pair nets to zero.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Contract: Transitions are one-way: DRAFT -> POSTED -> REVERSED.
    """

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


# Statuses whose lines count toward balances
LEDGER_STATUSES = (JournalEntryStatus.POSTED.value, JournalEntryStatus.REVERSED.value)


class EntryType(str, Enum):
    """Origin of a journal entry."""

    MANUAL = "manual"
    AUTO_POST = "auto_post"
    REVERSAL = "reversal"
    OPENING = "opening"
    CLOSING = "closing"


# Created only by the kernel itself, never through create_draft
SYSTEM_ENTRY_TYPES = frozenset({EntryType.REVERSAL, EntryType.CLOSING})


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Once status leaves DRAFT the row and all child lines are frozen,
        except for the single POSTED -> REVERSED flip that records
        is_reversed, reversed_at and reversal_reason.

    Guarantees:
        - journal_number is assigned at draft creation and never reused.
        - financial_year/period_month are derived from journal_date.

    Non-goals:
        - Balance is not enforced at the ORM level; JournalService validates
          before every write.  is_balanced is a read-side convenience.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("company_id", "journal_number", name="uq_journal_company_number"),
        UniqueConstraint("reversal_of_entry_id", name="uq_journal_reversal_of"),
        # ledger replay: date range scan in (journal_date, journal_number) order
        Index("idx_journal_company_date", "company_id", "journal_date", "journal_number"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_company_fy", "company_id", "financial_year"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # e.g. JV-202425-000001
    journal_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    journal_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    entry_type: Mapped[EntryType] = mapped_column(
        String(20),
        nullable=False,
        default=EntryType.MANUAL.value,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20),
        nullable=False,
        default=JournalEntryStatus.DRAFT.value,
    )

    # e.g. "2024-25"
    financial_year: Mapped[str] = mapped_column(
        String(9),
        nullable=False,
    )

    # 1-12 within the fiscal year
    period_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Originating document, e.g. ("invoice", "INV-0042")
    source_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    source_number: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    is_reversed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    reversal_of_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reversed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reversal_reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_number",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_entry_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.journal_number} status={self.status}>"

    @property
    def total_debits(self) -> Decimal:
        """Sum of all debit line amounts."""
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        """Sum of all credit line amounts."""
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        Exactly one of debit/credit is non-zero; both are >= 0.  Lines are
        immutable once the parent entry leaves DRAFT.

    Guarantees:
        - line_number gives the deterministic order within the entry and is
          the final tie-breaker of every ledger sort.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        # ledger replay: an account's lines joined to their headers
        Index("idx_line_account_entry", "account_id", "journal_entry_id"),
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_line_non_negative"),
        CheckConstraint(
            "(debit = 0 AND credit > 0) OR (debit > 0 AND credit = 0)",
            name="ck_line_one_side",
        ),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    line_description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    entry: Mapped["JournalEntry"] = relationship(
        back_populates="lines",
    )

    account: Mapped["Account"] = relationship(
        back_populates="journal_lines",
    )

    def __repr__(self) -> str:
        return f"<JournalLine #{self.line_number} Dr {self.debit} Cr {self.credit}>"
