"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only queries over journal entries: single-entry
    lookup, lookup by journal number, the reversal of an entry, and
    filtered listings for the journal entries view.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Returns frozen DTOs (JournalEntryDTO / JournalLineDTO), never ORM rows.
    - Listings are ordered by (journal_date, journal_number).

Failure modes:
    - get_entry / get_by_number return None when nothing matches.
    - InvalidDateRangeError from list_entries when from_date > to_date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import InvalidDateRangeError
from ledger_kernel.models.journal import (
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class JournalLineDTO:
    id: UUID
    account_id: UUID
    line_number: int
    debit: Decimal
    credit: Decimal
    line_description: str | None


@dataclass(frozen=True)
class JournalEntryDTO:
    """Immutable snapshot of a journal entry and its lines."""

    id: UUID
    company_id: UUID
    journal_number: str
    journal_date: date
    description: str | None
    entry_type: EntryType
    status: JournalEntryStatus
    financial_year: str
    period_month: int
    source_type: str | None
    source_number: str | None
    is_reversed: bool
    reversal_of_entry_id: UUID | None
    posted_at: datetime | None
    posted_by: UUID | None
    reversed_at: datetime | None
    reversal_reason: str | None
    lines: tuple[JournalLineDTO, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalSelector(BaseSelector[JournalEntry]):
    """Selector for journal entry queries."""

    def _to_dto(self, entry: JournalEntry) -> JournalEntryDTO:
        return JournalEntryDTO(
            id=entry.id,
            company_id=entry.company_id,
            journal_number=entry.journal_number,
            journal_date=entry.journal_date,
            description=entry.description,
            entry_type=EntryType(entry.entry_type),
            status=JournalEntryStatus(entry.status),
            financial_year=entry.financial_year,
            period_month=entry.period_month,
            source_type=entry.source_type,
            source_number=entry.source_number,
            is_reversed=entry.is_reversed,
            reversal_of_entry_id=entry.reversal_of_entry_id,
            posted_at=entry.posted_at,
            posted_by=entry.posted_by,
            reversed_at=entry.reversed_at,
            reversal_reason=entry.reversal_reason,
            lines=tuple(
                JournalLineDTO(
                    id=line.id,
                    account_id=line.account_id,
                    line_number=line.line_number,
                    debit=self._money(line.debit),
                    credit=self._money(line.credit),
                    line_description=line.line_description,
                )
                for line in sorted(entry.lines, key=lambda l: l.line_number)
            ),
        )

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO | None:
        entry = self.session.get(JournalEntry, entry_id)
        return self._to_dto(entry) if entry is not None else None

    def get_by_number(self, company_id: UUID, journal_number: str) -> JournalEntryDTO | None:
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.company_id == company_id,
                JournalEntry.journal_number == journal_number,
            )
        ).scalar_one_or_none()
        return self._to_dto(entry) if entry is not None else None

    def find_reversal_of(self, entry_id: UUID) -> JournalEntryDTO | None:
        """The entry that reverses ``entry_id``, if any."""
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_entry_id == entry_id)
        ).scalar_one_or_none()
        return self._to_dto(entry) if entry is not None else None

    def list_entries(
        self,
        company_id: UUID,
        status: JournalEntryStatus | str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        entry_type: EntryType | str | None = None,
        account_id: UUID | None = None,
    ) -> list[JournalEntryDTO]:
        """
        Entries of a company, optionally filtered.

        account_id keeps only entries with at least one line on that account.
        """
        if from_date is not None and to_date is not None and from_date > to_date:
            raise InvalidDateRangeError(from_date.isoformat(), to_date.isoformat())

        query = select(JournalEntry).where(JournalEntry.company_id == company_id)
        if status is not None:
            query = query.where(JournalEntry.status == JournalEntryStatus(status).value)
        if entry_type is not None:
            query = query.where(JournalEntry.entry_type == EntryType(entry_type).value)
        if from_date is not None:
            query = query.where(JournalEntry.journal_date >= from_date)
        if to_date is not None:
            query = query.where(JournalEntry.journal_date <= to_date)
        if account_id is not None:
            query = query.where(
                JournalEntry.id.in_(
                    select(JournalLine.journal_entry_id).where(
                        JournalLine.account_id == account_id
                    )
                )
            )
        query = query.order_by(JournalEntry.journal_date, JournalEntry.journal_number)

        return [self._to_dto(e) for e in self.session.execute(query).scalars()]
