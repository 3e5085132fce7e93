"""
ReversalService -- correction of posted journal entries.

Responsibility:
    Cancels a posted entry by creating a new, immediately posted entry of
    type ``reversal`` whose lines swap every debit and credit of the
    original, and marks the original as reversed.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes SequenceService and
    the fiscal calendar; publishes JournalReversed.

Invariants enforced:
    - The original's lines are never touched; only the header flips
      posted -> reversed (is_reversed, reversed_at, reversal_reason).
    - At most one reversal per entry: the flip is a conditional
      ``UPDATE ... WHERE status = 'posted' AND is_reversed = false`` and
      reversal_of_entry_id is unique.
    - The reversal is dated on the reversal date, so the original period's
      figures stay as they were reported.
    - A reversal entry is itself a posted entry and may be reversed again.

Failure modes:
    - EntryNotFoundError: unknown entry.
    - AlreadyReversedError: the entry has already been reversed.
    - NotPostedError: the entry is a draft.
    - ReversalDateError: reversal date precedes the original's journal date.

Audit relevance:
    The original and its reversal remain in every ledger and net to zero.
    The reversal description names the original journal number and reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.events import EventBus, JournalReversed
from ledger_kernel.domain.fiscal import FiscalCalendar
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    EntryNotFoundError,
    NotPostedError,
    ReversalDateError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import (
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.reversal")


@dataclass(frozen=True)
class ReversalResult:
    """Immutable result of a successful reversal."""

    original_entry_id: UUID
    reversal_entry_id: UUID
    reversal_journal_number: str
    reversal_date: date


class ReversalService(BaseService[JournalEntry]):
    """
    Reverses posted journal entries.

    Contract:
        reverse() runs inside a SAVEPOINT; on failure neither the flip nor
        the reversal entry is written.

    Non-goals:
        - Does NOT check whether the accounts are still active; reversing
          history must stay possible after an account is retired.
        - Does NOT call session.commit().
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        event_bus: EventBus | None = None,
    ):
        super().__init__(session, clock, settings, event_bus)
        self._sequences = SequenceService(session, self.settings.journal)
        self._calendar = FiscalCalendar(self.settings.fiscal.start_month)

    def _find_reversal_id(self, entry_id: UUID) -> UUID | None:
        return self.session.execute(
            select(JournalEntry.id).where(JournalEntry.reversal_of_entry_id == entry_id)
        ).scalar_one_or_none()

    def _check_reversible(self, entry: JournalEntry) -> None:
        if entry.is_reversed:
            reversal_id = self._find_reversal_id(entry.id)
            raise AlreadyReversedError(
                str(entry.id), str(reversal_id) if reversal_id else None
            )
        if entry.status != JournalEntryStatus.POSTED:
            raise NotPostedError(str(entry.id), str(entry.status))

    def reverse(
        self,
        entry_id: UUID,
        reason: str,
        reversed_by: UUID,
        reversal_date: date | None = None,
    ) -> ReversalResult:
        """
        Reverse a posted entry.

        Args:
            entry_id: The posted entry to cancel.
            reason: Free-text reason, stored on the original and quoted in
                the reversal's description.
            reversed_by: Actor performing the reversal.
            reversal_date: Journal date of the reversal entry; defaults to
                today according to the service clock.

        Returns:
            ReversalResult with both entry ids.
        """
        with LogContext.bind(entry_id=entry_id, actor_id=reversed_by):
            original = self.session.get(JournalEntry, entry_id)
            if original is None:
                raise EntryNotFoundError(str(entry_id))

            self._check_reversible(original)

            reversal_date = reversal_date or self.clock.today()
            if reversal_date < original.journal_date:
                raise ReversalDateError(
                    str(entry_id),
                    original.journal_date.isoformat(),
                    reversal_date.isoformat(),
                )

            now = self.clock.now()
            with self.session.begin_nested():
                result = self.session.execute(
                    update(JournalEntry)
                    .where(
                        JournalEntry.id == entry_id,
                        JournalEntry.status == JournalEntryStatus.POSTED.value,
                        JournalEntry.is_reversed.is_(False),
                    )
                    .values(
                        status=JournalEntryStatus.REVERSED.value,
                        is_reversed=True,
                        reversed_at=now,
                        reversal_reason=reason,
                        updated_by_id=reversed_by,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    logger.warning(
                        "journal_reversal_conflict",
                        extra={"journal_number": original.journal_number},
                    )
                    self.session.refresh(original)
                    self._check_reversible(original)
                    raise AlreadyReversedError(str(entry_id))

                financial_year = self._calendar.financial_year(reversal_date)
                journal_number = self._sequences.next_journal_number(
                    original.company_id, financial_year
                )
                reversal = JournalEntry(
                    company_id=original.company_id,
                    journal_number=journal_number,
                    journal_date=reversal_date,
                    description=f"Reversal of {original.journal_number}: {reason}",
                    entry_type=EntryType.REVERSAL.value,
                    status=JournalEntryStatus.POSTED.value,
                    financial_year=financial_year,
                    period_month=self._calendar.period_month(reversal_date),
                    source_type=original.source_type,
                    source_number=original.source_number,
                    is_reversed=False,
                    reversal_of_entry_id=original.id,
                    posted_at=now,
                    posted_by=reversed_by,
                    created_by_id=reversed_by,
                    lines=[
                        JournalLine(
                            account_id=line.account_id,
                            debit=line.credit,
                            credit=line.debit,
                            line_description=line.line_description,
                            line_number=line.line_number,
                            created_by_id=reversed_by,
                        )
                        for line in original.lines
                    ],
                )
                self.session.add(reversal)
                self.session.flush()

            self.session.refresh(original)

            logger.info(
                "journal_reversed",
                extra={
                    "journal_number": original.journal_number,
                    "reversal_entry_id": str(reversal.id),
                    "reversal_journal_number": journal_number,
                    "reversal_date": reversal_date,
                    "reason": reason,
                },
            )

        self.event_bus.publish(
            JournalReversed(
                original_entry_id=original.id,
                reversal_entry_id=reversal.id,
                company_id=original.company_id,
                reversal_date=reversal_date,
                reason=reason,
                reversed_by=reversed_by,
                reversed_at=now,
            )
        )
        return ReversalResult(
            original_entry_id=original.id,
            reversal_entry_id=reversal.id,
            reversal_journal_number=journal_number,
            reversal_date=reversal_date,
        )
