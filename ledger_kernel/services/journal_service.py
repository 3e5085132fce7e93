"""
JournalService -- draft lifecycle and posting.

Responsibility:
    Creates, edits and discards draft journal entries and posts them.
    Posting is the only way an entry becomes visible to the ledger,
    balance sheet and trial balance.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes AccountRegistry
    (account lookups), SequenceService (journal numbers) and the fiscal
    calendar.  Publishes JournalPosted on the EventBus.

Invariants enforced:
    - Every line carries exactly one non-negative side, quantized to the
      configured currency precision.
    - Sum of debits equals sum of credits exactly; never auto-corrected.
    - Every account exists, is active and belongs to the entry's company.
    - draft -> posted happens once: the flip is a conditional
      ``UPDATE ... WHERE status = 'draft'`` so of two concurrent posts the
      second matches no row and fails with NotDraftError.
    - Journal numbers are allocated at draft creation and never reused.

Failure modes:
    - InvalidLineError, UnbalancedEntryError, InvalidAccountError,
      InvalidEntryTypeError on create/update/post validation.
    - EntryNotFoundError for unknown ids.
    - NotDraftError when the entry has already left DRAFT.

Audit relevance:
    Every state change is logged with the entry id, journal number and
    actor.  Lines are re-validated at post time so a draft edited through
    any path can never post unbalanced.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings
from ledger_kernel.db.types import (
    MAX_INTEGER_DIGITS,
    fits_money_column,
    is_quantized,
    money_context,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import DraftMetadata, LineSpec
from ledger_kernel.domain.events import EventBus, JournalPosted
from ledger_kernel.domain.fiscal import FiscalCalendar
from ledger_kernel.exceptions import (
    EntryNotFoundError,
    InvalidAccountError,
    InvalidEntryTypeError,
    InvalidLineError,
    NotDraftError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import (
    SYSTEM_ENTRY_TYPES,
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")

ZERO = Decimal("0")


class JournalService(BaseService[JournalEntry]):
    """
    Draft and posting service.

    Contract:
        All mutating methods run inside a SAVEPOINT.  On any exception the
        savepoint is rolled back and the exception propagates; the caller's
        outer transaction is left as it was before the call.

    Guarantees:
        - A posted entry is balanced and references only active accounts
          of its company as of the moment it was posted.
        - JournalPosted is published only after the savepoint is released.

    Non-goals:
        - Does NOT call session.commit() -- caller controls boundaries.
        - Does NOT retry on conflict.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        event_bus: EventBus | None = None,
        accounts: AccountRegistry | None = None,
    ):
        super().__init__(session, clock, settings, event_bus)
        self._accounts = accounts or AccountRegistry(
            session, self.clock, self.settings, self.event_bus
        )
        self._sequences = SequenceService(session, self.settings.journal)
        self._calendar = FiscalCalendar(self.settings.fiscal.start_month)

    @property
    def calendar(self) -> FiscalCalendar:
        return self._calendar

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_lines(
        self, company_id: UUID, lines: Sequence[LineSpec], entry_id: UUID | None = None
    ) -> Decimal:
        """
        Validate a set of lines for a company.

        Checks run in order: line shape, balance, accounts.  The first
        failure is raised.

        Returns:
            The entry total (sum of debits == sum of credits).
        """
        places = self.settings.money.decimal_places

        if len(lines) < 2:
            raise InvalidLineError(None, "an entry needs at least two lines")

        total_debit = ZERO
        total_credit = ZERO
        for index, line in enumerate(lines):
            debit, credit = line.debit, line.credit
            if not debit.is_finite() or not credit.is_finite():
                raise InvalidLineError(index, "amounts must be finite")
            if not fits_money_column(debit) or not fits_money_column(credit):
                raise InvalidLineError(
                    index, f"amount has more than {MAX_INTEGER_DIGITS} integer digits"
                )
            if debit < 0 or credit < 0:
                raise InvalidLineError(index, "amounts must be non-negative")
            if debit > 0 and credit > 0:
                raise InvalidLineError(index, "line has both a debit and a credit")
            if debit == 0 and credit == 0:
                raise InvalidLineError(index, "line has neither a debit nor a credit")
            if not is_quantized(debit, places) or not is_quantized(credit, places):
                raise InvalidLineError(
                    index, f"amount has more than {places} decimal places"
                )
            with money_context():
                total_debit += debit
                total_credit += credit

        if not fits_money_column(total_debit) or not fits_money_column(total_credit):
            raise InvalidLineError(
                None, f"entry total has more than {MAX_INTEGER_DIGITS} integer digits"
            )

        if total_debit != total_credit:
            raise UnbalancedEntryError(
                debits=str(total_debit),
                credits=str(total_credit),
                entry_id=str(entry_id) if entry_id else None,
            )

        accounts = self._accounts.lookup_many(line.account_id for line in lines)
        for line in lines:
            info = accounts.get(line.account_id)
            if info is None:
                raise InvalidAccountError(str(line.account_id), "account not found")
            if info.company_id != company_id:
                raise InvalidAccountError(
                    str(line.account_id), "account belongs to another company"
                )
            if not info.is_active:
                raise InvalidAccountError(str(line.account_id), "account is inactive")

        return total_debit

    @staticmethod
    def _build_lines(lines: Sequence[LineSpec], actor_id: UUID) -> list[JournalLine]:
        return [
            JournalLine(
                account_id=spec.account_id,
                debit=spec.debit,
                credit=spec.credit,
                line_description=spec.description,
                line_number=number,
                created_by_id=actor_id,
            )
            for number, spec in enumerate(lines, start=1)
        ]

    @staticmethod
    def line_specs(entry: JournalEntry) -> list[LineSpec]:
        return [
            LineSpec(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.line_description,
            )
            for line in sorted(entry.lines, key=lambda l: l.line_number)
        ]

    def _load(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def _claim_draft(self, entry: JournalEntry, actor_id: UUID) -> None:
        """
        Conditionally touch the header of a draft.

        The UPDATE only matches while the row is still a draft, so it fails
        cleanly if another session posted or discarded the entry meanwhile,
        and on PostgreSQL it holds the row lock until the transaction ends.
        """
        result = self.session.execute(
            update(JournalEntry)
            .where(
                JournalEntry.id == entry.id,
                JournalEntry.status == JournalEntryStatus.DRAFT.value,
            )
            .values(updated_by_id=actor_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._raise_not_draft(entry)

    def _raise_not_draft(self, entry: JournalEntry) -> None:
        entry_id = entry.id
        self.session.expire(entry)
        current = self.session.get(JournalEntry, entry_id)
        status = current.status if current is not None else "deleted"
        raise NotDraftError(str(entry_id), str(status))

    # =========================================================================
    # Draft lifecycle
    # =========================================================================

    def create_draft(
        self,
        company_id: UUID,
        lines: Sequence[LineSpec],
        metadata: DraftMetadata,
        actor_id: UUID,
    ) -> JournalEntry:
        """
        Create a draft journal entry.

        Preconditions:
            - metadata.entry_type is not a system-only type.

        Postconditions:
            - A DRAFT entry exists with a freshly allocated journal number,
              financial_year and period_month derived from journal_date.

        Raises:
            InvalidEntryTypeError, InvalidLineError, UnbalancedEntryError,
            InvalidAccountError.
        """
        entry_type = EntryType(metadata.entry_type)
        if entry_type in SYSTEM_ENTRY_TYPES:
            raise InvalidEntryTypeError(entry_type.value)

        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            self.validate_lines(company_id, lines)

            financial_year = self._calendar.financial_year(metadata.journal_date)
            with self.session.begin_nested():
                journal_number = self._sequences.next_journal_number(
                    company_id, financial_year
                )
                entry = JournalEntry(
                    company_id=company_id,
                    journal_number=journal_number,
                    journal_date=metadata.journal_date,
                    description=metadata.description,
                    entry_type=entry_type.value,
                    status=JournalEntryStatus.DRAFT.value,
                    financial_year=financial_year,
                    period_month=self._calendar.period_month(metadata.journal_date),
                    source_type=metadata.source_type,
                    source_number=metadata.source_number,
                    is_reversed=False,
                    created_by_id=actor_id,
                    lines=self._build_lines(lines, actor_id),
                )
                self.session.add(entry)
                self.session.flush()

            logger.info(
                "journal_draft_created",
                extra={
                    "entry_id": str(entry.id),
                    "journal_number": journal_number,
                    "journal_date": metadata.journal_date,
                    "line_count": len(lines),
                },
            )
        return entry

    def update_draft(
        self,
        entry_id: UUID,
        actor_id: UUID,
        lines: Sequence[LineSpec] | None = None,
        description: str | None = None,
        journal_date: date | None = None,
    ) -> JournalEntry:
        """
        Edit a draft.  Arguments left as None are unchanged.

        The journal number is kept even when journal_date moves the entry
        into another financial year.

        Raises:
            EntryNotFoundError, NotDraftError, plus the create_draft
            validation errors when lines are replaced.
        """
        with LogContext.bind(entry_id=entry_id, actor_id=actor_id):
            entry = self._load(entry_id)
            if entry.status != JournalEntryStatus.DRAFT:
                raise NotDraftError(str(entry_id), str(entry.status))

            if lines is not None:
                self.validate_lines(entry.company_id, lines, entry_id=entry_id)

            with self.session.begin_nested():
                self._claim_draft(entry, actor_id)
                if lines is not None:
                    entry.lines = self._build_lines(lines, actor_id)
                if description is not None:
                    entry.description = description
                if journal_date is not None:
                    entry.journal_date = journal_date
                    entry.financial_year = self._calendar.financial_year(journal_date)
                    entry.period_month = self._calendar.period_month(journal_date)
                entry.updated_by_id = actor_id
                self.session.flush()

            logger.info(
                "journal_draft_updated",
                extra={
                    "journal_number": entry.journal_number,
                    "lines_replaced": lines is not None,
                },
            )
        return entry

    def discard_draft(self, entry_id: UUID, actor_id: UUID) -> None:
        """
        Delete a draft and its lines.  The journal number is not reused.

        Raises:
            EntryNotFoundError, NotDraftError.
        """
        with LogContext.bind(entry_id=entry_id, actor_id=actor_id):
            entry = self._load(entry_id)
            if entry.status != JournalEntryStatus.DRAFT:
                raise NotDraftError(str(entry_id), str(entry.status))
            journal_number = entry.journal_number

            with self.session.begin_nested():
                self._claim_draft(entry, actor_id)
                self.session.delete(entry)
                self.session.flush()

            logger.info("journal_draft_discarded", extra={"journal_number": journal_number})

    # =========================================================================
    # Posting
    # =========================================================================

    def post(self, entry_id: UUID, posted_by: UUID) -> JournalEntry:
        """
        Post a draft entry.

        Preconditions:
            - entry is DRAFT, balanced, and all accounts are active.

        Postconditions:
            - status is POSTED with posted_at/posted_by set.
            - The entry's lines are immutable and visible to every ledger read.

        Raises:
            EntryNotFoundError: unknown entry.
            NotDraftError: entry already posted/reversed, including when a
                concurrent post won the race.
            UnbalancedEntryError, InvalidLineError, InvalidAccountError:
                re-validation failed.
        """
        with LogContext.bind(entry_id=entry_id, actor_id=posted_by):
            entry = self._load(entry_id)
            if entry.status != JournalEntryStatus.DRAFT:
                raise NotDraftError(str(entry_id), str(entry.status))

            with self.session.begin_nested():
                total = self.validate_lines(
                    entry.company_id, self.line_specs(entry), entry_id=entry_id
                )
                now = self.clock.now()
                result = self.session.execute(
                    update(JournalEntry)
                    .where(
                        JournalEntry.id == entry_id,
                        JournalEntry.status == JournalEntryStatus.DRAFT.value,
                    )
                    .values(
                        status=JournalEntryStatus.POSTED.value,
                        posted_at=now,
                        posted_by=posted_by,
                        updated_by_id=posted_by,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    logger.warning(
                        "journal_post_conflict",
                        extra={"journal_number": entry.journal_number},
                    )
                    self._raise_not_draft(entry)

            self.session.refresh(entry)

            logger.info(
                "journal_posted",
                extra={
                    "journal_number": entry.journal_number,
                    "journal_date": entry.journal_date,
                    "total_amount": total,
                },
            )

        self.event_bus.publish(
            JournalPosted(
                entry_id=entry.id,
                company_id=entry.company_id,
                journal_number=entry.journal_number,
                journal_date=entry.journal_date,
                total_amount=total,
                posted_by=posted_by,
                posted_at=now,
            )
        )
        return entry
