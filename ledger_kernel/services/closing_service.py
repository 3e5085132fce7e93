"""
ClosingService -- financial year-end close.

Responsibility:
    Moves the year's net result out of income and expense accounts into a
    retained-earnings equity account with one posted ``closing`` entry dated
    on the last day of the financial year.

Architecture position:
    Kernel > Services -- imperative shell.  Reads balances through
    LedgerSelector and numbers the entry through SequenceService.

Invariants enforced:
    - After closing, every income and expense account has a zero balance
      over the year's date range.
    - One live closing entry per (company, financial year).  The duplicate
      check is repeated after the journal number is allocated, so the
      locked counter row serializes concurrent closings of the same year.
    - Reversing a closing entry reopens the year; the year may then be
      closed again.

Failure modes:
    - YearAlreadyClosedError when a non-reversed closing entry exists.
    - InvalidAccountError when the retained-earnings account is not an
      active equity account of the company.
    - ValueError for a malformed financial year label.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.events import EventBus, JournalPosted
from ledger_kernel.domain.fiscal import FiscalCalendar
from ledger_kernel.exceptions import InvalidAccountError, YearAlreadyClosedError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import (
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.closing")

ZERO = Decimal("0")


class ClosingService(BaseService[JournalEntry]):
    """
    Year-end closing.

    Contract:
        close_financial_year() either posts exactly one closing entry or
        writes nothing.  It returns None when every income and expense
        account already has a zero balance for the year.
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
        self._ledger = LedgerSelector(session, self.settings)

    def find_closing_entry(self, company_id: UUID, financial_year: str) -> JournalEntry | None:
        """The live (posted, not reversed) closing entry of a year, if any."""
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.company_id == company_id,
                JournalEntry.financial_year == financial_year,
                JournalEntry.entry_type == EntryType.CLOSING.value,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
                JournalEntry.is_reversed.is_(False),
            )
        ).scalars().first()

    def _check_not_closed(self, company_id: UUID, financial_year: str) -> None:
        existing = self.find_closing_entry(company_id, financial_year)
        if existing is not None:
            raise YearAlreadyClosedError(str(company_id), financial_year, str(existing.id))

    def _check_retained_earnings(self, company_id: UUID, account_id: UUID) -> None:
        account = self.session.get(Account, account_id)
        if account is None:
            raise InvalidAccountError(str(account_id), "account not found")
        if account.company_id != company_id:
            raise InvalidAccountError(str(account_id), "account belongs to another company")
        if account.type != AccountType.EQUITY:
            raise InvalidAccountError(str(account_id), "retained earnings must be an equity account")
        if not account.is_active:
            raise InvalidAccountError(str(account_id), "account is inactive")

    def close_financial_year(
        self,
        company_id: UUID,
        financial_year: str,
        retained_earnings_account_id: UUID,
        closed_by: UUID,
    ) -> JournalEntry | None:
        """
        Close a financial year into retained earnings.

        Each income account with a credit balance b is debited b and each
        expense account with a debit balance b is credited b; negative
        balances are closed on the opposite side.  The net result
        (income minus expense) is credited to retained earnings when it
        is a profit and debited when it is a loss.

        Returns:
            The posted closing entry, or None if there was nothing to close.
        """
        first_day, last_day = self._calendar.year_bounds(financial_year)
        self._check_retained_earnings(company_id, retained_earnings_account_id)

        with LogContext.bind(company_id=company_id, actor_id=closed_by):
            with self.session.begin_nested():
                self._check_not_closed(company_id, financial_year)

                balances = self._ledger.account_balances(
                    company_id,
                    from_date=first_day,
                    to_date=last_day,
                    account_types=(AccountType.INCOME, AccountType.EXPENSE),
                    active_only=False,
                )

                lines: list[JournalLine] = []
                net = ZERO
                for balance in balances:
                    if balance.balance == 0:
                        continue
                    amount = abs(balance.balance)
                    if balance.account_type == AccountType.INCOME:
                        net += balance.balance
                        closes_with_debit = balance.balance > 0
                    else:
                        net -= balance.balance
                        closes_with_debit = balance.balance < 0
                    lines.append(
                        JournalLine(
                            account_id=balance.account_id,
                            debit=amount if closes_with_debit else ZERO,
                            credit=ZERO if closes_with_debit else amount,
                            line_description=f"Close {balance.account_code} for {financial_year}",
                            line_number=len(lines) + 1,
                            created_by_id=closed_by,
                        )
                    )

                if not lines:
                    logger.info(
                        "financial_year_nothing_to_close",
                        extra={"financial_year": financial_year},
                    )
                    return None

                # The counter row lock serializes concurrent closings; look
                # again once it is held.
                journal_number = self._sequences.next_journal_number(
                    company_id, financial_year
                )
                self._check_not_closed(company_id, financial_year)

                if net != 0:
                    lines.append(
                        JournalLine(
                            account_id=retained_earnings_account_id,
                            debit=ZERO if net > 0 else -net,
                            credit=net if net > 0 else ZERO,
                            line_description=f"Net result for {financial_year}",
                            line_number=len(lines) + 1,
                            created_by_id=closed_by,
                        )
                    )

                now = self.clock.now()
                entry = JournalEntry(
                    company_id=company_id,
                    journal_number=journal_number,
                    journal_date=last_day,
                    description=f"Closing entry for financial year {financial_year}",
                    entry_type=EntryType.CLOSING.value,
                    status=JournalEntryStatus.POSTED.value,
                    financial_year=financial_year,
                    period_month=self._calendar.period_month(last_day),
                    is_reversed=False,
                    posted_at=now,
                    posted_by=closed_by,
                    created_by_id=closed_by,
                    lines=lines,
                )
                self.session.add(entry)
                self.session.flush()
                total = entry.total_debits

            logger.info(
                "financial_year_closed",
                extra={
                    "financial_year": financial_year,
                    "journal_number": journal_number,
                    "net_result": net,
                    "line_count": len(lines),
                },
            )

        self.event_bus.publish(
            JournalPosted(
                entry_id=entry.id,
                company_id=company_id,
                journal_number=journal_number,
                journal_date=last_day,
                total_amount=total,
                posted_by=closed_by,
                posted_at=now,
            )
        )
        return entry
