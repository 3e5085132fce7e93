"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Account ledger with opening and running balances, per-account
    balance aggregation, trial balance and the abnormal balance report.
    The ledger is a derived view over posted journal lines; no balance is
    stored anywhere.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only lines of entries in status posted or reversed are read.  A
      reversed original stays visible; its effect is cancelled by the
      reversal entry dated on the reversal date.
    - Ledger rows replay in (journal_date, journal_number, line_number)
      order so same-day entries produce a reproducible running balance.
    - Adjoining ranges compose: the closing balance of [d1, d2] equals the
      opening balance of [d2 + 1, d3].
    - Sums are accumulated in Python over Decimal values and rounded only
      on output.

Failure modes:
    - AccountNotFoundError for an unknown account.
    - InvalidDateRangeError when from_date > to_date.

Audit relevance:
    get_account_ledger is the drill-down behind every balance the balance
    sheet and trial balance report.  Both are computed from the same
    replay rule.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, select

from ledger_kernel.domain.balance import signed_amount, split_balance
from ledger_kernel.exceptions import AccountNotFoundError, InvalidDateRangeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.journal import LEDGER_STATUSES, JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger")

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerRow:
    """One posted line of an account ledger with the balance after it."""

    entry_id: UUID
    line_id: UUID
    journal_number: str
    journal_date: date
    line_number: int
    entry_type: str
    description: str | None
    line_description: str | None
    debit: Decimal
    credit: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class LedgerPosition:
    """Opening balance, ordered rows and closing balance for one account."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: NormalBalance
    from_date: date | None
    to_date: date | None
    opening_balance: Decimal
    rows: tuple[LedgerRow, ...]
    closing_balance: Decimal

    @property
    def total_debits(self) -> Decimal:
        return sum((row.debit for row in self.rows), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((row.credit for row in self.rows), ZERO)


@dataclass(frozen=True)
class AccountBalance:
    """Replayed balance of one account on its normal side."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    is_active: bool
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    line_count: int

    @property
    def normal_balance(self) -> NormalBalance:
        return self.account_type.normal_balance


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class TrialBalance:
    as_of_date: date
    rows: tuple[TrialBalanceRow, ...]
    total_debit: Decimal
    total_credit: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class AbnormalBalance:
    """An account whose balance sits on the side opposite its normal side."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: NormalBalance
    balance: Decimal

    @property
    def actual_side(self) -> NormalBalance:
        if self.normal_balance == NormalBalance.DEBIT:
            return NormalBalance.CREDIT
        return NormalBalance.DEBIT


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Selector for ledger queries -- the authoritative balance computation.

    Contract:
        from_date=None means no lower bound; to_date=None means no upper
        bound.  Every returned amount is rounded to the configured currency
        precision.

    Non-goals:
        - No currency conversion; the ledger is single-currency.
        - No caching between calls.
    """

    @staticmethod
    def _check_range(from_date: date | None, to_date: date | None) -> None:
        if from_date is not None and to_date is not None and from_date > to_date:
            raise InvalidDateRangeError(from_date.isoformat(), to_date.isoformat())

    def _load_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_account_ledger(
        self,
        account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> LedgerPosition:
        """
        Opening balance, chronological rows and closing balance of an account.

        opening = signed sum of posted lines dated before from_date.
        rows    = posted lines dated within [from_date, to_date], each with
                  the running balance after it.
        closing = the last running balance, or opening when there are no rows.
        """
        self._check_range(from_date, to_date)
        account = self._load_account(account_id)
        normal = account.normal_balance

        opening = ZERO
        if from_date is not None:
            before = self.session.execute(
                select(JournalLine.debit, JournalLine.credit)
                .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
                .where(
                    JournalLine.account_id == account_id,
                    JournalEntry.status.in_(LEDGER_STATUSES),
                    JournalEntry.journal_date < from_date,
                )
            ).all()
            for debit, credit in before:
                opening += signed_amount(normal, debit, credit)

        query = (
            select(JournalLine, JournalEntry)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account_id,
                JournalEntry.status.in_(LEDGER_STATUSES),
            )
        )
        if from_date is not None:
            query = query.where(JournalEntry.journal_date >= from_date)
        if to_date is not None:
            query = query.where(JournalEntry.journal_date <= to_date)
        query = query.order_by(
            JournalEntry.journal_date,
            JournalEntry.journal_number,
            JournalLine.line_number,
        )

        running = opening
        rows = []
        for line, entry in self.session.execute(query).all():
            running += signed_amount(normal, line.debit, line.credit)
            rows.append(
                LedgerRow(
                    entry_id=entry.id,
                    line_id=line.id,
                    journal_number=entry.journal_number,
                    journal_date=entry.journal_date,
                    line_number=line.line_number,
                    entry_type=str(entry.entry_type),
                    description=entry.description,
                    line_description=line.line_description,
                    debit=self._money(line.debit),
                    credit=self._money(line.credit),
                    running_balance=self._money(running),
                )
            )

        logger.debug(
            "account_ledger_computed",
            extra={
                "account_id": str(account_id),
                "row_count": len(rows),
                "from_date": from_date,
                "to_date": to_date,
            },
        )

        return LedgerPosition(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            account_type=account.type,
            normal_balance=normal,
            from_date=from_date,
            to_date=to_date,
            opening_balance=self._money(opening),
            rows=tuple(rows),
            closing_balance=self._money(running),
        )

    def account_balances(
        self,
        company_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
        account_types: Iterable[AccountType | str] | None = None,
        active_only: bool = True,
    ) -> list[AccountBalance]:
        """
        Replayed balance of every matching account over a date range.

        One outer join from accounts to ledger lines; accounts with no
        lines in range are reported with a zero balance.  Ordered by code.
        """
        self._check_range(from_date, to_date)

        entry_filter = [JournalEntry.status.in_(LEDGER_STATUSES)]
        if from_date is not None:
            entry_filter.append(JournalEntry.journal_date >= from_date)
        if to_date is not None:
            entry_filter.append(JournalEntry.journal_date <= to_date)

        query = (
            select(Account, JournalLine.debit, JournalLine.credit, JournalEntry.id)
            .outerjoin(JournalLine, JournalLine.account_id == Account.id)
            .outerjoin(
                JournalEntry,
                and_(JournalLine.journal_entry_id == JournalEntry.id, *entry_filter),
            )
            .where(Account.company_id == company_id)
            .order_by(Account.code)
        )
        if account_types is not None:
            query = query.where(
                Account.account_type.in_([AccountType(t).value for t in account_types])
            )
        if active_only:
            query = query.where(Account.is_active.is_(True))

        totals: dict[UUID, list] = {}
        accounts: dict[UUID, Account] = {}
        for account, debit, credit, entry_id in self.session.execute(query).all():
            accounts.setdefault(account.id, account)
            bucket = totals.setdefault(account.id, [ZERO, ZERO, 0])
            if entry_id is None:
                # line of a draft or out-of-range entry, or no line at all
                continue
            bucket[0] += debit
            bucket[1] += credit
            bucket[2] += 1

        result = []
        for account_id, account in accounts.items():
            debit_total, credit_total, count = totals[account_id]
            result.append(
                AccountBalance(
                    account_id=account_id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account.type,
                    is_active=account.is_active,
                    debit_total=self._money(debit_total),
                    credit_total=self._money(credit_total),
                    balance=self._money(
                        signed_amount(account.normal_balance, debit_total, credit_total)
                    ),
                    line_count=count,
                )
            )
        result.sort(key=lambda b: b.account_code)
        return result

    def balances_as_of(
        self,
        company_id: UUID,
        as_of_date: date,
        account_types: Iterable[AccountType | str] | None = None,
        active_only: bool = True,
    ) -> dict[UUID, Decimal]:
        """Full-history balance of each matching account as of a date."""
        return {
            b.account_id: b.balance
            for b in self.account_balances(
                company_id,
                to_date=as_of_date,
                account_types=account_types,
                active_only=active_only,
            )
        }

    def trial_balance(self, company_id: UUID, as_of_date: date) -> TrialBalance:
        """
        Trial balance as of a date.

        Each account's net balance is presented in its debit or credit
        column; a negative balance lands on the opposite column.  Accounts
        with a zero balance are omitted.  Inactive accounts are included
        because their history still counts.
        """
        rows = []
        total_debit = ZERO
        total_credit = ZERO
        for balance in self.account_balances(company_id, to_date=as_of_date, active_only=False):
            if balance.balance == 0:
                continue
            debit, credit = split_balance(balance.normal_balance, balance.balance)
            total_debit += debit
            total_credit += credit
            rows.append(
                TrialBalanceRow(
                    account_id=balance.account_id,
                    account_code=balance.account_code,
                    account_name=balance.account_name,
                    account_type=balance.account_type,
                    debit=debit,
                    credit=credit,
                )
            )

        result = TrialBalance(
            as_of_date=as_of_date,
            rows=tuple(rows),
            total_debit=self._money(total_debit),
            total_credit=self._money(total_credit),
        )
        if not result.is_balanced:
            logger.warning(
                "trial_balance_unbalanced",
                extra={
                    "company_id": str(company_id),
                    "as_of_date": as_of_date,
                    "total_debit": result.total_debit,
                    "total_credit": result.total_credit,
                },
            )
        return result

    def abnormal_balances(self, company_id: UUID, as_of_date: date) -> list[AbnormalBalance]:
        """Accounts whose balance as of a date is negative on their normal side."""
        return [
            AbnormalBalance(
                account_id=b.account_id,
                account_code=b.account_code,
                account_name=b.account_name,
                account_type=b.account_type,
                normal_balance=b.normal_balance,
                balance=b.balance,
            )
            for b in self.account_balances(company_id, to_date=as_of_date, active_only=False)
            if b.balance < 0
        ]
