"""
Module: ledger_kernel.selectors.bank_selector
Responsibility: Read-only queries over imported bank statement lines for
    the reconciliation screen: filtered listing, the reconciliation summary
    of a bank account and the bank reconciliation statement.
Architecture position: Kernel > Selectors.  The statement reads the book
    side through LedgerSelector so both screens replay the same lines.

Invariants enforced:
    - Statement side: credits minus debits of every imported line dated on
      or before as_of_date.
    - Book side: closing balance of the mapped ledger account as of
      as_of_date, replayed from posted lines.
    - Unreconciled lines are the bank items not yet in the books:
      adjusted book = book + credits not in books - debits not in books.

Failure modes:
    - BankAccountNotFoundError: unknown bank account.
    - InvalidDateRangeError: from_date after to_date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import BankAccountNotFoundError, InvalidDateRangeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.bank import BankAccount, BankTransaction, TransactionType
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("selectors.bank")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ReconciliationSummary:
    bank_account_id: UUID
    from_date: date | None
    to_date: date | None
    total_transactions: int
    reconciled_count: int
    unreconciled_count: int
    total_credits: Decimal
    total_debits: Decimal
    reconciled_amount: Decimal
    unreconciled_credits: Decimal
    unreconciled_debits: Decimal

    @property
    def net_movement(self) -> Decimal:
        return self.total_credits - self.total_debits


@dataclass(frozen=True)
class StatementItem:
    """A bank line that has no counterpart in the books yet."""

    transaction_id: UUID
    transaction_date: date
    amount: Decimal
    description: str
    reference_number: str | None


@dataclass(frozen=True)
class BankReconciliationStatement:
    """
    Bank side against book side for one bank account as of a date.

    book_balance and adjusted_book_balance are None when the bank account
    is not mapped to a ledger account.
    """

    bank_account_id: UUID
    bank_account_name: str
    as_of_date: date
    ledger_account_id: UUID | None
    bank_statement_balance: Decimal
    book_balance: Decimal | None
    total_transactions: int
    reconciled_count: int
    unreconciled_count: int
    credits_not_in_books: Decimal
    debits_not_in_books: Decimal
    credit_items: tuple[StatementItem, ...]
    debit_items: tuple[StatementItem, ...]
    adjusted_bank_balance: Decimal
    adjusted_book_balance: Decimal | None

    @property
    def has_ledger_link(self) -> bool:
        return self.ledger_account_id is not None

    @property
    def difference(self) -> Decimal | None:
        if self.adjusted_book_balance is None:
            return None
        return self.adjusted_bank_balance - self.adjusted_book_balance

    @property
    def is_reconciled(self) -> bool:
        return self.difference == ZERO


class BankTransactionSelector(BaseSelector[BankTransaction]):
    """Selector for bank statement lines."""

    def _query(self, bank_account_id: UUID, from_date: date | None, to_date: date | None):
        if from_date is not None and to_date is not None and from_date > to_date:
            raise InvalidDateRangeError(from_date.isoformat(), to_date.isoformat())
        query = select(BankTransaction).where(BankTransaction.bank_account_id == bank_account_id)
        if from_date is not None:
            query = query.where(BankTransaction.transaction_date >= from_date)
        if to_date is not None:
            query = query.where(BankTransaction.transaction_date <= to_date)
        return query

    def list_transactions(
        self,
        bank_account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
        is_reconciled: bool | None = None,
    ) -> list[BankTransaction]:
        query = self._query(bank_account_id, from_date, to_date)
        if is_reconciled is not None:
            query = query.where(BankTransaction.is_reconciled.is_(is_reconciled))
        query = query.order_by(BankTransaction.transaction_date, BankTransaction.id)
        return list(self.session.execute(query).scalars())

    def summary(
        self,
        bank_account_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> ReconciliationSummary:
        """Counts and totals of a bank account's transactions in a range."""
        total = reconciled = 0
        credits = debits = reconciled_amount = open_credits = open_debits = ZERO
        for tx in self.session.execute(self._query(bank_account_id, from_date, to_date)).scalars():
            total += 1
            is_credit = tx.transaction_type == TransactionType.CREDIT
            if is_credit:
                credits += tx.amount
            else:
                debits += tx.amount
            if tx.is_reconciled:
                reconciled += 1
                reconciled_amount += tx.amount
            elif is_credit:
                open_credits += tx.amount
            else:
                open_debits += tx.amount

        return ReconciliationSummary(
            bank_account_id=bank_account_id,
            from_date=from_date,
            to_date=to_date,
            total_transactions=total,
            reconciled_count=reconciled,
            unreconciled_count=total - reconciled,
            total_credits=self._money(credits),
            total_debits=self._money(debits),
            reconciled_amount=self._money(reconciled_amount),
            unreconciled_credits=self._money(open_credits),
            unreconciled_debits=self._money(open_debits),
        )

    def reconciliation_statement(
        self, bank_account_id: UUID, as_of_date: date
    ) -> BankReconciliationStatement:
        """
        Bank reconciliation statement of a bank account as of a date.

        Lists the unreconciled credits and debits (in the bank, not yet in
        the books) and brings the book balance of the mapped ledger account
        to the bank statement balance.

        Raises:
            BankAccountNotFoundError: unknown bank account.
        """
        bank_account = self.session.get(BankAccount, bank_account_id)
        if bank_account is None:
            raise BankAccountNotFoundError(str(bank_account_id))

        transactions = self.list_transactions(bank_account_id, to_date=as_of_date)

        statement_balance = ZERO
        credit_items: list[StatementItem] = []
        debit_items: list[StatementItem] = []
        for tx in transactions:
            is_credit = tx.transaction_type == TransactionType.CREDIT
            statement_balance += tx.amount if is_credit else -tx.amount
            if tx.is_reconciled:
                continue
            item = StatementItem(
                transaction_id=tx.id,
                transaction_date=tx.transaction_date,
                amount=self._money(tx.amount),
                description=tx.description or "",
                reference_number=tx.reference_number,
            )
            (credit_items if is_credit else debit_items).append(item)

        credits_not_in_books = sum((i.amount for i in credit_items), ZERO)
        debits_not_in_books = sum((i.amount for i in debit_items), ZERO)

        book_balance = adjusted_book = None
        if bank_account.ledger_account_id is not None:
            ledger = LedgerSelector(self.session, self.settings)
            book_balance = ledger.get_account_ledger(
                bank_account.ledger_account_id, None, as_of_date
            ).closing_balance
            adjusted_book = self._money(
                book_balance + credits_not_in_books - debits_not_in_books
            )

        statement = BankReconciliationStatement(
            bank_account_id=bank_account_id,
            bank_account_name=bank_account.name,
            as_of_date=as_of_date,
            ledger_account_id=bank_account.ledger_account_id,
            bank_statement_balance=self._money(statement_balance),
            book_balance=book_balance,
            total_transactions=len(transactions),
            reconciled_count=sum(1 for tx in transactions if tx.is_reconciled),
            unreconciled_count=len(credit_items) + len(debit_items),
            credits_not_in_books=self._money(credits_not_in_books),
            debits_not_in_books=self._money(debits_not_in_books),
            credit_items=tuple(credit_items),
            debit_items=tuple(debit_items),
            # Deposits in transit and outstanding cheques are not tracked
            adjusted_bank_balance=self._money(statement_balance),
            adjusted_book_balance=adjusted_book,
        )

        if statement.difference not in (None, ZERO):
            logger.warning(
                "bank_reconciliation_difference",
                extra={
                    "bank_account_id": bank_account_id,
                    "as_of_date": as_of_date,
                    "difference": statement.difference,
                },
            )
        return statement
