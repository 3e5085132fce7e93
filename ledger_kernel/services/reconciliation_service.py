"""
ReconciliationService -- bank statement reconciliation.

Responsibility:
    Suggests billing payments that explain an incoming bank credit, records
    and clears the reconciliation link on a bank transaction, and runs the
    batch auto-reconcile over a bank account.

Architecture position:
    Kernel > Services -- imperative shell.  Candidate payments come from a
    PaymentLookup (billing read model); scoring is delegated to the pure
    ledger_engines.matching.ReconciliationScorer.

Invariants enforced:
    - A link is written with a conditional
      ``UPDATE ... WHERE is_reconciled = false`` so two concurrent accepts
      on one transaction serialize: the second gets AlreadyReconciledError.
    - Unreconcile clears every link column together.
    - Reconciliation never touches the ledger; it is a soft, reversible link.
    - A payment already linked to a bank transaction is never suggested.

Failure modes:
    - BankTransactionNotFoundError for an unknown transaction.
    - AlreadyReconciledError / NotReconciledError on invalid transitions.
    - ValueError for an unknown reconciled_type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import and_, exists, select, update
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings
from ledger_engines.matching import BankLine, MatchScore, PaymentCandidate, ReconciliationScorer
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.events import EventBus, TransactionReconciled, TransactionUnreconciled
from ledger_kernel.exceptions import (
    AlreadyReconciledError,
    BankTransactionNotFoundError,
    NotReconciledError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.bank import (
    BankAccount,
    BankTransaction,
    ReconciledType,
    TransactionType,
)
from ledger_kernel.models.payment import Payment
from ledger_kernel.services.base import BaseService

logger = get_logger("services.reconciliation")

AUTO_RECONCILE_ACTOR = "auto-reconcile"


class PaymentLookup(Protocol):
    """Billing read model queried for reconciliation candidates."""

    def find_unreconciled(
        self,
        company_id: UUID,
        amount: Decimal,
        amount_tolerance: Decimal,
        from_date: date,
        to_date: date,
    ) -> list[PaymentCandidate]:
        ...


class SqlPaymentLookup:
    """PaymentLookup over the ``payments`` table."""

    def __init__(self, session: Session):
        self.session = session

    def find_unreconciled(
        self,
        company_id: UUID,
        amount: Decimal,
        amount_tolerance: Decimal,
        from_date: date,
        to_date: date,
    ) -> list[PaymentCandidate]:
        """
        Payments of the company within the amount tolerance and date window
        that no bank transaction is reconciled to.
        """
        linked = exists().where(
            and_(
                BankTransaction.reconciled_id == Payment.id,
                BankTransaction.reconciled_type == ReconciledType.PAYMENT.value,
                BankTransaction.is_reconciled.is_(True),
            )
        )
        rows = self.session.execute(
            select(Payment)
            .where(
                Payment.company_id == company_id,
                Payment.amount >= amount - amount_tolerance,
                Payment.amount <= amount + amount_tolerance,
                Payment.payment_date >= from_date,
                Payment.payment_date <= to_date,
                ~linked,
            )
            .order_by(Payment.payment_date, Payment.id)
        ).scalars()
        return [
            PaymentCandidate(
                payment_id=p.id,
                amount=p.amount,
                payment_date=p.payment_date,
                reference_number=p.reference_number,
                cheque_number=p.cheque_number,
                customer_name=p.customer_name,
                invoice_number=p.invoice_number,
            )
            for p in rows
        ]


@dataclass(frozen=True)
class ReconciliationSuggestion:
    """A ranked payment suggestion for one bank transaction."""

    payment_id: UUID
    amount: Decimal
    amount_difference: Decimal
    date_difference_days: int
    match_score: int
    payment_date: date
    reference_number: str | None
    customer_name: str | None
    invoice_number: str | None
    reason: str

    @classmethod
    def from_score(cls, scored: MatchScore) -> ReconciliationSuggestion:
        candidate = scored.candidate
        return cls(
            payment_id=candidate.payment_id,
            amount=candidate.amount,
            amount_difference=scored.amount_difference,
            date_difference_days=scored.date_difference_days,
            match_score=scored.score,
            payment_date=candidate.payment_date,
            reference_number=candidate.reference_number,
            customer_name=candidate.customer_name,
            invoice_number=candidate.invoice_number,
            reason=scored.describe(),
        )


@dataclass(frozen=True)
class AutoReconcileMatch:
    bank_transaction_id: UUID
    payment_id: UUID
    amount: Decimal
    match_score: int
    match_reason: str


@dataclass
class AutoReconcileResult:
    transactions_processed: int = 0
    transactions_reconciled: int = 0
    transactions_skipped: int = 0
    total_amount_reconciled: Decimal = Decimal("0")
    matches: list[AutoReconcileMatch] = field(default_factory=list)


class ReconciliationService(BaseService[BankTransaction]):
    """
    Bank reconciliation service.

    Contract:
        suggest_matches() is read-only.  reconcile(), unreconcile() and
        auto_reconcile() write inside SAVEPOINTs and publish events after
        each link change.

    Non-goals:
        - Does NOT post adjustment journal entries for bank charges or
          interest; those go through JournalService.
        - Does NOT call session.commit().
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        event_bus: EventBus | None = None,
        payments: PaymentLookup | None = None,
        scorer: ReconciliationScorer | None = None,
    ):
        super().__init__(session, clock, settings, event_bus)
        self._payments = payments or SqlPaymentLookup(session)
        self._scorer = scorer or ReconciliationScorer(self.settings.matching)

    def _load(self, transaction_id: UUID) -> BankTransaction:
        transaction = self.session.get(BankTransaction, transaction_id)
        if transaction is None:
            raise BankTransactionNotFoundError(str(transaction_id))
        return transaction

    def _company_of(self, transaction: BankTransaction) -> UUID:
        return self.session.execute(
            select(BankAccount.company_id).where(BankAccount.id == transaction.bank_account_id)
        ).scalar_one()

    # =========================================================================
    # Suggestions
    # =========================================================================

    def _rank(
        self,
        transaction: BankTransaction,
        amount_tolerance: Decimal,
        date_window_days: int,
        max_results: int,
    ) -> list[MatchScore]:
        window = timedelta(days=date_window_days)
        candidates = self._payments.find_unreconciled(
            company_id=self._company_of(transaction),
            amount=transaction.amount,
            amount_tolerance=amount_tolerance,
            from_date=transaction.transaction_date - window,
            to_date=transaction.transaction_date + window,
        )
        target = BankLine(
            transaction_id=transaction.id,
            amount=transaction.amount,
            transaction_date=transaction.transaction_date,
            reference_number=transaction.reference_number,
            cheque_number=transaction.cheque_number,
            description=transaction.description,
        )
        return self._scorer.rank(target, candidates, max_results=max_results)

    def suggest_matches(
        self,
        bank_transaction_id: UUID,
        amount_tolerance: Decimal | None = None,
        max_results: int | None = None,
    ) -> list[ReconciliationSuggestion]:
        """
        Ranked payment suggestions for an incoming bank credit.

        Debit transactions have no payment counterpart and get an empty list.

        Args:
            bank_transaction_id: Transaction to explain.
            amount_tolerance: Largest accepted |payment - transaction|
                (defaults to matching.amount_tolerance).
            max_results: Truncation limit (defaults to matching.max_results).
        """
        matching = self.settings.matching
        transaction = self._load(bank_transaction_id)
        if transaction.transaction_type != TransactionType.CREDIT:
            logger.debug(
                "suggestions_skipped_debit",
                extra={"transaction_id": str(bank_transaction_id)},
            )
            return []

        ranked = self._rank(
            transaction,
            amount_tolerance if amount_tolerance is not None else matching.amount_tolerance,
            matching.date_window_days,
            max_results if max_results is not None else matching.max_results,
        )
        return [ReconciliationSuggestion.from_score(s) for s in ranked]

    # =========================================================================
    # Link management
    # =========================================================================

    def reconcile(
        self,
        transaction_id: UUID,
        reconciled_type: ReconciledType | str,
        reconciled_id: UUID,
        reconciled_by: str,
    ) -> BankTransaction:
        """
        Link a bank transaction to a ledger item.

        Accepts any ReconciledType, so links to items the matcher cannot
        enumerate (expenses, payroll, transfers, journal entries) can be
        entered by hand.
        """
        reconciled_type = ReconciledType(reconciled_type)
        reconciled_by = str(reconciled_by)

        with LogContext.bind(transaction_id=transaction_id, actor_id=reconciled_by):
            transaction = self._load(transaction_id)
            if transaction.is_reconciled:
                raise AlreadyReconciledError(
                    str(transaction_id),
                    str(transaction.reconciled_type),
                    str(transaction.reconciled_id),
                )

            now = self.clock.now()
            with self.session.begin_nested():
                result = self.session.execute(
                    update(BankTransaction)
                    .where(
                        BankTransaction.id == transaction_id,
                        BankTransaction.is_reconciled.is_(False),
                    )
                    .values(
                        is_reconciled=True,
                        reconciled_type=reconciled_type.value,
                        reconciled_id=reconciled_id,
                        reconciled_by=reconciled_by,
                        reconciled_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    self.session.refresh(transaction)
                    logger.warning(
                        "reconcile_conflict",
                        extra={"reconciled_id": str(transaction.reconciled_id)},
                    )
                    raise AlreadyReconciledError(
                        str(transaction_id),
                        str(transaction.reconciled_type),
                        str(transaction.reconciled_id),
                    )

            self.session.refresh(transaction)
            logger.info(
                "transaction_reconciled",
                extra={
                    "reconciled_type": reconciled_type.value,
                    "reconciled_id": str(reconciled_id),
                    "amount": transaction.amount,
                },
            )

        self.event_bus.publish(
            TransactionReconciled(
                transaction_id=transaction.id,
                bank_account_id=transaction.bank_account_id,
                reconciled_type=reconciled_type.value,
                reconciled_id=reconciled_id,
                reconciled_by=reconciled_by,
                reconciled_at=now,
            )
        )
        return transaction

    def unreconcile(self, transaction_id: UUID, actor_id: UUID | str | None = None) -> BankTransaction:
        """Clear a transaction's reconciliation link."""
        with LogContext.bind(transaction_id=transaction_id, actor_id=actor_id):
            transaction = self._load(transaction_id)
            if not transaction.is_reconciled:
                raise NotReconciledError(str(transaction_id))
            previous_type = str(transaction.reconciled_type)
            previous_id = transaction.reconciled_id

            with self.session.begin_nested():
                result = self.session.execute(
                    update(BankTransaction)
                    .where(
                        BankTransaction.id == transaction_id,
                        BankTransaction.is_reconciled.is_(True),
                    )
                    .values(
                        is_reconciled=False,
                        reconciled_type=None,
                        reconciled_id=None,
                        reconciled_by=None,
                        reconciled_at=None,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    self.session.refresh(transaction)
                    raise NotReconciledError(str(transaction_id))

            self.session.refresh(transaction)
            logger.info(
                "transaction_unreconciled",
                extra={"previous_type": previous_type, "previous_id": str(previous_id)},
            )

        self.event_bus.publish(
            TransactionUnreconciled(
                transaction_id=transaction.id,
                bank_account_id=transaction.bank_account_id,
                previous_type=previous_type,
                previous_id=previous_id,
                actor_id=str(actor_id) if actor_id is not None else None,
            )
        )
        return transaction

    # =========================================================================
    # Batch
    # =========================================================================

    def auto_reconcile(
        self,
        bank_account_id: UUID,
        min_match_score: int | None = None,
        amount_tolerance: Decimal | None = None,
        date_tolerance_days: int | None = None,
        reconciled_by: str = AUTO_RECONCILE_ACTOR,
    ) -> AutoReconcileResult:
        """
        Reconcile every unreconciled credit of a bank account to its best
        payment suggestion.

        A suggestion is accepted when its score reaches min_match_score and
        its payment date is within date_tolerance_days of the transaction.
        Transactions are processed oldest first and a payment is never used
        twice.
        """
        matching = self.settings.matching
        min_score = min_match_score if min_match_score is not None else matching.auto_min_score
        tolerance = (
            amount_tolerance if amount_tolerance is not None else matching.auto_amount_tolerance
        )
        max_days = (
            date_tolerance_days
            if date_tolerance_days is not None
            else matching.auto_date_tolerance_days
        )

        transactions = self.session.execute(
            select(BankTransaction)
            .where(
                BankTransaction.bank_account_id == bank_account_id,
                BankTransaction.is_reconciled.is_(False),
                BankTransaction.transaction_type == TransactionType.CREDIT.value,
            )
            .order_by(BankTransaction.transaction_date, BankTransaction.id)
        ).scalars().all()

        result = AutoReconcileResult(transactions_processed=len(transactions))
        used_payments: set[UUID] = set()

        for transaction in transactions:
            ranked = self._rank(
                transaction, tolerance, matching.date_window_days, matching.max_results
            )
            best = next(
                (
                    s
                    for s in ranked
                    if s.score >= min_score
                    and s.date_difference_days <= max_days
                    and s.candidate.payment_id not in used_payments
                ),
                None,
            )
            if best is None:
                result.transactions_skipped += 1
                continue

            self.reconcile(
                transaction.id,
                ReconciledType.PAYMENT,
                best.candidate.payment_id,
                reconciled_by,
            )
            used_payments.add(best.candidate.payment_id)
            result.transactions_reconciled += 1
            result.total_amount_reconciled += transaction.amount
            result.matches.append(
                AutoReconcileMatch(
                    bank_transaction_id=transaction.id,
                    payment_id=best.candidate.payment_id,
                    amount=transaction.amount,
                    match_score=best.score,
                    match_reason=best.describe(),
                )
            )

        logger.info(
            "auto_reconcile_completed",
            extra={
                "bank_account_id": str(bank_account_id),
                "processed": result.transactions_processed,
                "reconciled": result.transactions_reconciled,
                "skipped": result.transactions_skipped,
                "total_amount": result.total_amount_reconciled,
            },
        )
        return result
