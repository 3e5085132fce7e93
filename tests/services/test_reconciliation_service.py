"""
ReconciliationService tests.

Tests cover:
- Suggestions: candidate pool, scoring, ordering, truncation, debit lines
- reconcile / unreconcile state machine and events
- auto_reconcile batch behaviour
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.events import TransactionReconciled, TransactionUnreconciled
from ledger_kernel.exceptions import (
    AlreadyReconciledError,
    BankTransactionNotFoundError,
    NotReconciledError,
)
from ledger_kernel.models.bank import ReconciledType, TransactionType


class TestSuggestMatches:
    def test_exact_reference_match_scores_100(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("5000.00", reference_number="REF123")
        payment = make_payment("5000.00", reference_number="REF123", invoice_number="INV-7")
        make_payment("4990.00", reference_number="OTHER")

        suggestions = reconciliation_service.suggest_matches(tx.id)

        best = suggestions[0]
        assert best.payment_id == payment.id
        assert best.match_score == 100
        assert best.amount_difference == 0
        assert best.invoice_number == "INV-7"
        assert best.reason.startswith("Score: 100%")

    def test_ordering_by_score_then_amount_then_date(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("1000.00", transaction_date=date(2024, 6, 15))
        far = make_payment("1000.00", payment_date=date(2024, 6, 20))      # 40 + 5
        near = make_payment("1000.00", payment_date=date(2024, 6, 14))     # 40 + 25
        off_by_cent = make_payment("1000.01", payment_date=date(2024, 6, 15))  # 35 + 30

        suggestions = reconciliation_service.suggest_matches(tx.id)

        # equal scores: the smaller amount difference wins
        assert [s.payment_id for s in suggestions] == [near.id, off_by_cent.id, far.id]
        assert [s.match_score for s in suggestions] == [65, 65, 45]

    def test_amount_tolerance_limits_pool(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("1000.00")
        inside = make_payment("1050.00")
        make_payment("1200.00")

        suggestions = reconciliation_service.suggest_matches(tx.id, amount_tolerance=Decimal("100"))

        assert [s.payment_id for s in suggestions] == [inside.id]
        assert suggestions[0].amount_difference == Decimal("50.00")

    def test_payments_outside_date_window_are_ignored(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("300.00", transaction_date=date(2024, 6, 15))
        make_payment("300.00", payment_date=date(2024, 6, 7))
        edge = make_payment("300.00", payment_date=date(2024, 6, 22))

        suggestions = reconciliation_service.suggest_matches(tx.id)

        assert [s.payment_id for s in suggestions] == [edge.id]
        assert suggestions[0].date_difference_days == 7

    def test_other_company_payments_are_ignored(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("300.00")
        make_payment("300.00", company=uuid4())

        assert reconciliation_service.suggest_matches(tx.id) == []

    def test_reconciled_payments_are_not_suggested(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        first = make_bank_transaction("800.00")
        second = make_bank_transaction("800.00")
        payment = make_payment("800.00")
        reconciliation_service.reconcile(first.id, "payment", payment.id, "user1")

        assert reconciliation_service.suggest_matches(second.id) == []

    def test_max_results_truncates(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("100.00")
        for _ in range(5):
            make_payment("100.00")

        assert len(reconciliation_service.suggest_matches(tx.id, max_results=3)) == 3

    def test_debit_transaction_gets_no_suggestions(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("100.00", transaction_type=TransactionType.DEBIT)
        make_payment("100.00")

        assert reconciliation_service.suggest_matches(tx.id) == []

    def test_unknown_transaction(self, reconciliation_service):
        with pytest.raises(BankTransactionNotFoundError):
            reconciliation_service.suggest_matches(uuid4())

    def test_reference_in_description_gives_partial_match(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("250.00", description="NEFT CR chq 004512 acme")
        payment = make_payment("250.00", cheque_number="004512")

        best = reconciliation_service.suggest_matches(tx.id)[0]

        assert best.payment_id == payment.id
        assert best.match_score == 90  # 40 + 30 + 20


class TestReconcile:
    def test_reconcile_then_again_then_unreconcile_then_again(
        self, reconciliation_service, make_bank_transaction, make_payment
    ):
        tx = make_bank_transaction("5000.00", reference_number="REF123")
        payment = make_payment("5000.00", reference_number="REF123")

        reconciled = reconciliation_service.reconcile(tx.id, "payment", payment.id, "user1")
        assert reconciled.is_reconciled is True
        assert reconciled.reconciled_type == ReconciledType.PAYMENT
        assert reconciled.reconciled_id == payment.id
        assert reconciled.reconciled_by == "user1"

        with pytest.raises(AlreadyReconciledError) as exc_info:
            reconciliation_service.reconcile(tx.id, "payment", payment.id, "user2")
        assert exc_info.value.reconciled_id == str(payment.id)

        cleared = reconciliation_service.unreconcile(tx.id, "user1")
        assert cleared.is_reconciled is False
        assert cleared.reconciled_type is None
        assert cleared.reconciled_id is None
        assert cleared.reconciled_by is None

        again = reconciliation_service.reconcile(tx.id, "payment", payment.id, "user2")
        assert again.reconciled_by == "user2"

    def test_manual_link_to_non_payment_item(
        self, reconciliation_service, make_bank_transaction
    ):
        tx = make_bank_transaction("1200.00", transaction_type=TransactionType.DEBIT)
        payroll_run = uuid4()

        result = reconciliation_service.reconcile(
            tx.id, ReconciledType.PAYROLL, payroll_run, "accountant"
        )

        assert result.reconciled_type == ReconciledType.PAYROLL
        assert result.reconciled_id == payroll_run

    def test_unknown_reconciled_type(self, reconciliation_service, make_bank_transaction):
        tx = make_bank_transaction("10.00")

        with pytest.raises(ValueError):
            reconciliation_service.reconcile(tx.id, "lottery", uuid4(), "user1")

    def test_unreconcile_unlinked_transaction(self, reconciliation_service, make_bank_transaction):
        tx = make_bank_transaction("10.00")

        with pytest.raises(NotReconciledError):
            reconciliation_service.unreconcile(tx.id)

    def test_reconcile_unknown_transaction(self, reconciliation_service):
        with pytest.raises(BankTransactionNotFoundError):
            reconciliation_service.reconcile(uuid4(), "payment", uuid4(), "user1")

    def test_events(self, reconciliation_service, event_bus, make_bank_transaction, make_payment):
        tx = make_bank_transaction("75.00")
        payment = make_payment("75.00")
        reconciled, unreconciled = [], []
        event_bus.subscribe(TransactionReconciled, reconciled.append)
        event_bus.subscribe(TransactionUnreconciled, unreconciled.append)

        reconciliation_service.reconcile(tx.id, "payment", payment.id, "user1")
        reconciliation_service.unreconcile(tx.id, "user1")

        assert reconciled[0].transaction_id == tx.id
        assert reconciled[0].reconciled_type == "payment"
        assert reconciled[0].reconciled_by == "user1"
        assert unreconciled[0].previous_id == payment.id
        assert unreconciled[0].previous_type == "payment"
        assert unreconciled[0].actor_id == "user1"


class TestAutoReconcile:
    def test_reconciles_confident_matches_and_skips_the_rest(
        self, reconciliation_service, bank_account, make_bank_transaction, make_payment
    ):
        strong = make_bank_transaction("5000.00", reference_number="REF123")
        weak = make_bank_transaction("999.00", transaction_date=date(2024, 6, 15))
        make_bank_transaction("10.00", transaction_type=TransactionType.DEBIT)
        payment = make_payment("5000.00", reference_number="REF123")
        make_payment("990.00", payment_date=date(2024, 6, 20))

        result = reconciliation_service.auto_reconcile(bank_account.id)

        assert result.transactions_processed == 2
        assert result.transactions_reconciled == 1
        assert result.transactions_skipped == 1
        assert result.total_amount_reconciled == Decimal("5000.00")
        match = result.matches[0]
        assert match.bank_transaction_id == strong.id
        assert match.payment_id == payment.id
        assert match.match_score == 100
        assert "Reference number match" in match.match_reason
        assert strong.reconciled_by == "auto-reconcile"
        assert weak.is_reconciled is False

    def test_same_payment_is_never_used_twice(
        self, reconciliation_service, bank_account, make_bank_transaction, make_payment
    ):
        make_bank_transaction("700.00", reference_number="R-1")
        make_bank_transaction("700.00", reference_number="R-1")
        make_payment("700.00", reference_number="R-1")

        result = reconciliation_service.auto_reconcile(bank_account.id)

        assert result.transactions_reconciled == 1
        assert result.transactions_skipped == 1

    def test_date_tolerance_is_applied(
        self, reconciliation_service, bank_account, make_bank_transaction, make_payment
    ):
        make_bank_transaction("700.00", reference_number="R-9", transaction_date=date(2024, 6, 15))
        make_payment("700.00", reference_number="R-9", payment_date=date(2024, 6, 19))

        strict = reconciliation_service.auto_reconcile(bank_account.id, min_match_score=70)
        assert strict.transactions_reconciled == 0

        relaxed = reconciliation_service.auto_reconcile(
            bank_account.id, min_match_score=70, date_tolerance_days=7
        )
        assert relaxed.transactions_reconciled == 1


class TestReconciliationSummary:
    def test_summary_counts_and_totals(
        self, reconciliation_service, bank_selector, bank_account, make_bank_transaction,
        make_payment,
    ):
        tx = make_bank_transaction("500.00")
        make_bank_transaction("200.00", transaction_type=TransactionType.DEBIT)
        make_bank_transaction("50.00", transaction_date=date(2024, 7, 2))
        payment = make_payment("500.00")
        reconciliation_service.reconcile(tx.id, "payment", payment.id, "user1")

        summary = bank_selector.summary(bank_account.id, date(2024, 6, 1), date(2024, 6, 30))

        assert summary.total_transactions == 2
        assert summary.reconciled_count == 1
        assert summary.unreconciled_count == 1
        assert summary.total_credits == Decimal("500.00")
        assert summary.total_debits == Decimal("200.00")
        assert summary.reconciled_amount == Decimal("500.00")
        assert summary.net_movement == Decimal("300.00")
