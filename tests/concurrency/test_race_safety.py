"""
Stale-session race tests.

Two sessions load the same row; the first changes it and commits; the
second then tries the same transition from its stale copy.  The
conditional UPDATEs in the services must turn the loser into a typed error
instead of a double post, double reversal or overwritten reconciliation.

These tests commit for real and therefore use ``session_factory``.  Each
stale session ends its read transaction before the winner writes, so the
SQLite file lock never blocks the winner's commit.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import DraftMetadata, LineSpec
from ledger_kernel.exceptions import (
    AlreadyReconciledError,
    AlreadyReversedError,
    NotDraftError,
)
from ledger_kernel.models.bank import BankAccount, BankTransaction, TransactionType
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.models.payment import Payment
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.reconciliation_service import ReconciliationService
from ledger_kernel.services.reversal_service import ReversalService


@pytest.fixture
def services(ledger_settings, event_bus):
    """Build a named service bound to a given session."""
    clock = DeterministicClock()

    def _build(kind: str, sess):
        if kind == "journal":
            return JournalService(
                sess, clock, ledger_settings, event_bus,
                accounts=AccountRegistry(sess, clock, ledger_settings, event_bus),
            )
        if kind == "reversal":
            return ReversalService(sess, clock, ledger_settings, event_bus)
        if kind == "reconciliation":
            return ReconciliationService(sess, clock, ledger_settings, event_bus)
        raise ValueError(kind)

    return _build


@pytest.fixture
def committed_draft(session_factory, services, company_id, test_actor_id, ledger_settings,
                    event_bus):
    """A committed draft CASH 500 / REVENUE 500; returns its id."""
    setup = session_factory()
    registry = AccountRegistry(setup, DeterministicClock(), ledger_settings, event_bus)
    cash = registry.create_account(company_id, "1100", "Cash", "asset", test_actor_id)
    revenue = registry.create_account(company_id, "4100", "Sales", "income", test_actor_id)
    draft = services("journal", setup).create_draft(
        company_id,
        [LineSpec.dr(cash.id, "500.00"), LineSpec.cr(revenue.id, "500.00")],
        DraftMetadata(journal_date=date(2024, 6, 15)),
        test_actor_id,
    )
    setup.commit()
    return draft.id


def _load_stale(session_factory, model, row_id):
    stale = session_factory()
    obj = stale.get(model, row_id)
    stale.commit()  # keep the loaded state, drop the read transaction
    return stale, obj


class TestPostRace:
    def test_second_post_from_stale_session_fails(
        self, session_factory, services, committed_draft, test_actor_id
    ):
        stale, stale_entry = _load_stale(session_factory, JournalEntry, committed_draft)
        assert stale_entry.status == JournalEntryStatus.DRAFT

        winner = session_factory()
        services("journal", winner).post(committed_draft, test_actor_id)
        winner.commit()

        with pytest.raises(NotDraftError) as exc_info:
            services("journal", stale).post(committed_draft, test_actor_id)
        stale.rollback()

        assert exc_info.value.status == "posted"

    def test_update_of_draft_posted_elsewhere_fails(
        self, session_factory, services, committed_draft, test_actor_id
    ):
        stale, _ = _load_stale(session_factory, JournalEntry, committed_draft)

        winner = session_factory()
        services("journal", winner).post(committed_draft, test_actor_id)
        winner.commit()

        with pytest.raises(NotDraftError):
            services("journal", stale).update_draft(
                committed_draft, test_actor_id, description="late edit"
            )
        stale.rollback()


class TestReversalRace:
    def test_only_one_reversal_is_created(
        self, session_factory, services, committed_draft, test_actor_id
    ):
        poster = session_factory()
        services("journal", poster).post(committed_draft, test_actor_id)
        poster.commit()

        stale, _ = _load_stale(session_factory, JournalEntry, committed_draft)

        winner = session_factory()
        first = services("reversal", winner).reverse(committed_draft, "first", test_actor_id)
        winner.commit()

        with pytest.raises(AlreadyReversedError) as exc_info:
            services("reversal", stale).reverse(committed_draft, "second", test_actor_id)
        stale.rollback()

        assert exc_info.value.reversal_entry_id == str(first.reversal_entry_id)

        check = session_factory()
        reversals = check.execute(
            select(func.count())
            .select_from(JournalEntry)
            .where(JournalEntry.reversal_of_entry_id == committed_draft)
        ).scalar_one()
        assert reversals == 1


class TestReconcileRace:
    def test_second_accept_is_rejected(
        self, session_factory, services, company_id, test_actor_id
    ):
        setup = session_factory()
        bank_account = BankAccount(
            company_id=company_id,
            name="Operating Account",
            account_number="0099",
            created_by_id=test_actor_id,
        )
        setup.add(bank_account)
        setup.flush()
        tx = BankTransaction(
            bank_account_id=bank_account.id,
            transaction_date=date(2024, 6, 15),
            amount=Decimal("250.00"),
            transaction_type=TransactionType.CREDIT.value,
            is_reconciled=False,
            created_by_id=test_actor_id,
        )
        payments = [
            Payment(
                company_id=company_id,
                amount=Decimal("250.00"),
                payment_date=date(2024, 6, 15),
                created_by_id=test_actor_id,
            )
            for _ in range(2)
        ]
        setup.add_all([tx, *payments])
        setup.commit()

        stale, stale_tx = _load_stale(session_factory, BankTransaction, tx.id)
        assert stale_tx.is_reconciled is False

        winner = session_factory()
        services("reconciliation", winner).reconcile(tx.id, "payment", payments[0].id, "alice")
        winner.commit()

        with pytest.raises(AlreadyReconciledError) as exc_info:
            services("reconciliation", stale).reconcile(tx.id, "payment", payments[1].id, "bob")
        stale.rollback()

        assert exc_info.value.reconciled_id == str(payments[0].id)
        check = session_factory()
        assert check.get(BankTransaction, tx.id).reconciled_by == "alice"
