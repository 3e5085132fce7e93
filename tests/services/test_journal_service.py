"""
JournalService tests.

Tests cover:
- Draft creation: numbering, fiscal derivation, line storage
- Validation: line shape, balance, accounts, entry types
- Draft editing and discarding
- Posting: status flip, double post, re-validation, events
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import DraftMetadata, LineSpec
from ledger_kernel.domain.events import JournalPosted
from ledger_kernel.exceptions import (
    EntryNotFoundError,
    InvalidAccountError,
    InvalidEntryTypeError,
    InvalidLineError,
    NotDraftError,
    UnbalancedEntryError,
)
from ledger_kernel.models.journal import EntryType, JournalEntry, JournalEntryStatus


class TestCreateDraft:
    def test_draft_is_created_with_number_and_fiscal_fields(self, create_draft):
        entry = create_draft(journal_date=date(2024, 6, 15), description="Cash sale")

        assert entry.status == JournalEntryStatus.DRAFT
        assert entry.journal_number == "JV-202425-000001"
        assert entry.financial_year == "2024-25"
        assert entry.period_month == 3
        assert entry.entry_type == EntryType.MANUAL
        assert entry.description == "Cash sale"
        assert entry.is_reversed is False

    def test_lines_are_stored_in_order(self, create_draft, standard_accounts):
        entry = create_draft("CASH", "REVENUE", "250.50")

        assert [line.line_number for line in entry.lines] == [1, 2]
        assert entry.lines[0].account_id == standard_accounts["CASH"].id
        assert entry.lines[0].debit == Decimal("250.50")
        assert entry.lines[1].account_id == standard_accounts["REVENUE"].id
        assert entry.lines[1].credit == Decimal("250.50")
        assert entry.is_balanced

    def test_numbers_increase_within_a_financial_year(self, create_draft):
        first = create_draft(journal_date=date(2024, 4, 1))
        second = create_draft(journal_date=date(2025, 3, 31))

        assert first.journal_number == "JV-202425-000001"
        assert second.journal_number == "JV-202425-000002"

    def test_numbering_restarts_per_financial_year(self, create_draft):
        create_draft(journal_date=date(2024, 6, 1))
        previous_year = create_draft(journal_date=date(2024, 3, 31))

        assert previous_year.financial_year == "2023-24"
        assert previous_year.journal_number == "JV-202324-000001"
        assert previous_year.period_month == 12

    def test_numbering_is_per_company(
        self, journal_service, account_registry, create_draft, test_actor_id
    ):
        create_draft()
        other_company = uuid4()
        cash = account_registry.create_account(other_company, "1100", "Cash", "asset", test_actor_id)
        sales = account_registry.create_account(other_company, "4100", "Sales", "income", test_actor_id)

        entry = journal_service.create_draft(
            other_company,
            [LineSpec.dr(cash.id, "10.00"), LineSpec.cr(sales.id, "10.00")],
            DraftMetadata(journal_date=date(2024, 6, 15)),
            test_actor_id,
        )

        assert entry.journal_number == "JV-202425-000001"

    def test_multi_line_entry(self, journal_service, company_id, make_lines, test_actor_id):
        lines = make_lines(
            ("EQUIPMENT", "5000.00", "0"),
            ("CASH", "0", "2000.00"),
            ("AP", "0", "3000.00"),
        )
        entry = journal_service.create_draft(
            company_id, lines, DraftMetadata(journal_date=date(2024, 7, 1)), test_actor_id
        )

        assert len(entry.lines) == 3
        assert entry.total_debits == Decimal("5000.00")
        assert entry.total_credits == Decimal("5000.00")

    def test_source_document_is_recorded(
        self, journal_service, company_id, make_lines, test_actor_id
    ):
        entry = journal_service.create_draft(
            company_id,
            make_lines(("AR", "118.00", "0"), ("REVENUE", "0", "118.00")),
            DraftMetadata(
                journal_date=date(2024, 6, 1),
                entry_type=EntryType.AUTO_POST,
                source_type="invoice",
                source_number="INV-0042",
            ),
            test_actor_id,
        )

        assert entry.entry_type == EntryType.AUTO_POST
        assert entry.source_type == "invoice"
        assert entry.source_number == "INV-0042"


class TestDraftValidation:
    def _create(self, journal_service, company_id, lines, actor):
        return journal_service.create_draft(
            company_id, lines, DraftMetadata(journal_date=date(2024, 6, 15)), actor
        )

    def test_unbalanced_entry_is_rejected(
        self, journal_service, company_id, make_lines, test_actor_id
    ):
        lines = make_lines(("CASH", "1000.00", "0"), ("REVENUE", "0", "999.99"))

        with pytest.raises(UnbalancedEntryError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert exc_info.value.code == "UNBALANCED_ENTRY"
        assert Decimal(exc_info.value.debits) == Decimal("1000.00")
        assert Decimal(exc_info.value.credits) == Decimal("999.99")

    def test_single_line_is_rejected(self, journal_service, company_id, make_lines, test_actor_id):
        with pytest.raises(InvalidLineError):
            self._create(journal_service, company_id, make_lines(("CASH", "1", "0")), test_actor_id)

    def test_line_with_both_sides_is_rejected(
        self, journal_service, company_id, make_lines, test_actor_id
    ):
        lines = make_lines(("CASH", "100", "100"), ("REVENUE", "0", "0.01"), ("AR", "0.01", "0"))

        with pytest.raises(InvalidLineError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert exc_info.value.line_index == 0

    def test_line_with_neither_side_is_rejected(
        self, journal_service, company_id, make_lines, test_actor_id
    ):
        lines = make_lines(("CASH", "10", "0"), ("REVENUE", "0", "10"), ("AR", "0", "0"))

        with pytest.raises(InvalidLineError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert exc_info.value.line_index == 2

    def test_negative_amount_is_rejected(
        self, journal_service, company_id, make_lines, test_actor_id
    ):
        lines = make_lines(("CASH", "-10", "0"), ("REVENUE", "-10", "0"))

        with pytest.raises(InvalidLineError):
            self._create(journal_service, company_id, lines, test_actor_id)

    def test_sub_cent_amount_is_rejected(
        self, journal_service, company_id, make_lines, test_actor_id
    ):
        lines = make_lines(("CASH", "10.005", "0"), ("REVENUE", "0", "10.005"))

        with pytest.raises(InvalidLineError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert "decimal places" in exc_info.value.reason

    def test_wide_amount_within_column_is_exact(
        self, journal_service, company_id, standard_accounts
    ):
        # 28 integer digits: wider than the default decimal context
        amount = Decimal("1" + "0" * 27)
        lines = [
            LineSpec.dr(standard_accounts["CASH"].id, amount),
            LineSpec.cr(standard_accounts["REVENUE"].id, Decimal("9" * 27 + ".99")),
            LineSpec.cr(standard_accounts["REVENUE"].id, "0.01"),
        ]

        assert journal_service.validate_lines(company_id, lines) == amount

    def test_amount_wider_than_column_is_rejected(
        self, journal_service, company_id, standard_accounts, test_actor_id
    ):
        amount = Decimal("1" + "0" * 29)
        lines = [
            LineSpec.dr(standard_accounts["CASH"].id, amount),
            LineSpec.cr(standard_accounts["REVENUE"].id, amount),
        ]

        with pytest.raises(InvalidLineError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert exc_info.value.line_index == 0
        assert "integer digits" in exc_info.value.reason

    def test_total_wider_than_column_is_rejected(
        self, journal_service, company_id, standard_accounts, test_actor_id
    ):
        half = Decimal("6" + "0" * 28)
        cash, revenue = standard_accounts["CASH"].id, standard_accounts["REVENUE"].id
        lines = [
            LineSpec.dr(cash, half),
            LineSpec.dr(cash, half),
            LineSpec.cr(revenue, half),
            LineSpec.cr(revenue, half),
        ]

        with pytest.raises(InvalidLineError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert exc_info.value.line_index is None

    def test_unknown_account_is_rejected(
        self, journal_service, company_id, standard_accounts, test_actor_id
    ):
        missing = uuid4()
        lines = [LineSpec.dr(standard_accounts["CASH"].id, "5"), LineSpec.cr(missing, "5")]

        with pytest.raises(InvalidAccountError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert exc_info.value.account_id == str(missing)

    def test_inactive_account_is_rejected(
        self, journal_service, account_registry, company_id, standard_accounts, make_lines, test_actor_id
    ):
        account_registry.deactivate(standard_accounts["EXPENSE"].id, test_actor_id)
        lines = make_lines(("EXPENSE", "5", "0"), ("CASH", "0", "5"))

        with pytest.raises(InvalidAccountError) as exc_info:
            self._create(journal_service, company_id, lines, test_actor_id)

        assert "inactive" in exc_info.value.reason

    def test_other_company_account_is_rejected(
        self, journal_service, account_registry, company_id, standard_accounts, test_actor_id
    ):
        foreign = account_registry.create_account(uuid4(), "1100", "Cash", "asset", test_actor_id)
        lines = [LineSpec.dr(foreign.id, "5"), LineSpec.cr(standard_accounts["REVENUE"].id, "5")]

        with pytest.raises(InvalidAccountError):
            self._create(journal_service, company_id, lines, test_actor_id)

    @pytest.mark.parametrize("entry_type", [EntryType.REVERSAL, EntryType.CLOSING])
    def test_system_entry_types_are_rejected(
        self, journal_service, company_id, make_lines, test_actor_id, entry_type
    ):
        lines = make_lines(("CASH", "5", "0"), ("REVENUE", "0", "5"))

        with pytest.raises(InvalidEntryTypeError):
            journal_service.create_draft(
                company_id,
                lines,
                DraftMetadata(journal_date=date(2024, 6, 15), entry_type=entry_type),
                test_actor_id,
            )

    def test_failed_validation_consumes_no_number(
        self, journal_service, company_id, make_lines, create_draft, test_actor_id
    ):
        with pytest.raises(UnbalancedEntryError):
            self._create(
                journal_service,
                company_id,
                make_lines(("CASH", "5", "0"), ("REVENUE", "0", "4")),
                test_actor_id,
            )

        assert create_draft().journal_number == "JV-202425-000001"

    def test_line_spec_rejects_float(self, standard_accounts):
        with pytest.raises(ValueError):
            LineSpec(account_id=standard_accounts["CASH"].id, debit=10.0)


class TestUpdateAndDiscard:
    def test_update_replaces_lines(self, journal_service, create_draft, make_lines, test_actor_id):
        entry = create_draft(amount="100.00")

        updated = journal_service.update_draft(
            entry.id,
            test_actor_id,
            lines=make_lines(("BANK", "75.00", "0"), ("REVENUE", "0", "75.00")),
        )

        assert updated.total_debits == Decimal("75.00")
        assert len(updated.lines) == 2
        assert updated.journal_number == entry.journal_number

    def test_update_moves_fiscal_fields_but_keeps_number(
        self, journal_service, create_draft, test_actor_id
    ):
        entry = create_draft(journal_date=date(2024, 6, 15))

        updated = journal_service.update_draft(
            entry.id, test_actor_id, journal_date=date(2025, 4, 2), description="Moved"
        )

        assert updated.financial_year == "2025-26"
        assert updated.period_month == 1
        assert updated.description == "Moved"
        assert updated.journal_number == "JV-202425-000001"

    def test_update_validates_lines(self, journal_service, create_draft, make_lines, test_actor_id):
        entry = create_draft()

        with pytest.raises(UnbalancedEntryError):
            journal_service.update_draft(
                entry.id,
                test_actor_id,
                lines=make_lines(("CASH", "5", "0"), ("REVENUE", "0", "6")),
            )

        assert entry.total_debits == Decimal("1000.00")

    def test_update_of_posted_entry_fails(self, journal_service, post_entry, test_actor_id):
        entry = post_entry()

        with pytest.raises(NotDraftError) as exc_info:
            journal_service.update_draft(entry.id, test_actor_id, description="late edit")

        assert exc_info.value.status == "posted"

    def test_discard_deletes_draft(self, session, journal_service, create_draft, test_actor_id):
        entry = create_draft()
        entry_id = entry.id

        journal_service.discard_draft(entry_id, test_actor_id)

        session.expire_all()
        assert session.get(JournalEntry, entry_id) is None

    def test_discarded_number_is_never_reused(self, journal_service, create_draft, test_actor_id):
        first = create_draft()
        journal_service.discard_draft(first.id, test_actor_id)

        second = create_draft()

        assert first.journal_number == "JV-202425-000001"
        assert second.journal_number == "JV-202425-000002"

    def test_discard_of_posted_entry_fails(self, journal_service, post_entry, test_actor_id):
        entry = post_entry()

        with pytest.raises(NotDraftError):
            journal_service.discard_draft(entry.id, test_actor_id)

    def test_discard_of_unknown_entry_fails(self, journal_service, test_actor_id):
        with pytest.raises(EntryNotFoundError):
            journal_service.discard_draft(uuid4(), test_actor_id)


class TestPost:
    def test_post_flips_status(self, journal_service, create_draft, test_actor_id, deterministic_clock):
        entry = create_draft()

        posted = journal_service.post(entry.id, test_actor_id)

        assert posted.status == JournalEntryStatus.POSTED
        assert posted.posted_by == test_actor_id
        assert posted.posted_at is not None

    def test_double_post_raises_not_draft(self, journal_service, create_draft, test_actor_id):
        entry = create_draft()
        journal_service.post(entry.id, test_actor_id)

        with pytest.raises(NotDraftError) as exc_info:
            journal_service.post(entry.id, test_actor_id)

        assert exc_info.value.code == "NOT_DRAFT"
        assert exc_info.value.status == "posted"

    def test_double_post_leaves_ledger_unchanged(
        self, journal_service, create_draft, ledger_selector, standard_accounts, test_actor_id
    ):
        entry = create_draft(amount="1000.00")
        journal_service.post(entry.id, test_actor_id)
        before = ledger_selector.get_account_ledger(standard_accounts["CASH"].id)

        with pytest.raises(NotDraftError):
            journal_service.post(entry.id, test_actor_id)

        after = ledger_selector.get_account_ledger(standard_accounts["CASH"].id)
        assert after == before

    def test_post_unknown_entry(self, journal_service, test_actor_id):
        with pytest.raises(EntryNotFoundError):
            journal_service.post(uuid4(), test_actor_id)

    def test_post_revalidates_accounts(
        self, journal_service, account_registry, create_draft, standard_accounts, test_actor_id
    ):
        entry = create_draft("CASH", "REVENUE")
        account_registry.deactivate(standard_accounts["REVENUE"].id, test_actor_id)

        with pytest.raises(InvalidAccountError):
            journal_service.post(entry.id, test_actor_id)

        assert entry.status == JournalEntryStatus.DRAFT

    def test_post_publishes_event(self, journal_service, create_draft, event_bus, test_actor_id):
        received = []
        event_bus.subscribe(JournalPosted, received.append)
        entry = create_draft(amount="420.00")

        journal_service.post(entry.id, test_actor_id)

        assert len(received) == 1
        event = received[0]
        assert event.entry_id == entry.id
        assert event.journal_number == entry.journal_number
        assert event.total_amount == Decimal("420.00")
        assert event.posted_by == test_actor_id

    def test_failed_post_publishes_nothing(
        self, journal_service, create_draft, event_bus, test_actor_id
    ):
        entry = create_draft()
        journal_service.post(entry.id, test_actor_id)
        event_bus.subscribe(JournalPosted, lambda e: pytest.fail("unexpected event"))

        with pytest.raises(NotDraftError):
            journal_service.post(entry.id, test_actor_id)

    def test_failing_subscriber_does_not_undo_post(
        self, journal_service, create_draft, event_bus, test_actor_id
    ):
        def broken(event):
            raise RuntimeError("notification service down")

        event_bus.subscribe(JournalPosted, broken)
        entry = create_draft()

        posted = journal_service.post(entry.id, test_actor_id)

        assert posted.status == JournalEntryStatus.POSTED
