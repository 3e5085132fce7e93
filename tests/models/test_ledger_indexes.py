"""
Indexes backing the ledger replay queries.

An account ledger reads an account's lines, joins their headers and scans
a date range in (journal_date, journal_number) order.
"""

from sqlalchemy import inspect

from ledger_kernel.models.journal import JournalEntry, JournalLine


def _index_columns(model) -> dict[str, list[str]]:
    return {index.name: [c.name for c in index.columns] for index in model.__table__.indexes}


def test_lines_indexed_by_account_then_entry():
    indexes = _index_columns(JournalLine)

    assert indexes["idx_line_account_entry"] == ["account_id", "journal_entry_id"]


def test_headers_indexed_by_company_date_and_number():
    indexes = _index_columns(JournalEntry)

    assert indexes["idx_journal_company_date"] == ["company_id", "journal_date", "journal_number"]


def test_indexes_exist_in_database(session):
    inspector = inspect(session.connection())

    line_indexes = {ix["name"] for ix in inspector.get_indexes("journal_lines")}
    entry_indexes = {ix["name"] for ix in inspector.get_indexes("journal_entries")}

    assert "idx_line_account_entry" in line_indexes
    assert "idx_journal_company_date" in entry_indexes
