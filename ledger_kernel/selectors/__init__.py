"""Read-only query selectors over the ledger, statements and bank lines."""

from ledger_kernel.selectors.bank_selector import (
    BankReconciliationStatement,
    BankTransactionSelector,
    ReconciliationSummary,
    StatementItem,
)
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.financial_statement_selector import (
    BalanceSheet,
    BalanceSheetSection,
    BalanceSheetTaxonomy,
    FinancialStatementSelector,
    IncomeStatement,
    StatementLine,
)
from ledger_kernel.selectors.journal_selector import (
    JournalEntryDTO,
    JournalLineDTO,
    JournalSelector,
)
from ledger_kernel.selectors.ledger_selector import (
    AbnormalBalance,
    AccountBalance,
    LedgerPosition,
    LedgerRow,
    LedgerSelector,
    TrialBalance,
    TrialBalanceRow,
)

__all__ = [
    "AbnormalBalance",
    "AccountBalance",
    "BalanceSheet",
    "BalanceSheetSection",
    "BalanceSheetTaxonomy",
    "BankReconciliationStatement",
    "BankTransactionSelector",
    "BaseSelector",
    "FinancialStatementSelector",
    "IncomeStatement",
    "JournalEntryDTO",
    "JournalLineDTO",
    "JournalSelector",
    "LedgerPosition",
    "LedgerRow",
    "LedgerSelector",
    "ReconciliationSummary",
    "StatementItem",
    "StatementLine",
    "TrialBalance",
    "TrialBalanceRow",
]
