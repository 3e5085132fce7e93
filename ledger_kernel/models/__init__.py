"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    BALANCE_SHEET_TYPES,
    PROFIT_AND_LOSS_TYPES,
    Account,
    AccountType,
    NormalBalance,
)
from ledger_kernel.models.bank import (
    BankAccount,
    BankTransaction,
    ReconciledType,
    TransactionType,
)
from ledger_kernel.models.journal import (
    LEDGER_STATUSES,
    SYSTEM_ENTRY_TYPES,
    EntryType,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)
from ledger_kernel.models.payment import Payment


def import_all_models() -> None:
    """Import every module that defines a table so Base.metadata is complete."""
    import ledger_kernel.services.sequence_service  # noqa: F401  (sequence_counters)


__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "BALANCE_SHEET_TYPES",
    "PROFIT_AND_LOSS_TYPES",
    "BankAccount",
    "BankTransaction",
    "ReconciledType",
    "TransactionType",
    "EntryType",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LEDGER_STATUSES",
    "SYSTEM_ENTRY_TYPES",
    "Payment",
    "import_all_models",
]
