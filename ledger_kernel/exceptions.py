"""
Typed exception hierarchy for the ledger kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger core (UI controllers, auto-posting triggers, statement
importers) need to react to failures without parsing message text:

    try:
        journal_service.post(entry_id, posted_by=user_id)
    except NotDraftError as e:
        return {"error": e.code, "status": e.status}
    except UnbalancedEntryError as e:
        return {"error": e.code, "debits": e.debits, "credits": e.credits}

Every exception therefore has:
  1. A class of its own (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes carrying the context of the failure

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- InvalidAccountError
    |   +-- InvalidLineError
    |   +-- InvalidEntryTypeError
    |
    +-- JournalStateError
    |   +-- EntryNotFoundError
    |   +-- NotDraftError
    |
    +-- ReversalError
    |   +-- NotPostedError
    |   +-- AlreadyReversedError
    |   +-- ReversalDateError
    |
    +-- ClosingError
    |   +-- YearAlreadyClosedError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- DuplicateAccountCodeError
    |   +-- AccountReferencedError
    |
    +-- ReconciliationError
    |   +-- BankTransactionNotFoundError
    |   +-- BankAccountNotFoundError
    |   +-- AlreadyReconciledError
    |   +-- NotReconciledError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- QueryError
        +-- InvalidDateRangeError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Posting         | UNBALANCED_ENTRY            | Debits != Credits
                | INVALID_ACCOUNT             | Unknown, inactive or foreign account
                | INVALID_LINE                | Line has both/neither side, bad amount
                | INVALID_ENTRY_TYPE          | Caller used a system-only entry type
----------------|-----------------------------|-----------------------------------------
Journal state   | ENTRY_NOT_FOUND             | Journal entry ID doesn't exist
                | NOT_DRAFT                   | Edit/post/discard of a non-draft entry
----------------|-----------------------------|-----------------------------------------
Reversal        | NOT_POSTED                  | Reversal of an entry that isn't posted
                | ALREADY_REVERSED            | Entry already has a reversing entry
                | REVERSAL_DATE_INVALID       | Reversal dated before the original
----------------|-----------------------------|-----------------------------------------
Closing         | YEAR_ALREADY_CLOSED         | Closing entry exists for the year
----------------|-----------------------------|-----------------------------------------
Account         | ACCOUNT_NOT_FOUND           | Account ID/code doesn't exist
                | DUPLICATE_ACCOUNT_CODE      | Code already used within the company
                | ACCOUNT_REFERENCED          | Can't delete, has posted lines
----------------|-----------------------------|-----------------------------------------
Reconciliation  | BANK_TRANSACTION_NOT_FOUND  | Bank transaction ID doesn't exist
                | BANK_ACCOUNT_NOT_FOUND      | Bank account ID doesn't exist
                | ALREADY_RECONCILED          | Transaction already linked
                | NOT_RECONCILED              | Unreconcile without a link
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a posted record
----------------|-----------------------------|-----------------------------------------
Query           | INVALID_DATE_RANGE          | from_date after to_date

An unbalanced balance sheet is NOT an exception: it is reported as
``BalanceSheet.is_balanced == False`` so the read that surfaces the
problem is never rejected.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, entry_id: str | None = None):
        self.debits = debits
        self.credits = credits
        self.entry_id = entry_id
        super().__init__(
            f"Unbalanced entry: debits={debits}, credits={credits}"
        )


class InvalidAccountError(PostingError):
    """Account is invalid for posting."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


class InvalidLineError(PostingError):
    """A journal line (or the set of lines) is malformed."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int | None, reason: str):
        self.line_index = line_index
        self.reason = reason
        where = f"line {line_index}" if line_index is not None else "entry"
        super().__init__(f"Invalid {where}: {reason}")


class InvalidEntryTypeError(PostingError):
    """Entry type cannot be used for caller-created drafts."""

    code: str = "INVALID_ENTRY_TYPE"

    def __init__(self, entry_type: str):
        self.entry_type = entry_type
        super().__init__(
            f"Entry type '{entry_type}' is reserved for system-generated entries"
        )


# Journal state exceptions


class JournalStateError(LedgerKernelError):
    """Base exception for journal entry state-machine violations."""

    code: str = "JOURNAL_STATE_ERROR"


class EntryNotFoundError(JournalStateError):
    """Journal entry with given ID was not found."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class NotDraftError(JournalStateError):
    """Operation requires a draft entry."""

    code: str = "NOT_DRAFT"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Journal entry {entry_id} is {status}, not draft"
        )


# Reversal-related exceptions


class ReversalError(LedgerKernelError):
    """Base exception for reversal-related errors."""

    code: str = "REVERSAL_ERROR"


class NotPostedError(ReversalError):
    """Cannot reverse an entry that is not posted."""

    code: str = "NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Cannot reverse entry {entry_id}: status is {status}, not posted"
        )


class AlreadyReversedError(ReversalError):
    """Entry has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_entry_id: str | None = None):
        self.entry_id = entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(f"Entry {entry_id} has already been reversed")


class ReversalDateError(ReversalError):
    """Reversal date precedes the original entry's date."""

    code: str = "REVERSAL_DATE_INVALID"

    def __init__(self, entry_id: str, journal_date: str, reversal_date: str):
        self.entry_id = entry_id
        self.journal_date = journal_date
        self.reversal_date = reversal_date
        super().__init__(
            f"Reversal date {reversal_date} precedes entry {entry_id} "
            f"dated {journal_date}"
        )


# Closing-related exceptions


class ClosingError(LedgerKernelError):
    """Base exception for year-end closing errors."""

    code: str = "CLOSING_ERROR"


class YearAlreadyClosedError(ClosingError):
    """A closing entry already exists for the financial year."""

    code: str = "YEAR_ALREADY_CLOSED"

    def __init__(self, company_id: str, financial_year: str, entry_id: str):
        self.company_id = company_id
        self.financial_year = financial_year
        self.entry_id = entry_id
        super().__init__(
            f"Financial year {financial_year} already closed by entry {entry_id}"
        )


# Account-related exceptions


class AccountError(LedgerKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class DuplicateAccountCodeError(AccountError):
    """Account code already exists within the company."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, company_id: str, account_code: str):
        self.company_id = company_id
        self.account_code = account_code
        super().__init__(
            f"Account code {account_code} already exists for company {company_id}"
        )


class AccountReferencedError(AccountError):
    """Account cannot be deleted because it is referenced by posted lines."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id} cannot be deleted: referenced by posted lines"
        )


# Reconciliation-related exceptions


class ReconciliationError(LedgerKernelError):
    """Base exception for bank reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class BankTransactionNotFoundError(ReconciliationError):
    """Bank transaction with given ID was not found."""

    code: str = "BANK_TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Bank transaction not found: {transaction_id}")


class BankAccountNotFoundError(ReconciliationError):
    """Bank account with given ID was not found."""

    code: str = "BANK_ACCOUNT_NOT_FOUND"

    def __init__(self, bank_account_id: str):
        self.bank_account_id = bank_account_id
        super().__init__(f"Bank account not found: {bank_account_id}")


class AlreadyReconciledError(ReconciliationError):
    """Bank transaction is already linked to a ledger item."""

    code: str = "ALREADY_RECONCILED"

    def __init__(
        self,
        transaction_id: str,
        reconciled_type: str | None = None,
        reconciled_id: str | None = None,
    ):
        self.transaction_id = transaction_id
        self.reconciled_type = reconciled_type
        self.reconciled_id = reconciled_id
        super().__init__(
            f"Bank transaction {transaction_id} is already reconciled "
            f"({reconciled_type}:{reconciled_id})"
        )


class NotReconciledError(ReconciliationError):
    """Bank transaction has no reconciliation link to clear."""

    code: str = "NOT_RECONCILED"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Bank transaction {transaction_id} is not reconciled")


# Immutability-related exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Posted journal entries, their lines, and the structural fields of
    referenced accounts are immutable.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Query-related exceptions


class QueryError(LedgerKernelError):
    """Base exception for invalid read requests."""

    code: str = "QUERY_ERROR"


class InvalidDateRangeError(QueryError):
    """Start of a date range falls after its end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, from_date: str, to_date: str):
        self.from_date = from_date
        self.to_date = to_date
        super().__init__(f"Invalid date range: {from_date} is after {to_date}")
