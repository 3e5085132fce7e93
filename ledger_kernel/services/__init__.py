"""
Kernel services -- the only code that writes ledger state.

Every service takes a caller-owned Session, works inside SAVEPOINTs and
never commits.
"""

from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.closing_service import ClosingService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.reconciliation_service import (
    AUTO_RECONCILE_ACTOR,
    AutoReconcileMatch,
    AutoReconcileResult,
    PaymentLookup,
    ReconciliationService,
    ReconciliationSuggestion,
    SqlPaymentLookup,
)
from ledger_kernel.services.reversal_service import ReversalResult, ReversalService
from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AUTO_RECONCILE_ACTOR",
    "AccountRegistry",
    "AutoReconcileMatch",
    "AutoReconcileResult",
    "ClosingService",
    "JournalService",
    "PaymentLookup",
    "ReconciliationService",
    "ReconciliationSuggestion",
    "ReversalResult",
    "ReversalService",
    "SequenceCounter",
    "SequenceService",
]
