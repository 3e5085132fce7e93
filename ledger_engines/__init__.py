"""
ledger_engines -- pure calculation engines.

No I/O, no clock, no database.  Services gather inputs and persist outputs.
"""

from ledger_engines.matching import (
    BankLine,
    MatchScore,
    PaymentCandidate,
    ReconciliationScorer,
)

__all__ = [
    "BankLine",
    "MatchScore",
    "PaymentCandidate",
    "ReconciliationScorer",
]
