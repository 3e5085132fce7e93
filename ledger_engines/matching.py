"""
ledger_engines.matching -- Bank reconciliation match scoring.

Responsibility:
    Score how well a billing payment explains a bank statement line and rank
    candidate payments.  Produces scored suggestions with the amount and date
    differences that drove the score.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only ledger_config.schema (weights) and kernel logging.

Invariants enforced:
    - Replay safety: identical inputs produce identical outputs; no clock,
      no database.
    - Decimal arithmetic throughout; no float intermediates.
    - Scores are integers in [0, max_score].
    - Ranking is total: score desc, then amount difference asc, then date
      distance asc, then payment date, then candidate id.

Scoring (default weights):

    Component  | Rule                                  | Points
    -----------|---------------------------------------|-------
    Amount     | exact / <= 0.01 / <= 1 / <= 10        | 40 / 35 / 25 / 15
    Date       | same day / <= 1 / <= 3 / <= 7 days    | 30 / 25 / 15 / 5
    Reference  | exact / substring (case-insensitive)  | 30 / 20

Usage:
    from ledger_engines.matching import BankLine, PaymentCandidate, ReconciliationScorer

    scorer = ReconciliationScorer(settings.matching)
    ranked = scorer.rank(target=line, candidates=payments, max_results=10)
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_config.schema import MatchingSettings
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.matching")


@dataclass(frozen=True)
class BankLine:
    """The bank statement side of a match."""

    transaction_id: UUID
    amount: Decimal
    transaction_date: date
    reference_number: str | None = None
    cheque_number: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class PaymentCandidate:
    """A billing payment that might explain a bank line."""

    payment_id: UUID
    amount: Decimal
    payment_date: date
    reference_number: str | None = None
    cheque_number: str | None = None
    customer_name: str | None = None
    invoice_number: str | None = None


@dataclass(frozen=True)
class MatchScore:
    """
    Scored pairing of a bank line with one payment.

    amount_points + date_points + reference_points may exceed max_score;
    ``score`` is the capped total.
    """

    candidate: PaymentCandidate
    score: int
    amount_points: int
    date_points: int
    reference_points: int
    amount_difference: Decimal
    date_difference_days: int
    reference_match: str | None = None  # "exact", "partial" or None

    def describe(self) -> str:
        """Human-readable reason, e.g. for auto-reconcile audit trails."""
        reasons: list[str] = []
        if self.amount_difference == 0:
            reasons.append("Exact amount match")
        else:
            reasons.append(f"Amount within tolerance (diff: {self.amount_difference:.2f})")
        if self.date_difference_days == 0:
            reasons.append("Same date")
        else:
            reasons.append(f"Date within {self.date_difference_days} days")
        if self.reference_match == "exact":
            reasons.append("Reference number match")
        elif self.reference_match == "partial":
            reasons.append("Partial reference match")
        return f"Score: {self.score}% - {', '.join(reasons)}"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


class ReconciliationScorer:
    """
    Scores payments against bank lines.

    Contract:
        Pure functions -- no I/O.  Candidate selection (tolerance, date
        window, reconciled filtering) is the caller's job; the scorer
        scores and orders whatever it is given.
    Guarantees:
        - ``score`` returns an integer in [0, max_score].
        - ``rank`` returns at most ``max_results`` suggestions, best first.
    """

    def __init__(self, settings: MatchingSettings | None = None) -> None:
        self._settings = settings or MatchingSettings()

    @property
    def settings(self) -> MatchingSettings:
        return self._settings

    def amount_points(self, difference: Decimal) -> int:
        for band in self._settings.amount_bands:
            if difference <= band.max_difference:
                return band.points
        return 0

    def date_points(self, days: int) -> int:
        for band in self._settings.date_bands:
            if days <= band.max_days:
                return band.points
        return 0

    def reference_points(
        self, target: BankLine, candidate: PaymentCandidate
    ) -> tuple[int, str | None]:
        """
        Compare the payment's reference/cheque against the bank line's
        reference, cheque and description.

        Exact equality only counts against reference and cheque; the free
        text description can only give a partial match.
        """
        payment_keys = [
            k for k in (_clean(candidate.reference_number), _clean(candidate.cheque_number)) if k
        ]
        if not payment_keys:
            return 0, None

        line_keys = [
            k for k in (_clean(target.reference_number), _clean(target.cheque_number)) if k
        ]
        description = _clean(target.description)

        if any(pk == lk for pk in payment_keys for lk in line_keys):
            return self._settings.reference_exact_points, "exact"

        for pk in payment_keys:
            for lk in line_keys:
                if pk in lk or lk in pk:
                    return self._settings.reference_partial_points, "partial"
            if description and pk in description:
                return self._settings.reference_partial_points, "partial"

        return 0, None

    def score(self, target: BankLine, candidate: PaymentCandidate) -> MatchScore:
        amount_difference = abs(target.amount - candidate.amount)
        date_difference = abs((target.transaction_date - candidate.payment_date).days)

        amount_pts = self.amount_points(amount_difference)
        date_pts = self.date_points(date_difference)
        reference_pts, reference_match = self.reference_points(target, candidate)

        total = min(amount_pts + date_pts + reference_pts, self._settings.max_score)

        return MatchScore(
            candidate=candidate,
            score=total,
            amount_points=amount_pts,
            date_points=date_pts,
            reference_points=reference_pts,
            amount_difference=amount_difference,
            date_difference_days=date_difference,
            reference_match=reference_match,
        )

    def rank(
        self,
        target: BankLine,
        candidates: Sequence[PaymentCandidate],
        max_results: int | None = None,
    ) -> list[MatchScore]:
        """
        Score every candidate and return them best first.

        Args:
            target: The bank line to explain.
            candidates: Pre-filtered payments.
            max_results: Truncation limit (defaults to settings.max_results).

        Returns:
            List of MatchScore sorted by the total ranking order.
        """
        t0 = time.monotonic()
        limit = max_results if max_results is not None else self._settings.max_results

        scored = [self.score(target, candidate) for candidate in candidates]
        scored.sort(
            key=lambda s: (
                -s.score,
                s.amount_difference,
                s.date_difference_days,
                s.candidate.payment_date,
                str(s.candidate.payment_id),
            )
        )
        ranked = scored[:limit]

        logger.debug(
            "match_ranking_completed",
            extra={
                "transaction_id": str(target.transaction_id),
                "candidates_evaluated": len(candidates),
                "suggestions_returned": len(ranked),
                "top_score": ranked[0].score if ranked else 0,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return ranked
