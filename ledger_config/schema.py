"""
Ledger settings schema.

Frozen dataclasses that the loader builds from YAML.  Every field has a
default matching the bundled ``sets/default.yaml`` so a partial file only
needs to name what it overrides.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Calendar and money
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FiscalCalendarSettings:
    """First calendar month of the financial year (4 = April-March)."""

    start_month: int = 4


@dataclass(frozen=True)
class MoneySettings:
    currency: str = "INR"
    decimal_places: int = 2


@dataclass(frozen=True)
class JournalSettings:
    """Journal numbering: ``<prefix>-<fy digits>-<zero-padded seq>``."""

    number_prefix: str = "JV"
    sequence_width: int = 6


# ---------------------------------------------------------------------------
# Reconciliation matching
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AmountBand:
    """Points awarded when |payment - transaction| <= max_difference."""

    max_difference: Decimal
    points: int


@dataclass(frozen=True)
class DateBand:
    """Points awarded when the dates are at most max_days apart."""

    max_days: int
    points: int


def _default_amount_bands() -> tuple[AmountBand, ...]:
    return (
        AmountBand(Decimal("0"), 40),
        AmountBand(Decimal("0.01"), 35),
        AmountBand(Decimal("1"), 25),
        AmountBand(Decimal("10"), 15),
    )


def _default_date_bands() -> tuple[DateBand, ...]:
    return (
        DateBand(0, 30),
        DateBand(1, 25),
        DateBand(3, 15),
        DateBand(7, 5),
    )


@dataclass(frozen=True)
class MatchingSettings:
    """Scoring weights and candidate limits for bank reconciliation."""

    amount_bands: tuple[AmountBand, ...] = field(default_factory=_default_amount_bands)
    date_bands: tuple[DateBand, ...] = field(default_factory=_default_date_bands)
    reference_exact_points: int = 30
    reference_partial_points: int = 20
    max_score: int = 100
    amount_tolerance: Decimal = Decimal("1000")
    date_window_days: int = 7
    max_results: int = 10
    auto_min_score: int = 80
    auto_amount_tolerance: Decimal = Decimal("100")
    auto_date_tolerance_days: int = 3


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceSheetSectionDef:
    """A named group of accounts of one type, selected by code prefix."""

    name: str
    account_type: str
    code_prefixes: tuple[str, ...] = ()


@dataclass(frozen=True)
class BalanceSheetSettings:
    include_unclosed_earnings: bool = True
    unclosed_earnings_label: str = "Current Period Earnings"
    sections: tuple[BalanceSheetSectionDef, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Root settings object returned by ``ledger_config.get_active_config``."""

    config_id: str = "default"
    version: int = 1
    fiscal: FiscalCalendarSettings = field(default_factory=FiscalCalendarSettings)
    money: MoneySettings = field(default_factory=MoneySettings)
    journal: JournalSettings = field(default_factory=JournalSettings)
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    balance_sheet: BalanceSheetSettings = field(default_factory=BalanceSheetSettings)
    checksum: str = ""
