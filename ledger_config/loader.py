"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``ledger_config.schema``.  Runtime callers go through
``ledger_config.get_active_config()``; this module is the parsing half.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; values are never silently coerced.
* Monetary values are parsed from strings into ``Decimal``; YAML floats are
  rejected so ``0.01`` cannot sneak in as a binary float.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AmountBand,
    BalanceSheetSectionDef,
    BalanceSheetSettings,
    DateBand,
    FiscalCalendarSettings,
    JournalSettings,
    LedgerSettings,
    MatchingSettings,
    MoneySettings,
)

_BALANCE_SHEET_TYPES = ("asset", "liability", "equity")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from a YAML string or int."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(
            f"{field_name}: write monetary values as quoted strings, got {value!r}"
        )
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: cannot parse decimal from {value!r}") from exc


def _require_range(value: int, low: int, high: int, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
        raise ValueError(f"{field_name} must be an integer in [{low}, {high}], got {value!r}")
    return value


def parse_fiscal(data: dict[str, Any]) -> FiscalCalendarSettings:
    return FiscalCalendarSettings(
        start_month=_require_range(data.get("start_month", 4), 1, 12, "fiscal.start_month"),
    )


def parse_money(data: dict[str, Any]) -> MoneySettings:
    currency = data.get("currency", "INR")
    if not isinstance(currency, str) or len(currency) != 3:
        raise ValueError(f"money.currency must be a 3-letter code, got {currency!r}")
    return MoneySettings(
        currency=currency.upper(),
        decimal_places=_require_range(
            data.get("decimal_places", 2), 0, 9, "money.decimal_places"
        ),
    )


def parse_journal(data: dict[str, Any]) -> JournalSettings:
    prefix = data.get("number_prefix", "JV")
    if not isinstance(prefix, str) or not prefix:
        raise ValueError("journal.number_prefix must be a non-empty string")
    return JournalSettings(
        number_prefix=prefix,
        sequence_width=_require_range(
            data.get("sequence_width", 6), 1, 12, "journal.sequence_width"
        ),
    )


def parse_matching(data: dict[str, Any]) -> MatchingSettings:
    """
    Parse the reconciliation matching block.

    Bands are sorted tightest first so the scorer can take the first hit.
    """
    defaults = MatchingSettings()

    if "amount_bands" in data:
        amount_bands = tuple(
            sorted(
                (
                    AmountBand(
                        max_difference=parse_decimal(
                            band["max_difference"], "matching.amount_bands.max_difference"
                        ),
                        points=int(band["points"]),
                    )
                    for band in data["amount_bands"]
                ),
                key=lambda b: b.max_difference,
            )
        )
    else:
        amount_bands = defaults.amount_bands

    if "date_bands" in data:
        date_bands = tuple(
            sorted(
                (
                    DateBand(max_days=int(band["max_days"]), points=int(band["points"]))
                    for band in data["date_bands"]
                ),
                key=lambda b: b.max_days,
            )
        )
    else:
        date_bands = defaults.date_bands

    settings = MatchingSettings(
        amount_bands=amount_bands,
        date_bands=date_bands,
        reference_exact_points=int(
            data.get("reference_exact_points", defaults.reference_exact_points)
        ),
        reference_partial_points=int(
            data.get("reference_partial_points", defaults.reference_partial_points)
        ),
        max_score=int(data.get("max_score", defaults.max_score)),
        amount_tolerance=parse_decimal(
            data.get("amount_tolerance", defaults.amount_tolerance),
            "matching.amount_tolerance",
        ),
        date_window_days=int(data.get("date_window_days", defaults.date_window_days)),
        max_results=int(data.get("max_results", defaults.max_results)),
        auto_min_score=int(data.get("auto_min_score", defaults.auto_min_score)),
        auto_amount_tolerance=parse_decimal(
            data.get("auto_amount_tolerance", defaults.auto_amount_tolerance),
            "matching.auto_amount_tolerance",
        ),
        auto_date_tolerance_days=int(
            data.get("auto_date_tolerance_days", defaults.auto_date_tolerance_days)
        ),
    )

    if settings.amount_tolerance < 0 or settings.auto_amount_tolerance < 0:
        raise ValueError("matching tolerances must be >= 0")
    if settings.max_results < 1:
        raise ValueError("matching.max_results must be >= 1")
    if settings.date_window_days < 0:
        raise ValueError("matching.date_window_days must be >= 0")
    return settings


def parse_section(data: dict[str, Any]) -> BalanceSheetSectionDef:
    account_type = data["account_type"]
    if account_type not in _BALANCE_SHEET_TYPES:
        raise ValueError(
            f"balance_sheet section {data.get('name')!r}: account_type must be one of "
            f"{_BALANCE_SHEET_TYPES}, got {account_type!r}"
        )
    return BalanceSheetSectionDef(
        name=data["name"],
        account_type=account_type,
        code_prefixes=tuple(str(p) for p in data.get("code_prefixes", ())),
    )


def parse_balance_sheet(data: dict[str, Any]) -> BalanceSheetSettings:
    return BalanceSheetSettings(
        include_unclosed_earnings=bool(data.get("include_unclosed_earnings", True)),
        unclosed_earnings_label=data.get(
            "unclosed_earnings_label", "Current Period Earnings"
        ),
        sections=tuple(parse_section(s) for s in data.get("sections", ())),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the raw settings document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse a full settings document.

    Raises:
        ValueError: on out-of-range or mistyped values.
        KeyError: when a section entry lacks a required key.
    """
    return LedgerSettings(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        fiscal=parse_fiscal(data.get("fiscal") or {}),
        money=parse_money(data.get("money") or {}),
        journal=parse_journal(data.get("journal") or {}),
        matching=parse_matching(data.get("matching") or {}),
        balance_sheet=parse_balance_sheet(data.get("balance_sheet") or {}),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> LedgerSettings:
    """Load and parse a settings YAML file."""
    return parse_settings(load_yaml_file(path))
