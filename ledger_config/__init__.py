"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the one way to obtain settings at runtime through
    ``get_active_config()``.  Services read fiscal calendar, money
    precision, matcher weights and the default balance-sheet taxonomy from
    the returned ``LedgerSettings``; none of them read YAML or environment
    variables themselves.

Architecture position:
    Configuration leaf package.  Depends on PyYAML only; never imports from
    ``ledger_kernel`` or ``ledger_engines``.

Lookup order:
    1. Explicit ``path`` argument.
    2. ``LEDGER_CONFIG`` environment variable.
    3. Bundled ``sets/default.yaml``.

Failure modes:
    - ``FileNotFoundError`` -- the resolved path does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every uncached load emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ledger_config.loader import load_settings
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

_logger = logging.getLogger("ledger_kernel.config")

CONFIG_ENV_VAR = "LEDGER_CONFIG"

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

_cache: dict[Path, LedgerSettings] = {}


def _resolve_path(path: Path | str | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return _DEFAULT_CONFIG_FILE


def get_active_config(path: Path | str | None = None) -> LedgerSettings:
    """Return the active ``LedgerSettings``, loading and caching on first use."""
    resolved = _resolve_path(path).resolve()
    settings = _cache.get(resolved)
    if settings is not None:
        return settings

    settings = load_settings(resolved)
    _cache[resolved] = settings

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "config_path": str(resolved),
        },
    )
    return settings


def reset_config_cache() -> None:
    """Drop cached settings. FOR TESTING ONLY."""
    _cache.clear()


__all__ = [
    "CONFIG_ENV_VAR",
    "AmountBand",
    "BalanceSheetSectionDef",
    "BalanceSheetSettings",
    "DateBand",
    "FiscalCalendarSettings",
    "JournalSettings",
    "LedgerSettings",
    "MatchingSettings",
    "MoneySettings",
    "get_active_config",
    "reset_config_cache",
]
