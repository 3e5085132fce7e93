"""
Module: ledger_kernel.db.types
Responsibility: Monetary precision constants and the rounding helpers shared
    by models, services and selectors.  Centralizes precision and rounding so
    that every layer uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the ledger kernel.  All monetary amounts use
      Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function.  Posting never
      rounds: is_quantized() is used to reject over-precise amounts instead.
    - Money arithmetic runs in a MONEY_PRECISION-digit decimal context, so
      any amount a Numeric(38, 9) column can hold is handled exactly.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext

# Numeric(38, 9): 38 digits total, 9 decimal places
MONEY_PRECISION = 38
MONEY_SCALE = 9
MAX_INTEGER_DIGITS = MONEY_PRECISION - MONEY_SCALE

DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def money_context():
    """Decimal context wide enough for every storable amount."""
    return localcontext(prec=MONEY_PRECISION)


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for financial values.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    with money_context():
        return value.quantize(Decimal(quantize_str), rounding=rounding)


def is_quantized(value: Decimal, decimal_places: int = 2) -> bool:
    """True if ``value`` has no significant digits beyond ``decimal_places``."""
    return round_money(value, decimal_places) == value


def fits_money_column(value: Decimal) -> bool:
    """True if the integer part of ``value`` fits a Numeric(38, 9) column."""
    return value.is_zero() or value.adjusted() < MAX_INTEGER_DIGITS
