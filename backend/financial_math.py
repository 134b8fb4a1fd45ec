"""
Financial Math Helpers

Rounding and division helpers shared by the statement engine, the ratio
scorer and the analyses built on top of them.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR, localcontext
import math


DAYS_PER_YEAR = 365

# Whole-currency amounts saturate here so that sums of line items always
# convert back to float without overflow.
CURRENCY_LIMIT = 10 ** 300

# Enough digits to hold any finite float at two decimal places.
DECIMAL_PRECISION = 400


def safe_div(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Divide, returning ``fallback`` when the denominator is exactly zero."""
    if denominator == 0:
        return fallback
    return numerator / denominator


def round_currency(value: float) -> int:
    """
    Round to the nearest whole currency unit.

    Halves round towards positive infinity (2.5 -> 3, -2.5 -> -2) so that
    every line item is reproducible regardless of sign conventions.

    NaN maps to 0. Infinite and very large values saturate at
    +/- ``CURRENCY_LIMIT``.
    """
    if math.isnan(value):
        return 0
    if value >= CURRENCY_LIMIT:
        return CURRENCY_LIMIT
    if value <= -CURRENCY_LIMIT:
        return -CURRENCY_LIMIT
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return int((Decimal(repr(value)) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def quantize(value: float, places: int) -> float:
    """Round half-up to a fixed number of decimal places. Non-finite values pass through."""
    if not math.isfinite(value):
        return value
    exponent = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return float(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def to_pct(fraction: float, places: int = 1) -> float:
    """Express a fraction as a percentage rounded to ``places`` decimals."""
    return quantize(fraction * 100, places)


def pct_change(original: float, simulated: float) -> float:
    """Percentage change against the magnitude of the original (0 when original is 0)."""
    return safe_div(simulated - original, abs(original)) * 100


def format_value(value: float) -> str:
    """Compact parameter value: whole numbers without decimals, others to at most 2."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_currency(value: float) -> str:
    """Abbreviated currency, e.g. $22.5M, -$450K, $900."""
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if magnitude >= 1_000_000_000:
        return f"{sign}${magnitude / 1_000_000_000:.1f}B"
    if magnitude >= 1_000_000:
        return f"{sign}${magnitude / 1_000_000:.1f}M"
    if magnitude >= 1_000:
        return f"{sign}${magnitude / 1_000:.0f}K"
    return f"{sign}${magnitude:.0f}"
