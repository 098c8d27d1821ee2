"""
Utility functions for timestamps and price conversions.

These are pure functions with no dependencies on other types.
"""

from time import monotonic_ns, time
from typing import Optional


def now_ms() -> int:
    """Get current monotonic timestamp in milliseconds."""
    return monotonic_ns() // 1_000_000


def wall_ms() -> int:
    """Get current wall clock timestamp in milliseconds."""
    return int(time() * 1000)


def round_price(price: float) -> float:
    """Round a 0-1 price to the 2 decimal tick grid."""
    return round(price * 100) / 100


def price_to_cents(price) -> int:
    """
    Convert a 0-1 price (float or string like "0.55") to integer cents.

    Rounds rather than truncates so 0.29 maps to 29, not 28.
    """
    if price is None or price == "":
        return 0
    try:
        return int(round(float(price) * 100))
    except (ValueError, TypeError):
        return 0


def cents_to_price(cents: int) -> float:
    """Convert cents to decimal price."""
    return cents / 100.0


def parse_float(value) -> Optional[float]:
    """Parse a numeric wire field, returning None for empty/invalid input."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None
