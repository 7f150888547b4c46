"""
Lamport amounts and their SOL rendering

The ledger only ever holds integer lamports. Decimal SOL values exist for
log lines, event payloads and user input; they are never fed back into
settlement arithmetic.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from functools import lru_cache
from typing import Union

Numeric = Union[Decimal, float, str, int]

__all__ = [
    "LAMPORTS_PER_SOL",
    "SOL_PRECISION",
    "format_lamports",
    "format_sol",
    "lamports_to_sol",
    "sol_to_lamports",
    "to_decimal",
]

LAMPORTS_PER_SOL = 1_000_000_000
SOL_PRECISION = 9


@lru_cache(maxsize=16)
def _quantum(places: int) -> Decimal:
    if places < 0:
        raise ValueError(f"Decimal places must be >= 0, got {places}")
    return Decimal(1).scaleb(-places)


def to_decimal(value: Numeric) -> Decimal:
    """
    Decimal from any numeric input; floats go through str() so 0.1 stays 0.1

    Raises:
        ValueError: If value is not a number
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Not a number: {value!r} ({e})")


def lamports_to_sol(lamports: int) -> Decimal:
    """Exact SOL value of an integer lamport amount"""
    return (Decimal(lamports) / LAMPORTS_PER_SOL).quantize(_quantum(SOL_PRECISION))


def sol_to_lamports(value: Numeric) -> int:
    """
    Whole lamports in a SOL amount, rounding toward zero

    Raises:
        ValueError: For negative, infinite or NaN amounts
    """
    sol = to_decimal(value)
    if not sol.is_finite() or sol < 0:
        raise ValueError(f"SOL amount must be finite and non-negative, got {value}")
    return int((sol * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))


def format_sol(value: Numeric, precision: int = 4) -> str:
    """Display form, e.g. format_sol("1.23456") -> "1.2346 SOL" """
    shown = to_decimal(value).quantize(_quantum(precision), rounding=ROUND_HALF_UP)
    return f"{shown:.{precision}f} SOL"


def format_lamports(lamports: int, precision: int = 4) -> str:
    """Lamports shown in SOL, e.g. 2_500_000 -> "0.0025 SOL" """
    return format_sol(lamports_to_sol(lamports), precision)
