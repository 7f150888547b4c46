"""
Settlement arithmetic

Lamport amounts are u64 on the ledger. Python integers never overflow, so
the checked helpers here enforce the fixed widths explicitly and raise
Overflow wherever a fixed-width machine would have wrapped or trapped.
"""

import logging

from ..models.bet import U64_MAX, U128_MAX, Bet
from .errors import Overflow

logger = logging.getLogger(__name__)

PAYOUT_SCALE = 100


def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    result = a + b
    if result > limit:
        raise Overflow(f"{a} + {b} exceeds {limit}")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise Overflow(f"{a} - {b} underflows")
    return a - b


def checked_mul(a: int, b: int, limit: int = U128_MAX) -> int:
    result = a * b
    if result > limit:
        raise Overflow(f"{a} * {b} exceeds {limit}")
    return result


def checked_div(a: int, b: int) -> int:
    if b == 0:
        raise Overflow(f"{a} / 0")
    return a // b


def to_u64(value: int) -> int:
    """Narrow to u64, refusing to truncate"""
    if value < 0 or value > U64_MAX:
        raise Overflow(f"{value} does not fit in u64")
    return value


def compute_payout(amount: int, roll: int) -> int:
    """
    floor(amount * 100 / roll) with a u128 intermediate

    Raises:
        Overflow: On u128 overflow, roll == 0, or a result wider than u64
    """
    wide = checked_mul(amount, PAYOUT_SCALE)
    return to_u64(checked_div(wide, roll))


def settle(outcome: int, bet: Bet) -> int | None:
    """
    Decide a bet

    Returns:
        Payout in lamports when outcome < bet.roll, otherwise None
    """
    if outcome >= bet.roll:
        return None
    return compute_payout(bet.amount, bet.roll)
