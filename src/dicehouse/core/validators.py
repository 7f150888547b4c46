"""
Input validation functions for bet placement
"""

from ..config import config
from ..models.bet import U64_MAX, U128_MAX
from ..utils.lamports import format_lamports


def validate_roll(roll: int) -> tuple[bool, str | None]:
    """
    Validate the chosen win threshold

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(roll, int) or isinstance(roll, bool):
        return False, f"Roll must be an integer, got {type(roll).__name__}"

    min_roll = config.get("game_rules", "min_roll")
    max_roll = config.get("game_rules", "max_roll")
    if roll < min_roll or roll > max_roll:
        return False, f"Roll {roll} outside allowed range [{min_roll}, {max_roll}]"

    return True, None


def validate_seed(seed: int) -> tuple[bool, str | None]:
    """Validate the bet seed fits its 128-bit field"""
    if not isinstance(seed, int) or isinstance(seed, bool):
        return False, f"Seed must be an integer, got {type(seed).__name__}"
    if seed < 0 or seed > U128_MAX:
        return False, f"Seed {seed} does not fit in 128 bits"
    return True, None


def validate_bet_amount(amount: int, balance: int) -> tuple[bool, str | None]:
    """
    Validate bet amount is within bounds and affordable

    Args:
        amount: Wager in lamports
        balance: Player balance in lamports

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(amount, int) or isinstance(amount, bool):
        return False, f"Amount must be integer lamports, got {type(amount).__name__}"

    if amount <= 0:
        return False, f"Bet amount {amount} below minimum (must be positive)"

    if amount > U64_MAX:
        return False, f"Bet amount {amount} does not fit in 64 bits"

    min_bet = config.get("financial", "min_bet")
    max_bet = config.get("financial", "max_bet")
    if amount < min_bet:
        return False, f"Bet amount {format_lamports(amount)} below minimum {format_lamports(min_bet)}"

    if amount > max_bet:
        return False, f"Bet amount {format_lamports(amount)} exceeds maximum {format_lamports(max_bet)}"

    if amount > balance:
        return False, f"Insufficient balance: have {format_lamports(balance)}, need {format_lamports(amount)}"

    return True, None


def validate_vault_amount(amount: int) -> tuple[bool, str | None]:
    """Validate a vault deposit is a positive lamport amount that fits in 64 bits"""
    if not isinstance(amount, int) or isinstance(amount, bool):
        return False, f"Amount must be integer lamports, got {type(amount).__name__}"
    if amount <= 0:
        return False, f"Vault deposit {amount} must be positive"
    if amount > U64_MAX:
        return False, f"Vault deposit {amount} does not fit in 64 bits"
    return True, None


def validate_bet(seed: int, roll: int, amount: int, balance: int) -> tuple[bool, str | None]:
    """Validate all placement parameters"""
    for is_valid, error in (
        validate_seed(seed),
        validate_roll(roll),
        validate_bet_amount(amount, balance),
    ):
        if not is_valid:
            return False, error

    return True, None
