"""
Enumerations for bet lifecycle and settlement results
"""

from enum import Enum, IntEnum


class BetOutcome(str, Enum):
    """How a bet left the ledger"""

    WON = "won"
    LOST = "lost"
    REFUNDED = "refunded"

    @classmethod
    def from_roll(cls, outcome: int, roll: int) -> "BetOutcome":
        """Player wins iff the derived outcome is strictly below their roll"""
        return cls.WON if outcome < roll else cls.LOST


class InstructionKind(IntEnum):
    """Tag in the first byte of a dice program instruction's data"""

    INITIALIZE = 0
    PLACE_BET = 1
    RESOLVE_BET = 2
    REFUND_BET = 3
