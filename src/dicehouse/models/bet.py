"""
Bet data model
"""

from dataclasses import dataclass
from typing import Any

from .pubkey import Pubkey

U8_MAX = 2**8 - 1
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1


@dataclass(frozen=True)
class Bet:
    """
    A wager recorded on the ledger, one per (vault, seed)

    The house signs this record's canonical bytes; the signature drives the
    roll. A bet is never updated, only created and then closed.

    Attributes:
        seed: Player-chosen nonce, part of the bet's address (u128)
        player: Wagering identity
        slot: Ledger slot at placement, starts the refund timeout (u64)
        amount: Wager in lamports (u64)
        roll: Win threshold, the player wins if outcome < roll (u8)
        bump: Address derivation bump (u8)
    """

    seed: int
    player: Pubkey
    slot: int
    amount: int
    roll: int
    bump: int

    def __post_init__(self):
        if not isinstance(self.player, Pubkey):
            raise TypeError(f"player must be a Pubkey, got {type(self.player).__name__}")
        for name, limit in (
            ("seed", U128_MAX),
            ("slot", U64_MAX),
            ("amount", U64_MAX),
            ("roll", U8_MAX),
            ("bump", U8_MAX),
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{name} must be an int, got {type(value).__name__}")
            if value < 0 or value > limit:
                raise ValueError(f"{name} {value} out of range [0, {limit}]")

    def to_slice(self) -> bytes:
        """Canonical bytes the house signs (see core.encoder)"""
        from ..core.encoder import encode_bet

        return encode_bet(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (keys as base58, integers as-is)"""
        return {
            "seed": self.seed,
            "player": str(self.player),
            "slot": self.slot,
            "amount": self.amount,
            "roll": self.roll,
            "bump": self.bump,
        }
