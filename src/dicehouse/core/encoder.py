"""
Canonical bet encoding

The house signs exactly these bytes off-ledger and the verifier compares
them byte for byte, so the layout is a fixed contract:

    player (32) | seed u128 LE (16) | slot u64 LE (8) | amount u64 LE (8) | roll u8 | bump u8
"""

from ..models.bet import Bet
from ..models.pubkey import PUBKEY_LENGTH, Pubkey
from .errors import MalformedPayload

BET_ENCODED_LENGTH = PUBKEY_LENGTH + 16 + 8 + 8 + 1 + 1


def encode_bet(bet: Bet) -> bytes:
    """Return the 66-byte canonical form of a bet"""
    return b"".join(
        (
            bet.player.to_bytes(),
            bet.seed.to_bytes(16, "little"),
            bet.slot.to_bytes(8, "little"),
            bet.amount.to_bytes(8, "little"),
            bytes([bet.roll, bet.bump]),
        )
    )


def decode_bet(data: bytes) -> Bet:
    """
    Parse a canonical encoding back into a Bet

    Raises:
        MalformedPayload: If data is not exactly one encoded bet
    """
    if len(data) != BET_ENCODED_LENGTH:
        raise MalformedPayload(
            f"Encoded bet must be {BET_ENCODED_LENGTH} bytes, got {len(data)}"
        )

    return Bet(
        player=Pubkey(data[0:32]),
        seed=int.from_bytes(data[32:48], "little"),
        slot=int.from_bytes(data[48:56], "little"),
        amount=int.from_bytes(data[56:64], "little"),
        roll=data[64],
        bump=data[65],
    )
