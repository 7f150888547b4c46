"""
Data models for the dice settlement engine
"""

from .bet import U8_MAX, U64_MAX, U128_MAX, Bet
from .enums import BetOutcome, InstructionKind
from .events import (
    BetPlaced,
    BetRefunded,
    BetResolved,
    ResolutionFailed,
    ResolutionReceipt,
    SettlementEvent,
    VaultFunded,
)
from .instruction import AccountMeta, Instruction, Transaction
from .keypair import SIGNATURE_LENGTH, Keypair
from .pubkey import PUBKEY_LENGTH, Pubkey, create_program_address, find_program_address

__all__ = [
    "Bet",
    "BetOutcome",
    "InstructionKind",
    "U8_MAX",
    "U64_MAX",
    "U128_MAX",
    # Identities
    "Pubkey",
    "PUBKEY_LENGTH",
    "Keypair",
    "SIGNATURE_LENGTH",
    "create_program_address",
    "find_program_address",
    # Envelope
    "AccountMeta",
    "Instruction",
    "Transaction",
    # Event payloads
    "SettlementEvent",
    "VaultFunded",
    "BetPlaced",
    "ResolutionReceipt",
    "BetResolved",
    "BetRefunded",
    "ResolutionFailed",
]
