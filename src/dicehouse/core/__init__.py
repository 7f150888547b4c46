"""Core module - settlement engine, ledger and bet lifecycle"""

from . import validators
from .dice_game import DiceGame
from .encoder import BET_ENCODED_LENGTH, decode_bet, encode_bet
from .envelope import (
    ED25519_PROGRAM_ID,
    InstructionsView,
    build_ed25519_instruction,
    build_ed25519_instruction_with_signature,
    signature_from_instruction,
)
from .errors import (
    BetNotFound,
    DiceError,
    EnvelopeError,
    EnvelopeUnavailable,
    HouseSignatureMissing,
    InvalidBet,
    MalformedPayload,
    MessageMismatch,
    MismatchError,
    NotVerificationPrimitive,
    Overflow,
    SignatureMismatch,
    SignerMismatch,
    TimeoutNotReached,
    UnexpectedAccounts,
    WrongSignatureCount,
)
from .ledger import Account, Ledger, LedgerError, TransactionContext
from .outcome import derive_outcome
from .settlement import compute_payout, settle
from .verifier import verify_envelope

__all__ = [
    "Account",
    "BET_ENCODED_LENGTH",
    "BetNotFound",
    "DiceError",
    "DiceGame",
    "ED25519_PROGRAM_ID",
    "EnvelopeError",
    "EnvelopeUnavailable",
    "HouseSignatureMissing",
    "InstructionsView",
    "InvalidBet",
    "Ledger",
    "LedgerError",
    "MalformedPayload",
    "MessageMismatch",
    "MismatchError",
    "NotVerificationPrimitive",
    "Overflow",
    "SignatureMismatch",
    "SignerMismatch",
    "TimeoutNotReached",
    "TransactionContext",
    "UnexpectedAccounts",
    "WrongSignatureCount",
    "build_ed25519_instruction",
    "build_ed25519_instruction_with_signature",
    "compute_payout",
    "decode_bet",
    "derive_outcome",
    "encode_bet",
    "settle",
    "signature_from_instruction",
    "validators",
    "verify_envelope",
]
