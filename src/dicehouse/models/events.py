"""
Settlement Event Schemas

Payloads published on the event bus after a ledger transaction commits, and
the receipt returned to the caller of a resolution. Identities are carried
as base58 strings, amounts as integer lamports.

Schema Version: 1.0.0
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.lamports import lamports_to_sol
from .enums import BetOutcome


class SettlementEvent(BaseModel):
    """Common metadata for every settlement event"""

    house: str = Field(..., description="House public key (base58)")
    vault: str = Field(..., description="Vault address (base58)")
    slot: int = Field(..., ge=0, description="Ledger slot the transaction committed at")
    meta_ts: datetime = Field(default_factory=datetime.now)


class VaultFunded(SettlementEvent):
    amount: int = Field(..., ge=0, description="Lamports moved into the vault")
    vault_balance: int = Field(..., ge=0)


class BetPlaced(SettlementEvent):
    """
    Bet creation confirmation.

    Example payload:
    {
        "bet": "9x...",
        "player": "4Nd...",
        "seed": 7,
        "roll": 40,
        "amount": 1000000
    }
    """

    bet: str = Field(..., description="Bet account address")
    player: str = Field(..., description="Player public key")
    seed: int = Field(..., ge=0)
    roll: int = Field(..., ge=0, le=255)
    amount: int = Field(..., ge=0)
    message: str = Field(..., description="Hex of the canonical bytes the house must sign")


class ResolutionReceipt(SettlementEvent):
    """
    Result of a successful resolution.

    A loss is signalled by payout None (no transfer happened), never by a
    zero-value transfer.
    """

    bet: str
    player: str
    seed: int = Field(..., ge=0)
    roll: int = Field(..., ge=0, le=255)
    amount: int = Field(..., ge=0)
    outcome: int = Field(..., ge=0, lt=100, description="Roll derived from the house signature")
    result: BetOutcome
    payout: Optional[int] = Field(None, ge=0, description="Lamports sent to the player on a win")
    storage_refund: int = Field(..., ge=0, description="Lamports returned to the house on close")
    signature: str = Field(..., description="Hex of the house signature")

    @field_validator("signature")
    @classmethod
    def check_signature_hex(cls, v):
        if len(bytes.fromhex(v)) != 64:
            raise ValueError("signature must be 64 bytes of hex")
        return v

    @property
    def won(self) -> bool:
        return self.result == BetOutcome.WON

    @property
    def payout_sol(self) -> Decimal:
        return lamports_to_sol(self.payout or 0)


class BetResolved(ResolutionReceipt):
    pass


class BetRefunded(SettlementEvent):
    bet: str
    player: str
    seed: int = Field(..., ge=0)
    amount: int = Field(..., ge=0)
    placed_slot: int = Field(..., ge=0)
    storage_refund: int = Field(..., ge=0)


class ResolutionFailed(BaseModel):
    """Failed resolution attempt; the bet record is untouched."""

    house: str
    seed: int = Field(..., ge=0)
    error: str = Field(..., description="Error kind, e.g. SignerMismatch")
    code: Optional[int] = Field(None, description="Numeric error code when the engine raised it")
    reason: str
    meta_ts: datetime = Field(default_factory=datetime.now)
