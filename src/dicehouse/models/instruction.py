"""
Instruction and Transaction models
"""

import struct
from dataclasses import dataclass, field

from .keypair import Keypair
from .pubkey import Pubkey


@dataclass(frozen=True)
class AccountMeta:
    """Account reference attached to an instruction"""

    pubkey: Pubkey
    is_signer: bool = False
    is_writable: bool = False


@dataclass(frozen=True)
class Instruction:
    """
    One invocation inside a transaction

    Attributes:
        program_id: Target identity that executes the instruction
        accounts: Account references the instruction declares
        data: Opaque payload interpreted by the target
    """

    program_id: Pubkey
    accounts: tuple[AccountMeta, ...] = ()
    data: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))

    def serialize(self) -> bytes:
        """Stable byte form used when signing a transaction"""
        parts = [self.program_id.to_bytes(), struct.pack("<H", len(self.accounts))]
        for meta in self.accounts:
            parts.append(meta.pubkey.to_bytes())
            parts.append(bytes([int(meta.is_signer), int(meta.is_writable)]))
        parts.append(struct.pack("<I", len(self.data)))
        parts.append(self.data)
        return b"".join(parts)


@dataclass
class Transaction:
    """
    Ordered batch of instructions executed as one atomic unit

    Signatures cover every instruction, so the envelope an engine reads is
    exactly the one the signers approved.
    """

    instructions: list[Instruction] = field(default_factory=list)
    signatures: dict[Pubkey, bytes] = field(default_factory=dict)

    def message_bytes(self) -> bytes:
        parts = [struct.pack("<H", len(self.instructions))]
        parts.extend(ix.serialize() for ix in self.instructions)
        return b"".join(parts)

    def sign(self, *keypairs: Keypair) -> "Transaction":
        message = self.message_bytes()
        for keypair in keypairs:
            self.signatures[keypair.pubkey] = keypair.sign(message)
        return self

    @property
    def signers(self) -> set[Pubkey]:
        return set(self.signatures)
