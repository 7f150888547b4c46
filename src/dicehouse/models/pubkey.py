"""
Public key identity model
"""

import hashlib
from dataclasses import dataclass

import base58
from nacl.bindings import crypto_core_ed25519_is_valid_point

PUBKEY_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"


@dataclass(frozen=True)
class Pubkey:
    """
    32-byte ledger identity (account address, program id or signer key)

    Text form is base58, the same encoding wallets and explorers use.
    """

    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, (bytes, bytearray)):
            raise TypeError(f"Pubkey requires bytes, got {type(self.raw).__name__}")
        if len(self.raw) != PUBKEY_LENGTH:
            raise ValueError(f"Pubkey must be {PUBKEY_LENGTH} bytes, got {len(self.raw)}")
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_string(cls, value: str) -> "Pubkey":
        """Parse a base58 encoded key"""
        try:
            raw = base58.b58decode(value)
        except ValueError as e:
            raise ValueError(f"Invalid base58 key {value!r}: {e}")
        return cls(raw)

    @classmethod
    def default(cls) -> "Pubkey":
        """All-zero key (the system program address)"""
        return cls(bytes(PUBKEY_LENGTH))

    def to_bytes(self) -> bytes:
        return self.raw

    def is_on_curve(self) -> bool:
        """True if the bytes decode to a valid ed25519 point (i.e. could have a private key)"""
        return crypto_core_ed25519_is_valid_point(self.raw)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return base58.b58encode(self.raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Pubkey({self})"


def create_program_address(seeds: list[bytes], program_id: Pubkey) -> Pubkey:
    """
    Derive an address from seeds that no private key can sign for

    Raises:
        ValueError: If seeds are too long/many or the hash lands on the curve
    """
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"Too many seeds: {len(seeds)} > {MAX_SEEDS}")

    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"Seed exceeds {MAX_SEED_LENGTH} bytes: {len(seed)}")
        hasher.update(seed)
    hasher.update(program_id.to_bytes())
    hasher.update(PDA_MARKER)

    candidate = Pubkey(hasher.digest())
    if candidate.is_on_curve():
        raise ValueError("Derived address is on the ed25519 curve")
    return candidate


def find_program_address(seeds: list[bytes], program_id: Pubkey) -> tuple[Pubkey, int]:
    """
    Find the first off-curve address for seeds, searching bump 255 down to 0

    Returns:
        Tuple of (address, bump)
    """
    for bump in range(255, -1, -1):
        try:
            return create_program_address([*seeds, bytes([bump])], program_id), bump
        except ValueError:
            continue
    raise ValueError("Unable to find a viable program address bump")
