"""
ed25519 keypair model
"""

from nacl.signing import SigningKey

from .pubkey import Pubkey

SIGNATURE_LENGTH = 64


class Keypair:
    """
    Signing identity for the house oracle and players

    Wraps a PyNaCl SigningKey. Signatures are deterministic: the same key
    signing the same message always yields the same 64 bytes.
    """

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self.pubkey = Pubkey(bytes(signing_key.verify_key))

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """Deterministic keypair from a 32-byte seed"""
        return cls(SigningKey(seed))

    @property
    def secret_key(self) -> bytes:
        """64-byte secret key (seed followed by public key)"""
        return bytes(self._signing_key) + self.pubkey.to_bytes()

    def sign(self, message: bytes) -> bytes:
        """Return the detached 64-byte signature over message"""
        return self._signing_key.sign(message).signature

    def __repr__(self) -> str:
        return f"Keypair({self.pubkey})"
