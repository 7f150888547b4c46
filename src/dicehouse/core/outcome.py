"""
Outcome derivation from the house signature
"""

import hashlib

OUTCOME_RANGE = 100
_U128_MODULUS = 2**128


def derive_outcome(signature: bytes, outcome_range: int = OUTCOME_RANGE) -> int:
    """
    Fold the SHA-256 digest of a signature into [0, outcome_range)

    The digest's two 16-byte halves are read as little-endian u128 values,
    added with wraparound (mod 2**128), then reduced. Nobody can know the
    result before the house signs, and anyone can recompute it afterwards.
    """
    digest = hashlib.sha256(bytes(signature)).digest()
    lower = int.from_bytes(digest[:16], "little")
    upper = int.from_bytes(digest[16:], "little")
    return ((lower + upper) % _U128_MODULUS) % outcome_range
