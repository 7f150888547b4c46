"""
dicehouse - trust-minimized dice bet settlement

The house commits to a bet's outcome by signing it; the engine verifies that
signature through the transaction's ed25519 envelope, derives the roll from
it and settles atomically on the ledger.
"""

__version__ = "0.1.0"
