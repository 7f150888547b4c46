"""
Engine error taxonomy

Every failure mode of a resolution has its own class and numeric code so
callers can tell a bad proof from an arithmetic fault from a transfer fault.
Codes start at 6000, the range custom program errors occupy on the ledger.
"""


class DiceError(Exception):
    """Base class for errors raised by the dice program"""

    code = 6000
    default_message = "Dice program error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return f"{self.kind} ({self.code}): {self.message}"


# ========================================================================
# ENVELOPE ERRORS - the verification proof is missing or malformed
# ========================================================================


class EnvelopeError(DiceError):
    """The caller did not supply a well-formed, correctly-targeted proof"""


class EnvelopeUnavailable(EnvelopeError):
    code = 6001
    default_message = "No instruction at the envelope index"


class NotVerificationPrimitive(EnvelopeError):
    code = 6002
    default_message = "Envelope entry is not addressed to the ed25519 primitive"


class UnexpectedAccounts(EnvelopeError):
    code = 6003
    default_message = "Envelope entry must not reference accounts"


class MalformedPayload(EnvelopeError):
    code = 6004
    default_message = "Envelope payload is malformed"


class WrongSignatureCount(EnvelopeError):
    code = 6005
    default_message = "Envelope must carry exactly one signature"


# ========================================================================
# MISMATCH ERRORS - a well-formed proof that attests to something else
# ========================================================================


class MismatchError(DiceError):
    """The proof is well-formed but does not cover this signature/house/bet"""


class SignatureMismatch(MismatchError):
    code = 6006
    default_message = "Verified signature differs from the supplied signature"


class SignerMismatch(MismatchError):
    code = 6007
    default_message = "Signature was not produced by the house"


class MessageMismatch(MismatchError):
    code = 6008
    default_message = "Signed message is not this bet"


# ========================================================================
# ARITHMETIC
# ========================================================================


class Overflow(DiceError):
    code = 6009
    default_message = "Arithmetic overflow"


# ========================================================================
# BET LIFECYCLE
# ========================================================================


class BetNotFound(DiceError):
    code = 6010
    default_message = "Bet record does not exist"


class TimeoutNotReached(DiceError):
    code = 6011
    default_message = "Refund timeout has not been reached"


class InvalidBet(DiceError):
    code = 6012
    default_message = "Bet parameters are invalid"


class HouseSignatureMissing(DiceError):
    code = 6013
    default_message = "The house must sign the resolution"
