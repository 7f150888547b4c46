"""
Signature-envelope verification

The native ed25519 primitive has already checked the signature
cryptographically by the time the dice program runs; what it cannot know is
*which* signature, key and message matter. This module ties the verified
entry to the house, the supplied signature and the bet being resolved.
"""

import logging

from ..models.keypair import SIGNATURE_LENGTH
from ..models.pubkey import PUBKEY_LENGTH, Pubkey
from .envelope import (
    ED25519_PROGRAM_ID,
    MIN_PAYLOAD_SIZE,
    ByteReader,
    InstructionsView,
    SignatureOffsets,
    read_signature_count,
)
from .errors import (
    EnvelopeUnavailable,
    MalformedPayload,
    MessageMismatch,
    NotVerificationPrimitive,
    SignatureMismatch,
    SignerMismatch,
    UnexpectedAccounts,
    WrongSignatureCount,
)

logger = logging.getLogger(__name__)


def verify_envelope(
    envelope: InstructionsView,
    signature: bytes,
    expected_signer: Pubkey,
    expected_message: bytes,
    index: int = 0,
) -> None:
    """
    Check that the envelope entry at index attests to signature by
    expected_signer over expected_message

    Pure: reads the envelope, moves nothing.

    Args:
        envelope: Instructions of the current transaction
        signature: 64-byte signature supplied with the resolution
        expected_signer: House public key
        expected_message: Canonical encoding of the bet
        index: Position of the primitive invocation in the transaction

    Raises:
        EnvelopeUnavailable, NotVerificationPrimitive, UnexpectedAccounts,
        MalformedPayload, WrongSignatureCount, SignatureMismatch,
        SignerMismatch, MessageMismatch
    """
    try:
        instruction = envelope.load_instruction_at(index)
    except LookupError as e:
        raise EnvelopeUnavailable(str(e))

    if instruction.program_id != ED25519_PROGRAM_ID:
        raise NotVerificationPrimitive(
            f"Instruction {index} targets {instruction.program_id}, expected {ED25519_PROGRAM_ID}"
        )

    if instruction.accounts:
        raise UnexpectedAccounts(
            f"Instruction {index} references {len(instruction.accounts)} account(s)"
        )

    reader = ByteReader(instruction.data)
    if len(reader) <= MIN_PAYLOAD_SIZE:
        raise MalformedPayload(
            f"Payload of {len(reader)} bytes, need more than {MIN_PAYLOAD_SIZE}"
        )

    count = read_signature_count(reader)
    if count != 1:
        raise WrongSignatureCount(f"Header declares {count} signatures")

    offsets = SignatureOffsets.parse(reader)
    if not offsets.references_only():
        raise MalformedPayload("Offsets must point into the verification instruction itself")

    embedded_signature = reader.slice(offsets.signature_offset, SIGNATURE_LENGTH)
    if embedded_signature != bytes(signature):
        raise SignatureMismatch()

    embedded_key = reader.slice(offsets.public_key_offset, PUBKEY_LENGTH)
    if embedded_key != expected_signer.to_bytes():
        raise SignerMismatch(f"Signed by {Pubkey(embedded_key)}, expected {expected_signer}")

    embedded_message = reader.slice(offsets.message_offset, offsets.message_size)
    if embedded_message != expected_message:
        raise MessageMismatch(
            f"Signed message of {len(embedded_message)} bytes does not encode this bet"
        )

    logger.debug(f"Envelope at index {index} verified for signer {expected_signer}")
