"""
ed25519 signature-envelope layout

Payload of an instruction addressed to the native ed25519 primitive
(little-endian throughout):

    0   u8   number of signatures
    1   u8   padding
    2   u16  signature offset            4   u16  signature instruction index
    6   u16  public key offset           8   u16  public key instruction index
    10  u16  message offset              12  u16  message size
    14  u16  message instruction index

followed by the data the offsets point at. Offsets come from whoever built
the transaction, so every slice goes through ByteReader, which reports a
MalformedPayload instead of reading past the buffer.
"""

import struct
from dataclasses import dataclass

from ..models.instruction import Instruction
from ..models.keypair import SIGNATURE_LENGTH, Keypair
from ..models.pubkey import PUBKEY_LENGTH, Pubkey
from .errors import MalformedPayload

ED25519_PROGRAM_ID = Pubkey.from_string("Ed25519SigVerify111111111111111111111111111")

HEADER_SIZE = 2
OFFSETS_SIZE = 14
OFFSETS_START = HEADER_SIZE
DATA_START = HEADER_SIZE + OFFSETS_SIZE
# header + one offsets record + signature + public key, message not included
MIN_PAYLOAD_SIZE = DATA_START + SIGNATURE_LENGTH + PUBKEY_LENGTH
CURRENT_INSTRUCTION = 0xFFFF


class ByteReader:
    """Bounds-checked, read-only view over untrusted bytes"""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    def __len__(self) -> int:
        return len(self._data)

    def slice(self, offset: int, length: int) -> bytes:
        """
        Return data[offset:offset + length]

        Raises:
            MalformedPayload: If the range is negative or runs past the end
        """
        if offset < 0 or length < 0 or offset + length > len(self._data):
            raise MalformedPayload(
                f"Range [{offset}, {offset + length}) outside payload of {len(self._data)} bytes"
            )
        return self._data[offset:offset + length]

    def u8(self, offset: int) -> int:
        return self.slice(offset, 1)[0]

    def u16(self, offset: int) -> int:
        return struct.unpack("<H", self.slice(offset, 2))[0]


@dataclass(frozen=True)
class SignatureOffsets:
    """One 14-byte offsets record"""

    signature_offset: int
    signature_instruction_index: int
    public_key_offset: int
    public_key_instruction_index: int
    message_offset: int
    message_size: int
    message_instruction_index: int

    @classmethod
    def parse(cls, reader: ByteReader, position: int = OFFSETS_START) -> "SignatureOffsets":
        return cls(*(reader.u16(position + 2 * i) for i in range(7)))

    def pack(self) -> bytes:
        return struct.pack(
            "<7H",
            self.signature_offset,
            self.signature_instruction_index,
            self.public_key_offset,
            self.public_key_instruction_index,
            self.message_offset,
            self.message_size,
            self.message_instruction_index,
        )

    def references_only(self, index: int = CURRENT_INSTRUCTION) -> bool:
        """True if all three slices live in the instruction at index"""
        return (
            self.signature_instruction_index == index
            and self.public_key_instruction_index == index
            and self.message_instruction_index == index
        )


class InstructionsView:
    """Read access to the instructions of the transaction being executed"""

    def __init__(self, instructions: list[Instruction]):
        self._instructions = tuple(instructions)

    def __len__(self) -> int:
        return len(self._instructions)

    def load_instruction_at(self, index: int) -> Instruction:
        """
        Raises:
            LookupError: If there is no instruction at index
        """
        if index < 0 or index >= len(self._instructions):
            raise LookupError(f"No instruction at index {index} (have {len(self._instructions)})")
        return self._instructions[index]


def read_signature_count(reader: ByteReader) -> int:
    return reader.u8(0)


def read_offsets(reader: ByteReader) -> list[SignatureOffsets]:
    """Parse every offsets record the header declares"""
    count = read_signature_count(reader)
    return [
        SignatureOffsets.parse(reader, OFFSETS_START + i * OFFSETS_SIZE) for i in range(count)
    ]


def build_ed25519_instruction(keypair: Keypair, message: bytes) -> Instruction:
    """
    Sign message with keypair and wrap it in a primitive invocation

    Layout: header, one offsets record, public key at 16, signature at 48,
    message at 112. This is what the house attaches as the first instruction
    of a resolution transaction.
    """
    signature = keypair.sign(message)
    return build_ed25519_instruction_with_signature(keypair.pubkey, signature, message)


def build_ed25519_instruction_with_signature(
    public_key: Pubkey, signature: bytes, message: bytes
) -> Instruction:
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")

    public_key_offset = DATA_START
    signature_offset = public_key_offset + PUBKEY_LENGTH
    message_offset = signature_offset + SIGNATURE_LENGTH
    if message_offset + len(message) > 0xFFFF:
        raise ValueError(f"Message too long for a 16-bit offset: {len(message)} bytes")

    offsets = SignatureOffsets(
        signature_offset=signature_offset,
        signature_instruction_index=CURRENT_INSTRUCTION,
        public_key_offset=public_key_offset,
        public_key_instruction_index=CURRENT_INSTRUCTION,
        message_offset=message_offset,
        message_size=len(message),
        message_instruction_index=CURRENT_INSTRUCTION,
    )
    data = b"".join(
        (
            bytes([1, 0]),
            offsets.pack(),
            public_key.to_bytes(),
            signature,
            message,
        )
    )
    return Instruction(program_id=ED25519_PROGRAM_ID, accounts=(), data=data)


def signature_from_instruction(instruction: Instruction) -> bytes:
    """Extract the first embedded signature (what the house passes to resolve)"""
    reader = ByteReader(instruction.data)
    offsets = SignatureOffsets.parse(reader)
    return reader.slice(offsets.signature_offset, SIGNATURE_LENGTH)
