"""
Tests for the ed25519 envelope layout and builders
"""

import struct

import pytest

from dicehouse.core.envelope import (
    CURRENT_INSTRUCTION,
    DATA_START,
    ED25519_PROGRAM_ID,
    MIN_PAYLOAD_SIZE,
    ByteReader,
    InstructionsView,
    SignatureOffsets,
    build_ed25519_instruction,
    build_ed25519_instruction_with_signature,
    read_offsets,
    signature_from_instruction,
)
from dicehouse.core.errors import MalformedPayload
from dicehouse.models import Instruction, Keypair, Pubkey


@pytest.fixture
def signer():
    return Keypair.from_seed(bytes([3]) * 32)


class TestByteReader:
    """Tests for bounds-checked slicing"""

    def test_slice_in_range(self):
        reader = ByteReader(b"abcdef")
        assert reader.slice(2, 3) == b"cde"
        assert reader.slice(0, 6) == b"abcdef"
        assert reader.slice(6, 0) == b""

    @pytest.mark.parametrize("offset,length", [(5, 2), (7, 0), (0xFFFF, 64), (-1, 1)])
    def test_slice_out_of_range(self, offset, length):
        with pytest.raises(MalformedPayload):
            ByteReader(b"abcdef").slice(offset, length)

    def test_u16_little_endian(self):
        assert ByteReader(b"\x34\x12").u16(0) == 0x1234

    def test_u16_truncated(self):
        with pytest.raises(MalformedPayload):
            ByteReader(b"\x01").u16(0)


class TestSignatureOffsets:
    """Tests for the 14-byte offsets record"""

    def test_parse_pack(self):
        offsets = SignatureOffsets(48, 0xFFFF, 16, 0xFFFF, 112, 66, 0xFFFF)
        packed = offsets.pack()

        assert len(packed) == 14
        assert packed == struct.pack("<7H", 48, 0xFFFF, 16, 0xFFFF, 112, 66, 0xFFFF)
        assert SignatureOffsets.parse(ByteReader(b"\x01\x00" + packed)) == offsets

    def test_references_only(self):
        assert SignatureOffsets(48, 0xFFFF, 16, 0xFFFF, 112, 66, 0xFFFF).references_only()
        assert not SignatureOffsets(48, 0, 16, 0xFFFF, 112, 66, 0xFFFF).references_only()
        assert not SignatureOffsets(48, 0xFFFF, 16, 0xFFFF, 112, 66, 1).references_only()


class TestBuildEd25519Instruction:
    """Tests for the envelope builders"""

    def test_layout(self, signer):
        message = b"m" * 66
        ix = build_ed25519_instruction(signer, message)

        assert ix.program_id == ED25519_PROGRAM_ID
        assert ix.accounts == ()
        assert ix.data[0] == 1
        assert len(ix.data) == MIN_PAYLOAD_SIZE + len(message)

        offsets = read_offsets(ByteReader(ix.data))
        assert len(offsets) == 1
        record = offsets[0]
        assert record.public_key_offset == DATA_START == 16
        assert record.signature_offset == 48
        assert record.message_offset == 112
        assert record.message_size == 66
        assert record.references_only(CURRENT_INSTRUCTION)

        assert ix.data[16:48] == signer.pubkey.to_bytes()
        assert ix.data[48:112] == signer.sign(message)
        assert ix.data[112:] == message

    def test_signature_from_instruction(self, signer):
        ix = build_ed25519_instruction(signer, b"hello")
        assert signature_from_instruction(ix) == signer.sign(b"hello")

    def test_with_signature_rejects_short_signature(self, signer):
        with pytest.raises(ValueError):
            build_ed25519_instruction_with_signature(signer.pubkey, bytes(63), b"x")


class TestInstructionsView:
    """Tests for positional instruction access"""

    def test_load_instruction_at(self):
        ixs = [Instruction(Pubkey(bytes([i]) * 32)) for i in range(1, 4)]
        view = InstructionsView(ixs)

        assert len(view) == 3
        assert view.load_instruction_at(1) is ixs[1]

    @pytest.mark.parametrize("index", [3, -1, 100])
    def test_missing_index(self, index):
        view = InstructionsView([Instruction(ED25519_PROGRAM_ID)] * 3)
        with pytest.raises(LookupError):
            view.load_instruction_at(index)
