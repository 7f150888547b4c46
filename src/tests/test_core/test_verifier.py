"""
Tests for signature-envelope verification

Soundness: every way an envelope can fail to attest to (house, signature,
bet) is rejected with its own error. Completeness: an honest envelope
always passes.
"""

import random
from dataclasses import replace

import pytest

from dicehouse.core.envelope import (
    ED25519_PROGRAM_ID,
    ByteReader,
    InstructionsView,
    SignatureOffsets,
    build_ed25519_instruction,
)
from dicehouse.core.errors import (
    DiceError,
    EnvelopeUnavailable,
    MalformedPayload,
    MessageMismatch,
    NotVerificationPrimitive,
    SignatureMismatch,
    SignerMismatch,
    UnexpectedAccounts,
    WrongSignatureCount,
)
from dicehouse.core.verifier import verify_envelope
from dicehouse.models import AccountMeta, Bet, Instruction, Keypair, Pubkey

PROGRAM = Pubkey(bytes([9]) * 32)


@pytest.fixture
def house():
    return Keypair.from_seed(bytes([1]) * 32)


@pytest.fixture
def message():
    bet = Bet(seed=5, player=Pubkey(bytes([2]) * 32), slot=3, amount=10**9, roll=50, bump=250)
    return bet.to_slice()


@pytest.fixture
def envelope_ix(house, message):
    return build_ed25519_instruction(house, message)


def view(*instructions):
    """Envelope followed by the resolving instruction"""
    return InstructionsView([*instructions, Instruction(PROGRAM, data=b"\x02")])


def with_data(ix, data):
    return Instruction(ix.program_id, ix.accounts, data)


def with_offsets(ix, **changes):
    reader = ByteReader(ix.data)
    offsets = replace(SignatureOffsets.parse(reader), **changes)
    return with_data(ix, ix.data[:2] + offsets.pack() + ix.data[16:])


class TestVerifyEnvelopeAccepts:
    """Completeness"""

    def test_honest_envelope(self, house, message, envelope_ix):
        verify_envelope(view(envelope_ix), house.sign(message), house.pubkey, message)

    @pytest.mark.parametrize("seed", range(20))
    def test_random_honest_envelopes(self, seed):
        """Any key over any non-empty message verifies"""
        rng = random.Random(seed)
        kp = Keypair.from_seed(bytes(rng.randrange(256) for _ in range(32)))
        msg = bytes(rng.randrange(256) for _ in range(rng.randrange(1, 300)))

        verify_envelope(view(build_ed25519_instruction(kp, msg)), kp.sign(msg), kp.pubkey, msg)

    def test_custom_index(self, house, message, envelope_ix):
        """The proof may sit at another position when asked for"""
        filler = Instruction(Pubkey(bytes([4]) * 32))
        verify_envelope(
            view(filler, envelope_ix), house.sign(message), house.pubkey, message, index=1
        )


class TestVerifyEnvelopeRejectsStructure:
    """Structural checks, in order"""

    def test_missing_instruction(self, house, message):
        with pytest.raises(EnvelopeUnavailable):
            verify_envelope(InstructionsView([]), house.sign(message), house.pubkey, message)

    def test_index_past_end(self, house, message, envelope_ix):
        with pytest.raises(EnvelopeUnavailable):
            verify_envelope(view(envelope_ix), house.sign(message), house.pubkey, message, index=5)

    def test_wrong_program(self, house, message, envelope_ix):
        """Same bytes addressed to another program are not a proof"""
        forged = Instruction(PROGRAM, (), envelope_ix.data)
        with pytest.raises(NotVerificationPrimitive):
            verify_envelope(view(forged), house.sign(message), house.pubkey, message)

    def test_resolve_instruction_first(self, house, message, envelope_ix):
        """Proof in the wrong position is rejected"""
        envelope = InstructionsView([Instruction(PROGRAM), envelope_ix])
        with pytest.raises(NotVerificationPrimitive):
            verify_envelope(envelope, house.sign(message), house.pubkey, message)

    def test_accounts_attached(self, house, message, envelope_ix):
        ix = Instruction(ED25519_PROGRAM_ID, (AccountMeta(house.pubkey),), envelope_ix.data)
        with pytest.raises(UnexpectedAccounts):
            verify_envelope(view(ix), house.sign(message), house.pubkey, message)

    @pytest.mark.parametrize("length", [0, 16, 111, 112])
    def test_payload_too_short(self, house, message, envelope_ix, length):
        ix = with_data(envelope_ix, envelope_ix.data[:length])
        with pytest.raises(MalformedPayload):
            verify_envelope(view(ix), house.sign(message), house.pubkey, message)

    def test_empty_message_payload_is_malformed(self, house):
        """Header plus key plus signature alone is exactly 112 bytes"""
        ix = build_ed25519_instruction(house, b"")
        with pytest.raises(MalformedPayload):
            verify_envelope(view(ix), house.sign(b""), house.pubkey, b"")

    @pytest.mark.parametrize("count", [0, 2, 255])
    def test_wrong_signature_count(self, house, message, envelope_ix, count):
        ix = with_data(envelope_ix, bytes([count]) + envelope_ix.data[1:])
        with pytest.raises(WrongSignatureCount):
            verify_envelope(view(ix), house.sign(message), house.pubkey, message)

    @pytest.mark.parametrize(
        "field",
        ["signature_instruction_index", "public_key_instruction_index", "message_instruction_index"],
    )
    def test_offsets_into_other_instruction(self, house, message, envelope_ix, field):
        ix = with_offsets(envelope_ix, **{field: 0})
        with pytest.raises(MalformedPayload):
            verify_envelope(view(ix), house.sign(message), house.pubkey, message)

    @pytest.mark.parametrize(
        "changes",
        [
            {"signature_offset": 0xFFF0},
            {"public_key_offset": 0xFFFF},
            {"message_offset": 0xFFFF},
            {"message_size": 0xFFFF},
        ],
    )
    def test_offsets_out_of_range(self, house, message, envelope_ix, changes):
        """Offsets past the payload fail cleanly instead of reading out of bounds"""
        ix = with_offsets(envelope_ix, **changes)
        with pytest.raises(MalformedPayload):
            verify_envelope(view(ix), house.sign(message), house.pubkey, message)


class TestVerifyEnvelopeRejectsMismatch:
    """Well-formed envelopes that attest to the wrong thing"""

    def test_different_signature_supplied(self, house, message, envelope_ix):
        other = house.sign(message + b"x")
        with pytest.raises(SignatureMismatch):
            verify_envelope(view(envelope_ix), other, house.pubkey, message)

    def test_short_signature_supplied(self, house, message, envelope_ix):
        with pytest.raises(SignatureMismatch):
            verify_envelope(view(envelope_ix), house.sign(message)[:63], house.pubkey, message)

    def test_signed_by_someone_else(self, house, message):
        """A valid signature by another key is not the house's"""
        impostor = Keypair.from_seed(bytes([66]) * 32)
        ix = build_ed25519_instruction(impostor, message)
        with pytest.raises(SignerMismatch):
            verify_envelope(view(ix), impostor.sign(message), house.pubkey, message)

    def test_signature_over_other_bet(self, house, message):
        """A house signature over a different bet cannot settle this one"""
        other_bet = Bet(seed=6, player=Pubkey(bytes([2]) * 32), slot=3, amount=10**9, roll=50, bump=250)
        ix = build_ed25519_instruction(house, other_bet.to_slice())
        with pytest.raises(MessageMismatch):
            verify_envelope(view(ix), house.sign(other_bet.to_slice()), house.pubkey, message)

    @pytest.mark.parametrize("position", range(0, 66, 5))
    def test_any_bet_byte_changed(self, house, message, envelope_ix, position):
        """The signed message must equal the bet encoding byte for byte"""
        expected = bytearray(message)
        expected[position] ^= 0x01
        with pytest.raises(MessageMismatch):
            verify_envelope(view(envelope_ix), house.sign(message), house.pubkey, bytes(expected))

    def test_message_prefix(self, house, message):
        """Signing a prefix of the bet bytes does not count"""
        ix = build_ed25519_instruction(house, message[:-1])
        with pytest.raises(MessageMismatch):
            verify_envelope(view(ix), house.sign(message[:-1]), house.pubkey, message)


class TestVerifyEnvelopeFuzz:
    """Seeded single-byte corruptions of an honest payload"""

    @pytest.mark.parametrize("seed", range(60))
    def test_corrupted_payload_rejected(self, house, message, envelope_ix, seed):
        rng = random.Random(seed)
        data = bytearray(envelope_ix.data)
        # byte 1 is padding and carries no meaning
        position = rng.choice([i for i in range(len(data)) if i != 1])
        data[position] ^= rng.randrange(1, 256)

        with pytest.raises(DiceError):
            verify_envelope(
                view(with_data(envelope_ix, bytes(data))),
                house.sign(message),
                house.pubkey,
                message,
            )

    @pytest.mark.parametrize("seed", range(10))
    def test_padding_byte_ignored(self, house, message, envelope_ix, seed):
        data = bytearray(envelope_ix.data)
        data[1] = random.Random(seed).randrange(256)

        verify_envelope(
            view(with_data(envelope_ix, bytes(data))), house.sign(message), house.pubkey, message
        )
