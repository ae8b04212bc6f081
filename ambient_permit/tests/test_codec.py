"""Tests for the canonical permit envelope codec."""

import struct

import pytest

from ambient_permit.exceptions import FieldOverflowError, MalformedEnvelopeError
from ambient_permit.models import (
    ClusterType,
    NoopAction,
    PermitActionType,
    ReplayModeType,
    SetLeverageAction,
)
from ambient_permit.permit.codec import (
    ACTION_DECODERS,
    ACTION_ENCODERS,
    REPLAY_MODE_DECODERS,
    REPLAY_MODE_ENCODERS,
    decode_permit_envelope,
    encode_permit_envelope,
)

from .factories import NOW_SECONDS, make_envelope

# Offsets inside a Noop/HlWindow envelope
ACTION_TAG_OFFSET = 67
RELAYER_FLAG_OFFSET = 86
NOOP_ENVELOPE_LENGTH = 95


class TestRoundTrip:
    """decode(encode(e)) == e for every variant."""

    def test_round_trip_all_variants(self, sample_envelopes):
        for envelope in sample_envelopes:
            assert decode_permit_envelope(encode_permit_envelope(envelope)) == envelope

    def test_encoding_is_deterministic(self, sample_envelopes):
        for envelope in sample_envelopes:
            assert encode_permit_envelope(envelope) == encode_permit_envelope(envelope)

    def test_equal_envelopes_encode_equal(self, program_id, keypair):
        a = make_envelope(program_id, keypair.public_key, NoopAction())
        b = make_envelope(program_id, keypair.public_key, NoopAction())
        assert a is not b
        assert encode_permit_envelope(a) == encode_permit_envelope(b)

    def test_distinct_envelopes_encode_differently(self, sample_envelopes):
        encoded = {encode_permit_envelope(e) for e in sample_envelopes}
        assert len(encoded) == len(sample_envelopes)


class TestLayout:
    """Byte layout matches the on-chain struct."""

    def test_noop_envelope_exact_bytes(self, program_id, keypair):
        envelope = make_envelope(program_id, keypair.public_key, NoopAction(), nonce=1234)

        expected = (
            program_id.to_bytes()
            + bytes([ClusterType.TESTNET, 1])
            + keypair.public_key.to_bytes()
            + bytes([0])                      # key type Ed25519
            + bytes([PermitActionType.NOOP])
            + bytes([ReplayModeType.HL_WINDOW, 128])
            + struct.pack("<qQ", NOW_SECONDS + 60, 1_000_000)
            + bytes([0])                      # no relayer
            + struct.pack("<Q", 1234)
        )
        assert encode_permit_envelope(envelope) == expected
        assert len(expected) == NOOP_ENVELOPE_LENGTH

    def test_place_payload_layout(self, sample_envelopes):
        data = encode_permit_envelope(sample_envelopes[0])
        payload = data[ACTION_TAG_OFFSET:]

        assert payload[0] == PermitActionType.PLACE
        assert struct.unpack_from("<Q", payload, 1)[0] == 1
        assert int.from_bytes(payload[9:25], "little") == 2 ** 100 + 7
        assert payload[25] == 0                        # bid
        assert struct.unpack_from("<Q", payload, 26)[0] == 21_000
        assert payload[34] == 1                        # price present
        assert struct.unpack_from("<Q", payload, 35)[0] == 131_425_000_000
        assert payload[43] == 0                        # IOC
        assert payload[44] == 0                        # reduce_only false
        assert payload[45] == 0                        # no trigger price
        assert payload[46] == 0                        # trigger type
        assert payload[47] == 0                        # no health floor
        assert payload[48] == ReplayModeType.HL_WINDOW

    def test_relayer_is_optional_pubkey(self, program_id, keypair, session_keypair):
        envelope = make_envelope(
            program_id, keypair.public_key, NoopAction(), relayer=session_keypair.public_key
        )
        data = encode_permit_envelope(envelope)
        assert len(data) == NOOP_ENVELOPE_LENGTH + 32
        assert data[RELAYER_FLAG_OFFSET] == 1
        assert data[RELAYER_FLAG_OFFSET + 1:RELAYER_FLAG_OFFSET + 33] == session_keypair.public_key.to_bytes()

    def test_negative_expiry_is_twos_complement(self, program_id, keypair):
        envelope = make_envelope(program_id, keypair.public_key, NoopAction()).model_copy(
            update={"expires_unix": -1}
        )
        data = encode_permit_envelope(envelope)
        assert data[70:78] == b"\xff" * 8
        assert decode_permit_envelope(data).expires_unix == -1


class TestMalformed:
    """Decoding rejects structurally invalid input."""

    @pytest.fixture
    def noop_bytes(self, program_id, keypair):
        return encode_permit_envelope(make_envelope(program_id, keypair.public_key, NoopAction()))

    def test_empty_input(self):
        with pytest.raises(MalformedEnvelopeError):
            decode_permit_envelope(b"")

    def test_truncated_input(self, sample_envelopes):
        for envelope in sample_envelopes:
            data = encode_permit_envelope(envelope)
            with pytest.raises(MalformedEnvelopeError):
                decode_permit_envelope(data[:-1])

    def test_every_prefix_is_rejected(self, noop_bytes):
        for cut in range(len(noop_bytes)):
            with pytest.raises(MalformedEnvelopeError):
                decode_permit_envelope(noop_bytes[:cut])

    def test_unknown_action_discriminant(self, noop_bytes):
        data = bytearray(noop_bytes)
        data[ACTION_TAG_OFFSET] = 9
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode_permit_envelope(bytes(data))
        assert exc_info.value.offset == ACTION_TAG_OFFSET

    def test_unknown_replay_mode_discriminant(self, noop_bytes):
        data = bytearray(noop_bytes)
        data[ACTION_TAG_OFFSET + 1] = 4
        with pytest.raises(MalformedEnvelopeError):
            decode_permit_envelope(bytes(data))

    def test_unknown_cluster(self, noop_bytes):
        data = bytearray(noop_bytes)
        data[32] = 4
        with pytest.raises(MalformedEnvelopeError):
            decode_permit_envelope(bytes(data))

    def test_invalid_option_flag(self, noop_bytes):
        data = bytearray(noop_bytes)
        data[RELAYER_FLAG_OFFSET] = 2
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            decode_permit_envelope(bytes(data))
        assert exc_info.value.offset == RELAYER_FLAG_OFFSET

    def test_invalid_bool_byte(self, sample_envelopes):
        data = bytearray(encode_permit_envelope(sample_envelopes[0]))
        data[ACTION_TAG_OFFSET + 44] = 2  # reduce_only
        with pytest.raises(MalformedEnvelopeError):
            decode_permit_envelope(bytes(data))

    def test_trailing_bytes(self, noop_bytes):
        with pytest.raises(MalformedEnvelopeError):
            decode_permit_envelope(noop_bytes + b"\x00")


class TestOverflow:
    """Values wider than their wire type fail to encode."""

    def test_leverage_bps_over_u16(self, program_id, keypair):
        action = SetLeverageAction(market_id=1, target_leverage_bps=70_000)
        envelope = make_envelope(program_id, keypair.public_key, action)
        with pytest.raises(FieldOverflowError) as exc_info:
            encode_permit_envelope(envelope)
        assert exc_info.value.bits == 16

    def test_negative_nonce(self, program_id, keypair):
        envelope = make_envelope(program_id, keypair.public_key, NoopAction(), nonce=-1)
        with pytest.raises(FieldOverflowError):
            encode_permit_envelope(envelope)


class TestDispatchTables:
    """Every discriminant has an encoder and a decoder."""

    def test_action_tables_cover_every_variant(self):
        assert set(ACTION_ENCODERS) == set(PermitActionType)
        assert set(ACTION_DECODERS) == set(PermitActionType)

    def test_replay_mode_tables_cover_every_variant(self):
        assert set(REPLAY_MODE_ENCODERS) == set(ReplayModeType)
        assert set(REPLAY_MODE_DECODERS) == set(ReplayModeType)
