"""Tests for program-derived record addresses."""

import hashlib

import pytest

from ambient_permit.auth.keypair import Keypair, PublicKey
from ambient_permit.chain.pda import (
    MAX_SEED_LENGTH,
    MAX_SEEDS,
    PDA_MARKER,
    PermitPdas,
    create_program_address,
    find_program_address,
    is_on_curve,
)
from ambient_permit.exceptions import FieldOverflowError, ValidationError


class TestCurveCheck:
    """is_on_curve() separates keys from derived addresses."""

    def test_real_public_keys_are_on_curve(self):
        for seed in (bytes(32), bytes(range(32)), bytes([0xFF] * 32)):
            assert is_on_curve(Keypair.from_seed(seed).public_key)

    def test_identity_point_is_on_curve(self):
        # y = 1
        assert is_on_curve(b"\x01" + bytes(31))

    def test_wrong_length(self):
        with pytest.raises(ValidationError):
            is_on_curve(bytes(31))


class TestKnownAddresses:
    """Fixed addresses shared with other ledger client libraries."""

    LOADER = PublicKey("BPFLoader1111111111111111111111111111111111")
    SEED_KEY = PublicKey("SeedPubey1111111111111111111111111111111111")

    @pytest.mark.parametrize("seeds,expected", [
        ([b"", bytes([1])], "3gF2KMe9KiC6FNVBmfg9i267aMPvK37FewCip4eGBFcT"),
        (["\u2609".encode("utf-8")], "7ytmC1nT1xY4RfxCV2ZgyA7UakC93do5ZdyhdF3EtPj7"),
        ([b"Talking", b"Squirrels"], "HwRVBufQ4haG5XSgpspwKtNd3PC9GM9m1196uJW36vds"),
    ])
    def test_create_program_address(self, seeds, expected):
        assert str(create_program_address(seeds, self.LOADER)) == expected

    def test_public_key_seed(self):
        address = create_program_address([self.SEED_KEY], self.LOADER)
        assert str(address) == "GUs5qLUfsEHkcMB9T38vjr18ypEhRuNWiePW2LoK4E3K"

    def test_known_off_curve_address(self):
        assert not is_on_curve(PublicKey("12rqwuEgBYiGhBrDJStCiqEtzQpTTiZbh7teNVLuYcFA"))

    def test_known_on_curve_key(self):
        # Ed25519 test vector 1 (RFC 8032)
        seed = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")
        public = bytes.fromhex("d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a")
        assert Keypair.from_seed(seed).public_key.to_bytes() == public
        assert is_on_curve(public)


class TestFindProgramAddress:
    """Canonical bump search."""

    def test_result_is_off_curve(self, program_id):
        address, bump = find_program_address([b"hello"], program_id)
        assert not is_on_curve(address)
        assert 0 <= bump <= 255

    def test_deterministic(self, program_id):
        assert find_program_address([b"a", b"b"], program_id) == find_program_address([b"a", b"b"], program_id)

    def test_matches_hash_definition(self, program_id):
        address, bump = find_program_address([b"seed"], program_id)
        digest = hashlib.sha256(b"seed" + bytes([bump]) + program_id.to_bytes() + PDA_MARKER).digest()
        assert address.to_bytes() == digest

    def test_bump_is_highest_off_curve(self, program_id):
        address, bump = find_program_address([b"seed"], program_id)
        for higher in range(bump + 1, 256):
            with pytest.raises(ValidationError):
                create_program_address([b"seed", bytes([higher])], program_id)
        assert create_program_address([b"seed", bytes([bump])], program_id) == address

    def test_seed_boundaries_matter(self, program_id):
        # Seeds are concatenated, so only the bytes matter
        joined, _ = find_program_address([b"ab"], program_id)
        split, _ = find_program_address([b"a", b"b"], program_id)
        assert joined == split

    def test_program_id_changes_address(self, program_id, keypair):
        a, _ = find_program_address([b"x"], program_id)
        b, _ = find_program_address([b"x"], keypair.public_key)
        assert a != b

    def test_public_key_seeds(self, program_id, keypair):
        as_key, _ = find_program_address([keypair.public_key], program_id)
        as_bytes, _ = find_program_address([keypair.public_key.to_bytes()], program_id)
        assert as_key == as_bytes


class TestSeedLimits:
    """Seed count and length limits."""

    def test_seed_too_long(self, program_id):
        with pytest.raises(ValidationError):
            find_program_address([bytes(MAX_SEED_LENGTH + 1)], program_id)

    def test_max_length_seed_ok(self, program_id):
        find_program_address([bytes(MAX_SEED_LENGTH)], program_id)

    def test_too_many_seeds_for_find(self, program_id):
        with pytest.raises(ValidationError):
            find_program_address([b"x"] * MAX_SEEDS, program_id)

    def test_too_many_seeds_for_create(self, program_id):
        with pytest.raises(ValidationError):
            create_program_address([b"x"] * (MAX_SEEDS + 1), program_id)

    def test_fifteen_seeds_ok(self, program_id):
        find_program_address([b"x"] * (MAX_SEEDS - 1), program_id)


class TestPermitPdas:
    """Record helpers."""

    def test_records_are_distinct(self, program_id, keypair, session_keypair):
        owner = keypair.public_key
        addresses = {
            PermitPdas.session_pda(program_id, owner, session_keypair.public_key)[0],
            PermitPdas.nonce_window_pda(program_id, owner)[0],
            PermitPdas.allowance_pda(program_id, owner, session_keypair.public_key, 1)[0],
            PermitPdas.used_nonce_pda(program_id, owner, bytes(32))[0],
            PermitPdas.per_order_pda(program_id, 1, owner, 1)[0],
        }
        assert len(addresses) == 5

    def test_session_pda_is_ordered(self, program_id, keypair, session_keypair):
        a = PermitPdas.session_pda(program_id, keypair.public_key, session_keypair.public_key)
        b = PermitPdas.session_pda(program_id, session_keypair.public_key, keypair.public_key)
        assert a != b

    def test_allowance_id_is_u64_le(self, program_id, keypair):
        owner = keypair.public_key
        via_helper = PermitPdas.allowance_pda(program_id, owner, owner, 258)
        direct = find_program_address(
            [b"allowance_v1.0", owner, owner, (258).to_bytes(8, "little")], program_id
        )
        assert via_helper == direct

    @pytest.mark.parametrize("allowance_id", [2 ** 63, 2 ** 64 - 1])
    def test_allowance_id_above_i64_range(self, program_id, keypair, allowance_id):
        owner = keypair.public_key
        via_helper = PermitPdas.allowance_pda(program_id, owner, owner, allowance_id)
        direct = find_program_address(
            [b"allowance_v1.0", owner, owner, allowance_id.to_bytes(8, "little")], program_id
        )
        assert via_helper == direct

    @pytest.mark.parametrize("allowance_id", [-1, 2 ** 64])
    def test_allowance_id_out_of_u64_range(self, program_id, keypair, allowance_id):
        with pytest.raises(FieldOverflowError):
            PermitPdas.allowance_pda(program_id, keypair.public_key, keypair.public_key, allowance_id)

    def test_per_order_pda_rejects_negative_ids(self, program_id, keypair):
        with pytest.raises(FieldOverflowError):
            PermitPdas.per_order_pda(program_id, 1, keypair.public_key, -1)

    def test_results_are_public_keys(self, program_id, keypair):
        address, bump = PermitPdas.nonce_window_pda(program_id, keypair.public_key)
        assert isinstance(address, PublicKey)
        assert isinstance(bump, int)
