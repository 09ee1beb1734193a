"""
Unit tests for program-derived address helpers.
"""

import hashlib

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from playerlink.addresses import (
    CONFIG_SEED,
    PLAYER_COBX_SEED,
    PLAYER_SEED,
    derive,
    derive_config,
    hash_identity,
    player_addresses,
    salted_identity,
    web2_seed,
    web3_seed,
)

PROGRAM_ID = Keypair().pubkey()


class TestSeeds:
    def test_hash_identity_is_sha256_of_user_id(self):
        assert hash_identity("user-1") == hashlib.sha256(b"user-1").digest()

    def test_web2_seed_defaults_to_canonical(self):
        assert web2_seed("user-1") == hash_identity("user-1")
        assert web2_seed("user-1", timestamp_ms=1234) == hash_identity("user-1")

    def test_salted_seed_appends_timestamp(self):
        assert salted_identity("user-1", 1700000000000) == "user-1_1700000000000"
        assert web2_seed("user-1", timestamp_ms=1700000000000, salted=True) == hash_identity(
            "user-1_1700000000000"
        )

    def test_salted_seed_differs_from_canonical(self):
        assert web2_seed("user-1", timestamp_ms=5, salted=True) != web2_seed("user-1")

    def test_web3_seed_is_raw_public_key(self):
        wallet = Keypair().pubkey()
        assert web3_seed(str(wallet)) == bytes(wallet)

    def test_web3_seed_rejects_garbage(self):
        with pytest.raises(ValueError):
            web3_seed("not-a-key")


class TestDerive:
    def test_derive_is_deterministic(self):
        seed = hash_identity("user-1")
        assert derive(PLAYER_SEED, seed, PROGRAM_ID) == derive(PLAYER_SEED, seed, PROGRAM_ID)

    def test_different_seeds_give_different_addresses(self):
        first = derive(PLAYER_SEED, hash_identity("user-1"), PROGRAM_ID)
        second = derive(PLAYER_SEED, hash_identity("user-2"), PROGRAM_ID)
        assert first != second

    def test_namespaces_are_separate(self):
        seed = hash_identity("user-1")
        assert derive(PLAYER_SEED, seed, PROGRAM_ID) != derive(PLAYER_COBX_SEED, seed, PROGRAM_ID)

    def test_matches_find_program_address(self):
        seed = hash_identity("user-1")
        expected, _bump = Pubkey.find_program_address([PLAYER_SEED, seed], PROGRAM_ID)
        assert derive(PLAYER_SEED, seed, PROGRAM_ID) == expected

    def test_address_is_off_curve(self):
        address = derive(PLAYER_SEED, hash_identity("user-1"), PROGRAM_ID)
        assert not address.is_on_curve()

    def test_rejects_short_seed(self):
        with pytest.raises(ValueError, match="32 bytes"):
            derive(PLAYER_SEED, b"short", PROGRAM_ID)

    def test_config_address(self):
        expected, _bump = Pubkey.find_program_address([CONFIG_SEED], PROGRAM_ID)
        assert derive_config(PROGRAM_ID) == expected

    def test_player_addresses_pair(self):
        seed = hash_identity("user-1")
        addresses = player_addresses(seed, PROGRAM_ID)

        assert addresses.seed == seed
        assert addresses.player == derive(PLAYER_SEED, seed, PROGRAM_ID)
        assert addresses.cobx_account == derive(PLAYER_COBX_SEED, seed, PROGRAM_ID)
