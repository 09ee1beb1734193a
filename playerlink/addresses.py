"""
Program-derived address helpers.

Pure functions only: nothing here touches the network or the profile store.
Seeds are always fixed-length (a sha256 digest of a string identity or a raw
32-byte public key), never raw user input.
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Optional

from solders.pubkey import Pubkey

PLAYER_SEED = b"player"
PLAYER_COBX_SEED = b"player_cobx"
CONFIG_SEED = b"config"

IDENTITY_SEED_LENGTH = 32


@dataclass(frozen=True)
class PlayerAddresses:
    """The account pair owned by one player identity."""

    seed: bytes
    player: Pubkey
    cobx_account: Pubkey


def hash_identity(user_id: str) -> bytes:
    """Return the 32-byte sha256 digest used as a web2 identity seed."""
    return hashlib.sha256(user_id.encode("utf-8")).digest()


def salted_identity(user_id: str, timestamp_ms: Optional[int] = None) -> str:
    """Append a millisecond timestamp to a user id."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{user_id}_{timestamp_ms}"


def web2_seed(user_id: str, timestamp_ms: Optional[int] = None, salted: bool = False) -> bytes:
    """
    Return the identity seed for a server-custodial user.

    Args:
        user_id: Off-chain user id
        timestamp_ms: Salt to use when ``salted`` is set (defaults to now)
        salted: Hash ``user_id`` with a timestamp suffix instead of the bare id

    Returns:
        32-byte seed
    """
    if salted:
        return hash_identity(salted_identity(user_id, timestamp_ms))
    return hash_identity(user_id)


def web3_seed(wallet_address: str) -> bytes:
    """Return the raw public key bytes of a wallet.

    Raises:
        ValueError: if ``wallet_address`` is not a base58 public key.
    """
    return bytes(Pubkey.from_string(wallet_address))


def derive(namespace_tag: bytes, seed: bytes, program_id: Pubkey) -> Pubkey:
    """Derive the program address for ``namespace_tag`` and an identity seed."""
    if len(seed) != IDENTITY_SEED_LENGTH:
        raise ValueError(f"identity seed must be {IDENTITY_SEED_LENGTH} bytes, got {len(seed)}")
    address, _bump = Pubkey.find_program_address([namespace_tag, seed], program_id)
    return address


def derive_config(program_id: Pubkey) -> Pubkey:
    """Derive the singleton program configuration address."""
    address, _bump = Pubkey.find_program_address([CONFIG_SEED], program_id)
    return address


def player_addresses(seed: bytes, program_id: Pubkey) -> PlayerAddresses:
    return PlayerAddresses(
        seed=seed,
        player=derive(PLAYER_SEED, seed, program_id),
        cobx_account=derive(PLAYER_COBX_SEED, seed, program_id),
    )
