"""
Instruction builders for the on-chain player program.

The program is an Anchor program: instruction data is the 8-byte method
discriminator followed by Borsh-encoded arguments.
"""

import hashlib
import struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID

from playerlink.addresses import PlayerAddresses


def discriminator(method: str) -> bytes:
    """Return the Anchor discriminator for a global instruction."""
    return hashlib.sha256(f"global:{method}".encode("utf-8")).digest()[:8]


def encode_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def encode_u8(value: int) -> bytes:
    return struct.pack("<B", value)


def initialize_web2_player(
    program_id: Pubkey,
    config: Pubkey,
    addresses: PlayerAddresses,
    cobx_mint: Pubkey,
    server: Pubkey,
    name: str,
    character_class: int,
) -> Instruction:
    """Create a player account and its cOBX account for a web2 identity."""
    data = (
        discriminator("initialize_web2_player")
        + encode_string(name)
        + encode_u8(character_class)
        + addresses.seed
    )
    accounts = [
        AccountMeta(config, is_signer=False, is_writable=False),
        AccountMeta(addresses.player, is_signer=False, is_writable=True),
        AccountMeta(addresses.cobx_account, is_signer=False, is_writable=True),
        AccountMeta(cobx_mint, is_signer=False, is_writable=False),
        AccountMeta(server, is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_2022_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)


def initialize_web3_player(
    program_id: Pubkey,
    config: Pubkey,
    addresses: PlayerAddresses,
    cobx_mint: Pubkey,
    wallet: Pubkey,
    server: Pubkey,
    name: str,
    character_class: int,
    wallet_signs: bool = False,
) -> Instruction:
    """
    Create a player account and its cOBX account for a wallet identity.

    The server is always a co-signer. When ``wallet_signs`` is set the wallet
    pays and signs (client-signing handoff); otherwise the server pays and the
    wallet is only referenced.
    """
    data = discriminator("initialize_web3_player") + encode_string(name) + encode_u8(character_class)
    accounts = [
        AccountMeta(config, is_signer=False, is_writable=False),
        AccountMeta(addresses.player, is_signer=False, is_writable=True),
        AccountMeta(addresses.cobx_account, is_signer=False, is_writable=True),
        AccountMeta(cobx_mint, is_signer=False, is_writable=False),
        AccountMeta(wallet, is_signer=wallet_signs, is_writable=wallet_signs),
        AccountMeta(server, is_signer=True, is_writable=not wallet_signs),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_2022_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, data, accounts)


def initialize_config(program_id: Pubkey, config: Pubkey, admin: Pubkey) -> Instruction:
    accounts = [
        AccountMeta(config, is_signer=False, is_writable=True),
        AccountMeta(admin, is_signer=True, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, discriminator("initialize_config"), accounts)


def create_token_account(payer: Pubkey, token_account: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    """Create a Token-2022 account for ``owner`` at ``token_account``."""
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(token_account, is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_2022_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(ASSOCIATED_TOKEN_PROGRAM_ID, bytes(), accounts)
