"""
Ledger addresses.

Every address is 32 bytes rendered in base58. Key addresses hash the
compressed public key; derived addresses hash a seed tuple together with
the owning program id, so a program can "sign" for them without a key.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

import base58

from vaultshare.core.constants import (
    ADDRESS_SIZE,
    ASSOCIATED_TOKEN_PROGRAM_ID,
    LOOKUP_TABLE_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)

Address = str

MAX_SEEDS = 16
MAX_SEED_LEN = 32
_DERIVED_MARKER = b"ProgramDerivedAddress"


def address_from_bytes(raw: bytes) -> Address:
    if len(raw) != ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(raw)}")
    return base58.b58encode(raw).decode("ascii")


def address_to_bytes(address: Address) -> bytes:
    try:
        raw = base58.b58decode(address)
    except ValueError as exc:
        raise ValueError(f"Invalid base58 address: {address!r}") from exc
    if len(raw) != ADDRESS_SIZE:
        raise ValueError(f"Address must decode to {ADDRESS_SIZE} bytes: {address!r}")
    return raw


def is_valid_address(address: object) -> bool:
    if not isinstance(address, str) or not address:
        return False
    try:
        address_to_bytes(address)
    except ValueError:
        return False
    return True


def address_from_public_key(public_hex: str) -> Address:
    return address_from_bytes(hashlib.sha256(bytes.fromhex(public_hex)).digest())


def derive_address(seeds: Sequence[bytes], program_id: Address) -> Address:
    """Derive the deterministic address for ``seeds`` under ``program_id``.

    Args:
        seeds: Up to 16 byte strings of at most 32 bytes each
        program_id: Owning program

    Returns:
        Base58 address

    Raises:
        ValueError: If the seed tuple is malformed
    """
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"At most {MAX_SEEDS} seeds allowed")
    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"Seed longer than {MAX_SEED_LEN} bytes: {seed!r}")
        hasher.update(seed)
    hasher.update(address_to_bytes(program_id))
    hasher.update(_DERIVED_MARKER)
    return address_from_bytes(hasher.digest())


def associated_token_address(owner: Address, mint: Address) -> Address:
    """Token account address for ``owner`` holding ``mint``."""
    return derive_address(
        [address_to_bytes(owner), address_to_bytes(TOKEN_PROGRAM_ID), address_to_bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )


def lookup_table_address(authority: Address, recent_slot: int) -> Address:
    return derive_address(
        [address_to_bytes(authority), recent_slot.to_bytes(8, "little")],
        LOOKUP_TABLE_PROGRAM_ID,
    )
