"""Signing keypairs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from vaultshare.core.addresses import Address, address_from_public_key
from vaultshare.core.crypto_utils import (
    derive_public_key_hex,
    generate_keypair_hex,
    keypair_from_seed,
    sign_message_hex,
)


@dataclass(frozen=True)
class Keypair:
    """A secp256k1 keypair and the ledger address it controls."""

    private_key: str = field(repr=False)
    public_key: str

    @classmethod
    def generate(cls) -> "Keypair":
        private_hex, public_hex = generate_keypair_hex()
        return cls(private_hex, public_hex)

    @classmethod
    def from_seed(cls, seed: Union[bytes, str]) -> "Keypair":
        if isinstance(seed, str):
            seed = seed.encode("utf-8")
        private_hex, public_hex = keypair_from_seed(seed)
        return cls(private_hex, public_hex)

    @classmethod
    def from_private_key(cls, private_hex: str) -> "Keypair":
        return cls(private_hex, derive_public_key_hex(private_hex))

    @property
    def address(self) -> Address:
        return address_from_public_key(self.public_key)

    def sign(self, message: bytes) -> str:
        return sign_message_hex(self.private_key, message)
