"""
Derived addresses of every vault share account.

Seed layouts are byte exact: identifiers are fixed width, batch ids are
2-byte little endian, record ids 8-byte little endian, year indexes 1 byte.
"""

from __future__ import annotations

from typing import List

from vaultshare.core.addresses import Address, derive_address


def investment_info_seeds(investment_id: bytes, version: bytes) -> List[bytes]:
    return [b"investment", investment_id, version]


def vault_seeds(investment_id: bytes, version: bytes) -> List[bytes]:
    return [b"vault", investment_id, version]


def record_seeds(
    investment_id: bytes, version: bytes, batch_id: int, record_id: int, account_id: bytes
) -> List[bytes]:
    return [
        b"record",
        investment_id,
        version,
        batch_id.to_bytes(2, "little"),
        record_id.to_bytes(8, "little"),
        account_id,
    ]


def profit_cache_seeds(investment_id: bytes, version: bytes, batch_id: int) -> List[bytes]:
    return [b"profit_cache", investment_id, version, batch_id.to_bytes(2, "little")]


def refund_cache_seeds(
    investment_id: bytes, version: bytes, batch_id: int, year_index: int
) -> List[bytes]:
    return [
        b"refund_cache",
        investment_id,
        version,
        batch_id.to_bytes(2, "little"),
        year_index.to_bytes(1, "little"),
    ]


def investment_info_address(program_id: Address, investment_id: bytes, version: bytes) -> Address:
    return derive_address(investment_info_seeds(investment_id, version), program_id)


def vault_address(program_id: Address, investment_id: bytes, version: bytes) -> Address:
    return derive_address(vault_seeds(investment_id, version), program_id)


def record_address(
    program_id: Address,
    investment_id: bytes,
    version: bytes,
    batch_id: int,
    record_id: int,
    account_id: bytes,
) -> Address:
    return derive_address(
        record_seeds(investment_id, version, batch_id, record_id, account_id), program_id
    )


def profit_cache_address(program_id: Address, investment_id: bytes, version: bytes, batch_id: int) -> Address:
    return derive_address(profit_cache_seeds(investment_id, version, batch_id), program_id)


def refund_cache_address(
    program_id: Address, investment_id: bytes, version: bytes, batch_id: int, year_index: int
) -> Address:
    return derive_address(
        refund_cache_seeds(investment_id, version, batch_id, year_index), program_id
    )
