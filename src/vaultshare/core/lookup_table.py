"""
Address lookup tables.

A table is an append-only list of up to 256 addresses that transactions can
reference by one-byte index instead of the full 32-byte key. Tables become
resolvable only once the slot has moved past their last extension, so
clients must poll before referencing a freshly built table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from vaultshare.core.addresses import Address, lookup_table_address
from vaultshare.core.constants import (
    ACCOUNT_LOAD_COST,
    LOOKUP_TABLE_MAX_ADDRESSES,
    LOOKUP_TABLE_PROGRAM_ID,
    MAX_RECENT_SLOT_AGE,
    SYSTEM_PROGRAM_ID,
)
from vaultshare.core.exceptions import LookupTableError, ProgramError
from vaultshare.core.transaction import AccountMeta, Instruction

logger = logging.getLogger(__name__)


@dataclass
class AddressLookupTable:
    authority: Optional[Address]
    last_extended_slot: int
    addresses: List[Address] = field(default_factory=list)
    deactivation_slot: Optional[int] = None

    def is_resolvable(self, current_slot: int, warmup_slots: int) -> bool:
        if self.deactivation_slot is not None:
            return False
        return current_slot >= self.last_extended_slot + warmup_slots


def _load_table(ctx, table: Address) -> AddressLookupTable:
    account = ctx.get(table)
    if account is None or account.owner != LOOKUP_TABLE_PROGRAM_ID:
        raise LookupTableError(f"Account {table} is not a lookup table")
    return account.data


class LookupTableProgram:
    program_id = LOOKUP_TABLE_PROGRAM_ID

    def process(self, ctx) -> None:
        name = ctx.instruction.name
        if name == "create_lookup_table":
            self._create(ctx)
        elif name == "extend_lookup_table":
            self._extend(ctx)
        elif name == "deactivate_lookup_table":
            self._deactivate(ctx)
        else:
            raise ProgramError("UnknownInstruction", f"Lookup table program has no {name!r}")

    def _create(self, ctx) -> None:
        table, authority, _payer = (meta.address for meta in ctx.instruction.accounts[:3])
        recent_slot = int(ctx.args["recent_slot"])
        if not ctx.is_signer(authority):
            raise LookupTableError("Lookup table authority must sign")
        if recent_slot > ctx.clock.slot or ctx.clock.slot - recent_slot > MAX_RECENT_SLOT_AGE:
            raise LookupTableError(f"Slot {recent_slot} is not a recent slot")
        if lookup_table_address(authority, recent_slot) != table:
            raise LookupTableError(f"Table address {table} does not match authority and slot")
        ctx.create_account(
            table,
            LOOKUP_TABLE_PROGRAM_ID,
            AddressLookupTable(authority=authority, last_extended_slot=ctx.clock.slot),
        )

    def _extend(self, ctx) -> None:
        table, authority = (meta.address for meta in ctx.instruction.accounts[:2])
        data = _load_table(ctx, table)
        if data.authority != authority or not ctx.is_signer(authority):
            raise LookupTableError(f"{authority} is not the authority of table {table}")
        if data.deactivation_slot is not None:
            raise LookupTableError(f"Lookup table {table} is deactivated")
        new_addresses = list(ctx.args["addresses"])
        if not new_addresses:
            raise LookupTableError("Extension must add at least one address")
        if len(data.addresses) + len(new_addresses) > LOOKUP_TABLE_MAX_ADDRESSES:
            raise LookupTableError(
                f"Lookup table {table} would exceed {LOOKUP_TABLE_MAX_ADDRESSES} addresses"
            )
        ctx.consume(ACCOUNT_LOAD_COST * len(new_addresses))
        data.addresses.extend(new_addresses)
        data.last_extended_slot = ctx.clock.slot

    def _deactivate(self, ctx) -> None:
        table, authority = (meta.address for meta in ctx.instruction.accounts[:2])
        data = _load_table(ctx, table)
        if data.authority != authority or not ctx.is_signer(authority):
            raise LookupTableError(f"{authority} is not the authority of table {table}")
        data.deactivation_slot = ctx.clock.slot


def create_lookup_table_instruction(
    authority: Address, payer: Address, recent_slot: int
) -> Tuple[Instruction, Address]:
    table = lookup_table_address(authority, recent_slot)
    ix = Instruction(
        LOOKUP_TABLE_PROGRAM_ID,
        "create_lookup_table",
        [
            AccountMeta(table, is_writable=True),
            AccountMeta(authority, is_signer=True),
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        {"recent_slot": recent_slot},
    )
    return ix, table


def extend_lookup_table_instruction(
    table: Address, authority: Address, payer: Address, addresses: Sequence[Address]
) -> Instruction:
    return Instruction(
        LOOKUP_TABLE_PROGRAM_ID,
        "extend_lookup_table",
        [
            AccountMeta(table, is_writable=True),
            AccountMeta(authority, is_signer=True),
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        {"addresses": list(addresses)},
    )


def deactivate_lookup_table_instruction(table: Address, authority: Address) -> Instruction:
    return Instruction(
        LOOKUP_TABLE_PROGRAM_ID,
        "deactivate_lookup_table",
        [AccountMeta(table, is_writable=True), AccountMeta(authority, is_signer=True)],
    )
