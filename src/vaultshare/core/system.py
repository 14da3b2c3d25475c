"""Native-currency movements."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from vaultshare.core.addresses import Address
from vaultshare.core.constants import SYSTEM_PROGRAM_ID
from vaultshare.core.exceptions import AccountError, InsufficientFundsError, ProgramError
from vaultshare.core.transaction import AccountMeta, Instruction

logger = logging.getLogger(__name__)


def transfer_lamports(
    ctx,
    source: Address,
    destination: Address,
    amount: int,
    signer_seeds: Optional[Sequence[bytes]] = None,
) -> None:
    """Move ``amount`` lamports from ``source`` to ``destination``.

    A system-owned source must authorize the move; a source owned by the
    calling program may be debited by that program directly.

    Raises:
        AccountError: If the source may not be debited by the caller
        InsufficientFundsError: If the source balance is too small
    """
    if amount < 0:
        raise ValueError("Lamport amount must not be negative")
    src = ctx.get(source)
    if src is None:
        raise InsufficientFundsError(f"Account {source} has no lamports")
    if src.owner == SYSTEM_PROGRAM_ID:
        if not ctx.authorizes(source, signer_seeds):
            raise AccountError(f"Transfer from {source} requires its signature")
    elif src.owner != ctx.program_id:
        raise AccountError(
            f"Program {ctx.program_id} cannot debit account {source} owned by {src.owner}"
        )
    if src.lamports < amount:
        raise InsufficientFundsError(
            f"Insufficient lamports in {source}: have {src.lamports}, need {amount}",
            details={"address": source, "balance": src.lamports, "required": amount},
        )
    if not ctx.is_writable(source) or not ctx.is_writable(destination):
        raise AccountError("Lamport transfer accounts must be writable")
    dst = ctx.get(destination) or ctx.ensure_system_account(destination)
    src.lamports -= amount
    dst.lamports += amount


class SystemProgram:
    program_id = SYSTEM_PROGRAM_ID

    def process(self, ctx) -> None:
        if ctx.instruction.name != "transfer":
            raise ProgramError("UnknownInstruction", f"System program has no {ctx.instruction.name!r}")
        source, destination = (meta.address for meta in ctx.instruction.accounts[:2])
        transfer_lamports(ctx, source, destination, int(ctx.args["lamports"]))


def transfer_instruction(source: Address, destination: Address, lamports: int) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        "transfer",
        [AccountMeta(source, is_signer=True, is_writable=True), AccountMeta(destination, is_writable=True)],
        {"lamports": lamports},
    )
