"""
Signer whitelist governance.

Each investment carries three independent whitelists: execute (payouts,
withdrawals, withdraw-list edits), update (records and lifecycle) and
withdraw (sweep recipients). Execute and update lists always hold exactly
five members and authorize a call when at least three of them sign it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Sequence

from vaultshare.core.addresses import Address, is_valid_address
from vaultshare.program import events
from vaultshare.program.constants import MAX_WHITELIST_LEN, SIGNER_THRESHOLD
from vaultshare.program.errors import ErrorCode, VaultShareError, require

if TYPE_CHECKING:
    from vaultshare.program.processor import InstructionAccounts, VaultShareProgram

logger = logging.getLogger(__name__)


def verify_threshold(
    whitelist: Sequence[Address],
    signers: Iterable[Address],
    threshold: int = SIGNER_THRESHOLD,
) -> List[Address]:
    """Check that enough whitelist members signed.

    Args:
        whitelist: Execute or update whitelist
        signers: Addresses that signed the instruction
        threshold: Distinct members required

    Returns:
        The approving members, in whitelist order

    Raises:
        VaultShareError: WhitelistMustBeFive or UnauthorizedSigner
    """
    require(len(whitelist) == MAX_WHITELIST_LEN, ErrorCode.WhitelistMustBeFive)
    signer_set = set(signers)
    approvals = [member for member in whitelist if member in signer_set]
    if len(approvals) < threshold:
        logger.warning(
            "Whitelist threshold not met",
            extra={
                "event": "whitelist.threshold_not_met",
                "approvals": len(approvals),
                "threshold": threshold,
            },
        )
        raise VaultShareError(
            ErrorCode.UnauthorizedSigner,
            f"{len(approvals)} of {threshold} required whitelist signatures present",
            approvals=len(approvals),
        )
    return approvals


def validate_signer_whitelist(whitelist: Sequence[Address]) -> None:
    require(len(whitelist) == MAX_WHITELIST_LEN, ErrorCode.WhitelistMustBeFive)
    require(all(is_valid_address(a) for a in whitelist), ErrorCode.InvalidRecipientAddress)
    require(len(set(whitelist)) == len(whitelist), ErrorCode.WhitelistAddressExists)


def validate_withdraw_whitelist(wallets: Sequence[Address]) -> None:
    require(1 <= len(wallets) <= MAX_WHITELIST_LEN, ErrorCode.WhitelistLengthInvalid)
    require(all(is_valid_address(a) for a in wallets), ErrorCode.InvalidRecipientAddress)
    require(len(set(wallets)) == len(wallets), ErrorCode.WhitelistAddressExists)


def replace_member(whitelist: Sequence[Address], wallet_from: Address, wallet_to: Address) -> List[Address]:
    """Swap one member in place, keeping every other position.

    Raises:
        VaultShareError: WhitelistAddressExists when ``wallet_to`` is already a
            member (including ``wallet_from == wallet_to``),
            WhitelistAddressNotFound when ``wallet_from`` is not a member
    """
    require(is_valid_address(wallet_to), ErrorCode.InvalidRecipientAddress)
    require(wallet_from != wallet_to, ErrorCode.WhitelistAddressExists)
    require(wallet_from in whitelist, ErrorCode.WhitelistAddressNotFound)
    require(wallet_to not in whitelist, ErrorCode.WhitelistAddressExists)
    updated = list(whitelist)
    updated[updated.index(wallet_from)] = wallet_to
    return updated


class WhitelistGovernor:
    """Instruction handlers editing the three whitelists."""

    def __init__(self, program: "VaultShareProgram") -> None:
        self.program = program

    def patch_execute_whitelist(self, ctx, accounts: "InstructionAccounts", args) -> None:
        self._patch_member(ctx, accounts, args, kind="execute")

    def patch_update_whitelist(self, ctx, accounts: "InstructionAccounts", args) -> None:
        self._patch_member(ctx, accounts, args, kind="update")

    def _patch_member(self, ctx, accounts, args, kind: str) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        attribute = f"{kind}_whitelist"
        current = getattr(info, attribute)
        verify_threshold(current, accounts.signers)

        updated = replace_member(current, args.wallet_from, args.wallet_to)
        setattr(info, attribute, updated)

        logger.info(
            "Whitelist member replaced",
            extra={
                "event": "whitelist.member_replaced",
                "kind": kind,
                "wallet_from": args.wallet_from,
                "wallet_to": args.wallet_to,
            },
        )
        ctx.emit(
            events.WhitelistUpdated(
                investment_id=info.investment_id,
                version=info.version,
                kind=kind,
                wallet_from=args.wallet_from,
                wallet_to=args.wallet_to,
                signers=accounts.signers,
                updated_at=ctx.clock.unix_timestamp,
            )
        )

    def patch_withdraw_whitelist(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        verify_threshold(info.execute_whitelist, accounts.signers)
        validate_withdraw_whitelist(args.wallets)

        info.withdraw_whitelist = list(args.wallets)
        logger.info(
            "Withdraw whitelist replaced",
            extra={"event": "whitelist.withdraw_replaced", "size": len(args.wallets)},
        )
        ctx.emit(
            events.WithdrawWhitelistUpdated(
                investment_id=info.investment_id,
                version=info.version,
                wallets=tuple(args.wallets),
                signers=accounts.signers,
                updated_at=ctx.clock.unix_timestamp,
            )
        )
