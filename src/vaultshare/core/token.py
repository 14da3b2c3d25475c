"""
Token balances.

Mints and token accounts are plain ledger accounts owned by the token
program. Each owner holds one associated token account per mint, at an
address derived from ``(owner, mint)``; creating one costs the payer the
token-account rent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from vaultshare.core.addresses import Address, associated_token_address
from vaultshare.core.constants import (
    TOKEN_ACCOUNT_RENT_LAMPORTS,
    TOKEN_PROGRAM_ID,
    TOKEN_TRANSFER_COST,
)
from vaultshare.core.exceptions import (
    AccountAlreadyInUseError,
    AccountError,
    InsufficientFundsError,
    ProgramError,
)
from vaultshare.core.system import transfer_lamports
from vaultshare.core.transaction import AccountMeta, Instruction

logger = logging.getLogger(__name__)


@dataclass
class Mint:
    decimals: int
    mint_authority: Optional[Address] = None
    supply: int = 0


@dataclass
class TokenAccount:
    mint: Address
    owner: Address
    amount: int = 0


def load_mint(ctx, mint: Address) -> Mint:
    account = ctx.get(mint)
    if account is None or account.owner != TOKEN_PROGRAM_ID or not isinstance(account.data, Mint):
        raise AccountError(f"Account {mint} is not a token mint", details={"mint": mint})
    return account.data


def load_token_account(ctx, address: Address) -> TokenAccount:
    account = ctx.get(address)
    if account is None or account.owner != TOKEN_PROGRAM_ID or not isinstance(account.data, TokenAccount):
        raise AccountError(f"Account {address} is not a token account", details={"address": address})
    return account.data


def token_balance(ctx, address: Address) -> int:
    account = ctx.get(address)
    if account is None or not isinstance(account.data, TokenAccount):
        return 0
    return account.data.amount


def create_associated_token_account(
    ctx,
    payer: Address,
    owner: Address,
    mint: Address,
    idempotent: bool = True,
    signer_seeds: Optional[Sequence[bytes]] = None,
) -> Address:
    """Create ``owner``'s token account for ``mint`` if needed.

    Returns:
        The associated token account address

    Raises:
        AccountAlreadyInUseError: If the account exists and ``idempotent`` is False
    """
    address = associated_token_address(owner, mint)
    existing = ctx.get(address)
    if existing is not None:
        if not idempotent:
            raise AccountAlreadyInUseError(f"Token account {address} already in use")
        data = load_token_account(ctx, address)
        if data.mint != mint or data.owner != owner:
            raise AccountError(f"Token account {address} has unexpected mint or owner")
        return address

    load_mint(ctx, mint)
    ctx.create_account(address, TOKEN_PROGRAM_ID, TokenAccount(mint=mint, owner=owner))
    transfer_lamports(ctx, payer, address, TOKEN_ACCOUNT_RENT_LAMPORTS, signer_seeds)
    logger.debug(
        "Associated token account created",
        extra={"event": "token.ata_created", "address": address, "owner": owner, "mint": mint},
    )
    return address


def transfer_checked(
    ctx,
    source: Address,
    destination: Address,
    authority: Address,
    mint: Address,
    amount: int,
    decimals: int,
    signer_seeds: Optional[Sequence[bytes]] = None,
) -> None:
    """Move tokens between two accounts of the same mint.

    Raises:
        AccountError: Wrong mint, wrong decimals, or unauthorized authority
        InsufficientFundsError: Source balance below ``amount``
    """
    if amount < 0:
        raise ValueError("Token amount must not be negative")
    ctx.consume(TOKEN_TRANSFER_COST)
    mint_data = load_mint(ctx, mint)
    if mint_data.decimals != decimals:
        raise AccountError(f"Mint {mint} has {mint_data.decimals} decimals, not {decimals}")
    src = load_token_account(ctx, source)
    dst = load_token_account(ctx, destination)
    if src.mint != mint or dst.mint != mint:
        raise AccountError("Token account mint mismatch", details={"mint": mint})
    if src.owner != authority or not ctx.authorizes(authority, signer_seeds):
        raise AccountError(f"{authority} may not move tokens out of {source}")
    if not ctx.is_writable(source) or not ctx.is_writable(destination):
        raise AccountError("Token transfer accounts must be writable")
    if src.amount < amount:
        raise InsufficientFundsError(
            f"Insufficient token balance in {source}: have {src.amount}, need {amount}",
            details={"address": source, "balance": src.amount, "required": amount},
        )
    src.amount -= amount
    dst.amount += amount


def mint_to(ctx, mint: Address, destination: Address, authority: Address, amount: int) -> None:
    mint_data = load_mint(ctx, mint)
    if mint_data.mint_authority != authority or not ctx.authorizes(authority):
        raise AccountError(f"{authority} is not the mint authority of {mint}")
    dst = load_token_account(ctx, destination)
    if dst.mint != mint:
        raise AccountError("Token account mint mismatch", details={"mint": mint})
    mint_data.supply += amount
    dst.amount += amount


class TokenProgram:
    program_id = TOKEN_PROGRAM_ID

    def process(self, ctx) -> None:
        name = ctx.instruction.name
        accounts = [meta.address for meta in ctx.instruction.accounts]
        args = ctx.args
        if name == "create_associated_token_account":
            payer, _ata, owner, mint = accounts[:4]
            create_associated_token_account(ctx, payer, owner, mint, idempotent=args.get("idempotent", True))
        elif name == "transfer_checked":
            source, mint, destination, authority = accounts[:4]
            transfer_checked(ctx, source, destination, authority, mint, int(args["amount"]), int(args["decimals"]))
        elif name == "mint_to":
            mint, destination, authority = accounts[:3]
            mint_to(ctx, mint, destination, authority, int(args["amount"]))
        else:
            raise ProgramError("UnknownInstruction", f"Token program has no {name!r}")


def create_associated_token_account_instruction(
    payer: Address, owner: Address, mint: Address, idempotent: bool = True
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        "create_associated_token_account",
        [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(associated_token_address(owner, mint), is_writable=True),
            AccountMeta(owner),
            AccountMeta(mint),
        ],
        {"idempotent": idempotent},
    )


def transfer_checked_instruction(
    source: Address, mint: Address, destination: Address, authority: Address, amount: int, decimals: int
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        "transfer_checked",
        [
            AccountMeta(source, is_writable=True),
            AccountMeta(mint),
            AccountMeta(destination, is_writable=True),
            AccountMeta(authority, is_signer=True),
        ],
        {"amount": amount, "decimals": decimals},
    )


def mint_to_instruction(mint: Address, destination: Address, authority: Address, amount: int) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        "mint_to",
        [
            AccountMeta(mint, is_writable=True),
            AccountMeta(destination, is_writable=True),
            AccountMeta(authority, is_signer=True),
        ],
        {"amount": amount},
    )
