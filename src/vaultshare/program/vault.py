"""
Custodial vault.

The vault is a program-owned account at the investment's derived vault
address. It holds lamports for recipient provisioning and one token account
per accepted mint. Anyone may deposit; only a whitelisted recipient can
receive the end-of-lifecycle sweep, and only with execute-whitelist approval.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vaultshare.core import metrics
from vaultshare.core.addresses import associated_token_address
from vaultshare.core.system import transfer_lamports
from vaultshare.core.token import (
    create_associated_token_account,
    load_mint,
    token_balance,
    transfer_checked,
)
from vaultshare.program import events
from vaultshare.program.constants import VAULT_FEE_RESERVE
from vaultshare.program.errors import ErrorCode, require
from vaultshare.program.pda import vault_seeds
from vaultshare.program.whitelist import verify_threshold

if TYPE_CHECKING:
    from vaultshare.program.processor import InstructionAccounts, VaultShareProgram

logger = logging.getLogger(__name__)


class VaultCustodian:
    """Handlers for vault deposits and the whitelisted withdrawal."""

    def __init__(self, program: "VaultShareProgram") -> None:
        self.program = program

    def deposit_sol_to_vault(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(accounts["vault"] == info.vault, ErrorCode.InvalidVaultPda)
        depositor = accounts["payer"]

        transfer_lamports(ctx, depositor, info.vault, args.amount)
        logger.info(
            "Native deposit to vault",
            extra={"event": "vault.deposit_sol", "vault": info.vault, "amount": args.amount},
        )
        ctx.emit(
            events.VaultDepositSol(
                investment_id=info.investment_id,
                version=info.version,
                depositor=depositor,
                amount=args.amount,
                deposited_at=ctx.clock.unix_timestamp,
            )
        )

    def deposit_token_to_vault(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(accounts["vault"] == info.vault, ErrorCode.InvalidVaultPda)
        mint = accounts["mint"]
        require(mint in (self.program.usdt_mint, self.program.hcoin_mint), ErrorCode.InvalidTokenMint)
        vault_token_account = associated_token_address(info.vault, mint)
        require(accounts["vault_token_account"] == vault_token_account, ErrorCode.InvalidVaultAta)

        depositor = accounts["payer"]
        create_associated_token_account(ctx, depositor, info.vault, mint)
        transfer_checked(
            ctx,
            accounts["depositor_token_account"],
            vault_token_account,
            depositor,
            mint,
            args.amount,
            load_mint(ctx, mint).decimals,
        )
        metrics.update_vault_balance(info.vault, mint, token_balance(ctx, vault_token_account))

        logger.info(
            "Token deposit to vault",
            extra={
                "event": "vault.deposit_token",
                "vault": info.vault,
                "mint": mint,
                "amount": args.amount,
            },
        )
        ctx.emit(
            events.VaultDepositToken(
                investment_id=info.investment_id,
                version=info.version,
                depositor=depositor,
                mint=mint,
                amount=args.amount,
                deposited_at=ctx.clock.unix_timestamp,
            )
        )

    def withdraw_from_vault(self, ctx, accounts: "InstructionAccounts", args) -> None:
        """Sweep every token and all spare lamports to a withdraw-whitelist member.

        Allowed once the investment is completed, whether or not it has been
        deactivated. The vault keeps its fee reserve in lamports.
        """
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_completed, ErrorCode.InvestmentInfoNotCompleted)
        verify_threshold(info.execute_whitelist, accounts.signers)

        recipient = accounts["recipient"]
        require(len(info.withdraw_whitelist) > 0, ErrorCode.EmptyWhitelist)
        if recipient not in info.withdraw_whitelist:
            logger.warning(
                "Withdrawal to non-whitelisted recipient rejected",
                extra={"event": "vault.withdraw_rejected", "recipient": recipient},
            )
        require(recipient in info.withdraw_whitelist, ErrorCode.UnauthorizedRecipient)

        vault = info.vault
        require(accounts["vault"] == vault, ErrorCode.InvalidVaultPda)
        require(accounts["usdt_mint"] == self.program.usdt_mint, ErrorCode.InvalidTokenMint)
        require(accounts["hcoin_mint"] == self.program.hcoin_mint, ErrorCode.InvalidTokenMint)

        seeds = vault_seeds(info.investment_id, info.version)
        payer = accounts["payer"]
        moved = {}
        for mint, vault_key, recipient_key in (
            (self.program.usdt_mint, "vault_usdt_account", "recipient_usdt_account"),
            (self.program.hcoin_mint, "vault_hcoin_account", "recipient_hcoin_account"),
        ):
            vault_token_account = associated_token_address(vault, mint)
            recipient_token_account = associated_token_address(recipient, mint)
            require(accounts[vault_key] == vault_token_account, ErrorCode.InvalidVaultAta)
            require(accounts[recipient_key] == recipient_token_account, ErrorCode.InvalidRecipientAta)

            amount = token_balance(ctx, vault_token_account)
            moved[mint] = amount
            if amount == 0:
                continue
            create_associated_token_account(ctx, payer, recipient, mint)
            transfer_checked(
                ctx, vault_token_account, recipient_token_account, vault, mint, amount,
                load_mint(ctx, mint).decimals, signer_seeds=seeds,
            )
            metrics.update_vault_balance(vault, mint, 0)

        sol_amount = max(ctx.get(vault).lamports - VAULT_FEE_RESERVE, 0)
        if sol_amount:
            transfer_lamports(ctx, vault, recipient, sol_amount, signer_seeds=seeds)

        logger.info(
            "Vault swept to recipient",
            extra={
                "event": "vault.withdrawn",
                "recipient": recipient,
                "usdt": moved[self.program.usdt_mint],
                "hcoin": moved[self.program.hcoin_mint],
                "sol": sol_amount,
            },
        )
        ctx.emit(
            events.VaultTransferred(
                investment_id=info.investment_id,
                version=info.version,
                recipient=recipient,
                usdt_amount=moved[self.program.usdt_mint],
                hcoin_amount=moved[self.program.hcoin_mint],
                sol_amount=sol_amount,
                signers=accounts.signers,
                transferred_at=ctx.clock.unix_timestamp,
            )
        )
