"""
Share payouts.

Execution consumes a cache: it pays every entry from the vault's token
account, provisions missing recipient token accounts with vault lamports,
and marks the cache executed so it can never pay twice. Any failure rolls
back the whole batch.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Sequence, Tuple

from vaultshare.core import metrics
from vaultshare.core.addresses import Address, associated_token_address
from vaultshare.core.token import (
    create_associated_token_account,
    load_mint,
    token_balance,
    transfer_checked,
)
from vaultshare.program import events
from vaultshare.program.constants import MAX_YEAR_INDEX
from vaultshare.program.errors import ErrorCode, require
from vaultshare.program.pda import profit_cache_address, refund_cache_address, vault_seeds
from vaultshare.program.state import (
    InvestmentInfo,
    InvestmentType,
    ProfitShareCache,
    RefundShareCache,
)
from vaultshare.program.whitelist import verify_threshold

if TYPE_CHECKING:
    from vaultshare.program.processor import InstructionAccounts, VaultShareProgram

logger = logging.getLogger(__name__)

# (account_id, wallet, recipient token account, amount)
Payment = Tuple[bytes, Address, Address, int]


class DistributionExecutor:
    """Handlers for execute_profit_share and execute_refund_share."""

    def __init__(self, program: "VaultShareProgram") -> None:
        self.program = program

    def execute_profit_share(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(info.is_completed, ErrorCode.InvestmentInfoNotCompleted)
        require(info.investment_type == InvestmentType.STANDARD, ErrorCode.StandardOnly)
        mint = self.program.usdt_mint
        require(accounts["mint"] == mint, ErrorCode.InvalidTokenMint)

        cache_address = profit_cache_address(
            self.program.program_id, info.investment_id, info.version, args.batch_id
        )
        require(accounts["cache"] == cache_address, ErrorCode.InvalidProfitCachePda)
        cache_account = ctx.get(cache_address)
        require(
            cache_account is not None and isinstance(cache_account.data, ProfitShareCache),
            ErrorCode.ProfitCacheNotFound,
        )
        cache: ProfitShareCache = cache_account.data
        now = ctx.clock.unix_timestamp
        require(not cache.is_executed, ErrorCode.ProfitAlreadyExecuted)
        require(not cache.is_expired(now), ErrorCode.ProfitCacheExpired, created_at=cache.created_at)
        require(cache.subtotal_profit_usdt > 0, ErrorCode.InvalidTotalUsdt)
        verify_threshold(info.execute_whitelist, accounts.signers)

        payments = [
            (entry.account_id, entry.wallet, entry.recipient_ata, entry.amount_usdt)
            for entry in cache.entries
        ]
        total = self._pay(
            ctx, accounts, info, mint, cache.subtotal_profit_usdt, cache.subtotal_estimate_sol,
            payments, kind="profit", batch_id=args.batch_id,
        )
        cache_account.data = dataclasses.replace(cache, executed_at=now)

        logger.info(
            "Profit share executed",
            extra={"event": "share.profit_executed", "batch_id": args.batch_id, "total": total},
        )
        ctx.emit(
            events.ProfitShareExecuted(
                investment_id=info.investment_id,
                version=info.version,
                batch_id=args.batch_id,
                total_transferred_usdt=total,
                executed_at=now,
            )
        )

    def execute_refund_share(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(info.is_completed, ErrorCode.InvestmentInfoNotCompleted)
        require(args.year_index <= MAX_YEAR_INDEX, ErrorCode.RefundPeriodInvalid)
        mint = self.program.hcoin_mint
        require(accounts["mint"] == mint, ErrorCode.InvalidTokenMint)

        cache_address = refund_cache_address(
            self.program.program_id, info.investment_id, info.version, args.batch_id, args.year_index
        )
        require(accounts["cache"] == cache_address, ErrorCode.InvalidRefundCachePda)
        cache_account = ctx.get(cache_address)
        require(
            cache_account is not None and isinstance(cache_account.data, RefundShareCache),
            ErrorCode.RefundCacheNotFound,
        )
        cache: RefundShareCache = cache_account.data
        now = ctx.clock.unix_timestamp
        require(not cache.is_executed, ErrorCode.RefundAlreadyExecuted)
        require(not cache.is_expired(now), ErrorCode.RefundCacheExpired, created_at=cache.created_at)
        require(cache.subtotal_refund_hcoin > 0, ErrorCode.InvalidTotalH2coin)
        verify_threshold(info.execute_whitelist, accounts.signers)

        payments = [
            (entry.account_id, entry.wallet, entry.recipient_ata, entry.amount_hcoin)
            for entry in cache.entries
        ]
        total = self._pay(
            ctx, accounts, info, mint, cache.subtotal_refund_hcoin, cache.subtotal_estimate_sol,
            payments, kind="refund", batch_id=args.batch_id,
        )
        cache_account.data = dataclasses.replace(cache, executed_at=now)

        logger.info(
            "Refund share executed",
            extra={
                "event": "share.refund_executed",
                "batch_id": args.batch_id,
                "year_index": args.year_index,
                "total": total,
            },
        )
        ctx.emit(
            events.RefundShareExecuted(
                investment_id=info.investment_id,
                version=info.version,
                batch_id=args.batch_id,
                year_index=args.year_index,
                total_transferred_hcoin=total,
                executed_at=now,
            )
        )

    def _pay(
        self,
        ctx,
        accounts: "InstructionAccounts",
        info: InvestmentInfo,
        mint: Address,
        subtotal: int,
        estimate_sol: int,
        payments: Sequence[Payment],
        kind: str,
        batch_id: int,
    ) -> int:
        """Transfer every payment out of the vault and return the total paid."""
        vault = accounts["vault"]
        require(vault == info.vault, ErrorCode.InvalidVaultPda)
        vault_token_account = associated_token_address(vault, mint)
        require(accounts["vault_token_account"] == vault_token_account, ErrorCode.InvalidVaultAta)

        balance = token_balance(ctx, vault_token_account)
        require(
            balance >= subtotal,
            ErrorCode.InsufficientTokenBalance,
            f"Vault holds {balance} but the batch needs {subtotal}",
            balance=balance,
            required=subtotal,
        )
        vault_lamports = ctx.get(vault).lamports
        require(
            vault_lamports >= estimate_sol,
            ErrorCode.InsufficientSolBalance,
            f"Vault holds {vault_lamports} lamports but payout may need {estimate_sol}",
            balance=vault_lamports,
            required=estimate_sol,
        )
        supplied = {meta.address for meta in accounts.remaining}
        for _account_id, _wallet, recipient_ata, _amount in payments:
            require(
                recipient_ata in supplied,
                ErrorCode.MissingAssociatedTokenAccount,
                recipient_ata=recipient_ata,
            )

        seeds = vault_seeds(info.investment_id, info.version)
        decimals = load_mint(ctx, mint).decimals
        total = 0
        for account_id, wallet, recipient_ata, amount in payments:
            if amount == 0:
                continue
            create_associated_token_account(ctx, vault, wallet, mint, signer_seeds=seeds)
            transfer_checked(
                ctx, vault_token_account, recipient_ata, vault, mint, amount, decimals,
                signer_seeds=seeds,
            )
            total += amount
            ctx.emit(
                events.SharePaid(
                    kind=kind,
                    batch_id=batch_id,
                    account_id=account_id,
                    wallet=wallet,
                    recipient_ata=recipient_ata,
                    amount=amount,
                )
            )
        require(total == subtotal, ErrorCode.TotalShareMismatch, paid=total, subtotal=subtotal)

        metrics.record_distribution(kind, total)
        metrics.update_vault_balance(vault, mint, token_balance(ctx, vault_token_account))
        return total
