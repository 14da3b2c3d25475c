"""
Profit and refund share estimation.

Estimation reads one batch of records (passed as remaining accounts, usually
through the batch's record lookup table) and writes an immutable cache at a
derived address. Creating the cache is the only guard against
re-estimation: a second estimate for the same key fails because the address
is already in use.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Sequence

from vaultshare.core.addresses import associated_token_address
from vaultshare.core.transaction import AccountMeta
from vaultshare.program import events
from vaultshare.program.constants import (
    BP_DENOMINATOR,
    ESTIMATE_SOL_BASE,
    ESTIMATE_SOL_PER_RECIPIENT,
    MAX_ENTRIES_PER_BATCH,
    MAX_YEAR_INDEX,
    PERCENT_DENOMINATOR,
    U64_MAX,
)
from vaultshare.program.errors import ErrorCode, require
from vaultshare.program.pda import profit_cache_address, refund_cache_address
from vaultshare.program.state import (
    InvestmentInfo,
    InvestmentRecord,
    InvestmentType,
    ProfitEntry,
    ProfitShareCache,
    RefundEntry,
    RefundShareCache,
    refund_percentage,
)
from vaultshare.program.whitelist import verify_threshold

if TYPE_CHECKING:
    from vaultshare.program.processor import InstructionAccounts, VaultShareProgram

logger = logging.getLogger(__name__)


def estimate_sol_for(entry_count: int) -> int:
    """Native currency a payout of ``entry_count`` recipients may need.

    Covers the base fee, a per-entry fee, and provisioning every recipient
    token account in case none exists yet.
    """
    return ESTIMATE_SOL_BASE + entry_count * ESTIMATE_SOL_PER_RECIPIENT


def profit_entries(
    records: Sequence[InvestmentRecord], total_profit_usdt: int, total_invest_usdt: int, mint: str
) -> List[ProfitEntry]:
    """Basis-point shares of ``total_profit_usdt`` for every live record."""
    entries = []
    for record in records:
        if record.is_revoked:
            continue
        ratio_bp = record.amount_usdt * BP_DENOMINATOR // total_invest_usdt
        require(
            ratio_bp <= BP_DENOMINATOR,
            ErrorCode.BpRatioOverflow,
            record_id=record.record_id,
            ratio_bp=ratio_bp,
        )
        entries.append(
            ProfitEntry(
                account_id=record.account_id,
                wallet=record.wallet,
                amount_usdt=total_profit_usdt * ratio_bp // BP_DENOMINATOR,
                ratio_bp=ratio_bp,
                recipient_ata=associated_token_address(record.wallet, mint),
            )
        )
    return entries


def refund_entries(
    records: Sequence[InvestmentRecord], stage_ratio, year_index: int, mint: str
) -> List[RefundEntry]:
    entries = []
    for record in records:
        if record.is_revoked:
            continue
        percent = refund_percentage(stage_ratio, record.stage, year_index)
        entries.append(
            RefundEntry(
                account_id=record.account_id,
                wallet=record.wallet,
                amount_hcoin=record.amount_hcoin * percent // PERCENT_DENOMINATOR,
                stage=record.stage,
                recipient_ata=associated_token_address(record.wallet, mint),
            )
        )
    return entries


class ShareCacheEngine:
    """Handlers for estimate_profit_share and estimate_refund_share."""

    def __init__(self, program: "VaultShareProgram") -> None:
        self.program = program

    def _check_gates(self, ctx, accounts: "InstructionAccounts") -> InvestmentInfo:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(info.is_completed, ErrorCode.InvestmentInfoNotCompleted)
        verify_threshold(info.update_whitelist, accounts.signers)
        return info

    def _load_batch(
        self, ctx, info: InvestmentInfo, metas: Sequence[AccountMeta], batch_id: int
    ) -> List[InvestmentRecord]:
        require(len(metas) > 0, ErrorCode.NoRecordsInRemainingAccounts)
        require(
            len(metas) <= MAX_ENTRIES_PER_BATCH,
            ErrorCode.TooManyRecordsLoaded,
            loaded=len(metas),
        )
        records = {}
        for meta in metas:
            record = self.program.load_record(ctx, meta.address)
            require(
                record.investment_id == info.investment_id and record.version == info.version,
                ErrorCode.InvalidRecordPda,
            )
            require(record.batch_id == batch_id, ErrorCode.BatchIdMismatch, record_id=record.record_id)
            require(record.record_id not in records, ErrorCode.DuplicateRecord, record_id=record.record_id)
            records[record.record_id] = record
        return [records[record_id] for record_id in sorted(records)]

    def estimate_profit_share(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self._check_gates(ctx, accounts)
        require(info.investment_type == InvestmentType.STANDARD, ErrorCode.StandardOnly)
        mint = self.program.usdt_mint
        require(accounts["mint"] == mint, ErrorCode.InvalidTokenMint)
        require(args.total_invest_usdt > 0, ErrorCode.InvalidTotalUsdt)

        cache_address = profit_cache_address(
            self.program.program_id, info.investment_id, info.version, args.batch_id
        )
        require(accounts["cache"] == cache_address, ErrorCode.InvalidProfitCachePda)

        records = self._load_batch(ctx, info, accounts.remaining, args.batch_id)
        entries = profit_entries(records, args.total_profit_usdt, args.total_invest_usdt, mint)
        subtotal = sum(entry.amount_usdt for entry in entries)
        require(subtotal <= U64_MAX, ErrorCode.NumericalOverflow)

        now = ctx.clock.unix_timestamp
        cache = ProfitShareCache(
            batch_id=args.batch_id,
            investment_id=info.investment_id,
            version=info.version,
            mint=mint,
            subtotal_profit_usdt=subtotal,
            subtotal_estimate_sol=estimate_sol_for(len(entries)),
            created_at=now,
            entries=tuple(entries),
        )
        ctx.create_account(cache_address, self.program.program_id, cache)

        logger.info(
            "Profit share estimated",
            extra={
                "event": "share.profit_estimated",
                "batch_id": args.batch_id,
                "entries": len(entries),
                "subtotal": subtotal,
            },
        )
        ctx.emit(
            events.ProfitShareEstimated(
                investment_id=info.investment_id,
                version=info.version,
                batch_id=args.batch_id,
                subtotal_profit_usdt=subtotal,
                subtotal_estimate_sol=cache.subtotal_estimate_sol,
                entry_count=len(entries),
                created_at=now,
            )
        )

    def estimate_refund_share(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self._check_gates(ctx, accounts)
        mint = self.program.hcoin_mint
        require(accounts["mint"] == mint, ErrorCode.InvalidTokenMint)
        require(args.year_index <= MAX_YEAR_INDEX, ErrorCode.RefundPeriodInvalid, year_index=args.year_index)

        cache_address = refund_cache_address(
            self.program.program_id, info.investment_id, info.version, args.batch_id, args.year_index
        )
        require(accounts["cache"] == cache_address, ErrorCode.InvalidRefundCachePda)

        records = self._load_batch(ctx, info, accounts.remaining, args.batch_id)
        entries = refund_entries(records, info.stage_ratio, args.year_index, mint)
        subtotal = sum(entry.amount_hcoin for entry in entries)
        require(subtotal <= U64_MAX, ErrorCode.NumericalOverflow)

        now = ctx.clock.unix_timestamp
        cache = RefundShareCache(
            batch_id=args.batch_id,
            year_index=args.year_index,
            investment_id=info.investment_id,
            version=info.version,
            mint=mint,
            subtotal_refund_hcoin=subtotal,
            subtotal_estimate_sol=estimate_sol_for(len(entries)),
            created_at=now,
            entries=tuple(entries),
        )
        ctx.create_account(cache_address, self.program.program_id, cache)

        logger.info(
            "Refund share estimated",
            extra={
                "event": "share.refund_estimated",
                "batch_id": args.batch_id,
                "year_index": args.year_index,
                "entries": len(entries),
                "subtotal": subtotal,
            },
        )
        ctx.emit(
            events.RefundShareEstimated(
                investment_id=info.investment_id,
                version=info.version,
                batch_id=args.batch_id,
                year_index=args.year_index,
                subtotal_refund_hcoin=subtotal,
                subtotal_estimate_sol=cache.subtotal_estimate_sol,
                entry_count=len(entries),
                created_at=now,
            )
        )
