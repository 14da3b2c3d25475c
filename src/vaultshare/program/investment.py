"""
Investment lifecycle and investor records.

An investment is created once per (investment id, version) in the pending
state, collects records while pending, and is then completed and finally
deactivated. Records are grouped into batches of 30 by record id so that a
whole batch can be estimated and paid in one transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vaultshare.core.addresses import associated_token_address, is_valid_address
from vaultshare.core.token import create_associated_token_account
from vaultshare.program import events
from vaultshare.program.constants import ACCOUNT_ID_LEN, INVESTMENT_ID_LEN, MAX_STAGE, VERSION_LEN
from vaultshare.program.errors import ErrorCode, require
from vaultshare.program.pda import (
    investment_info_address,
    record_address,
    vault_address,
)
from vaultshare.program.state import (
    InvestmentInfo,
    InvestmentRecord,
    InvestmentState,
    batch_id_for,
    validate_stage_ratio,
)
from vaultshare.program.whitelist import (
    validate_signer_whitelist,
    validate_withdraw_whitelist,
    verify_threshold,
)

if TYPE_CHECKING:
    from vaultshare.program.processor import InstructionAccounts, VaultShareProgram

logger = logging.getLogger(__name__)


class InvestmentLedger:
    """Handlers for investment info and investment record instructions."""

    def __init__(self, program: "VaultShareProgram") -> None:
        self.program = program

    # ==================== Investment info ====================

    def initialize_investment_info(self, ctx, accounts: "InstructionAccounts", args) -> None:
        """Create the investment, its vault and the vault's token accounts.

        Any payer may initialize. A second initialization of the same
        (investment id, version) fails because the info address is taken.
        """
        program_id = self.program.program_id
        require(len(args.investment_id) == INVESTMENT_ID_LEN, ErrorCode.InvalidInvestmentIdLength)
        require(len(args.version) == VERSION_LEN, ErrorCode.InvalidVersionLength)
        validate_signer_whitelist(args.execute_whitelist)
        validate_signer_whitelist(args.update_whitelist)
        validate_withdraw_whitelist(args.withdraw_whitelist)
        validate_stage_ratio(args.stage_ratio)

        info_address = investment_info_address(program_id, args.investment_id, args.version)
        vault = vault_address(program_id, args.investment_id, args.version)
        require(accounts["investment_info"] == info_address, ErrorCode.InvalidInvestmentInfoPda)
        require(accounts["vault"] == vault, ErrorCode.InvalidVaultPda)
        require(accounts["usdt_mint"] == self.program.usdt_mint, ErrorCode.InvalidTokenMint)
        require(accounts["hcoin_mint"] == self.program.hcoin_mint, ErrorCode.InvalidTokenMint)
        require(
            accounts["vault_usdt_account"] == associated_token_address(vault, self.program.usdt_mint),
            ErrorCode.InvalidVaultAta,
        )
        require(
            accounts["vault_hcoin_account"] == associated_token_address(vault, self.program.hcoin_mint),
            ErrorCode.InvalidVaultAta,
        )

        now = ctx.clock.unix_timestamp
        info = InvestmentInfo(
            investment_id=args.investment_id,
            version=args.version,
            investment_type=args.investment_type,
            stage_ratio=[list(row) for row in args.stage_ratio],
            start_at=args.start_at,
            end_at=args.end_at,
            investment_upper_limit=args.investment_upper_limit,
            execute_whitelist=list(args.execute_whitelist),
            update_whitelist=list(args.update_whitelist),
            withdraw_whitelist=list(args.withdraw_whitelist),
            vault=vault,
            state=InvestmentState.PENDING,
            is_active=True,
            created_at=now,
        )
        ctx.create_account(info_address, program_id, info)
        if not ctx.exists(vault):
            ctx.create_account(vault, program_id)
        payer = accounts["payer"]
        create_associated_token_account(ctx, payer, vault, self.program.usdt_mint)
        create_associated_token_account(ctx, payer, vault, self.program.hcoin_mint)

        logger.info(
            "Investment initialized",
            extra={
                "event": "investment.initialized",
                "investment_id": args.investment_id.hex(),
                "version": args.version.hex(),
                "investment_type": args.investment_type.value,
            },
        )
        ctx.emit(
            events.InvestmentInfoInitialized(
                investment_id=info.investment_id,
                version=info.version,
                vault=vault,
                created_at=now,
            )
        )

    def update_investment_info(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(not info.is_completed, ErrorCode.InvestmentInfoHasCompleted)
        verify_threshold(info.update_whitelist, accounts.signers)

        if args.new_stage_ratio is not None:
            validate_stage_ratio(args.new_stage_ratio)
            info.stage_ratio = [list(row) for row in args.new_stage_ratio]
        if args.new_upper_limit is not None:
            info.investment_upper_limit = args.new_upper_limit

        ctx.emit(
            events.InvestmentUpdated(
                investment_id=info.investment_id,
                version=info.version,
                new_stage_ratio=(
                    tuple(tuple(row) for row in args.new_stage_ratio)
                    if args.new_stage_ratio is not None
                    else None
                ),
                new_upper_limit=args.new_upper_limit,
                signers=accounts.signers,
                updated_at=ctx.clock.unix_timestamp,
            )
        )

    def complete_investment_info(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(not info.is_completed, ErrorCode.InvestmentInfoHasCompleted)
        verify_threshold(info.update_whitelist, accounts.signers)

        info.state = InvestmentState.COMPLETED
        logger.info(
            "Investment completed",
            extra={"event": "investment.completed", "investment_id": info.investment_id.hex()},
        )
        ctx.emit(
            events.InvestmentInfoCompleted(
                investment_id=info.investment_id,
                version=info.version,
                signers=accounts.signers,
                completed_at=ctx.clock.unix_timestamp,
            )
        )

    def deactivate_investment_info(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(info.is_completed, ErrorCode.InvestmentInfoNotCompleted)
        verify_threshold(info.update_whitelist, accounts.signers)

        info.is_active = False
        logger.info(
            "Investment deactivated",
            extra={"event": "investment.deactivated", "investment_id": info.investment_id.hex()},
        )
        ctx.emit(
            events.InvestmentInfoDeactivated(
                investment_id=info.investment_id,
                version=info.version,
                signers=accounts.signers,
                deactivated_at=ctx.clock.unix_timestamp,
            )
        )

    # ==================== Investment records ====================

    def add_investment_record(self, ctx, accounts: "InstructionAccounts", args) -> None:
        """Register one investor position in its batch.

        Record ids must grow strictly; the batch id is implied by the record
        id, so no batch can ever hold more than 30 records.
        """
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(not info.is_completed, ErrorCode.InvestmentInfoHasCompleted)
        verify_threshold(info.update_whitelist, accounts.signers)

        require(len(args.account_id) == ACCOUNT_ID_LEN, ErrorCode.InvalidAccountIdLength)
        require(1 <= args.stage <= MAX_STAGE, ErrorCode.InvalidStage)
        require(is_valid_address(args.wallet), ErrorCode.InvalidRecipientAddress)
        require(
            args.batch_id == batch_id_for(args.record_id),
            ErrorCode.BatchIdMismatch,
            expected=batch_id_for(args.record_id),
        )
        require(
            args.record_id > info.last_record_id,
            ErrorCode.RecordIdNotIncreasing,
            last_record_id=info.last_record_id,
        )

        address = record_address(
            self.program.program_id,
            info.investment_id,
            info.version,
            args.batch_id,
            args.record_id,
            args.account_id,
        )
        require(accounts["investment_record"] == address, ErrorCode.InvalidRecordPda)

        now = ctx.clock.unix_timestamp
        record = InvestmentRecord(
            batch_id=args.batch_id,
            record_id=args.record_id,
            account_id=args.account_id,
            investment_id=info.investment_id,
            version=info.version,
            wallet=args.wallet,
            amount_usdt=args.amount_usdt,
            amount_hcoin=args.amount_hcoin,
            stage=args.stage,
            created_at=now,
        )
        ctx.create_account(address, self.program.program_id, record)
        info.last_record_id = args.record_id

        logger.debug(
            "Investment record added",
            extra={
                "event": "investment.record_added",
                "batch_id": args.batch_id,
                "record_id": args.record_id,
            },
        )
        ctx.emit(
            events.InvestmentRecordAdded(
                investment_id=info.investment_id,
                version=info.version,
                batch_id=args.batch_id,
                record_id=args.record_id,
                account_id=args.account_id,
                amount_usdt=args.amount_usdt,
                amount_hcoin=args.amount_hcoin,
                stage=args.stage,
                added_at=now,
            )
        )

    def update_investment_record_wallets(self, ctx, accounts: "InstructionAccounts", args) -> None:
        """Repoint every supplied record of ``account_id`` to ``new_wallet``."""
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        verify_threshold(info.update_whitelist, accounts.signers)
        require(len(args.account_id) == ACCOUNT_ID_LEN, ErrorCode.InvalidAccountIdLength)
        require(is_valid_address(args.new_wallet), ErrorCode.InvalidRecipientAddress)

        updated = 0
        for meta in accounts.remaining:
            record = self.program.load_record(ctx, meta.address)
            if (
                record.account_id != args.account_id
                or record.investment_id != info.investment_id
                or record.version != info.version
                or record.wallet == args.new_wallet
            ):
                continue
            record.wallet = args.new_wallet
            updated += 1

        require(updated > 0, ErrorCode.NoRecordsUpdated)
        logger.info(
            "Record wallets updated",
            extra={"event": "investment.wallets_updated", "updated": updated},
        )
        ctx.emit(
            events.InvestmentRecordWalletUpdated(
                investment_id=info.investment_id,
                version=info.version,
                account_id=args.account_id,
                new_wallet=args.new_wallet,
                updated_records=updated,
                updated_at=ctx.clock.unix_timestamp,
            )
        )

    def revoke_investment_record(self, ctx, accounts: "InstructionAccounts", args) -> None:
        info = self.program.load_investment_info(ctx, accounts["investment_info"])
        require(info.is_active, ErrorCode.InvestmentInfoDeactivated)
        require(info.is_completed, ErrorCode.InvestmentInfoNotCompleted)
        verify_threshold(info.update_whitelist, accounts.signers)

        address = accounts["investment_record"]
        require(ctx.exists(address), ErrorCode.InvestmentRecordNotFound)
        expected = record_address(
            self.program.program_id,
            info.investment_id,
            info.version,
            args.batch_id,
            args.record_id,
            args.account_id,
        )
        require(address == expected, ErrorCode.InvalidRecordPda)
        record = self.program.load_record(ctx, address)
        require(record.record_id == args.record_id, ErrorCode.RecordIdMismatch)
        require(record.account_id == args.account_id, ErrorCode.AccountIdMismatch)
        require(not record.is_revoked, ErrorCode.RecordAlreadyRevoked)

        now = ctx.clock.unix_timestamp
        record.revoked = True
        record.revoked_at = now
        logger.info(
            "Investment record revoked",
            extra={
                "event": "investment.record_revoked",
                "batch_id": record.batch_id,
                "record_id": record.record_id,
            },
        )
        ctx.emit(
            events.InvestmentRecordRevoked(
                investment_id=info.investment_id,
                version=info.version,
                batch_id=record.batch_id,
                record_id=record.record_id,
                account_id=record.account_id,
                revoked_at=now,
            )
        )
