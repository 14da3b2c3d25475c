"""
Vault share program entry point.

Maps each instruction name to its account layout, argument model and
handler, resolves named accounts, and validates arguments before handing
off to the component that owns the operation.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Tuple, Type

from pydantic import BaseModel

from vaultshare.core import config
from vaultshare.core.addresses import Address
from vaultshare.core.transaction import AccountMeta
from vaultshare.program import schemas
from vaultshare.program.distribution import DistributionExecutor
from vaultshare.program.errors import ErrorCode, VaultShareError, require
from vaultshare.program.instructions import LAYOUTS, AccountSpec
from vaultshare.program.investment import InvestmentLedger
from vaultshare.program.pda import investment_info_address, record_address
from vaultshare.program.share_cache import ShareCacheEngine
from vaultshare.program.state import InvestmentInfo, InvestmentRecord
from vaultshare.program.vault import VaultCustodian
from vaultshare.program.whitelist import WhitelistGovernor

logger = logging.getLogger(__name__)


class InstructionAccounts:
    """Named accounts, approving signers and remaining accounts of one instruction."""

    def __init__(self, metas: List[AccountMeta], layout: Tuple[AccountSpec, ...]) -> None:
        require(len(metas) >= len(layout), ErrorCode.MissingAccount, expected=len(layout))
        self.named: Dict[str, Address] = {}
        for spec, meta in zip(layout, metas):
            require(
                meta.is_signer or not spec.signer,
                ErrorCode.UnauthorizedSigner,
                f"{spec.name} must sign",
            )
            require(
                meta.is_writable or not spec.writable,
                ErrorCode.MissingAccount,
                f"{spec.name} must be writable",
            )
            self.named[spec.name] = meta.address
        self.signers: Tuple[Address, ...] = tuple(
            dict.fromkeys(meta.address for meta in metas if meta.is_signer)
        )
        self.remaining: List[AccountMeta] = [
            meta for meta in metas[len(layout):] if not meta.is_signer
        ]

    def __getitem__(self, name: str) -> Address:
        return self.named[name]


Handler = Callable[..., None]


class VaultShareProgram:
    """The vault share program as hosted by a ledger.

    Args:
        program_id: Address the program is deployed at
        usdt_mint: Mint accepted for profit payouts
        hcoin_mint: Mint accepted for refund payouts
    """

    def __init__(
        self,
        program_id: Address = config.PROGRAM_ID,
        usdt_mint: Address = config.USDT_MINT,
        hcoin_mint: Address = config.HCOIN_MINT,
    ) -> None:
        self.program_id = program_id
        self.usdt_mint = usdt_mint
        self.hcoin_mint = hcoin_mint

        self.governor = WhitelistGovernor(self)
        self.investments = InvestmentLedger(self)
        self.share_cache = ShareCacheEngine(self)
        self.custodian = VaultCustodian(self)
        self.distributor = DistributionExecutor(self)

        self._handlers: Dict[str, Tuple[Type[BaseModel], Handler]] = {
            "initialize_investment_info": (
                schemas.InitializeInvestmentInfoArgs, self.investments.initialize_investment_info),
            "update_investment_info": (
                schemas.UpdateInvestmentInfoArgs, self.investments.update_investment_info),
            "complete_investment_info": (
                schemas.EmptyArgs, self.investments.complete_investment_info),
            "deactivate_investment_info": (
                schemas.EmptyArgs, self.investments.deactivate_investment_info),
            "patch_execute_whitelist": (
                schemas.PatchWhitelistArgs, self.governor.patch_execute_whitelist),
            "patch_update_whitelist": (
                schemas.PatchWhitelistArgs, self.governor.patch_update_whitelist),
            "patch_withdraw_whitelist": (
                schemas.PatchWithdrawWhitelistArgs, self.governor.patch_withdraw_whitelist),
            "add_investment_record": (
                schemas.AddInvestmentRecordArgs, self.investments.add_investment_record),
            "update_investment_record_wallets": (
                schemas.UpdateRecordWalletsArgs, self.investments.update_investment_record_wallets),
            "revoke_investment_record": (
                schemas.RevokeInvestmentRecordArgs, self.investments.revoke_investment_record),
            "estimate_profit_share": (
                schemas.EstimateProfitShareArgs, self.share_cache.estimate_profit_share),
            "estimate_refund_share": (
                schemas.EstimateRefundShareArgs, self.share_cache.estimate_refund_share),
            "execute_profit_share": (
                schemas.ExecuteProfitShareArgs, self.distributor.execute_profit_share),
            "execute_refund_share": (
                schemas.ExecuteRefundShareArgs, self.distributor.execute_refund_share),
            "deposit_sol_to_vault": (schemas.DepositArgs, self.custodian.deposit_sol_to_vault),
            "deposit_token_to_vault": (schemas.DepositArgs, self.custodian.deposit_token_to_vault),
            "withdraw_from_vault": (schemas.EmptyArgs, self.custodian.withdraw_from_vault),
        }

    def process(self, ctx) -> None:
        name = ctx.instruction.name
        entry = self._handlers.get(name)
        if entry is None:
            raise VaultShareError(ErrorCode.InvalidInstructionData, f"Unknown instruction {name!r}")
        model, handler = entry
        accounts = InstructionAccounts(ctx.instruction.accounts, LAYOUTS[name])
        args = schemas.parse_args(model, ctx.args)
        ctx.log(f"Instruction: {name}")
        handler(ctx, accounts, args)

    # ------------------------------------------------------------------
    # Account loaders shared by the handlers
    # ------------------------------------------------------------------

    def load_investment_info(self, ctx, address: Address) -> InvestmentInfo:
        """Load the live investment info stored at ``address``.

        Raises:
            VaultShareError: InvestmentInfoNotFound or InvalidInvestmentInfoPda
        """
        account = ctx.get(address)
        require(
            account is not None
            and account.owner == self.program_id
            and isinstance(account.data, InvestmentInfo),
            ErrorCode.InvestmentInfoNotFound,
        )
        info: InvestmentInfo = account.data
        require(
            investment_info_address(self.program_id, info.investment_id, info.version) == address,
            ErrorCode.InvalidInvestmentInfoPda,
        )
        return info

    def load_record(self, ctx, address: Address) -> InvestmentRecord:
        account = ctx.get(address)
        require(account is not None, ErrorCode.InvestmentRecordNotFound, address=address)
        require(
            account.owner == self.program_id and isinstance(account.data, InvestmentRecord),
            ErrorCode.InvalidRecordPda,
            address=address,
        )
        record: InvestmentRecord = account.data
        expected = record_address(
            self.program_id,
            record.investment_id,
            record.version,
            record.batch_id,
            record.record_id,
            record.account_id,
        )
        require(expected == address, ErrorCode.InvalidRecordPda, address=address)
        return record
