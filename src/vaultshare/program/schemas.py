from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError, conint

from vaultshare.program.constants import U16_MAX, U64_MAX
from vaultshare.program.errors import ErrorCode, VaultShareError
from vaultshare.program.state import InvestmentType

U16 = conint(ge=0, le=U16_MAX)
U64 = conint(ge=0, le=U64_MAX)
I64 = conint(ge=-(2**63), le=2**63 - 1)


class _Args(BaseModel):
    model_config = ConfigDict(extra="forbid")


class InitializeInvestmentInfoArgs(_Args):
    investment_id: bytes
    version: bytes
    investment_type: InvestmentType
    stage_ratio: list[list[conint(ge=0, le=255)]]
    start_at: I64
    end_at: I64
    investment_upper_limit: U64
    execute_whitelist: list[str]
    update_whitelist: list[str]
    withdraw_whitelist: list[str]


class UpdateInvestmentInfoArgs(_Args):
    new_stage_ratio: Optional[list[list[conint(ge=0, le=255)]]] = None
    new_upper_limit: Optional[U64] = None


class EmptyArgs(_Args):
    pass


class PatchWhitelistArgs(_Args):
    wallet_from: str
    wallet_to: str


class PatchWithdrawWhitelistArgs(_Args):
    wallets: list[str]


class AddInvestmentRecordArgs(_Args):
    batch_id: U16
    record_id: conint(ge=1, le=U64_MAX)
    account_id: bytes
    wallet: str
    amount_usdt: U64
    amount_hcoin: U64
    stage: conint(ge=0, le=255)


class UpdateRecordWalletsArgs(_Args):
    account_id: bytes
    new_wallet: str


class RevokeInvestmentRecordArgs(_Args):
    batch_id: U16
    record_id: U64
    account_id: bytes


class EstimateProfitShareArgs(_Args):
    batch_id: U16
    total_profit_usdt: U64
    total_invest_usdt: U64


class EstimateRefundShareArgs(_Args):
    batch_id: U16
    year_index: conint(ge=0, le=255)


class ExecuteProfitShareArgs(_Args):
    batch_id: U16


class ExecuteRefundShareArgs(_Args):
    batch_id: U16
    year_index: conint(ge=0, le=255)


class DepositArgs(_Args):
    amount: conint(gt=0, le=U64_MAX)


def parse_args(model: type[BaseModel], args: dict) -> BaseModel:
    """Validate raw instruction arguments, mapping failures to a program error."""
    try:
        return model.model_validate(args)
    except ValidationError as exc:
        raise VaultShareError(
            ErrorCode.InvalidInstructionData,
            f"Invalid arguments: {exc.error_count()} error(s)",
            errors=[e["loc"] for e in exc.errors()],
        ) from exc
