"""Events emitted into transaction receipts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from vaultshare.core.addresses import Address


@dataclass(frozen=True)
class InvestmentInfoInitialized:
    investment_id: bytes
    version: bytes
    vault: Address
    created_at: int


@dataclass(frozen=True)
class InvestmentUpdated:
    investment_id: bytes
    version: bytes
    new_stage_ratio: Optional[Tuple[Tuple[int, ...], ...]]
    new_upper_limit: Optional[int]
    signers: Tuple[Address, ...]
    updated_at: int


@dataclass(frozen=True)
class InvestmentInfoCompleted:
    investment_id: bytes
    version: bytes
    signers: Tuple[Address, ...]
    completed_at: int


@dataclass(frozen=True)
class InvestmentInfoDeactivated:
    investment_id: bytes
    version: bytes
    signers: Tuple[Address, ...]
    deactivated_at: int


@dataclass(frozen=True)
class WhitelistUpdated:
    investment_id: bytes
    version: bytes
    kind: str
    wallet_from: Address
    wallet_to: Address
    signers: Tuple[Address, ...]
    updated_at: int


@dataclass(frozen=True)
class WithdrawWhitelistUpdated:
    investment_id: bytes
    version: bytes
    wallets: Tuple[Address, ...]
    signers: Tuple[Address, ...]
    updated_at: int


@dataclass(frozen=True)
class InvestmentRecordAdded:
    investment_id: bytes
    version: bytes
    batch_id: int
    record_id: int
    account_id: bytes
    amount_usdt: int
    amount_hcoin: int
    stage: int
    added_at: int


@dataclass(frozen=True)
class InvestmentRecordWalletUpdated:
    investment_id: bytes
    version: bytes
    account_id: bytes
    new_wallet: Address
    updated_records: int
    updated_at: int


@dataclass(frozen=True)
class InvestmentRecordRevoked:
    investment_id: bytes
    version: bytes
    batch_id: int
    record_id: int
    account_id: bytes
    revoked_at: int


@dataclass(frozen=True)
class ProfitShareEstimated:
    investment_id: bytes
    version: bytes
    batch_id: int
    subtotal_profit_usdt: int
    subtotal_estimate_sol: int
    entry_count: int
    created_at: int


@dataclass(frozen=True)
class RefundShareEstimated:
    investment_id: bytes
    version: bytes
    batch_id: int
    year_index: int
    subtotal_refund_hcoin: int
    subtotal_estimate_sol: int
    entry_count: int
    created_at: int


@dataclass(frozen=True)
class SharePaid:
    kind: str
    batch_id: int
    account_id: bytes
    wallet: Address
    recipient_ata: Address
    amount: int


@dataclass(frozen=True)
class ProfitShareExecuted:
    investment_id: bytes
    version: bytes
    batch_id: int
    total_transferred_usdt: int
    executed_at: int


@dataclass(frozen=True)
class RefundShareExecuted:
    investment_id: bytes
    version: bytes
    batch_id: int
    year_index: int
    total_transferred_hcoin: int
    executed_at: int


@dataclass(frozen=True)
class VaultDepositSol:
    investment_id: bytes
    version: bytes
    depositor: Address
    amount: int
    deposited_at: int


@dataclass(frozen=True)
class VaultDepositToken:
    investment_id: bytes
    version: bytes
    depositor: Address
    mint: Address
    amount: int
    deposited_at: int


@dataclass(frozen=True)
class VaultTransferred:
    investment_id: bytes
    version: bytes
    recipient: Address
    usdt_amount: int
    hcoin_amount: int
    sol_amount: int
    signers: Tuple[Address, ...]
    transferred_at: int
