"""
Account state of the vault share program.

InvestmentInfo and InvestmentRecord are mutable program state. Share caches
are frozen values: once written they only ever change through
``dataclasses.replace`` when an execution marks them consumed.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Sequence, Tuple

from vaultshare.core.addresses import Address, address_to_bytes
from vaultshare.core.ledger import Memcmp
from vaultshare.program.constants import (
    MAX_ENTRIES_PER_BATCH,
    MAX_STAGE,
    MAX_YEAR_INDEX,
    SHARE_CACHE_EXPIRE_SECS,
    STAGE_RATIO_SLOTS,
)
from vaultshare.program.errors import ErrorCode, require

StageRatio = List[List[int]]


class InvestmentType(Enum):
    STANDARD = "standard"
    CSR = "csr"


class InvestmentState(IntEnum):
    INIT = 0
    PENDING = 1
    COMPLETED = 999


def batch_id_for(record_id: int) -> int:
    """Batch holding ``record_id``: records 1-30 are batch 1, 31-60 batch 2, ..."""
    if record_id < 1:
        raise ValueError("Record ids start at 1")
    return math.ceil(record_id / MAX_ENTRIES_PER_BATCH)


# ==================== Stage ratios ====================


def validate_stage_ratio(stage_ratio: Sequence[Sequence[int]]) -> None:
    """Check a 3 x 10 refund ratio table.

    Each row may only hold values 0..100 summing to at most 100. Once a row
    has a non-zero value, the first zero after it must be followed by zeros
    only. At least one value in the table must be non-zero.

    Raises:
        VaultShareError: With the code of the first rule broken
    """
    require(len(stage_ratio) == MAX_STAGE, ErrorCode.InvalidStageRatioLength)
    any_nonzero = False
    for row in stage_ratio:
        require(len(row) == STAGE_RATIO_SLOTS, ErrorCode.InvalidStageRatioLength)
        require(all(0 <= value <= 100 for value in row), ErrorCode.InvalidStageRatioValue)
        started = False
        for index, value in enumerate(row):
            if value > 0:
                started = True
                any_nonzero = True
            elif started:
                require(all(v == 0 for v in row[index + 1:]), ErrorCode.NonContiguousStage)
                break
        require(sum(row) <= 100, ErrorCode.InvalidStageRatioSum)
    require(any_nonzero, ErrorCode.EmptyStageRatio)


def refund_phase(row: Sequence[int], year_index: int) -> Optional[str]:
    """Where ``year_index`` falls in a stage's refund cycle.

    Returns "mid" for paying years before the final one, "last" for the final
    paying year, and None for the leading zero years or anything past the end.
    """
    paying = [i for i, value in enumerate(row) if value > 0]
    if not paying or year_index not in paying:
        return None
    return "last" if year_index == paying[-1] else "mid"


def refund_percentage(stage_ratio: Sequence[Sequence[int]], stage: int, year_index: int) -> int:
    if not 1 <= stage <= MAX_STAGE or not 0 <= year_index <= MAX_YEAR_INDEX:
        return 0
    row = stage_ratio[stage - 1]
    if refund_phase(row, year_index) is None:
        return 0
    return row[year_index]


# ==================== Accounts ====================


@dataclass
class InvestmentInfo:
    investment_id: bytes
    version: bytes
    investment_type: InvestmentType
    stage_ratio: StageRatio
    start_at: int
    end_at: int
    investment_upper_limit: int
    execute_whitelist: List[Address]
    update_whitelist: List[Address]
    withdraw_whitelist: List[Address]
    vault: Address
    state: InvestmentState = InvestmentState.PENDING
    is_active: bool = True
    created_at: int = 0
    last_record_id: int = 0

    @property
    def is_completed(self) -> bool:
        return self.state == InvestmentState.COMPLETED


_RECORD_DISCRIMINATOR = hashlib.sha256(b"account:InvestmentRecord").digest()[:8]

RECORD_BATCH_ID_OFFSET = 8
RECORD_ACCOUNT_ID_OFFSET = 18
RECORD_INVESTMENT_ID_OFFSET = 33
RECORD_VERSION_OFFSET = 48


@dataclass
class InvestmentRecord:
    batch_id: int
    record_id: int
    account_id: bytes
    investment_id: bytes
    version: bytes
    wallet: Address
    amount_usdt: int
    amount_hcoin: int
    stage: int
    revoked: bool = False
    revoked_at: int = 0
    created_at: int = 0

    @property
    def is_revoked(self) -> bool:
        return self.revoked

    def pack(self) -> bytes:
        """Fixed binary layout used by range filters."""
        return b"".join(
            [
                _RECORD_DISCRIMINATOR,
                self.batch_id.to_bytes(2, "little"),
                self.record_id.to_bytes(8, "little"),
                self.account_id,
                self.investment_id,
                self.version,
                address_to_bytes(self.wallet),
                self.amount_usdt.to_bytes(8, "little"),
                self.amount_hcoin.to_bytes(8, "little"),
                self.stage.to_bytes(1, "little"),
                int(self.revoked).to_bytes(1, "little"),
                self.revoked_at.to_bytes(8, "little", signed=True),
                self.created_at.to_bytes(8, "little", signed=True),
            ]
        )


def record_filters(
    investment_id: bytes,
    version: bytes,
    batch_id: Optional[int] = None,
    account_id: Optional[bytes] = None,
) -> List[Memcmp]:
    filters = [
        Memcmp(0, _RECORD_DISCRIMINATOR),
        Memcmp(RECORD_INVESTMENT_ID_OFFSET, investment_id),
        Memcmp(RECORD_VERSION_OFFSET, version),
    ]
    if batch_id is not None:
        filters.append(Memcmp(RECORD_BATCH_ID_OFFSET, batch_id.to_bytes(2, "little")))
    if account_id is not None:
        filters.append(Memcmp(RECORD_ACCOUNT_ID_OFFSET, account_id))
    return filters


# ==================== Share caches ====================


@dataclass(frozen=True)
class ProfitEntry:
    account_id: bytes
    wallet: Address
    amount_usdt: int
    ratio_bp: int
    recipient_ata: Address


@dataclass(frozen=True)
class RefundEntry:
    account_id: bytes
    wallet: Address
    amount_hcoin: int
    stage: int
    recipient_ata: Address


@dataclass(frozen=True)
class _ShareCache:
    def is_expired(self, now: int) -> bool:
        return now - self.created_at > SHARE_CACHE_EXPIRE_SECS

    @property
    def is_executed(self) -> bool:
        return self.executed_at != 0


@dataclass(frozen=True)
class ProfitShareCache(_ShareCache):
    batch_id: int
    investment_id: bytes
    version: bytes
    mint: Address
    subtotal_profit_usdt: int
    subtotal_estimate_sol: int
    created_at: int
    entries: Tuple[ProfitEntry, ...] = field(default_factory=tuple)
    executed_at: int = 0


@dataclass(frozen=True)
class RefundShareCache(_ShareCache):
    batch_id: int
    year_index: int
    investment_id: bytes
    version: bytes
    mint: Address
    subtotal_refund_hcoin: int
    subtotal_estimate_sol: int
    created_at: int
    entries: Tuple[RefundEntry, ...] = field(default_factory=tuple)
    executed_at: int = 0
