"""
Unit tests for vault share account state.

Tests cover:
- Batch id derivation from record ids
- Stage ratio validation rules
- Refund phase and percentage lookups
- Record packing offsets used by range filters
- Share cache expiry and consumption flags
"""

import dataclasses

import pytest

from vaultshare.program.constants import SHARE_CACHE_EXPIRE_SECS
from vaultshare.program.errors import ErrorCode, VaultShareError
from vaultshare.program.state import (
    InvestmentRecord,
    ProfitShareCache,
    batch_id_for,
    record_filters,
    refund_percentage,
    refund_phase,
    validate_stage_ratio,
)

VALID_RATIO = [
    [0, 0, 0, 10, 10, 10, 10, 10, 10, 10],
    [0, 0, 0, 20, 20, 20, 20, 20, 0, 0],
    [0, 0, 0, 25, 25, 25, 25, 0, 0, 0],
]

INVESTMENT_ID = b"INV-2025-000001"
VERSION = b"v1\x00\x00"
WALLET = "11111111111111111111111111111111"


def _record(**overrides):
    fields = dict(
        batch_id=2,
        record_id=31,
        account_id=b"ACC-00000000031",
        investment_id=INVESTMENT_ID,
        version=VERSION,
        wallet=WALLET,
        amount_usdt=5_000_000,
        amount_hcoin=10_000_000,
        stage=2,
    )
    fields.update(overrides)
    return InvestmentRecord(**fields)


# ============= Batch Id Tests =============


class TestBatchIdFor:
    """Test record id to batch id mapping."""

    @pytest.mark.parametrize(
        "record_id,batch_id",
        [(1, 1), (30, 1), (31, 2), (60, 2), (61, 3), (90, 3)],
    )
    def test_thirty_records_per_batch(self, record_id, batch_id):
        assert batch_id_for(record_id) == batch_id

    def test_record_zero_rejected(self):
        with pytest.raises(ValueError):
            batch_id_for(0)


# ============= Stage Ratio Tests =============


class TestValidateStageRatio:
    """Test the 3 x 10 refund ratio table rules."""

    def test_valid_table_passes(self):
        validate_stage_ratio(VALID_RATIO)

    def _code(self, ratio):
        with pytest.raises(VaultShareError) as exc_info:
            validate_stage_ratio(ratio)
        return exc_info.value.code

    def test_wrong_row_count(self):
        assert self._code(VALID_RATIO[:2]) == ErrorCode.InvalidStageRatioLength

    def test_wrong_row_length(self):
        ratio = [row[:] for row in VALID_RATIO]
        ratio[1] = ratio[1][:9]
        assert self._code(ratio) == ErrorCode.InvalidStageRatioLength

    def test_value_above_hundred(self):
        ratio = [row[:] for row in VALID_RATIO]
        ratio[0][3] = 101
        assert self._code(ratio) == ErrorCode.InvalidStageRatioValue

    def test_gap_after_start_rejected(self):
        ratio = [row[:] for row in VALID_RATIO]
        ratio[2] = [0, 10, 0, 10, 0, 0, 0, 0, 0, 0]
        assert self._code(ratio) == ErrorCode.NonContiguousStage

    def test_row_sum_above_hundred(self):
        ratio = [row[:] for row in VALID_RATIO]
        ratio[0] = [60, 60, 0, 0, 0, 0, 0, 0, 0, 0]
        assert self._code(ratio) == ErrorCode.InvalidStageRatioSum

    def test_all_zero_table(self):
        assert self._code([[0] * 10 for _ in range(3)]) == ErrorCode.EmptyStageRatio

    def test_single_zero_row_allowed(self):
        ratio = [row[:] for row in VALID_RATIO]
        ratio[2] = [0] * 10
        validate_stage_ratio(ratio)


# ============= Refund Lookup Tests =============


class TestRefundPhase:
    """Test where a year falls in a stage's refund cycle."""

    def test_leading_zero_years_have_no_phase(self):
        assert refund_phase(VALID_RATIO[1], 0) is None
        assert refund_phase(VALID_RATIO[1], 2) is None

    def test_paying_years_before_last_are_mid(self):
        assert refund_phase(VALID_RATIO[1], 3) == "mid"
        assert refund_phase(VALID_RATIO[1], 6) == "mid"

    def test_final_paying_year_is_last(self):
        assert refund_phase(VALID_RATIO[1], 7) == "last"

    def test_years_after_the_end_have_no_phase(self):
        assert refund_phase(VALID_RATIO[1], 8) is None

    def test_percentage_per_stage(self):
        assert refund_percentage(VALID_RATIO, 1, 9) == 10
        assert refund_percentage(VALID_RATIO, 2, 3) == 20
        assert refund_percentage(VALID_RATIO, 3, 6) == 25

    def test_percentage_zero_outside_cycle(self):
        assert refund_percentage(VALID_RATIO, 3, 7) == 0
        assert refund_percentage(VALID_RATIO, 0, 3) == 0
        assert refund_percentage(VALID_RATIO, 2, 10) == 0


# ============= Record Layout Tests =============


class TestInvestmentRecordPacking:
    """Test the fixed layout that memcmp filters rely on."""

    def test_field_offsets(self):
        raw = _record().pack()

        assert raw[8:10] == (2).to_bytes(2, "little")
        assert raw[10:18] == (31).to_bytes(8, "little")
        assert raw[18:33] == b"ACC-00000000031"
        assert raw[33:48] == INVESTMENT_ID
        assert raw[48:52] == VERSION
        assert raw[100] == 2

    def test_filters_match_own_record(self):
        raw = _record().pack()
        filters = record_filters(INVESTMENT_ID, VERSION, batch_id=2, account_id=b"ACC-00000000031")

        assert all(f.matches(raw) for f in filters)

    def test_filters_reject_other_batch(self):
        raw = _record().pack()
        filters = record_filters(INVESTMENT_ID, VERSION, batch_id=1)

        assert not all(f.matches(raw) for f in filters)

    def test_revoked_flag(self):
        assert not _record().is_revoked
        assert _record(revoked=True).is_revoked

    def test_revocation_does_not_depend_on_timestamp(self):
        assert _record(revoked=True, revoked_at=0).is_revoked
        assert not _record(revoked_at=1_750_000_000).is_revoked


# ============= Share Cache Tests =============


class TestShareCacheFlags:
    """Test expiry and consumption of share caches."""

    @pytest.fixture
    def cache(self):
        return ProfitShareCache(
            batch_id=1,
            investment_id=INVESTMENT_ID,
            version=VERSION,
            mint=WALLET,
            subtotal_profit_usdt=1_000,
            subtotal_estimate_sol=100_000,
            created_at=1_000,
        )

    def test_expiry_boundary(self, cache):
        assert not cache.is_expired(1_000 + SHARE_CACHE_EXPIRE_SECS)
        assert cache.is_expired(1_000 + SHARE_CACHE_EXPIRE_SECS + 1)

    def test_executed_only_after_replace(self, cache):
        assert not cache.is_executed

        consumed = dataclasses.replace(cache, executed_at=2_000)

        assert consumed.is_executed
        assert not cache.is_executed

    def test_cache_is_immutable(self, cache):
        with pytest.raises(dataclasses.FrozenInstanceError):
            cache.subtotal_profit_usdt = 5
