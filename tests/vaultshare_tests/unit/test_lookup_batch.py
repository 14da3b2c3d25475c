"""
Unit tests for lookup table orchestration.

Tests cover:
- Record and recipient tables per batch
- Chunked extension across transactions
- Reuse of tables already built
- Polling until a table becomes resolvable as the ledger clock advances
"""

import pytest

from vaultshare.client.lookup_batch import CACHE_TABLE, RECORD_TABLE, LookupBatchOrchestrator
from vaultshare.core.constants import LAMPORTS_PER_SOL
from vaultshare.core.exceptions import LookupTableError, LookupTableNotReadyError, is_recoverable_error
from vaultshare.core.keys import Keypair
from vaultshare.core.ledger import Ledger

START = 1_750_000_000
SLOT_SECONDS = 0.5


class ManualClock:
    """Wall clock that only moves when something sleeps on it."""

    def __init__(self, start=START):
        self.now = float(start)
        self.calls = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.calls.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ledger(clock):
    """Ledger whose slot follows the manual clock."""
    return Ledger(time_source=clock.time, slot_duration=SLOT_SECONDS)


# ============= Construction Tests =============


class TestOrchestratorSetup:
    """Test constructor validation."""

    def test_chunk_size_must_be_positive(self, client):
        with pytest.raises(ValueError, match="chunk_size"):
            LookupBatchOrchestrator(client, chunk_size=0)

    def test_poll_attempts_must_be_positive(self, client):
        with pytest.raises(ValueError, match="poll_attempts"):
            LookupBatchOrchestrator(client, poll_attempts=0)

    def test_authority_defaults_to_payer(self, client, payer):
        assert LookupBatchOrchestrator(client).authority is payer


# ============= Record Table Tests =============


class TestRecordTables:
    """Test tables holding a batch's record accounts."""

    def test_holds_batch_records_in_order(self, completed_investment, orchestrator, ledger):
        table = orchestrator.build(RECORD_TABLE, 1)

        resolved = ledger.get_address_lookup_table(table)
        expected = [address for address, _ in completed_investment.fetch_records(batch_id=1)]
        assert resolved.addresses == expected
        assert len(expected) == 30

    def test_extends_in_chunks(self, completed_investment, orchestrator, ledger):
        start = ledger.slot

        orchestrator.build(RECORD_TABLE, 1)

        # create plus 20 addresses, then the last 10
        assert ledger.slot - start == 2

    def test_smaller_chunks_take_more_transactions(self, completed_investment, ledger):
        orchestrator = LookupBatchOrchestrator(completed_investment, chunk_size=7, sleep=lambda s: None)
        start = ledger.slot

        table = orchestrator.build(RECORD_TABLE, 1)

        assert ledger.slot - start == 5
        assert len(ledger.get_address_lookup_table(table).addresses) == 30

    def test_second_build_reuses_table(self, completed_investment, orchestrator, ledger):
        table = orchestrator.build(RECORD_TABLE, 1)
        slot = ledger.slot

        assert orchestrator.build(RECORD_TABLE, 1) == table
        assert orchestrator.get(RECORD_TABLE, 1) == table
        assert ledger.slot == slot

    def test_empty_batch_rejected(self, completed_investment, orchestrator):
        with pytest.raises(LookupTableError, match="No record addresses"):
            orchestrator.build(RECORD_TABLE, 2)

        assert orchestrator.get(RECORD_TABLE, 2) is None

    def test_unknown_kind_rejected(self, completed_investment, orchestrator):
        with pytest.raises(ValueError, match="Unknown lookup table kind"):
            orchestrator.build("wallets", 1)

    def test_separate_authority(self, completed_investment, ledger):
        authority = Keypair.from_seed("table-authority")
        ledger.airdrop(authority.address, LAMPORTS_PER_SOL)
        orchestrator = LookupBatchOrchestrator(completed_investment, authority=authority, sleep=lambda s: None)

        table = orchestrator.build(RECORD_TABLE, 1)

        assert ledger.get_account(table).data.authority == authority.address


# ============= Cache Table Tests =============


class TestCacheTables:
    """Test tables holding a cache's recipient token accounts."""

    def test_profit_recipients(self, completed_investment, update_signers, orchestrator, ledger):
        record_table = orchestrator.build(RECORD_TABLE, 1)
        completed_investment.estimate_profit_share(
            update_signers[:3], 1, 9_000_000, 90_000_000, lookup_table=record_table
        )

        table = orchestrator.build(CACHE_TABLE, 1)

        cache = completed_investment.fetch_profit_cache(1)
        assert ledger.get_address_lookup_table(table).addresses == [e.recipient_ata for e in cache.entries]

    def test_refund_tables_are_keyed_by_year(self, completed_investment, update_signers, orchestrator, ledger):
        record_table = orchestrator.build(RECORD_TABLE, 1)
        completed_investment.estimate_refund_share(update_signers[:3], 1, 3, lookup_table=record_table)
        completed_investment.estimate_refund_share(update_signers[:3], 1, 4, lookup_table=record_table)

        year_three = orchestrator.build(CACHE_TABLE, 1, 3)
        year_four = orchestrator.build(CACHE_TABLE, 1, 4)

        assert year_three != year_four
        cache = completed_investment.fetch_refund_cache(1, 3)
        assert ledger.get_address_lookup_table(year_three).addresses == [
            e.recipient_ata for e in cache.entries
        ]

    def test_missing_cache_has_no_addresses(self, completed_investment, orchestrator):
        assert orchestrator.addresses_for(CACHE_TABLE, 1) == []

        with pytest.raises(LookupTableError):
            orchestrator.build(CACHE_TABLE, 1)


# ============= Polling Tests =============


class TestWaitUntilResolvable:
    """Test polling for table readiness while slots pass with time."""

    def test_waits_for_warmup(self, completed_investment, ledger, clock):
        ledger.warmup_slots = 3
        orchestrator = LookupBatchOrchestrator(
            completed_investment, poll_interval=0.5, sleep=clock.sleep
        )

        table = orchestrator.build(RECORD_TABLE, 1)

        # one slot from the commit, then one per half second slept
        assert clock.calls == [0.5, 1.0]
        assert ledger.get_address_lookup_table(table) is not None

    def test_short_polls_wait_for_slot_to_pass(self, completed_investment, ledger, clock):
        ledger.warmup_slots = 2
        orchestrator = LookupBatchOrchestrator(
            completed_investment, poll_attempts=3, poll_interval=0.2, sleep=clock.sleep
        )

        table = orchestrator.build(RECORD_TABLE, 1)

        # 0.2s is still inside the commit slot; 0.6s reaches the next one
        assert clock.calls == [0.2, 0.4]
        assert ledger.get_address_lookup_table(table) is not None

    def test_slot_follows_clock(self, ledger, clock):
        start = ledger.slot

        clock.sleep(SLOT_SECONDS * 4)

        assert ledger.slot == start + 4
        assert ledger.clock().slot == start + 4

    def test_gives_up_after_poll_attempts(self, completed_investment, ledger, clock):
        ledger.warmup_slots = 100
        orchestrator = LookupBatchOrchestrator(
            completed_investment, poll_attempts=3, poll_interval=2.0, sleep=clock.sleep
        )

        with pytest.raises(LookupTableNotReadyError) as exc_info:
            orchestrator.build(RECORD_TABLE, 1)

        assert clock.calls == [2.0, 4.0]
        assert is_recoverable_error(exc_info.value)
        assert orchestrator.get(RECORD_TABLE, 1) is None

    def test_ready_table_needs_no_sleep(self, completed_investment, clock):
        orchestrator = LookupBatchOrchestrator(completed_investment, sleep=clock.sleep)

        orchestrator.build(RECORD_TABLE, 1)

        assert clock.calls == []

    def test_frozen_clock_never_warms_up(self, completed_investment, ledger):
        ledger.warmup_slots = 2
        slept = []
        orchestrator = LookupBatchOrchestrator(
            completed_investment, poll_attempts=3, poll_interval=1.0, sleep=slept.append
        )

        with pytest.raises(LookupTableNotReadyError):
            orchestrator.build(RECORD_TABLE, 1)

        assert slept == [1.0, 2.0]
