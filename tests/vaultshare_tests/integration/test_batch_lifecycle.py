"""
Integration test for a full investment lifecycle.

Tests cover:
- 90 records spread over three batches
- Per-batch record tables, profit estimates, recipient tables and payouts
- A refund year for one batch
- The final sweep after deactivation
"""

import pytest

from vaultshare.client.lookup_batch import CACHE_TABLE, RECORD_TABLE
from vaultshare.core.addresses import associated_token_address
from vaultshare.core.constants import TOKEN_ACCOUNT_RENT_LAMPORTS
from vaultshare.core.exceptions import TransactionError
from vaultshare.program import events
from vaultshare.program.constants import VAULT_FEE_RESERVE
from vaultshare.program.share_cache import estimate_sol_for

BATCHES = (1, 2, 3)
TOTAL_INVEST = 270_000_000
TOTAL_PROFIT = 27_000_000
BATCH_PROFIT = 8_991_000


@pytest.fixture
def three_batches(investment, update_signers, make_records):
    investment.add_investment_records(update_signers[:3], make_records(90))
    investment.complete_investment_info(update_signers[:3])
    return investment


class TestBatchLifecycle:
    """Test estimating and paying every batch of a completed investment."""

    def test_records_fill_three_batches(self, three_batches):
        for batch_id in BATCHES:
            records = three_batches.fetch_records(batch_id=batch_id)
            assert [r.record_id for _, r in records] == list(
                range(30 * (batch_id - 1) + 1, 30 * batch_id + 1)
            )
        assert three_batches.fetch_investment_info().last_record_id == 90

    def test_profit_then_refund_then_sweep(
        self,
        three_batches,
        orchestrator,
        update_signers,
        execute_signers,
        withdraw_wallets,
        program,
        fund_vault,
        ledger,
    ):
        client = three_batches
        fund_vault(
            client,
            program.usdt_mint,
            BATCH_PROFIT * len(BATCHES),
            estimate_sol_for(30) * len(BATCHES),
        )

        for batch_id in BATCHES:
            record_table = orchestrator.build(RECORD_TABLE, batch_id)
            client.estimate_profit_share(
                update_signers[:3], batch_id, TOTAL_PROFIT, TOTAL_INVEST, lookup_table=record_table
            )
            cache = client.fetch_profit_cache(batch_id)
            assert len(cache.entries) == 30
            assert cache.subtotal_profit_usdt == BATCH_PROFIT

            cache_table = orchestrator.build(CACHE_TABLE, batch_id)
            receipt = client.execute_profit_share(execute_signers[:3], batch_id, lookup_table=cache_table)

            assert sum(isinstance(e, events.SharePaid) for e in receipt.events) == 30
            for entry in cache.entries:
                assert ledger.get_token_balance(entry.recipient_ata) == entry.amount_usdt

        assert ledger.get_token_balance(client.vault_token_account(program.usdt_mint)) == 0
        assert ledger.get_balance(client.vault_address) == (
            3 * estimate_sol_for(30) - 90 * TOKEN_ACCOUNT_RENT_LAMPORTS
        )

        # each stage holds ten records; year 3 pays 10, 20 and 25 percent
        fund_vault(client, program.hcoin_mint, 55_000_000, estimate_sol_for(30))
        client.estimate_refund_share(
            update_signers[:3], 1, 3, lookup_table=orchestrator.get(RECORD_TABLE, 1)
        )
        assert client.fetch_refund_cache(1, 3).subtotal_refund_hcoin == 55_000_000
        refund_table = orchestrator.build(CACHE_TABLE, 1, 3)
        client.execute_refund_share(execute_signers[:3], 1, 3, lookup_table=refund_table)
        assert ledger.get_token_balance(client.vault_token_account(program.hcoin_mint)) == 0

        client.deactivate_investment_info(update_signers[:3])
        with pytest.raises(TransactionError, match="InvestmentInfoDeactivated"):
            client.estimate_refund_share(
                update_signers[:3], 1, 4, lookup_table=orchestrator.get(RECORD_TABLE, 1)
            )

        treasury = withdraw_wallets[0].address
        spare = ledger.get_balance(client.vault_address) - VAULT_FEE_RESERVE
        client.withdraw_from_vault(execute_signers[:3], treasury)

        assert ledger.get_balance(client.vault_address) == VAULT_FEE_RESERVE
        assert ledger.get_balance(treasury) == spare
        assert ledger.get_token_balance(associated_token_address(treasury, program.usdt_mint)) == 0

    def test_wallet_change_redirects_later_payouts(
        self, three_batches, orchestrator, update_signers, execute_signers, program, fund_vault, ledger
    ):
        from vaultshare.core.keys import Keypair

        client = three_batches
        new_wallet = Keypair.from_seed("investor-1-new").address
        client.update_investment_record_wallets(update_signers[:3], "ACC-00000000001", new_wallet)

        fund_vault(client, program.usdt_mint, BATCH_PROFIT, estimate_sol_for(30))
        record_table = orchestrator.build(RECORD_TABLE, 1)
        client.estimate_profit_share(
            update_signers[:3], 1, TOTAL_PROFIT, TOTAL_INVEST, lookup_table=record_table
        )
        client.execute_profit_share(
            execute_signers[:3], 1, lookup_table=orchestrator.build(CACHE_TABLE, 1)
        )

        # record 1 holds 2 USDT of 270 invested
        assert ledger.get_token_balance(associated_token_address(new_wallet, program.usdt_mint)) == 199_800
