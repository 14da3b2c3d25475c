"""
Shared fixtures for vault share tests: a frozen-clock ledger, the deployed
program, whitelist keypairs and helpers for records and token funding.
"""
import hashlib

import pytest

from vaultshare.core.addresses import address_from_bytes, associated_token_address
from vaultshare.core.constants import LAMPORTS_PER_SOL
from vaultshare.core.keys import Keypair
from vaultshare.core.ledger import Ledger
from vaultshare.core.token import (
    create_associated_token_account_instruction,
    mint_to_instruction,
)
from vaultshare.core.transaction import Transaction

FIXED_NOW = 1_750_000_000
INVESTMENT_ID = "INV-2025-000001"
VERSION = "v1"
UPPER_LIMIT = 1_000_000_000_000

STAGE_RATIO = [
    [0, 0, 0, 10, 10, 10, 10, 10, 10, 10],
    [0, 0, 0, 20, 20, 20, 20, 20, 0, 0],
    [0, 0, 0, 25, 25, 25, 25, 0, 0, 0],
]


def investor_wallet(index: int) -> str:
    """Deterministic wallet address for investor ``index``."""
    return address_from_bytes(hashlib.sha256(f"investor-{index}".encode()).digest())


@pytest.fixture
def ledger():
    """Ledger with a frozen wall clock."""
    return Ledger(time_source=lambda: FIXED_NOW)


@pytest.fixture
def payer(ledger):
    keypair = Keypair.from_seed("payer")
    ledger.airdrop(keypair.address, 100 * LAMPORTS_PER_SOL)
    return keypair


@pytest.fixture
def execute_signers():
    return [Keypair.from_seed(f"execute-{i}") for i in range(5)]


@pytest.fixture
def update_signers():
    return [Keypair.from_seed(f"update-{i}") for i in range(5)]


@pytest.fixture
def withdraw_wallets():
    return [Keypair.from_seed(f"withdraw-{i}") for i in range(2)]


@pytest.fixture
def mint_authority(ledger):
    keypair = Keypair.from_seed("mint-authority")
    ledger.airdrop(keypair.address, 10 * LAMPORTS_PER_SOL)
    return keypair


@pytest.fixture
def program(ledger, mint_authority):
    """Vault share program deployed with both accepted mints installed."""
    from vaultshare.program.processor import VaultShareProgram

    program = VaultShareProgram()
    ledger.create_mint(program.usdt_mint, 6, mint_authority.address)
    ledger.create_mint(program.hcoin_mint, 6, mint_authority.address)
    ledger.register_program(program)
    return program


@pytest.fixture
def client(ledger, program, payer):
    from vaultshare.client.client import VaultShareClient

    return VaultShareClient(ledger, program, payer, INVESTMENT_ID, VERSION)


@pytest.fixture
def investment(client, execute_signers, update_signers, withdraw_wallets):
    """Client for a freshly initialized standard investment."""
    from vaultshare.program.state import InvestmentType

    client.initialize_investment_info(
        InvestmentType.STANDARD,
        STAGE_RATIO,
        FIXED_NOW - 86400,
        FIXED_NOW + 365 * 86400,
        UPPER_LIMIT,
        [k.address for k in execute_signers],
        [k.address for k in update_signers],
        [k.address for k in withdraw_wallets],
    )
    return client


@pytest.fixture
def make_records():
    """Factory for consecutive NewRecord values starting at ``start``."""
    from vaultshare.client.client import NewRecord

    def _make(count, start=1):
        return [
            NewRecord(
                record_id=i,
                account_id=f"ACC-{i:011d}",
                wallet=investor_wallet(i),
                amount_usdt=1_000_000 * (i % 5 + 1),
                amount_hcoin=10_000_000,
                stage=i % 3 + 1,
            )
            for i in range(start, start + count)
        ]

    return _make


@pytest.fixture
def mint_tokens(ledger, mint_authority):
    """Mint ``amount`` of ``mint`` into ``owner``'s token account."""

    def _mint(mint, owner, amount):
        tx = Transaction(
            mint_authority.address,
            [
                create_associated_token_account_instruction(mint_authority.address, owner, mint),
                mint_to_instruction(
                    mint, associated_token_address(owner, mint), mint_authority.address, amount
                ),
            ],
            recent_slot=ledger.slot,
        )
        tx.sign(mint_authority)
        return ledger.process_transaction(tx)

    return _mint


@pytest.fixture
def completed_investment(investment, update_signers, make_records):
    """Investment holding 30 records (one full batch), then completed."""
    investment.add_investment_records(update_signers[:3], make_records(30))
    investment.complete_investment_info(update_signers[:3])
    return investment


@pytest.fixture
def orchestrator(client):
    from vaultshare.client.lookup_batch import LookupBatchOrchestrator

    return LookupBatchOrchestrator(client, sleep=lambda seconds: None)


@pytest.fixture
def fund_vault(payer, mint_tokens):
    """Deposit tokens of ``mint`` and native lamports into a client's vault."""

    def _fund(client, mint, tokens, lamports):
        if tokens:
            mint_tokens(mint, payer.address, tokens)
            client.deposit_token_to_vault(mint, tokens)
        if lamports:
            client.deposit_sol_to_vault(lamports)

    return _fund
