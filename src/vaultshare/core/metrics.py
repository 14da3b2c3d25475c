"""
Prometheus instrumentation for the vault share ledger.

Tracks transaction outcomes, amounts paid out of vaults, and vault balances.
Helpers are safe to call from the execution path.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

transactions_counter = Counter(
    "vaultshare_transactions_total", "Transactions processed by the ledger", ["status"]
)

program_errors_counter = Counter(
    "vaultshare_program_errors_total", "Instructions rejected by a program", ["code"]
)

distributed_amount_counter = Counter(
    "vaultshare_distributed_amount_total",
    "Token base units paid out of vaults by share executions",
    ["kind"],
)

vault_balance_gauge = Gauge(
    "vaultshare_vault_token_balance", "Vault token balance after the last movement", ["vault", "mint"]
)


def record_transaction(status: str) -> None:
    transactions_counter.labels(status=status).inc()


def record_program_error(code: str) -> None:
    program_errors_counter.labels(code=code).inc()


def record_distribution(kind: str, amount: int) -> None:
    """Count a completed profit or refund payout."""
    if amount <= 0:
        return
    distributed_amount_counter.labels(kind=kind).inc(amount)


def update_vault_balance(vault: str, mint: str, balance: int) -> None:
    vault_balance_gauge.labels(vault=vault, mint=mint).set(balance)
