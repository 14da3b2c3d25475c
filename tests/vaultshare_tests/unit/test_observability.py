"""
Unit tests for structured logging and Prometheus metrics.

Tests cover:
- JSON log records with environment, service and source fields
- File logging
- Transaction, program error and payout counters
"""

import json
import logging

import pytest
from prometheus_client import REGISTRY

from vaultshare.core import metrics
from vaultshare.core.exceptions import TransactionError
from vaultshare.core.logging_config import CustomJsonFormatter, get_logger, setup_logging


@pytest.fixture
def clean_logger():
    names = []

    def _make(name):
        names.append(name)
        return name

    yield _make

    for name in names:
        logging.getLogger(name).handlers = []


def _sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


# ============= Logging Tests =============


class TestJsonLogging:
    """Test the JSON formatter and logger setup."""

    def test_formatter_adds_context(self):
        formatter = CustomJsonFormatter(environment="staging", service_name="vaultshare")
        record = logging.LogRecord("vaultshare.test", logging.WARNING, __file__, 10, "Vault low", None, None)
        record.event = "vault.low"

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "Vault low"
        assert payload["level"] == "warning"
        assert payload["environment"] == "staging"
        assert payload["service"] == "vaultshare"
        assert payload["event"] == "vault.low"
        assert payload["source"]["line"] == 10
        assert payload["timestamp"].endswith("Z")

    def test_setup_writes_json_file(self, tmp_path, clean_logger):
        log_file = tmp_path / "logs" / "vaultshare.json"
        logger = setup_logging(
            name=clean_logger("vaultshare.filetest"),
            log_file=str(log_file),
            level="DEBUG",
            enable_console=False,
        )

        logger.info("Batch estimated", extra={"event": "share.profit_estimated", "batch_id": 2})
        for handler in logger.handlers:
            handler.flush()

        payload = json.loads(log_file.read_text().strip())
        assert payload["event"] == "share.profit_estimated"
        assert payload["batch_id"] == 2
        assert payload["service"] == "vaultshare"

    def test_setup_replaces_handlers(self, clean_logger):
        name = clean_logger("vaultshare.handlers")
        setup_logging(name=name)
        logger = setup_logging(name=name, level="ERROR")

        assert len(logger.handlers) == 1
        assert logger.level == logging.ERROR

    def test_get_logger_configures_once(self, clean_logger):
        name = clean_logger("vaultshare.once")
        first = get_logger(name, level="WARNING")
        handlers = list(first.handlers)

        second = get_logger(name)

        assert second is first
        assert second.handlers == handlers


# ============= Metrics Tests =============


class TestMetrics:
    """Test counters updated by the ledger and program."""

    def test_committed_and_failed_transactions(self, investment, update_signers):
        committed = _sample("vaultshare_transactions_total", {"status": "committed"})
        failed = _sample("vaultshare_transactions_total", {"status": "failed"})
        errors = _sample("vaultshare_program_errors_total", {"code": "UnauthorizedSigner"})

        investment.complete_investment_info(update_signers[:3])
        with pytest.raises(TransactionError):
            investment.deactivate_investment_info(update_signers[:2])

        assert _sample("vaultshare_transactions_total", {"status": "committed"}) == committed + 1
        assert _sample("vaultshare_transactions_total", {"status": "failed"}) == failed + 1
        assert _sample("vaultshare_program_errors_total", {"code": "UnauthorizedSigner"}) == errors + 1

    def test_distribution_counter_ignores_zero(self):
        before = _sample("vaultshare_distributed_amount_total", {"kind": "refund"})

        metrics.record_distribution("refund", 0)
        metrics.record_distribution("refund", 250)

        assert _sample("vaultshare_distributed_amount_total", {"kind": "refund"}) == before + 250

    def test_vault_balance_gauge(self):
        metrics.update_vault_balance("vault-a", "mint-a", 42)

        assert _sample("vaultshare_vault_token_balance", {"vault": "vault-a", "mint": "mint-a"}) == 42
