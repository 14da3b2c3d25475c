"""
Unit tests for environment configuration.

Tests cover:
- Defaults with no VAULTSHARE_ variables set
- Network selection of mint addresses
- Bounded integer and float settings
- Rejection of malformed values
"""

import importlib
import os
import sys

import pytest

from vaultshare.core.exceptions import ConfigurationError


@pytest.fixture
def reload_config(monkeypatch):
    """Re-import the config module under a patched environment."""
    original = sys.modules.get("vaultshare.core.config")

    def _reload(env):
        for key in list(os.environ.keys()):
            if key.startswith("VAULTSHARE_"):
                monkeypatch.delenv(key, raising=False)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        sys.modules.pop("vaultshare.core.config", None)
        return importlib.import_module("vaultshare.core.config")

    yield _reload

    import vaultshare.core

    if original is not None:
        sys.modules["vaultshare.core.config"] = original
        vaultshare.core.config = original


class TestDefaults:
    """Test values used when nothing is configured."""

    def test_defaults(self, reload_config):
        config = reload_config({})

        assert config.NETWORK is config.NetworkType.LOCALNET
        assert config.COMPUTE_UNIT_LIMIT == 800_000
        assert config.MAX_RECORDS_PER_TX == 2
        assert config.LOOKUP_CHUNK_SIZE == 20
        assert config.LOOKUP_POLL_ATTEMPTS == 5
        assert config.LOOKUP_POLL_INTERVAL == 1.0
        assert config.LOG_LEVEL == "INFO"

    def test_network_selects_mints(self, reload_config):
        config = reload_config({"VAULTSHARE_NETWORK": "Mainnet"})

        assert config.NETWORK is config.NetworkType.MAINNET
        assert config.USDT_MINT == config.USDT_MINTS[config.NetworkType.MAINNET]
        assert config.HCOIN_MINT == config.HCOIN_MINTS[config.NetworkType.MAINNET]

    def test_program_id_override(self, reload_config):
        config = reload_config({"VAULTSHARE_PROGRAM_ID": "11111111111111111111111111111111"})

        assert config.PROGRAM_ID == "11111111111111111111111111111111"


class TestOverrides:
    """Test bounded settings."""

    def test_records_per_tx_in_range(self, reload_config):
        config = reload_config({"VAULTSHARE_MAX_RECORDS_PER_TX": "4"})
        assert config.MAX_RECORDS_PER_TX == 4

    def test_records_per_tx_out_of_range(self, reload_config):
        with pytest.raises(ConfigurationError, match="between 1 and 4"):
            reload_config({"VAULTSHARE_MAX_RECORDS_PER_TX": "5"})

    def test_compute_limit_not_an_integer(self, reload_config):
        with pytest.raises(ConfigurationError, match="must be an integer"):
            reload_config({"VAULTSHARE_COMPUTE_UNIT_LIMIT": "lots"})

    def test_chunk_size_capped(self, reload_config):
        with pytest.raises(ConfigurationError):
            reload_config({"VAULTSHARE_LOOKUP_CHUNK_SIZE": "30"})

    def test_poll_interval_float(self, reload_config):
        config = reload_config({"VAULTSHARE_LOOKUP_POLL_INTERVAL": "0.25"})
        assert config.LOOKUP_POLL_INTERVAL == 0.25

    def test_negative_poll_interval(self, reload_config):
        with pytest.raises(ConfigurationError, match="must not be negative"):
            reload_config({"VAULTSHARE_LOOKUP_POLL_INTERVAL": "-1"})

    def test_unknown_network(self, reload_config):
        with pytest.raises(ConfigurationError, match="VAULTSHARE_NETWORK"):
            reload_config({"VAULTSHARE_NETWORK": "testnet"})

    def test_unknown_log_level(self, reload_config):
        with pytest.raises(ConfigurationError, match="logging level"):
            reload_config({"VAULTSHARE_LOG_LEVEL": "chatty"})

    def test_log_level_case_insensitive(self, reload_config):
        config = reload_config({"VAULTSHARE_LOG_LEVEL": "debug"})
        assert config.LOG_LEVEL == "DEBUG"
