"""
Vault Share Configuration

All settings come from environment variables so deployments can be tuned
without code changes. Invalid values raise ConfigurationError at import.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

from vaultshare.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    LOCALNET = "localnet"
    DEVNET = "devnet"
    MAINNET = "mainnet"


USDT_MINTS = {
    NetworkType.LOCALNET: "FTenRK9zPfxc19UUpZJ2Wm8CXrWV4k8rH8vLh2TNTp6q",
    NetworkType.DEVNET: "7zpxGbRXo7qbtx4WCRo8y1vUr86B8un5x5UeSR4NLBuM",
    NetworkType.MAINNET: "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
}

HCOIN_MINTS = {
    NetworkType.LOCALNET: "9PwAsgkYQTQ6RipNuCkn74EgoXiMQWTaYhVip4CinRgG",
    NetworkType.DEVNET: "7iB42yQCPgaE2aqLr8gv6irbMk8xhjVQ3sRzw5ycKAYf",
    NetworkType.MAINNET: "CJA59jCAoEoPnsWZyVJuH2WCM9uDxvjjomQam9du3Lu6",
}

PROGRAM_ID = os.getenv(
    "VAULTSHARE_PROGRAM_ID", "ALjifiKwvSzKLfpebFZ185b3mLAxroEvxYXCcy9Lzw2B"
)


def _get_network(env_var: str, default: str) -> NetworkType:
    value = os.getenv(env_var, default).strip().lower()
    try:
        return NetworkType(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be one of {[n.value for n in NetworkType]}, got {value!r}"
        ) from exc


def _get_int(env_var: str, default: int, minimum: int, maximum: int) -> int:
    """Read a bounded integer from the environment."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if not minimum <= value <= maximum:
        raise ConfigurationError(
            f"{env_var} must be between {minimum} and {maximum}, got {value}"
        )
    return value


def _get_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{env_var} must not be negative, got {value}")
    return value


NETWORK = _get_network("VAULTSHARE_NETWORK", "localnet")

USDT_MINT = USDT_MINTS[NETWORK]
HCOIN_MINT = HCOIN_MINTS[NETWORK]

# Client transaction shaping
COMPUTE_UNIT_LIMIT = _get_int("VAULTSHARE_COMPUTE_UNIT_LIMIT", 800_000, 1, 1_400_000)
MAX_RECORDS_PER_TX = _get_int("VAULTSHARE_MAX_RECORDS_PER_TX", 2, 1, 4)

# Lookup table orchestration
LOOKUP_CHUNK_SIZE = _get_int("VAULTSHARE_LOOKUP_CHUNK_SIZE", 20, 1, 25)
LOOKUP_POLL_ATTEMPTS = _get_int("VAULTSHARE_LOOKUP_POLL_ATTEMPTS", 5, 1, 50)
LOOKUP_POLL_INTERVAL = _get_float("VAULTSHARE_LOOKUP_POLL_INTERVAL", 1.0)

# Logging
LOG_LEVEL = os.getenv("VAULTSHARE_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("VAULTSHARE_LOG_FILE", "")
ENVIRONMENT = os.getenv("VAULTSHARE_ENVIRONMENT", "development")

if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(f"VAULTSHARE_LOG_LEVEL is not a logging level: {LOG_LEVEL!r}")

if NETWORK is NetworkType.MAINNET and LOG_LEVEL == "DEBUG":
    logger.warning(
        "Debug logging enabled on mainnet",
        extra={"event": "config.debug_on_mainnet"},
    )
