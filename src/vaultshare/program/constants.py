"""Vault share program constants."""

from vaultshare.core.constants import TOKEN_ACCOUNT_RENT_LAMPORTS

INVESTMENT_ID_LEN = 15
VERSION_LEN = 4
ACCOUNT_ID_LEN = 15

MAX_WHITELIST_LEN = 5
SIGNER_THRESHOLD = 3

MAX_STAGE = 3
STAGE_RATIO_SLOTS = 10

# Records per batch; also the most records one estimate transaction may load
MAX_ENTRIES_PER_BATCH = 30

SHARE_CACHE_EXPIRE_SECS = 25 * 86400

START_YEAR_INDEX = 3
MAX_YEAR_INDEX = 9

BP_DENOMINATOR = 10_000
PERCENT_DENOMINATOR = 100

# Native-currency estimate for paying out one batch
ESTIMATE_SOL_BASE = 100_000
ESTIMATE_SOL_PER_ENTRY = 5_000
ESTIMATE_SOL_PER_RECIPIENT = ESTIMATE_SOL_PER_ENTRY + TOKEN_ACCOUNT_RENT_LAMPORTS

# Lamports kept in the vault by a withdrawal sweep
VAULT_FEE_RESERVE = ESTIMATE_SOL_BASE + ESTIMATE_SOL_PER_ENTRY

U16_MAX = 2**16 - 1
U64_MAX = 2**64 - 1
