"""
Ledger substrate limits and fixed program identifiers.
"""

from __future__ import annotations

# Transaction ceilings
PACKET_DATA_SIZE = 1232
MAX_TX_ACCOUNT_LOCKS = 64
SIGNATURE_SIZE = 64
ADDRESS_SIZE = 32

# Compute budget
DEFAULT_COMPUTE_UNIT_LIMIT = 200_000
MAX_COMPUTE_UNIT_LIMIT = 1_400_000
INSTRUCTION_BASE_COST = 5_000
ACCOUNT_LOAD_COST = 1_000
TOKEN_TRANSFER_COST = 6_000
ACCOUNT_CREATE_COST = 10_000

# Slots
SLOT_DURATION_SECS = 0.4
MAX_RECENT_SLOT_AGE = 150

# Lookup tables
LOOKUP_TABLE_MAX_ADDRESSES = 256
LOOKUP_TABLE_WARMUP_SLOTS = 1

# Native currency
LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_ACCOUNT_RENT_LAMPORTS = 2_039_280

# Builtin program ids (base58, 32 bytes each)
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
COMPUTE_BUDGET_PROGRAM_ID = "ComputeBudget111111111111111111111111111111"
LOOKUP_TABLE_PROGRAM_ID = "AddressLookupTab1e1111111111111111111111111"
