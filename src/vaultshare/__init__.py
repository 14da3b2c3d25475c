"""
Vault Share - Pooled investment bookkeeping on a deterministic ledger

Tracks investors in fixed-size batches, computes profit and refund shares
into immutable caches, and pays them out of a custodial vault. Every mutating
operation is gated by 3-of-5 signer whitelists.

Main Components:
- Core: ledger substrate (addresses, keys, transactions, tokens, lookup tables)
- Program: whitelist governance, investment ledger, share caches, vault, distribution
- Client: transaction building, record batching and lookup table orchestration
"""

__version__ = "0.1.0"
__author__ = "H2coin Development Team"

__all__ = []
