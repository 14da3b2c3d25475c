"""
Vault share on-ledger program: governance, records, caches, vault custody and distribution.
"""

__all__ = []
