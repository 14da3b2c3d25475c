"""
Vault Share Core Module

Ledger substrate used by the vault share program:
- Derived addresses and secp256k1 keys
- Signed, size-limited, atomic transactions
- Native and token balances
- Address lookup tables
- Configuration, logging and metrics
"""

__all__ = []
