"""
Client helpers that build, sign and send vault share transactions.
"""

__all__ = []
