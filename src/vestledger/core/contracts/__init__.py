"""
vestledger ledger contracts.

- TokenLedger: balances, total supply and Transfer events for one token
"""

from .token_ledger import TokenEvent, TokenLedger, ZERO_ADDRESS

__all__ = [
    "TokenEvent",
    "TokenLedger",
    "ZERO_ADDRESS",
]
