"""
vestledger - Bounded-supply token ledger with linear vesting

Main Components:
- Supply Guard: immutable issuance ceiling enforced on every mint
- Vesting Engine: per-beneficiary schedules released from escrow over time
- Token Ledger: in-memory balance store the core mints into and transfers from

For detailed documentation, see: SPEC_FULL.md and DESIGN.md
"""

__version__ = "0.1.0"
__author__ = "vestledger Development Team"

__all__ = []
