"""
vestledger Core Module

Core functionality for the vestledger platform including:
- Supply ceiling enforcement and minting
- Vesting schedules, vested-amount math and releases
- Access control capabilities for privileged operations
- Schedule storage and persistence
"""

__all__ = []
