"""
Supply and vesting instrumentation.

Prometheus metrics for mints, schedule creation and releases, with helper
functions that are safe to call from the mint and release paths.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

mint_counter = Counter(
    "vestledger_mints_total", "Mint attempts through the supply guard", ["outcome"]
)

minted_tokens_counter = Counter(
    "vestledger_minted_tokens_total", "Total tokens minted through the supply guard"
)

schedules_created_counter = Counter(
    "vestledger_schedules_created_total", "Vesting schedules created"
)

released_tokens_counter = Counter(
    "vestledger_released_tokens_total", "Total tokens released from escrow"
)

release_events_counter = Counter(
    "vestledger_release_events_total", "Successful release calls"
)

rejected_operations_counter = Counter(
    "vestledger_rejected_operations_total",
    "Operations rejected with a ledger error",
    ["operation", "error"],
)

escrow_locked_gauge = Gauge(
    "vestledger_escrow_locked_tokens", "Tokens held in escrow for unreleased schedules"
)


def record_mint(amount: int) -> None:
    mint_counter.labels(outcome="success").inc()
    if amount > 0:
        minted_tokens_counter.inc(amount)


def record_rejection(operation: str, exc: Exception) -> None:
    """Count a rejected operation, labelled by exception class."""
    if operation == "mint":
        mint_counter.labels(outcome="rejected").inc()
    rejected_operations_counter.labels(operation=operation, error=type(exc).__name__).inc()


def record_schedule_created(locked: int) -> None:
    schedules_created_counter.inc()
    escrow_locked_gauge.set(locked)


def record_release(amount: int, locked: int) -> None:
    release_events_counter.inc()
    if amount > 0:
        released_tokens_counter.inc(amount)
    escrow_locked_gauge.set(locked)
