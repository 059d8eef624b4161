"""
Wires a ledger, supply guard, authorizer, schedule store and vesting engine
from a LedgerConfig.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .access_control import OwnerAuthorizer
from .config import LedgerConfig
from .contracts.token_ledger import TokenLedger
from .ledger_exceptions import InvalidConfigError
from .logging_config import setup_logging
from .schedule_store import JsonFileScheduleStore, ScheduleStore
from .supply_guard import SupplyGuard
from .vesting import VestingEngine

logger = logging.getLogger(__name__)


@dataclass
class LedgerComponents:
    ledger: TokenLedger
    authorizer: OwnerAuthorizer
    supply_guard: SupplyGuard
    engine: VestingEngine


def build_ledger(
    config: LedgerConfig,
    ledger: Optional[TokenLedger] = None,
    persist: bool = True,
    time_provider: Optional[Callable[[], int]] = None,
    configure_logging: bool = False,
) -> LedgerComponents:
    """
    Build the full component graph.

    Args:
        config: Loaded configuration
        ledger: Existing ledger state, e.g. TokenLedger.from_dict(saved). A fresh
            ledger is created if omitted, which is only valid when no
            schedules are persisted yet
        persist: Back schedules with a JSON file under config.data_dir
        time_provider: Clock override for the vesting engine
        configure_logging: Install the JSON log handlers for the package

    Raises:
        InvalidConfigError: persisted schedules exist but no ledger was given
    """
    if configure_logging:
        setup_logging(
            name="vestledger",
            log_file=config.log_file,
            level=config.log_level,
            environment=config.network.value,
        )

    store = JsonFileScheduleStore(config.schedule_store_path) if persist else ScheduleStore()
    if ledger is None:
        if len(store):
            raise InvalidConfigError(
                "Persisted vesting schedules need the matching ledger state",
                details={"path": config.schedule_store_path, "schedules": len(store)},
            )
        ledger = TokenLedger()
    authorizer = OwnerAuthorizer(config.owner_address)
    guard = SupplyGuard(ledger, config.max_supply, authorizer)
    engine = VestingEngine(
        guard,
        authorizer,
        escrow_address=config.escrow_address,
        store=store,
        time_provider=time_provider,
    )

    shortfall = engine.escrow_shortfall()
    if shortfall:
        logger.critical(
            "Escrow balance does not cover loaded schedules",
            extra={"event": "ledger_factory.escrow_shortfall", "shortfall": shortfall},
        )

    logger.info(
        "Ledger components built",
        extra={
            "event": "ledger_factory.built",
            "network": config.network.value,
            "max_supply": config.max_supply,
            "persist": persist,
        },
    )
    return LedgerComponents(ledger=ledger, authorizer=authorizer, supply_guard=guard, engine=engine)
