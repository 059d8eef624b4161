"""
vestledger Configuration

Supports testnet and mainnet with separate defaults. Every value can be
overridden through ``VESTLEDGER_*`` environment variables.

SECURITY NOTICE:
- Mainnet requires an explicit owner address; there is no default owner
- Use different owner and escrow addresses for testnet vs mainnet
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .ledger_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "VESTLEDGER_"


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class TestnetConfig:
    """Testnet defaults (local testing before mainnet)"""

    NETWORK_TYPE = NetworkType.TESTNET
    MAX_SUPPLY = 121_000_000 * 10**18
    ESCROW_ADDRESS = "0x" + "e5c" * 13 + "0"
    OWNER_ADDRESS = "0x" + "0a" * 19 + "01"
    DATA_DIR = "data_testnet"
    LOG_LEVEL = "DEBUG"


class MainnetConfig:
    """Mainnet defaults"""

    NETWORK_TYPE = NetworkType.MAINNET
    MAX_SUPPLY = 121_000_000 * 10**18
    ESCROW_ADDRESS = "0x" + "e5c" * 13 + "1"
    OWNER_ADDRESS = ""  # must come from the environment
    DATA_DIR = "data"
    LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class LedgerConfig:
    network: NetworkType
    max_supply: int
    escrow_address: str
    owner_address: str
    data_dir: str
    log_level: str
    log_file: Optional[str] = None

    @property
    def schedule_store_path(self) -> str:
        return os.path.join(self.data_dir, "vesting_schedules.json")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """
        Build configuration from environment variables.

        Raises:
            ConfigurationError: unknown network, non-integer or non-positive
                max supply, invalid log level, missing mainnet owner
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str = "") -> str:
            return env.get(ENV_PREFIX + name, default).strip()

        network_name = get("NETWORK", "testnet").lower()
        try:
            network = NetworkType(network_name)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown network {network_name!r}; expected testnet or mainnet"
            ) from exc
        defaults = MainnetConfig if network is NetworkType.MAINNET else TestnetConfig

        raw_supply = get("MAX_SUPPLY", str(defaults.MAX_SUPPLY)).replace("_", "")
        try:
            max_supply = int(raw_supply)
        except ValueError as exc:
            raise ConfigurationError(
                f"{ENV_PREFIX}MAX_SUPPLY must be an integer, got {raw_supply!r}"
            ) from exc
        if max_supply <= 0:
            raise ConfigurationError(f"{ENV_PREFIX}MAX_SUPPLY must be positive")

        owner = get("OWNER_ADDRESS", defaults.OWNER_ADDRESS)
        if not owner:
            raise ConfigurationError(
                f"CRITICAL: {ENV_PREFIX}OWNER_ADDRESS environment variable required for {network.value}"
            )
        if network is NetworkType.TESTNET and not get("OWNER_ADDRESS"):
            logger.warning(
                "Using default testnet owner address. Set %sOWNER_ADDRESS for shared deployments.",
                ENV_PREFIX,
                extra={"event": "config.default_owner"},
            )

        log_level = get("LOG_LEVEL", defaults.LOG_LEVEL).upper()
        if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log level {log_level!r}")

        return cls(
            network=network,
            max_supply=max_supply,
            escrow_address=get("ESCROW_ADDRESS", defaults.ESCROW_ADDRESS),
            owner_address=owner,
            data_dir=get("DATA_DIR", defaults.DATA_DIR),
            log_level=log_level,
            log_file=get("LOG_FILE") or None,
        )


__all__ = [
    "ENV_PREFIX",
    "LedgerConfig",
    "MainnetConfig",
    "NetworkType",
    "TestnetConfig",
]
