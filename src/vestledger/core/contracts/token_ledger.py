"""
In-memory token ledger.

The balance store the supply guard and vesting engine call into. It exposes
only the surface they need:
- mint(account, amount)
- transfer(sender, recipient, amount)
- total_supply() / balance_of(account)
- Transfer events (mints are transfers from the zero address)

Approvals, allowances and permits are not part of this ledger. The supply
ceiling is enforced by SupplyGuard, not here; the ledger only guards its own
invariants (non-negative amounts, uint256 range, zero address).
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..ledger_exceptions import InsufficientBalanceError, ValidationError
from ..safe_math import checked_add, require_uint

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str) -> str:
    """Normalize address to lowercase."""
    if not isinstance(address, str):
        raise ValidationError(
            f"Address must be a string, got {type(address).__name__}",
            details={"address": repr(address)},
        )
    return address.strip().lower()


def is_zero_address(address: str | None) -> bool:
    """True for None, non-string, empty and all-zero addresses."""
    if not isinstance(address, str):
        return True
    return normalize_address(address) in ("", ZERO_ADDRESS)


@dataclass
class TokenEvent:
    """Represents a ledger Transfer event."""

    event_type: str
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class TokenLedger:
    """
    Balance and supply bookkeeping for a single token.

    All mutations run under one re-entrant lock so a mint or transfer is
    never observed half-applied.
    """

    name: str = "Vested Token"
    symbol: str = "VEST"
    decimals: int = 18

    supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    events: list[TokenEvent] = field(default_factory=list)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    # ==================== View Functions ====================

    def total_supply(self) -> int:
        return self.supply

    def balance_of(self, account: str) -> int:
        """
        Get the token balance of an account.

        Args:
            account: Address to check

        Returns:
            Token balance
        """
        return self.balances.get(normalize_address(account), 0)

    # ==================== State-Changing Functions ====================

    def mint(self, account: str, amount: int) -> None:
        """
        Credit newly issued tokens to account and grow total supply.

        Raises:
            ValidationError: zero address or negative amount
            ArithmeticOverflowError: supply or balance would leave uint256
        """
        account_norm = normalize_address(account)
        self._validate_address(account_norm, "recipient")
        require_uint(amount, "amount")

        with self._lock:
            new_supply = checked_add(self.supply, amount)
            new_balance = checked_add(self.balances.get(account_norm, 0), amount)
            self.supply = new_supply
            self.balances[account_norm] = new_balance
            self._emit_transfer(ZERO_ADDRESS, account_norm, amount)

        logger.info(
            "Ledger mint",
            extra={
                "event": "ledger.mint",
                "token": self.symbol,
                "to": account_norm[:10],
                "amount": amount,
                "new_supply": self.supply,
            },
        )

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move tokens from sender to recipient.

        Raises:
            InsufficientBalanceError: sender balance is below amount
            ValidationError: zero recipient or negative amount
        """
        sender_norm = normalize_address(sender)
        recipient_norm = normalize_address(recipient)
        self._validate_address(recipient_norm, "recipient")
        require_uint(amount, "amount")

        with self._lock:
            sender_balance = self.balances.get(sender_norm, 0)
            if sender_balance < amount:
                raise InsufficientBalanceError(
                    f"Ledger: transfer amount exceeds balance ({amount} > {sender_balance})",
                    details={
                        "sender": sender_norm,
                        "amount": amount,
                        "balance": sender_balance,
                    },
                )

            self.balances[sender_norm] = sender_balance - amount
            self.balances[recipient_norm] = checked_add(
                self.balances.get(recipient_norm, 0), amount
            )
            self._emit_transfer(sender_norm, recipient_norm, amount)

        logger.debug(
            "Ledger transfer",
            extra={
                "event": "ledger.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            },
        )

    # ==================== Helpers ====================

    def _validate_address(self, address: str, field_name: str) -> None:
        if is_zero_address(address):
            raise ValidationError(f"Ledger: {field_name} is zero address")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize ledger state to dictionary."""
        with self._lock:
            return {
                "name": self.name,
                "symbol": self.symbol,
                "decimals": self.decimals,
                "total_supply": self.supply,
                "balances": dict(self.balances),
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenLedger":
        """Deserialize ledger state from dictionary."""
        balances = {
            normalize_address(k): require_uint(int(v), "balance")
            for k, v in data.get("balances", {}).items()
        }
        supply = require_uint(int(data.get("total_supply", 0)), "total_supply")
        if sum(balances.values()) != supply:
            raise ValidationError(
                "Ledger: balances do not sum to total supply",
                details={"total_supply": supply, "balance_sum": sum(balances.values())},
            )
        return cls(
            name=data.get("name", "Vested Token"),
            symbol=data.get("symbol", "VEST"),
            decimals=data.get("decimals", 18),
            supply=supply,
            balances=balances,
        )


__all__ = [
    "TokenLedger",
    "TokenEvent",
    "ZERO_ADDRESS",
    "normalize_address",
    "is_zero_address",
]
