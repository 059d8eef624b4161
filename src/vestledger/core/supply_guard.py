"""
Supply Guard - bounded token issuance.

Every mint goes through the guard, which holds an immutable ceiling fixed at
construction and refuses any mint that would push total supply past it.
"""

from __future__ import annotations

import logging
import threading

from . import vesting_metrics
from .access_control import Authorizer, require_authorized
from .contracts.token_ledger import TokenLedger, is_zero_address, normalize_address
from .ledger_exceptions import (
    ArithmeticOverflowError,
    InvalidConfigError,
    LedgerError,
    SupplyExceededError,
    ValidationError,
)
from .safe_math import UINT256_MAX, checked_add, checked_sub, require_uint

logger = logging.getLogger(__name__)


class SupplyGuard:
    """
    Enforces a fixed maximum issuable supply on a ledger.

    The ceiling check and the ledger mint run under one lock so two
    concurrent mints cannot both pass the check.
    """

    def __init__(self, ledger: TokenLedger, max_supply: int, authorizer: Authorizer):
        if isinstance(max_supply, bool) or not isinstance(max_supply, int):
            raise InvalidConfigError("Max supply must be an integer")
        if max_supply <= 0 or max_supply > UINT256_MAX:
            raise InvalidConfigError(
                f"Max supply must be in (0, 2**256 - 1], got {max_supply}",
                details={"max_supply": max_supply},
            )
        if ledger.total_supply() > max_supply:
            raise InvalidConfigError(
                "Ledger supply already exceeds max supply",
                details={"total_supply": ledger.total_supply(), "max_supply": max_supply},
            )

        self.ledger = ledger
        self.authorizer = authorizer
        self._max_supply = max_supply
        self._lock = threading.RLock()
        logger.info(
            "SupplyGuard initialized",
            extra={"event": "supply_guard.init", "max_supply": max_supply},
        )

    @property
    def max_supply(self) -> int:
        return self._max_supply

    def total_supply(self) -> int:
        return self.ledger.total_supply()

    def remaining_supply(self) -> int:
        """Tokens that can still be minted before the ceiling is reached."""
        return checked_sub(self._max_supply, self.ledger.total_supply())

    def can_mint(self, amount: int) -> bool:
        try:
            require_uint(amount, "amount")
            return checked_add(self.ledger.total_supply(), amount) <= self._max_supply
        except ArithmeticOverflowError:
            return False

    def mint(self, caller: str, to: str, amount: int) -> None:
        """
        Mint tokens to an address (authorized callers only).

        Args:
            caller: Address invoking the mint
            to: Recipient of minted tokens
            amount: Amount to mint

        Raises:
            UnauthorizedError: caller lacks the mint capability
            SupplyExceededError: mint would exceed max supply
        """
        try:
            require_authorized(self.authorizer, caller, "mint")
        except LedgerError as exc:
            vesting_metrics.record_rejection("mint", exc)
            raise
        self.issue(to, amount)

    def issue(self, to: str, amount: int) -> None:
        """
        Mint under the ceiling without a caller check.

        Used by components that have already authorized their own caller,
        such as the vesting engine's escrow mint.
        """
        try:
            if is_zero_address(to):
                raise ValidationError(
                    "Mint recipient must be a non-zero address", details={"to": repr(to)}
                )
            require_uint(amount, "amount")
            with self._lock:
                current = self.ledger.total_supply()
                try:
                    new_supply = checked_add(current, amount)
                except ArithmeticOverflowError as exc:
                    raise SupplyExceededError(
                        "Mint would overflow total supply",
                        details={"total_supply": current, "amount": amount},
                    ) from exc
                if new_supply > self._max_supply:
                    raise SupplyExceededError(
                        f"Mint would exceed max supply ({new_supply} > {self._max_supply})",
                        details={
                            "total_supply": current,
                            "amount": amount,
                            "max_supply": self._max_supply,
                        },
                    )
                self.ledger.mint(to, amount)
        except LedgerError as exc:
            logger.warning(
                "Mint rejected",
                extra={
                    "event": "supply_guard.mint_rejected",
                    "to": str(to or "")[:10],
                    "amount": amount,
                    "error_type": type(exc).__name__,
                },
            )
            vesting_metrics.record_rejection("mint", exc)
            raise

        vesting_metrics.record_mint(amount)
        logger.info(
            "Minted tokens",
            extra={
                "event": "supply_guard.mint",
                "to": normalize_address(to)[:10],
                "amount": amount,
                "total_supply": self.ledger.total_supply(),
                "remaining_supply": self.remaining_supply(),
            },
        )
