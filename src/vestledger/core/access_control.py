"""
Capability checks for privileged ledger operations.

Privileged entry points (minting, schedule creation) consume any object that
answers ``is_authorized(caller) -> bool``. Two implementations ship here:

- OwnerAuthorizer: a single owner address holds every privilege.
- RoleAuthorizer: per-address role grants, with ADMIN managing the grants.

Release is not gated: anyone may trigger a release on behalf of
a beneficiary.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Protocol, Set, runtime_checkable

from .contracts.token_ledger import is_zero_address, normalize_address
from .ledger_exceptions import InvalidConfigError, UnauthorizedError

logger = logging.getLogger(__name__)


class Role(Enum):
    """Standard roles for ledger access control."""
    ADMIN = "admin"
    MINTER = "minter"
    VESTING_ADMIN = "vesting_admin"


@runtime_checkable
class Authorizer(Protocol):
    def is_authorized(self, caller: str) -> bool:
        ...


def require_authorized(authorizer: Authorizer, caller: str, operation: str) -> None:
    """Raise UnauthorizedError unless authorizer accepts caller."""
    if caller and authorizer.is_authorized(caller):
        return
    _deny(caller, operation)


def _deny(caller: str, operation: str) -> None:
    logger.warning(
        "Access denied",
        extra={
            "event": "access_control.denied",
            "operation": operation,
            "caller": str(caller or "")[:10],
        },
    )
    raise UnauthorizedError(
        f"Caller is not authorized to {operation}",
        details={"caller": caller, "operation": operation},
    )


@dataclass
class OwnerAuthorizer:
    """Single-owner capability: only the owner address is authorized."""

    owner: str

    def __post_init__(self) -> None:
        if is_zero_address(self.owner):
            raise InvalidConfigError("Owner address cannot be empty or zero")
        self.owner = normalize_address(self.owner)

    def is_authorized(self, caller: str) -> bool:
        return isinstance(caller, str) and normalize_address(caller) == self.owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        require_authorized(self, caller, "transfer ownership")
        if is_zero_address(new_owner):
            raise InvalidConfigError("New owner cannot be empty or zero")
        previous = self.owner
        self.owner = normalize_address(new_owner)
        logger.info(
            "Ownership transferred",
            extra={
                "event": "access_control.ownership_transferred",
                "previous": previous[:10],
                "owner": self.owner[:10],
            },
        )


@dataclass
class RoleAuthorizer:
    """
    Role-based capability check.

    ``required_role`` is the role is_authorized() tests for; ADMIN always
    passes. Two authorizers can share one grant table through ``grants``,
    e.g. a MINTER authorizer for the supply guard and a VESTING_ADMIN
    authorizer for the engine.

    Usage:
        grants = {}
        minters = RoleAuthorizer(Role.MINTER, grants=grants, admin="0xadmin")
        vesting = RoleAuthorizer(Role.VESTING_ADMIN, grants=grants)
        minters.grant_role("0xadmin", Role.VESTING_ADMIN, "0xops")
    """

    required_role: Role = Role.ADMIN
    grants: Dict[str, Set[Role]] = field(default_factory=dict)
    admin: str = ""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.admin:
            self.grants.setdefault(normalize_address(self.admin), set()).add(Role.ADMIN)

    def has_role(self, account: str, role: Role) -> bool:
        if not isinstance(account, str) or not account:
            return False
        with self._lock:
            return role in self.grants.get(normalize_address(account), set())

    def is_authorized(self, caller: str) -> bool:
        return self.has_role(caller, self.required_role) or self.has_role(caller, Role.ADMIN)

    def grant_role(self, caller: str, role: Role, account: str) -> None:
        if not self.has_role(caller, Role.ADMIN):
            _deny(caller, f"grant {role.value}")
        if is_zero_address(account):
            raise InvalidConfigError("Cannot grant a role to the zero address")
        with self._lock:
            self.grants.setdefault(normalize_address(account), set()).add(role)
        logger.info(
            "Role granted",
            extra={
                "event": "access_control.role_granted",
                "role": role.value,
                "account": normalize_address(account)[:10],
            },
        )

    def revoke_role(self, caller: str, role: Role, account: str) -> None:
        if not self.has_role(caller, Role.ADMIN):
            _deny(caller, f"revoke {role.value}")
        with self._lock:
            self.grants.get(normalize_address(account), set()).discard(role)
        logger.info(
            "Role revoked",
            extra={
                "event": "access_control.role_revoked",
                "role": role.value,
                "account": normalize_address(account)[:10],
            },
        )


__all__ = [
    "Authorizer",
    "OwnerAuthorizer",
    "Role",
    "RoleAuthorizer",
    "require_authorized",
]
