import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[2]
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from vestledger.core.access_control import OwnerAuthorizer
from vestledger.core.contracts.token_ledger import TokenLedger
from vestledger.core.supply_guard import SupplyGuard
from vestledger.core.vesting import VestingEngine

OWNER = "0x" + "aa" * 20
ESCROW = "0x" + "ee" * 20

START = 1_700_000_000


class ManualClock:
    """Deterministic time provider for vesting tests."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def owner_auth():
    return OwnerAuthorizer(OWNER)


@pytest.fixture
def ledger():
    return TokenLedger()


@pytest.fixture
def guard(ledger, owner_auth):
    return SupplyGuard(ledger, max_supply=1_000_000, authorizer=owner_auth)


@pytest.fixture
def engine(guard, owner_auth, clock):
    return VestingEngine(guard, owner_auth, escrow_address=ESCROW, time_provider=clock)
