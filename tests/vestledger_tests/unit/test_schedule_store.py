"""
Unit tests for schedule storage and the JSON persistence boundary.
"""

import json
import os

import pytest

from vestledger.core.access_control import OwnerAuthorizer
from vestledger.core.contracts.token_ledger import TokenLedger
from vestledger.core.ledger_exceptions import CorruptedDataError, StorageError
from vestledger.core.schedule_store import JsonFileScheduleStore, ScheduleStore
from vestledger.core.supply_guard import SupplyGuard
from vestledger.core.vesting import VestingEngine
from vestledger.core.vesting_schedule import VestingSchedule

OWNER = "0x" + "aa" * 20
ESCROW = "0x" + "ee" * 20
ALICE = "0x" + "a1" * 20
T = 1_700_000_000


def _schedule(beneficiary=ALICE, released=0):
    return VestingSchedule(
        beneficiary=beneficiary,
        total_amount=1000,
        start_time=T,
        duration=1000,
        cliff_time=T + 100,
        released_amount=released,
    )


def test_memory_store_basic_operations():
    store = ScheduleStore()
    assert store.get(ALICE) is None
    store.put(_schedule())
    assert store.contains(ALICE)
    assert len(store) == 1
    assert [s.beneficiary for s in store.values()] == [ALICE]
    store.delete(ALICE)
    assert not store.contains(ALICE)


def test_json_store_persists_and_reloads(tmp_path):
    path = str(tmp_path / "schedules.json")
    store = JsonFileScheduleStore(path)
    store.put(_schedule(released=250))

    reloaded = JsonFileScheduleStore(path)
    assert reloaded.get(ALICE) == _schedule(released=250)


def test_json_store_detects_tampering(tmp_path):
    path = str(tmp_path / "schedules.json")
    JsonFileScheduleStore(path).put(_schedule())

    with open(path) as f:
        package = json.load(f)
    package["schedules"][ALICE]["released_amount"] = 0
    package["schedules"][ALICE]["total_amount"] = 10**6
    with open(path, "w") as f:
        json.dump(package, f)

    with pytest.raises(CorruptedDataError):
        JsonFileScheduleStore(path)


def test_json_store_rejects_garbage(tmp_path):
    path = tmp_path / "schedules.json"
    path.write_text("{not json")
    with pytest.raises(CorruptedDataError):
        JsonFileScheduleStore(str(path))


def test_json_store_leaves_no_temp_file(tmp_path):
    path = str(tmp_path / "schedules.json")
    JsonFileScheduleStore(path).put(_schedule())
    assert os.listdir(tmp_path) == ["schedules.json"]


def test_failed_flush_reverts_memory(tmp_path, monkeypatch):
    store = JsonFileScheduleStore(str(tmp_path / "schedules.json"))

    def fail():
        raise StorageError("disk full")

    monkeypatch.setattr(store, "flush", fail)
    with pytest.raises(StorageError):
        store.put(_schedule())
    assert store.get(ALICE) is None


def test_engine_state_survives_restart(tmp_path):
    path = str(tmp_path / "schedules.json")
    now = {"t": T + 500}

    ledger = TokenLedger()
    auth = OwnerAuthorizer(OWNER)
    engine = VestingEngine(
        SupplyGuard(ledger, 10_000, auth),
        auth,
        escrow_address=ESCROW,
        store=JsonFileScheduleStore(path),
        time_provider=lambda: now["t"],
    )
    engine.create_schedule(OWNER, ALICE, 1000, T, 1000, 0)
    assert engine.release(ALICE) == 500

    restored_ledger = TokenLedger.from_dict(ledger.to_dict())
    restarted = VestingEngine(
        SupplyGuard(restored_ledger, 10_000, auth),
        auth,
        escrow_address=ESCROW,
        store=JsonFileScheduleStore(path),
        time_provider=lambda: now["t"],
    )
    assert restarted.get_schedule(ALICE).released_amount == 500
    assert restarted.escrow_shortfall() == 0

    now["t"] = T + 1000
    assert restarted.release(ALICE) == 500
    assert restored_ledger.balance_of(ALICE) == 1000
