"""
Vesting Invariant Tests using Property-Based Testing

Verifies the vesting curve and release accounting across generated schedules
and release timelines:
- nothing vests before the cliff, everything vests at the end
- vested amount never decreases as time moves forward
- released_amount never exceeds total_amount, escrow always covers the rest
- a second release at the same instant always finds nothing due
"""

from __future__ import annotations

import pytest
from hypothesis import assume, given, settings, strategies as st

from vestledger.core.access_control import OwnerAuthorizer
from vestledger.core.contracts.token_ledger import TokenLedger
from vestledger.core.ledger_exceptions import NothingDueError, SupplyExceededError
from vestledger.core.supply_guard import SupplyGuard
from vestledger.core.vesting import VestingEngine
from vestledger.core.vesting_schedule import VestingSchedule

OWNER = "0x" + "aa" * 20
ESCROW = "0x" + "ee" * 20
ALICE = "0x" + "a1" * 20

amounts = st.integers(min_value=1, max_value=10**30)
starts = st.integers(min_value=0, max_value=4_000_000_000)
durations = st.integers(min_value=1, max_value=10 * 365 * 24 * 3600)


@st.composite
def schedules(draw):
    total = draw(amounts)
    start = draw(starts)
    duration = draw(durations)
    cliff = draw(st.integers(min_value=0, max_value=duration))
    return VestingSchedule(
        beneficiary=ALICE,
        total_amount=total,
        start_time=start,
        duration=duration,
        cliff_time=start + cliff,
    )


class TestVestingCurveInvariants:
    @given(schedules(), st.integers(min_value=0, max_value=10**10))
    @settings(max_examples=300)
    def test_zero_before_cliff(self, schedule: VestingSchedule, offset: int):
        assume(offset < schedule.cliff_time)
        assert schedule.vested_at(schedule.cliff_time - 1 - (offset % schedule.cliff_time)) == 0

    @given(schedules(), st.integers(min_value=0, max_value=10**10))
    @settings(max_examples=300)
    def test_total_after_end(self, schedule: VestingSchedule, extra: int):
        assert schedule.vested_at(schedule.end_time + extra) == schedule.total_amount

    @given(schedules(), st.integers(min_value=0, max_value=10**10), st.integers(min_value=0, max_value=10**10))
    @settings(max_examples=300)
    def test_monotonic_and_bounded(self, schedule: VestingSchedule, a: int, b: int):
        earlier, later = sorted((a, b))
        vested_earlier = schedule.vested_at(earlier)
        vested_later = schedule.vested_at(later)
        assert 0 <= vested_earlier <= vested_later <= schedule.total_amount

    @given(schedules(), st.integers(min_value=0, max_value=10**10))
    @settings(max_examples=300)
    def test_matches_floor_formula_inside_window(self, schedule: VestingSchedule, offset: int):
        now = schedule.cliff_time + offset % schedule.duration
        assume(now < schedule.end_time)
        expected = schedule.total_amount * (now - schedule.start_time) // schedule.duration
        assert schedule.vested_at(now) == expected


class TestReleaseAccountingInvariants:
    @given(
        total=st.integers(min_value=1, max_value=10**24),
        duration=st.integers(min_value=1, max_value=100_000),
        cliff_fraction=st.floats(min_value=0.0, max_value=1.0),
        steps=st.lists(st.integers(min_value=0, max_value=20_000), min_size=1, max_size=25),
    )
    @settings(max_examples=200, deadline=None)
    def test_release_sequence_never_overpays(self, total, duration, cliff_fraction, steps):
        start = 1_700_000_000
        cliff = min(duration, int(duration * cliff_fraction))
        clock = {"now": start}

        ledger = TokenLedger()
        auth = OwnerAuthorizer(OWNER)
        engine = VestingEngine(
            SupplyGuard(ledger, total, auth),
            auth,
            escrow_address=ESCROW,
            time_provider=lambda: clock["now"],
        )
        engine.create_schedule(OWNER, ALICE, total, start, duration, cliff)

        for step in steps:
            clock["now"] += step
            expected = engine.releasable_amount(ALICE)
            try:
                released = engine.release(ALICE)
            except NothingDueError:
                assert expected == 0
            else:
                assert released == expected > 0
                with pytest.raises(NothingDueError):
                    engine.release(ALICE)

            schedule = engine.get_schedule(ALICE)
            assert schedule.released_amount <= schedule.total_amount
            assert schedule.released_amount == ledger.balance_of(ALICE)
            assert ledger.balance_of(ESCROW) == schedule.remaining_amount
            assert engine.escrow_shortfall() == 0

        clock["now"] = start + duration
        if engine.releasable_amount(ALICE):
            engine.release(ALICE)
        assert ledger.balance_of(ALICE) == total
        assert ledger.balance_of(ESCROW) == 0

    @given(
        max_supply=st.integers(min_value=1, max_value=10**12),
        requests=st.lists(st.integers(min_value=1, max_value=10**12), min_size=1, max_size=10),
    )
    @settings(max_examples=200, deadline=None)
    def test_supply_never_exceeds_ceiling(self, max_supply, requests):
        ledger = TokenLedger()
        auth = OwnerAuthorizer(OWNER)
        engine = VestingEngine(
            SupplyGuard(ledger, max_supply, auth),
            auth,
            escrow_address=ESCROW,
            time_provider=lambda: 0,
        )
        for i, amount in enumerate(requests):
            beneficiary = "0x" + f"{i + 1:040x}"
            before = ledger.total_supply()
            try:
                engine.create_schedule(OWNER, beneficiary, amount, 0, 100, 0)
            except SupplyExceededError:
                assert before + amount > max_supply
                assert ledger.total_supply() == before
                assert engine.get_schedule(beneficiary) is None
            assert ledger.total_supply() <= max_supply
