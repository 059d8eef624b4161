"""
Vesting schedule record and the linear-with-cliff vesting curve.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict

from .ledger_exceptions import CorruptedDataError, LedgerError
from .safe_math import checked_add, checked_div, checked_mul, checked_sub, require_uint


class ScheduleState(Enum):
    NONEXISTENT = "nonexistent"
    ACTIVE = "active"
    FULLY_RELEASED = "fully_released"


@dataclass
class VestingSchedule:
    """
    One beneficiary's vesting schedule.

    Everything except ``released_amount`` is fixed at creation.
    ``released_amount`` only grows, and only through a successful release.
    """

    beneficiary: str
    total_amount: int
    start_time: int
    duration: int
    cliff_time: int
    released_amount: int = 0

    @property
    def end_time(self) -> int:
        return checked_add(self.start_time, self.duration)

    @property
    def cliff_offset(self) -> int:
        return checked_sub(self.cliff_time, self.start_time)

    @property
    def remaining_amount(self) -> int:
        """Tokens still held in escrow for this schedule."""
        return checked_sub(self.total_amount, self.released_amount)

    @property
    def is_fully_released(self) -> bool:
        return self.released_amount == self.total_amount

    @property
    def state(self) -> ScheduleState:
        if self.is_fully_released:
            return ScheduleState.FULLY_RELEASED
        return ScheduleState.ACTIVE

    def vested_at(self, now: int) -> int:
        """
        Cumulative amount vested at ``now``.

        - before the cliff: 0
        - at or after start + duration: total_amount
        - otherwise: floor(total_amount * (now - start) / duration)

        The floor leaves rounding dust in escrow between releases; it is
        recovered once the schedule reaches its end time.
        """
        require_uint(now, "now")
        if now < self.cliff_time:
            return 0
        if now >= self.end_time:
            return self.total_amount
        elapsed = checked_sub(now, self.start_time)
        return checked_div(checked_mul(self.total_amount, elapsed), self.duration)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VestingSchedule":
        try:
            schedule = cls(
                beneficiary=str(data["beneficiary"]),
                total_amount=require_uint(int(data["total_amount"]), "total_amount"),
                start_time=require_uint(int(data["start_time"]), "start_time"),
                duration=require_uint(int(data["duration"]), "duration"),
                cliff_time=require_uint(int(data["cliff_time"]), "cliff_time"),
                released_amount=require_uint(int(data.get("released_amount", 0)), "released_amount"),
            )
        except (KeyError, TypeError, ValueError, LedgerError) as exc:
            raise CorruptedDataError(f"Invalid vesting schedule record: {exc}") from exc

        if (
            schedule.total_amount == 0
            or schedule.duration == 0
            or schedule.released_amount > schedule.total_amount
            or not schedule.start_time <= schedule.cliff_time <= schedule.start_time + schedule.duration
        ):
            raise CorruptedDataError(
                "Vesting schedule record violates schedule invariants",
                details={"beneficiary": schedule.beneficiary},
            )
        return schedule
