"""
Vesting Engine - linear vesting with a cliff, released from escrow.

Tokens for a schedule are minted into the engine's escrow account when the
schedule is created and move to the beneficiary as they vest. Each
beneficiary holds at most one schedule for the life of the engine.

Usage:
    guard = SupplyGuard(ledger, max_supply=10**24, authorizer=owner)
    engine = VestingEngine(guard, owner, escrow_address="0xescrow")
    engine.create_schedule("0xowner", "0xalice", 1200, start, 1200, 300)
    engine.release("0xalice")  # anyone may call
"""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from . import vesting_metrics
from .access_control import Authorizer, require_authorized
from .contracts.token_ledger import is_zero_address, normalize_address
from .ledger_exceptions import (
    ArithmeticOverflowError,
    InsufficientBalanceError,
    InvalidConfigError,
    InvalidScheduleError,
    LedgerError,
    NoScheduleError,
    NothingDueError,
    ScheduleExistsError,
    get_error_context,
)
from .safe_math import checked_add, checked_sub, require_uint
from .schedule_store import ScheduleStore
from .supply_guard import SupplyGuard
from .vesting_schedule import ScheduleState, VestingSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleCreated:
    beneficiary: str
    total_amount: int
    start_time: int
    duration: int
    cliff_offset: int


@dataclass(frozen=True)
class TokensReleased:
    beneficiary: str
    amount: int


VestingEvent = Union[ScheduleCreated, TokensReleased]


class VestingEngine:
    """
    Owns beneficiary schedules and the escrow account that backs them.

    Invariants:
    - released_amount <= total_amount for every schedule
    - escrow balance >= sum of (total_amount - released_amount)

    create_schedule runs under the engine lock and the beneficiary's lock;
    release runs under the beneficiary's lock so concurrent releases for one
    beneficiary never read the same released_amount. Readers take the same
    locks, so a schedule mid-create or mid-release is never observed.
    """

    def __init__(
        self,
        supply_guard: SupplyGuard,
        authorizer: Authorizer,
        escrow_address: str,
        store: ScheduleStore | None = None,
        time_provider: Callable[[], int] | None = None,
    ):
        if is_zero_address(escrow_address):
            raise InvalidConfigError("Escrow address cannot be empty or zero")

        self.supply_guard = supply_guard
        self.ledger = supply_guard.ledger
        self.authorizer = authorizer
        self.escrow_address = normalize_address(escrow_address)
        self.store = store if store is not None else ScheduleStore()
        self._time_provider = time_provider or (lambda: int(time.time()))

        self.events: List[VestingEvent] = []
        self._listeners: List[Callable[[VestingEvent], None]] = []

        self._lock = threading.RLock()
        self._beneficiary_locks: Dict[str, threading.Lock] = {
            schedule.beneficiary: threading.Lock() for schedule in self.store.values()
        }
        self._locks_guard = threading.Lock()

        logger.info(
            "VestingEngine initialized",
            extra={
                "event": "vesting.init",
                "escrow": self.escrow_address[:10],
                "schedules": len(self.store),
                "deterministic_time": bool(time_provider),
            },
        )

    # ==================== Helpers ====================

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return require_uint(int(timestamp), "now")
        except (TypeError, ValueError, ArithmeticOverflowError) as exc:
            raise ValueError(
                f"time_provider must return a non-negative integer timestamp, got {timestamp!r}"
            ) from exc

    @staticmethod
    def _key(beneficiary: Any) -> str:
        if not isinstance(beneficiary, str):
            return ""
        return normalize_address(beneficiary)

    def _existing_lock(self, key: str) -> Optional[threading.Lock]:
        # Only create_schedule adds entries, after authorization and validation.
        with self._locks_guard:
            return self._beneficiary_locks.get(key)

    def _create_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._beneficiary_locks.setdefault(key, threading.Lock())

    def _no_schedule(self, key: str) -> NoScheduleError:
        return NoScheduleError(f"No vesting schedule for {key[:10]}", details={"beneficiary": key})

    def _read_schedule(self, beneficiary: str) -> Optional[VestingSchedule]:
        """Copy of a committed schedule, never one mid-create or mid-release."""
        key = self._key(beneficiary)
        lock = self._existing_lock(key)
        if lock is None:
            return None
        with lock:
            schedule = self.store.get(key)
            return dataclasses.replace(schedule) if schedule is not None else None

    def _require_schedule(self, beneficiary: str) -> VestingSchedule:
        schedule = self._read_schedule(beneficiary)
        if schedule is None:
            raise self._no_schedule(self._key(beneficiary))
        return schedule

    @contextlib.contextmanager
    def _quiesced(self) -> Iterator[None]:
        """
        Hold the engine lock and every beneficiary lock.

        Lock order is engine lock, then beneficiary locks in key order; release
        holds a single beneficiary lock, so this cannot deadlock with it.
        Must not be entered from inside create_schedule or release.
        """
        with self._lock, contextlib.ExitStack() as stack:
            with self._locks_guard:
                locks = [lock for _, lock in sorted(self._beneficiary_locks.items())]
            for lock in locks:
                stack.enter_context(lock)
            yield

    def _emit(self, event: VestingEvent) -> None:
        self.events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # The operation has already committed; a listener cannot undo it.
                logger.exception(
                    "Vesting event listener failed",
                    extra={"event": "vesting.listener_failed", "event_type": type(event).__name__},
                )

    def _validate_schedule_params(
        self,
        beneficiary: str,
        total_amount: int,
        start_time: int,
        duration: int,
        cliff_offset: int,
    ) -> str:
        if not isinstance(beneficiary, str) or is_zero_address(beneficiary):
            raise InvalidScheduleError("Beneficiary cannot be empty or zero address")
        key = normalize_address(beneficiary)
        if key == self.escrow_address:
            raise InvalidScheduleError("Beneficiary cannot be the escrow account")

        try:
            require_uint(total_amount, "total_amount")
            if total_amount == 0:
                raise InvalidScheduleError("Total amount must be greater than zero")
            require_uint(duration, "duration")
            if duration == 0:
                raise InvalidScheduleError("Duration must be greater than zero")
            require_uint(cliff_offset, "cliff_offset")
            if cliff_offset > duration:
                raise InvalidScheduleError(
                    f"Cliff offset {cliff_offset} exceeds duration {duration}",
                    details={"cliff_offset": cliff_offset, "duration": duration},
                )
            require_uint(start_time, "start_time")
            # end_time must be representable; cliff_time <= end_time follows
            checked_add(start_time, duration)
        except ArithmeticOverflowError as exc:
            raise InvalidScheduleError(exc.message, details=exc.details) from exc

        return key

    # ==================== Schedule Lifecycle ====================

    def create_schedule(
        self,
        caller: str,
        beneficiary: str,
        total_amount: int,
        start_time: int,
        duration: int,
        cliff_offset: int,
    ) -> VestingSchedule:
        """
        Create a vesting schedule and mint its tokens into escrow.

        Args:
            caller: Address invoking the operation (must be authorized)
            beneficiary: Address entitled to the vested tokens
            total_amount: Tokens to vest
            start_time: Unix timestamp vesting accrues from
            duration: Seconds from start_time until fully vested
            cliff_offset: Seconds from start_time before anything vests

        Returns:
            A copy of the stored schedule

        Raises:
            UnauthorizedError, InvalidScheduleError, ScheduleExistsError,
            SupplyExceededError
        """
        try:
            require_authorized(self.authorizer, caller, "create vesting schedule")
            key = self._validate_schedule_params(
                beneficiary, total_amount, start_time, duration, cliff_offset
            )

            with self._lock, self._create_lock(key):
                if self.store.contains(key):
                    raise ScheduleExistsError(
                        f"Vesting schedule already exists for {key[:10]}",
                        details={"beneficiary": key},
                    )

                schedule = VestingSchedule(
                    beneficiary=key,
                    total_amount=total_amount,
                    start_time=start_time,
                    duration=duration,
                    cliff_time=start_time + cliff_offset,
                )
                self.store.put(schedule)
                try:
                    self.supply_guard.issue(self.escrow_address, total_amount)
                except LedgerError:
                    self.store.delete(key)
                    raise
                created = dataclasses.replace(schedule)
        except LedgerError as exc:
            vesting_metrics.record_rejection("create_schedule", exc)
            logger.warning(
                "Vesting schedule rejected",
                extra={
                    "event": "vesting.create_rejected",
                    "beneficiary": str(beneficiary)[:10],
                    **get_error_context(exc),
                },
            )
            raise

        vesting_metrics.record_schedule_created(self.locked_amount())
        logger.info(
            "Vesting schedule created",
            extra={
                "event": "vesting.schedule_created",
                "beneficiary": key[:10],
                "total_amount": total_amount,
                "start_time": start_time,
                "duration": duration,
                "cliff_offset": cliff_offset,
            },
        )
        self._emit(
            ScheduleCreated(
                beneficiary=key,
                total_amount=total_amount,
                start_time=start_time,
                duration=duration,
                cliff_offset=cliff_offset,
            )
        )
        return created

    def release(self, beneficiary: str) -> int:
        """
        Transfer everything vested but not yet released to the beneficiary.

        Callable by anyone on behalf of any beneficiary.

        Returns:
            The amount released

        Raises:
            NoScheduleError: beneficiary has no schedule
            NothingDueError: nothing is releasable right now
            InsufficientBalanceError: escrow underfunded (invariant violation)
        """
        key = self._key(beneficiary)
        try:
            lock = self._existing_lock(key)
            if lock is None:
                raise self._no_schedule(key)
            with lock:
                schedule = self.store.get(key)
                if schedule is None:
                    raise self._no_schedule(key)
                now = self._current_time()
                vested = schedule.vested_at(now)
                try:
                    releasable = checked_sub(vested, schedule.released_amount)
                except ArithmeticOverflowError:
                    logger.critical(
                        "Released amount exceeds vested amount",
                        extra={
                            "event": "vesting.invariant_violation",
                            "beneficiary": key[:10],
                            "vested": vested,
                            "released": schedule.released_amount,
                        },
                    )
                    raise

                if releasable == 0:
                    raise NothingDueError(
                        f"No tokens due for {key[:10]}",
                        details={
                            "beneficiary": key,
                            "now": now,
                            "released": schedule.released_amount,
                            "total": schedule.total_amount,
                        },
                    )

                previous = schedule.released_amount
                schedule.released_amount = checked_add(previous, releasable)
                try:
                    self.store.put(schedule)
                    self.ledger.transfer(self.escrow_address, key, releasable)
                except LedgerError as exc:
                    schedule.released_amount = previous
                    self.store.put(schedule)
                    if isinstance(exc, InsufficientBalanceError):
                        logger.critical(
                            "Escrow cannot cover vested release",
                            extra={
                                "event": "vesting.escrow_underfunded",
                                "beneficiary": key[:10],
                                "amount": releasable,
                                "escrow_balance": self.ledger.balance_of(self.escrow_address),
                            },
                        )
                    raise
                released_total = schedule.released_amount
                total_amount = schedule.total_amount
        except LedgerError as exc:
            vesting_metrics.record_rejection("release", exc)
            raise

        vesting_metrics.record_release(releasable, self.locked_amount())
        logger.info(
            "Vested tokens released",
            extra={
                "event": "vesting.released",
                "beneficiary": key[:10],
                "amount": releasable,
                "released_total": released_total,
                "total_amount": total_amount,
            },
        )
        self._emit(TokensReleased(beneficiary=key, amount=releasable))
        return releasable

    # ==================== Queries ====================

    def vested_amount(self, beneficiary: str, now: int | None = None) -> int:
        """
        Cumulative amount vested for a beneficiary at ``now``.

        Does not account for what has already been released.

        Raises:
            NoScheduleError: beneficiary has no schedule
        """
        schedule = self._require_schedule(beneficiary)
        if now is None:
            now = self._current_time()
        return schedule.vested_at(now)

    def releasable_amount(self, beneficiary: str, now: int | None = None) -> int:
        """Amount a release would transfer at ``now``."""
        schedule = self._require_schedule(beneficiary)
        if now is None:
            now = self._current_time()
        return checked_sub(schedule.vested_at(now), schedule.released_amount)

    def get_schedule(self, beneficiary: str) -> Optional[VestingSchedule]:
        """Return a copy of the beneficiary's schedule, or None if there is none."""
        return self._read_schedule(beneficiary)

    def has_schedule(self, beneficiary: str) -> bool:
        return self._read_schedule(beneficiary) is not None

    def schedules(self) -> Iterator[VestingSchedule]:
        with self._quiesced():
            snapshot = [dataclasses.replace(schedule) for schedule in self.store.values()]
        return iter(snapshot)

    def get_status(self, beneficiary: str, now: int | None = None) -> Dict[str, Any]:
        schedule = self._read_schedule(beneficiary)
        if schedule is None:
            return {
                "beneficiary": self._key(beneficiary),
                "state": ScheduleState.NONEXISTENT.value,
            }
        if now is None:
            now = self._current_time()
        vested = schedule.vested_at(now)
        status = schedule.to_dict()
        status.update(
            {
                "cliff_offset": schedule.cliff_offset,
                "end_time": schedule.end_time,
                "vested": vested,
                "releasable": checked_sub(vested, schedule.released_amount),
                "state": schedule.state.value,
                "as_of": now,
            }
        )
        return status

    def locked_amount(self) -> int:
        """Sum of unreleased tokens across all schedules."""
        with self._quiesced():
            return self._locked_total()

    def _locked_total(self) -> int:
        total = 0
        for schedule in self.store.values():
            total = checked_add(total, schedule.remaining_amount)
        return total

    def escrow_shortfall(self) -> int:
        """How far escrow falls below what schedules still owe (0 when solvent)."""
        with self._quiesced():
            locked = self._locked_total()
            balance = self.ledger.balance_of(self.escrow_address)
        return locked - balance if locked > balance else 0

    # ==================== Observers ====================

    def subscribe(self, listener: Callable[[VestingEvent], None]) -> None:
        """Register a callback invoked with each event after it commits."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[VestingEvent], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


__all__ = [
    "ScheduleCreated",
    "TokensReleased",
    "VestingEngine",
    "VestingEvent",
]
