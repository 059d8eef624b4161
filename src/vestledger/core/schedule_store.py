"""
Schedule storage.

The vesting engine keeps its beneficiary -> schedule map behind a small
key-value interface so the backing substrate can change:

- ScheduleStore: in-memory dictionary (default)
- JsonFileScheduleStore: in-memory map mirrored to a JSON file with atomic
  writes (temp file + rename) and a SHA-256 checksum verified on load
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from threading import Lock
from typing import Dict, Iterator, Optional

from .ledger_exceptions import CorruptedDataError, StorageError
from .vesting_schedule import VestingSchedule

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class ScheduleStore:
    """In-memory schedule store keyed by normalized beneficiary address."""

    def __init__(self) -> None:
        self._schedules: Dict[str, VestingSchedule] = {}

    def get(self, beneficiary: str) -> Optional[VestingSchedule]:
        return self._schedules.get(beneficiary)

    def contains(self, beneficiary: str) -> bool:
        return beneficiary in self._schedules

    def put(self, schedule: VestingSchedule) -> None:
        self._schedules[schedule.beneficiary] = schedule

    def delete(self, beneficiary: str) -> None:
        """Remove a record. Only used to roll back a failed creation."""
        self._schedules.pop(beneficiary, None)

    def values(self) -> Iterator[VestingSchedule]:
        return iter(list(self._schedules.values()))

    def __len__(self) -> int:
        return len(self._schedules)

    def flush(self) -> None:
        """Persist pending changes. No-op for the in-memory store."""

    def to_dict(self) -> Dict[str, Dict]:
        return {key: schedule.to_dict() for key, schedule in self._schedules.items()}


class JsonFileScheduleStore(ScheduleStore):
    """
    Schedule store persisted to a single JSON file.

    Features:
    - Atomic writes (write to temp, fsync, then rename)
    - SHA-256 checksum over the schedule payload
    - Corruption detected on load raises CorruptedDataError
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self.lock = Lock()
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        self._load()

    def put(self, schedule: VestingSchedule) -> None:
        previous = self._schedules.get(schedule.beneficiary)
        super().put(schedule)
        try:
            self.flush()
        except StorageError:
            if previous is None:
                self._schedules.pop(schedule.beneficiary, None)
            else:
                self._schedules[schedule.beneficiary] = previous
            raise

    def delete(self, beneficiary: str) -> None:
        super().delete(beneficiary)
        self.flush()

    def _calculate_checksum(self, data: str) -> str:
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return

        with self.lock:
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    package = json.load(f)
            except json.JSONDecodeError as e:
                raise CorruptedDataError(
                    f"Schedule store is not valid JSON: {e}", details={"path": self.path}
                ) from e
            except OSError as e:
                raise StorageError(
                    f"Failed to read schedule store: {e}", details={"path": self.path}
                ) from e

            schedules = package.get("schedules", {})
            expected = package.get("metadata", {}).get("checksum")
            payload = json.dumps(schedules, sort_keys=True)
            if expected != self._calculate_checksum(payload):
                raise CorruptedDataError(
                    "Schedule store checksum mismatch", details={"path": self.path}
                )

            for key, record in schedules.items():
                schedule = VestingSchedule.from_dict(record)
                if schedule.beneficiary != key:
                    raise CorruptedDataError(
                        "Schedule key does not match its beneficiary",
                        details={"key": key, "beneficiary": schedule.beneficiary},
                    )
                self._schedules[key] = schedule

        logger.info(
            "Loaded vesting schedules",
            extra={"event": "schedule_store.loaded", "count": len(self._schedules)},
        )

    def flush(self) -> None:
        """Write the full schedule map to disk atomically."""
        with self.lock:
            schedules = self.to_dict()
            payload = json.dumps(schedules, sort_keys=True)
            package = {
                "metadata": {
                    "version": STORE_FORMAT_VERSION,
                    "count": len(schedules),
                    "checksum": self._calculate_checksum(payload),
                },
                "schedules": schedules,
            }
            temp_file = self.path + ".tmp"
            try:
                with open(temp_file, "w", encoding="utf-8") as f:
                    json.dump(package, f, indent=2, sort_keys=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_file, self.path)
            except OSError as e:
                logger.error(
                    "Failed to save vesting schedules",
                    extra={
                        "event": "schedule_store.save_failed",
                        "path": self.path,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                raise StorageError(
                    f"Failed to save schedule store: {e}", details={"path": self.path}
                ) from e
