"""Best-effort, bounded history of sensor readings.

The history is kept for introspection only (the status endpoint serves it).
The control loop does not read it back, so losing entries is harmless.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional

from ..commands import Command, encode_command
from ..datum import Datum
from .models import DeviceId


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    datum: Datum
    command: Optional[Command] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "datum": self.datum.as_dict(),
            "command": encode_command(self.command) if self.command is not None else None,
            "recordedAt": self.recorded_at.isoformat(timespec="seconds"),
        }


class DeviceHistory:
    """Keeps the last ``max_entries`` readings per device id."""

    MAX_ENTRIES = 100

    def __init__(
        self,
        *,
        max_entries: int = MAX_ENTRIES,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._max_entries = max(1, max_entries)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[DeviceId, Deque[HistoryEntry]] = {}

    def record(
        self, device_id: DeviceId, datum: Datum, command: Optional[Command] = None
    ) -> HistoryEntry:
        entry = HistoryEntry(datum=datum, command=command, recorded_at=self._clock())
        bucket = self._entries.get(device_id)
        if bucket is None:
            bucket = deque(maxlen=self._max_entries)
            self._entries[device_id] = bucket
        bucket.append(entry)
        return entry

    def entries(self, device_id: DeviceId) -> List[HistoryEntry]:
        return list(self._entries.get(device_id, ()))

    def latest(self, device_id: DeviceId) -> Optional[HistoryEntry]:
        bucket = self._entries.get(device_id)
        if not bucket:
            return None
        return bucket[-1]

    def device_ids(self) -> List[DeviceId]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def as_dict(self) -> Dict[str, List[Dict[str, object]]]:
        return {
            device_id: [entry.as_dict() for entry in bucket]
            for device_id, bucket in self._entries.items()
        }
