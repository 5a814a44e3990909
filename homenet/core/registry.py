"""In-memory contact registry mapping device ids to network addresses.

Sensors and actuators live in separate partitions, each guarded by its own
lock, so that discovery of one role never blocks readers of the other.

Locks are held only while a dictionary is mutated or copied. Nothing in this
module performs I/O, and no method yields to the event loop while holding a
lock: callers take a ``snapshot()`` and then talk to the network.

Entries never expire. A device resolved again under the same id and role
simply overwrites its previous address.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

from .models import Address, DeviceId, Role

LOGGER = logging.getLogger(__name__)


class _Partition:
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: Dict[DeviceId, Address] = {}


class ContactRegistry:
    """Concurrency-safe address book, one independently locked map per role.

    Usage:
        registry = ContactRegistry()
        registry.upsert("abc", Role.SENSOR, Address("127.0.0.1", 9001))

        for device_id, address in registry.snapshot(Role.SENSOR):
            ...  # network I/O happens here, outside any lock
    """

    def __init__(self) -> None:
        self._partitions: Dict[Role, _Partition] = {role: _Partition() for role in Role}

    def upsert(self, device_id: DeviceId, role: Role, address: Address) -> bool:
        """Insert or overwrite the address of ``device_id`` for ``role``.

        Returns:
            True when the entry is new or its address changed.
        """
        partition = self._partitions[role]
        with partition.lock:
            previous = partition.entries.get(device_id)
            partition.entries[device_id] = address

        changed = previous != address
        if changed:
            LOGGER.info(
                "Registered %s %s at %s%s",
                role.value,
                device_id,
                address,
                f" (was {previous})" if previous is not None else "",
            )
        return changed

    def get(self, device_id: DeviceId, role: Role) -> Optional[Address]:
        partition = self._partitions[role]
        with partition.lock:
            return partition.entries.get(device_id)

    def snapshot(self, role: Role) -> List[Tuple[DeviceId, Address]]:
        """Copy the entries of one partition; order is not meaningful."""
        partition = self._partitions[role]
        with partition.lock:
            return list(partition.entries.items())

    def size(self, role: Role) -> int:
        partition = self._partitions[role]
        with partition.lock:
            return len(partition.entries)

    def as_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            role.value: {device_id: str(address) for device_id, address in self.snapshot(role)}
            for role in Role
        }
