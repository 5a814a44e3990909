"""Long-running discovery agent committing resolved devices to the registry.

One agent runs per device role. Each agent browses its role's DNS-SD group
for as long as the controller runs; every resolved advertisement becomes an
``upsert`` into that role's half of the :class:`ContactRegistry`.

State machine::

    IDLE -> BROWSING -> COMMITTING -> BROWSING -> ... -> STOPPED

Malformed advertisements are logged and skipped. A backend failure stops
browsing; the agent restarts it after ``restart_delay`` seconds, or stops for
good when restarting is disabled.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from ..core.models import Role, ServiceRecord
from ..core.protocols import DiscoveryBackend
from ..core.registry import ContactRegistry
from ..datum import ParseError
from .records import DiscoveryError, parse_device_id, resolve_address

LOGGER = logging.getLogger(__name__)

# How often a browsing agent wakes up to check for shutdown.
STOP_CHECK_SECONDS = 0.5


class AgentState(str, Enum):
    IDLE = "idle"
    BROWSING = "browsing"
    COMMITTING = "committing"
    STOPPED = "stopped"


class DiscoveryAgent:
    """Watches one role's service group and feeds the contact registry."""

    def __init__(
        self,
        role: Role,
        *,
        backend: DiscoveryBackend,
        registry: ContactRegistry,
        stop_event: asyncio.Event,
        group: Optional[str] = None,
        use_ip_address: bool = False,
        restart_delay: float = 5.0,
        on_state_change: Optional[Callable[[Role, AgentState, Optional[str]], None]] = None,
    ) -> None:
        self.role = role
        self._backend = backend
        self._registry = registry
        self._stop_event = stop_event
        self._group = group or role.service_group
        self._use_ip_address = use_ip_address
        self._restart_delay = restart_delay
        self._on_state_change = on_state_change
        self._state = AgentState.IDLE
        self.committed = 0
        self.skipped = 0

    @property
    def state(self) -> AgentState:
        return self._state

    def _transition(self, state: AgentState, detail: Optional[str] = None) -> None:
        if state == self._state:
            return
        LOGGER.debug(
            "Discovery agent %s: %s -> %s", self.role.value, self._state.value, state.value
        )
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(self.role, state, detail)

    async def run(self) -> None:
        """Browse until the stop event is set or the backend fails for good."""
        try:
            while not self._stop_event.is_set():
                try:
                    await self._browse()
                except DiscoveryError as exc:
                    LOGGER.error(
                        "Discovery backend failed for %s devices: %s", self.role.value, exc
                    )
                    if self._restart_delay <= 0:
                        self._transition(AgentState.STOPPED, str(exc))
                        return
                    self._transition(AgentState.IDLE, str(exc))
                    if await self._wait_for_stop(self._restart_delay):
                        break
                    LOGGER.info("Restarting %s discovery", self.role.value)
        finally:
            self._transition(AgentState.STOPPED)

    async def _browse(self) -> None:
        async with self._backend.watch(self._group) as records:
            self._transition(AgentState.BROWSING)
            LOGGER.info("Discovering %s devices in %s", self.role.value, self._group)
            while not self._stop_event.is_set():
                try:
                    record = await asyncio.wait_for(records.get(), timeout=STOP_CHECK_SECONDS)
                except asyncio.TimeoutError:
                    continue
                self._transition(AgentState.COMMITTING)
                self.commit(record)
                self._transition(AgentState.BROWSING)

    def commit(self, record: ServiceRecord) -> bool:
        """Upsert one resolved record; returns False when it was skipped."""
        try:
            device_id = parse_device_id(record.fullname)
            address = resolve_address(record, use_ip_address=self._use_ip_address)
        except ParseError as exc:
            self.skipped += 1
            LOGGER.warning(
                "Skipping malformed %s advertisement %r: %s",
                self.role.value,
                record.fullname,
                exc,
            )
            return False

        self._registry.upsert(device_id, self.role, address)
        self.committed += 1
        return True

    async def _wait_for_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
