"""Poll, decide and dispatch: the controller's control loop.

Each cycle:

1. copies the sensor partition of the contact registry;
2. polls every sensor for a Datum, concurrently;
3. checks the reading against the sensor's acceptable range;
4. when out of range, sends a corrective command to the actuator sharing the
   sensor's id, if one is registered;
5. records the reading (and any dispatched command) in the history.

A failure for one device is logged and only affects that device for that
cycle. Nothing here holds a registry lock while talking to the network.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from .commands import Command, CoolTo, HeatTo
from .core.history import DeviceHistory
from .core.models import Address, DeviceId, Role
from .core.registry import ContactRegistry
from .datum import Datum, ParseError
from .scheduling import IntervalScheduler
from .transport import TransportClient, TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class AcceptableRange:
    low: float
    high: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.low) and math.isfinite(self.high)):
            raise ValueError(f"range bounds must be finite, got {self.low}, {self.high}")
        if self.low > self.high:
            raise ValueError(f"range low {self.low} exceeds high {self.high}")

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high

    def __str__(self) -> str:
        return f"[{self.low:g}, {self.high:g}]"


class RangeRule:
    """Decides on a corrective command when a reading leaves its range.

    Readings above the range produce ``CoolTo(high)``, readings below it
    ``HeatTo(low)``. Boolean and non-finite readings never trigger.
    """

    def __init__(
        self,
        default: Optional[AcceptableRange] = None,
        overrides: Optional[Mapping[DeviceId, AcceptableRange]] = None,
    ) -> None:
        self._default = default
        self._overrides: Dict[DeviceId, AcceptableRange] = dict(overrides or {})

    def range_for(self, device_id: DeviceId) -> Optional[AcceptableRange]:
        return self._overrides.get(device_id, self._default)

    def evaluate(self, device_id: DeviceId, datum: Datum) -> Optional[Command]:
        acceptable = self.range_for(device_id)
        if acceptable is None:
            return None

        value = datum.as_float()
        if value is None:
            return None
        if not math.isfinite(value):
            LOGGER.warning("Ignoring non-finite reading %s from %s", datum, device_id)
            return None

        if value > acceptable.high:
            return CoolTo(acceptable.high)
        if value < acceptable.low:
            return HeatTo(acceptable.low)
        return None


@dataclass
class CycleReport:
    """Outcome of one control cycle, per device id."""

    cycle: int
    polled: List[DeviceId] = field(default_factory=list)
    failed: List[DeviceId] = field(default_factory=list)
    dispatched: Dict[DeviceId, Command] = field(default_factory=dict)
    dispatch_failed: List[DeviceId] = field(default_factory=list)
    unpaired: List[DeviceId] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.failed and not self.dispatch_failed

    def summary(self) -> str:
        return (
            f"polled={len(self.polled)} failed={len(self.failed)} "
            f"dispatched={len(self.dispatched)} dispatch_failed={len(self.dispatch_failed)} "
            f"unpaired={len(self.unpaired)}"
        )


CycleListener = Callable[[CycleReport], Awaitable[None]]


class ControlLoop:
    """Runs poll/decide/dispatch cycles on a fixed interval."""

    def __init__(
        self,
        *,
        registry: ContactRegistry,
        transport: TransportClient,
        history: DeviceHistory,
        rule: RangeRule,
        stop_event: asyncio.Event,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        retries: int = 0,
        on_cycle: Optional[CycleListener] = None,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._history = history
        self._rule = rule
        self._stop_event = stop_event
        self._retries = max(0, retries)
        self._on_cycle = on_cycle
        self._cycles = 0
        self.last_report: Optional[CycleReport] = None
        self._scheduler = IntervalScheduler(
            "control-loop",
            self.run_cycle,
            interval=interval,
            stop_event=stop_event,
        )

    @property
    def cycles(self) -> int:
        return self._cycles

    async def run(self) -> None:
        LOGGER.info("Control loop polling every %.1fs", self._scheduler.interval)
        await self._scheduler.run()
        LOGGER.info("Control loop stopped after %d cycles", self._cycles)

    async def run_cycle(self) -> CycleReport:
        self._cycles += 1
        report = CycleReport(cycle=self._cycles)

        # Copy first: no registry lock is held past this line.
        sensors = self._registry.snapshot(Role.SENSOR)

        if sensors:
            results = await asyncio.gather(
                *(self._process_sensor(device_id, address, report) for device_id, address in sensors),
                return_exceptions=True,
            )
            for (device_id, address), result in zip(sensors, results):
                if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                    LOGGER.error(
                        "Unexpected error handling sensor %s at %s",
                        device_id,
                        address,
                        exc_info=result,
                    )
                    if device_id not in report.failed:
                        report.failed.append(device_id)

        LOGGER.debug("Control cycle %d: %s", report.cycle, report.summary())
        self.last_report = report
        if self._on_cycle is not None:
            await self._on_cycle(report)
        return report

    async def _process_sensor(
        self, device_id: DeviceId, address: Address, report: CycleReport
    ) -> None:
        datum = await self._fetch(device_id, address)
        if datum is None:
            report.failed.append(device_id)
            return
        report.polled.append(device_id)

        dispatched: Optional[Command] = None
        command = self._rule.evaluate(device_id, datum)
        if command is not None:
            dispatched = await self._dispatch(device_id, datum, command, report)

        self._history.record(device_id, datum, dispatched)

    async def _fetch(self, device_id: DeviceId, address: Address) -> Optional[Datum]:
        attempts = self._retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._transport.fetch_datum(address)
            except TransportError as exc:
                if attempt < attempts:
                    LOGGER.debug(
                        "Retrying sensor %s at %s (%d/%d): %s",
                        device_id,
                        address,
                        attempt,
                        attempts,
                        exc,
                    )
                    continue
                LOGGER.warning(
                    "Failed to poll sensor %s at %s [%s]: %s",
                    device_id,
                    address,
                    type(exc).__name__,
                    exc,
                )
            except ParseError as exc:
                LOGGER.warning(
                    "Sensor %s at %s sent an unreadable datum [ParseError]: %s",
                    device_id,
                    address,
                    exc,
                )
                break
        return None

    async def _dispatch(
        self,
        device_id: DeviceId,
        datum: Datum,
        command: Command,
        report: CycleReport,
    ) -> Optional[Command]:
        actuator = self._registry.get(device_id, Role.ACTUATOR)
        if actuator is None:
            LOGGER.info(
                "Sensor %s reading %s is out of range but no actuator is paired; skipping",
                device_id,
                datum,
            )
            report.unpaired.append(device_id)
            return None

        try:
            await self._transport.send_command(actuator, command)
        except TransportError as exc:
            LOGGER.warning(
                "Failed to send %s to actuator %s at %s [%s]: %s",
                command.TAG,
                device_id,
                actuator,
                type(exc).__name__,
                exc,
            )
            report.dispatch_failed.append(device_id)
            return None

        LOGGER.info(
            "Sent %s(%s) to actuator %s at %s after reading %s",
            command.TAG,
            command.payload,
            device_id,
            actuator,
            datum,
        )
        report.dispatched[device_id] = command
        return command
