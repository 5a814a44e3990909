"""Main application entry-point for the homenet controller."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any, Coroutine, List, Optional

from .config import HomenetConfig, load_config
from .control import ControlLoop, CycleReport, RangeRule
from .core import ContactRegistry, DeviceHistory, DiscoveryBackend, Role
from .discovery import AgentState, DiscoveryAgent
from .health import HealthReporter, StatusServer
from .logging import configure_logging
from .transport import TransportClient

LOGGER = logging.getLogger(__name__)


class HomenetController:
    """Coordinates controller startup and shutdown.

    The controller runs three kinds of tasks sharing one contact registry:

    - a discovery agent for sensors,
    - a discovery agent for actuators,
    - the control loop polling sensors and commanding actuators.

    The discovery backend can be injected for testing; by default a
    zeroconf backend is created from the configuration.
    """

    def __init__(
        self,
        config: Optional[HomenetConfig] = None,
        *,
        backend: Optional[DiscoveryBackend] = None,
        transport: Optional[TransportClient] = None,
    ) -> None:
        self._config = config or load_config()
        self._backend = backend
        self._owns_backend = backend is None
        controller = self._config.controller
        self.registry = ContactRegistry()
        self.history = DeviceHistory(max_entries=controller.history_size)
        self._transport = transport or TransportClient(
            connect_timeout=controller.request_timeout_seconds,
            read_timeout=controller.request_timeout_seconds,
        )
        self._health = HealthReporter()
        self._status_server: Optional[StatusServer] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task[None]] = []
        self.agents: List[DiscoveryAgent] = []
        self.control_loop: Optional[ControlLoop] = None

    @property
    def health(self) -> HealthReporter:
        return self._health

    def request_stop(self) -> None:
        if self._stop_event is not None and not self._stop_event.is_set():
            LOGGER.info("Shutdown requested")
            self._stop_event.set()

    async def run(self) -> None:
        """Run discovery and the control loop until :meth:`request_stop`."""
        self._stop_event = asyncio.Event()
        LOGGER.info("homenet controller starting with config: %s", self._config.path)

        await self._start_services()
        try:
            await self._stop_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("homenet controller received shutdown signal")
            raise
        finally:
            await self._stop_services()

    @classmethod
    def start(cls, config: Optional[HomenetConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance._run_with_signals())
        except KeyboardInterrupt:
            LOGGER.info("homenet controller received shutdown signal")

    async def _run_with_signals(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop)
        await self.run()

    def _build_backend(self) -> DiscoveryBackend:
        from .discovery.zeroconf_backend import ZeroconfBackend

        discovery = self._config.discovery
        return ZeroconfBackend(
            domain=discovery.service_domain,
            resolve_timeout_ms=discovery.resolve_timeout_ms,
        )

    async def _start_services(self) -> None:
        assert self._stop_event is not None
        discovery = self._config.discovery
        controller = self._config.controller

        if self._backend is None:
            self._backend = self._build_backend()

        groups = {Role.SENSOR: discovery.sensor_group, Role.ACTUATOR: discovery.actuator_group}
        self.agents = [
            DiscoveryAgent(
                role,
                backend=self._backend,
                registry=self.registry,
                stop_event=self._stop_event,
                group=groups[role],
                use_ip_address=discovery.use_ip_address,
                restart_delay=discovery.restart_delay_seconds,
                on_state_change=self._on_agent_state,
            )
            for role in Role
        ]

        ranges = self._config.ranges
        self.control_loop = ControlLoop(
            registry=self.registry,
            transport=self._transport,
            history=self.history,
            rule=RangeRule(ranges.default, ranges.devices),
            stop_event=self._stop_event,
            interval=controller.poll_interval_seconds,
            retries=controller.poll_retries,
            on_cycle=self._on_cycle,
        )

        for agent in self.agents:
            await self._health.update(f"discovery-{agent.role.value}", False, "starting")
            self._spawn(agent.run(), name=f"discovery-{agent.role.value}")
        await self._health.update("control-loop", True, "starting")
        self._spawn(self.control_loop.run(), name="control-loop")

        await self._start_status_server()

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._on_task_done)
        self._tasks.append(task)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Task %s crashed", task.get_name(), exc_info=exc)
            self._health.update_nowait(task.get_name(), False, f"crashed: {exc}")

    def _on_agent_state(self, role: Role, state: AgentState, detail: Optional[str]) -> None:
        healthy = state in (AgentState.BROWSING, AgentState.COMMITTING)
        self._health.update_nowait(f"discovery-{role.value}", healthy, detail or state.value)

    async def _on_cycle(self, report: CycleReport) -> None:
        await self._health.update("control-loop", True, report.summary())

    async def _start_status_server(self) -> None:
        status = self._config.status
        if not status.enabled or status.port <= 0:
            return

        server = StatusServer(
            self._health,
            status.host,
            status.port,
            registry=self.registry,
            history=self.history,
        )
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start status endpoint: %s", exc)
            await self._health.update("status-endpoint", False, str(exc))
        else:
            self._status_server = server
            await self._health.update("status-endpoint", True, None)

    async def _stop_services(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

        if self._tasks:
            grace = self._config.controller.shutdown_grace_seconds
            _, pending = await asyncio.wait(self._tasks, timeout=grace)
            for task in pending:
                LOGGER.warning("Task %s did not stop within %.1fs; cancelling", task.get_name(), grace)
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            self._tasks.clear()

        if self._status_server is not None:
            await self._status_server.stop()
            self._status_server = None

        if self._owns_backend and self._backend is not None:
            with contextlib.suppress(Exception):
                await self._backend.aclose()
            self._backend = None

        LOGGER.info("homenet controller stopped")
