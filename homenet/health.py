"""Health reporting and the read-only status endpoint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from aiohttp import web

from .core.history import DeviceHistory
from .core.registry import ContactRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks component statuses for the running controller."""

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    def update_nowait(self, name: str, healthy: bool, detail: Optional[str] = None) -> None:
        """Synchronous variant for callbacks that cannot await."""
        self._status[name] = ComponentStatus(name=name, healthy=healthy, detail=detail)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        components = [status.as_dict() for status in entries]
        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        return {"status": overall, "components": components}


class StatusServer:
    """Minimal HTTP server exposing health, the registry and the history.

    Routes:
        GET /healthz   component health, 200 when every component is healthy
        GET /devices   registered sensors and actuators
        GET /history   recent readings per device id
    """

    def __init__(
        self,
        reporter: HealthReporter,
        host: str,
        port: int,
        *,
        registry: Optional[ContactRegistry] = None,
        history: Optional[DeviceHistory] = None,
    ) -> None:
        self._reporter = reporter
        self._registry = registry
        self._history = history
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/devices", self._handle_devices)
        app.router.add_get("/history", self._handle_history)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("Status endpoint listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_devices(self, request: web.Request) -> web.Response:
        if self._registry is None:
            return web.json_response({})
        return web.json_response(self._registry.as_dict())

    async def _handle_history(self, request: web.Request) -> web.Response:
        if self._history is None:
            return web.json_response({})
        device_id = request.query.get("device")
        payload = self._history.as_dict()
        if device_id is not None:
            payload = {device_id: payload.get(device_id, [])}
        return web.json_response(payload)
