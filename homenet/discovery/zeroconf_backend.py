"""mDNS / DNS-SD discovery backend built on python-zeroconf's asyncio API."""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
from typing import AsyncIterator, Callable, Dict, Mapping, Optional, Set

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ..core.models import ServiceRecord
from .records import DiscoveryError, service_type

LOGGER = logging.getLogger(__name__)

DEFAULT_RESOLVE_TIMEOUT_MS = 3000


def _decode_properties(raw: Mapping[bytes, Optional[bytes]]) -> Dict[str, Optional[str]]:
    decoded: Dict[str, Optional[str]] = {}
    for key, value in raw.items():
        name = key.decode("utf-8", errors="replace")
        decoded[name] = value.decode("utf-8", errors="replace") if value is not None else None
    return decoded


def record_from_info(
    info: AsyncServiceInfo, ip_version: IPVersion = IPVersion.V4Only
) -> ServiceRecord:
    """Convert a resolved ``AsyncServiceInfo`` into a ServiceRecord.

    The host name keeps its trailing dot; ``Address.from_discovery`` strips it.
    """
    return ServiceRecord(
        fullname=info.name,
        hostname=info.server or "",
        port=info.port or 0,
        properties=_decode_properties(info.properties),
        addresses=tuple(info.parsed_addresses(ip_version)),
    )


class ZeroconfBackend:
    """Announces and browses devices on the local network.

    A single ``AsyncZeroconf`` instance is shared by every watch and
    announcement and is created lazily on first use.
    """

    def __init__(
        self,
        *,
        domain: str = "_tcp.local.",
        resolve_timeout_ms: int = DEFAULT_RESOLVE_TIMEOUT_MS,
        ip_version: IPVersion = IPVersion.V4Only,
    ) -> None:
        self._domain = domain
        self._resolve_timeout_ms = resolve_timeout_ms
        self._ip_version = ip_version
        self._zeroconf: Optional[AsyncZeroconf] = None
        self._announced: Dict[str, AsyncServiceInfo] = {}

    def _ensure_zeroconf(self) -> AsyncZeroconf:
        if self._zeroconf is None:
            try:
                self._zeroconf = AsyncZeroconf(ip_version=self._ip_version)
            except OSError as exc:
                raise DiscoveryError(f"Unable to open mDNS sockets: {exc}") from exc
        return self._zeroconf

    async def announce(
        self,
        name: str,
        group: str,
        host: str,
        port: int,
        properties: Optional[Mapping[str, str]] = None,
    ) -> None:
        try:
            packed = ipaddress.ip_address(host).packed
        except ValueError as exc:
            raise ValueError(f"announce expects an IP address, got {host!r}") from exc

        aiozc = self._ensure_zeroconf()
        type_ = service_type(group, self._domain)
        fullname = f"{name}.{type_}"

        info = AsyncServiceInfo(
            type_,
            fullname,
            addresses=[packed],
            port=port,
            properties=dict(properties or {}),
            server=f"{name}.local.",
        )

        LOGGER.info("Announcing %s at %s:%s", fullname, host, port)
        try:
            await aiozc.async_register_service(info)
        except Exception as exc:
            raise DiscoveryError(f"Failed to announce {fullname}: {exc}") from exc
        self._announced[fullname] = info

    async def withdraw(self, name: str, group: str) -> None:
        fullname = f"{name}.{service_type(group, self._domain)}"
        info = self._announced.pop(fullname, None)
        if info is None or self._zeroconf is None:
            return
        await self._zeroconf.async_unregister_service(info)
        LOGGER.info("Withdrew %s", fullname)

    @contextlib.asynccontextmanager
    async def watch(self, group: str) -> AsyncIterator["asyncio.Queue[ServiceRecord]"]:
        aiozc = self._ensure_zeroconf()
        type_ = service_type(group, self._domain)
        queue: asyncio.Queue[ServiceRecord] = asyncio.Queue()
        pending: Set[asyncio.Task[None]] = set()

        on_service_state_change = self._make_handler(queue, pending)

        try:
            browser = AsyncServiceBrowser(
                aiozc.zeroconf, [type_], handlers=[on_service_state_change]
            )
        except Exception as exc:
            raise DiscoveryError(f"Unable to browse {type_}: {exc}") from exc

        LOGGER.debug("Browsing %s", type_)
        try:
            yield queue
        finally:
            for task in list(pending):
                task.cancel()
            with contextlib.suppress(Exception):
                await browser.async_cancel()
            LOGGER.debug("Stopped browsing %s", type_)

    def _make_handler(
        self,
        queue: "asyncio.Queue[ServiceRecord]",
        pending: Set[asyncio.Task[None]],
    ) -> Callable[..., None]:
        """Build the browser callback; zeroconf passes its arguments by keyword."""

        def on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if state_change not in (ServiceStateChange.Added, ServiceStateChange.Updated):
                LOGGER.debug("Ignoring %s for %s", state_change.name, name)
                return
            task = asyncio.ensure_future(self._resolve(zeroconf, service_type, name, queue))
            pending.add(task)
            task.add_done_callback(pending.discard)

        return on_service_state_change

    async def _resolve(
        self,
        zeroconf: Zeroconf,
        type_: str,
        name: str,
        queue: "asyncio.Queue[ServiceRecord]",
    ) -> None:
        info = AsyncServiceInfo(type_, name)
        try:
            found = await info.async_request(zeroconf, self._resolve_timeout_ms)
        except Exception as exc:
            LOGGER.warning("Failed to resolve %s [%s]: %s", name, type(exc).__name__, exc)
            return
        if not found:
            LOGGER.warning("Could not resolve %s within %d ms", name, self._resolve_timeout_ms)
            return

        record = record_from_info(info, self._ip_version)
        LOGGER.debug("Resolved %s at %s:%s", record.fullname, record.hostname, record.port)
        await queue.put(record)

    async def aclose(self) -> None:
        if self._zeroconf is None:
            return
        aiozc = self._zeroconf
        self._zeroconf = None
        for info in list(self._announced.values()):
            with contextlib.suppress(Exception):
                await aiozc.async_unregister_service(info)
        self._announced.clear()
        await aiozc.async_close()
