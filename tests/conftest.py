from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Dict, List, Optional

import pytest
import pytest_asyncio

from homenet.core.models import ServiceRecord
from homenet.discovery import DiscoveryError


class FakeDiscoveryBackend:
    """In-memory discovery backend; records are pushed per service group."""

    def __init__(self, *, failures: int = 0) -> None:
        self.queues: Dict[str, asyncio.Queue[ServiceRecord]] = {}
        self.announced: List[tuple[str, str, str, int]] = []
        self.watch_calls: List[str] = []
        self.active: Dict[str, int] = {}
        self.remaining_failures = failures
        self.closed = False

    def queue_for(self, group: str) -> "asyncio.Queue[ServiceRecord]":
        return self.queues.setdefault(group, asyncio.Queue())

    def publish(self, group: str, record: ServiceRecord) -> None:
        self.queue_for(group).put_nowait(record)

    async def announce(self, name, group, host, port, properties=None) -> None:
        self.announced.append((name, group, host, port))

    async def withdraw(self, name, group) -> None:
        self.announced = [item for item in self.announced if item[:2] != (name, group)]

    @contextlib.asynccontextmanager
    async def watch(self, group: str) -> AsyncIterator["asyncio.Queue[ServiceRecord]"]:
        self.watch_calls.append(group)
        if self.remaining_failures > 0:
            self.remaining_failures -= 1
            raise DiscoveryError("mDNS sockets unavailable")
        self.active[group] = self.active.get(group, 0) + 1
        try:
            yield self.queue_for(group)
        finally:
            self.active[group] -= 1

    async def aclose(self) -> None:
        self.closed = True


class DeviceServer:
    """Tiny TCP peer answering each request with a canned response."""

    def __init__(self, response: str = "", *, close_after_reply: bool = True) -> None:
        self.response = response
        self.close_after_reply = close_after_reply
        self.requests: List[str] = []
        self.received = asyncio.Event()
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def port(self) -> int:
        assert self._server is not None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> "DeviceServer":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            head = await reader.readuntil(b"\r\n\r\n")
            body = b""
            for line in head.split(b"\r\n"):
                name, _, value = line.partition(b":")
                if name.strip().lower() == b"content-length":
                    body = await reader.readexactly(int(value.strip()))
            self.requests.append((head + body).decode("utf-8"))
            self.received.set()

            writer.write(self.response.encode("utf-8"))
            await writer.drain()
            if not self.close_after_reply:
                # keep the connection open until the client hangs up
                await reader.read()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()


@pytest.fixture
def fake_backend() -> FakeDiscoveryBackend:
    return FakeDiscoveryBackend()


@pytest.fixture
def failing_backend_factory():
    def factory(failures: int) -> FakeDiscoveryBackend:
        return FakeDiscoveryBackend(failures=failures)

    return factory


@pytest_asyncio.fixture
async def device_server_factory():
    servers: List[DeviceServer] = []

    async def factory(response: str = "", **kwargs) -> DeviceServer:
        server = await DeviceServer(response, **kwargs).start()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        await server.stop()
