"""Protocol definitions for pluggable discovery backends."""

from __future__ import annotations

import asyncio
from typing import AsyncContextManager, Mapping, Optional, Protocol

from .models import ServiceRecord


class DiscoveryBackend(Protocol):
    """Minimal contract for multicast service discovery."""

    async def announce(
        self,
        name: str,
        group: str,
        host: str,
        port: int,
        properties: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Advertise ``name`` under ``group`` (e.g. ``_sensor``) at ``host:port``."""
        ...

    async def withdraw(self, name: str, group: str) -> None:
        """Stop advertising a service previously passed to :meth:`announce`."""
        ...

    def watch(self, group: str) -> AsyncContextManager["asyncio.Queue[ServiceRecord]"]:
        """Browse ``group`` and stream resolved records into a queue.

        Entering the context starts browsing; leaving it stops. Browsing
        continues for as long as the context is open.

        Raises:
            DiscoveryError: On entry, if the backend cannot start browsing.
        """
        ...

    async def aclose(self) -> None:
        """Release sockets and background resources."""
        ...
