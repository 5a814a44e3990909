"""Domain models shared by discovery, the registry and the control loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Tuple

DeviceId = str
DeviceName = str


class Role(str, Enum):
    SENSOR = "sensor"
    ACTUATOR = "actuator"

    @property
    def service_group(self) -> str:
        """DNS-SD group prefix devices of this role announce under."""
        return f"_{self.value}"


@dataclass(frozen=True, slots=True)
class Address:
    """Where a device can be reached."""

    host: str
    port: int

    @classmethod
    def from_discovery(cls, hostname: str, port: int) -> "Address":
        # mDNS host names are fully qualified ("device.local.")
        return cls(host=hostname.rstrip("."), port=int(port))

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class ServiceRecord:
    """A resolved DNS-SD advertisement."""

    fullname: str
    hostname: str
    port: int
    properties: Mapping[str, Optional[str]] = field(default_factory=dict)
    addresses: Tuple[str, ...] = ()
