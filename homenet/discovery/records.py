"""Helpers turning resolved advertisements into registry entries."""

from __future__ import annotations

from ..core.models import Address, DeviceId, ServiceRecord
from ..datum import ParseError


class DiscoveryError(RuntimeError):
    """Raised when the discovery backend is unavailable."""


def service_type(group: str, domain: str = "_tcp.local.") -> str:
    """Return the DNS-SD service type for a device group.

    >>> service_type("_sensor")
    '_sensor._tcp.local.'
    """
    return f"{group}.{domain}"


def parse_device_id(fullname: str) -> DeviceId:
    """Extract the device id from an instance name.

    Devices advertise as ``<kind>_<id>``, so
    ``temperature_abc._sensor._tcp.local.`` yields ``abc``.

    Raises:
        ParseError: If the instance name carries no ``_``-separated id.
    """
    instance = fullname.split(".")[0]
    tokens = instance.split("_")
    if len(tokens) < 2 or not tokens[1]:
        raise ParseError(fullname, "DeviceId", "instance name has no '_<id>' segment")
    return tokens[1]


def resolve_address(record: ServiceRecord, *, use_ip_address: bool = False) -> Address:
    if not record.port or record.port <= 0:
        raise ParseError(str(record.port), "port")

    if use_ip_address and record.addresses:
        return Address(host=record.addresses[0], port=record.port)

    if not record.hostname.rstrip("."):
        raise ParseError(record.hostname, "hostname", "empty host name")
    return Address.from_discovery(record.hostname, record.port)
