"""Device discovery over multicast DNS."""

from .agent import AgentState, DiscoveryAgent
from .records import DiscoveryError, parse_device_id, resolve_address, service_type

__all__ = [
    "AgentState",
    "DiscoveryAgent",
    "DiscoveryError",
    "parse_device_id",
    "resolve_address",
    "service_type",
]
