"""Core primitives for homenet."""

from .history import DeviceHistory, HistoryEntry
from .models import Address, DeviceId, DeviceName, Role, ServiceRecord
from .protocols import DiscoveryBackend
from .registry import ContactRegistry

__all__ = [
    "Address",
    "ContactRegistry",
    "DeviceHistory",
    "DeviceId",
    "DeviceName",
    "DiscoveryBackend",
    "HistoryEntry",
    "Role",
    "ServiceRecord",
]
