"""Constants used across the homenet package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "homenet"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_SERVICE_DOMAIN = "_tcp.local."
DEFAULT_SENSOR_GROUP = "_sensor"
DEFAULT_ACTUATOR_GROUP = "_actuator"

DEFAULT_STATUS_HOST = "127.0.0.1"
DEFAULT_STATUS_PORT = 8765
