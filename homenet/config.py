"""Configuration loader for homenet."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from . import constants
from .control import AcceptableRange

RANGES_SECTION = "ranges"
DEFAULT_RANGE_KEY = "default"
DEFAULT_RANGE = AcceptableRange(0.0, 100.0)


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass(slots=True)
class ControllerConfig:
    poll_interval_seconds: float = 5.0
    request_timeout_seconds: float = 5.0
    poll_retries: int = 0
    history_size: int = 100
    shutdown_grace_seconds: float = 10.0


@dataclass(slots=True)
class DiscoveryConfig:
    sensor_group: str = constants.DEFAULT_SENSOR_GROUP
    actuator_group: str = constants.DEFAULT_ACTUATOR_GROUP
    service_domain: str = constants.DEFAULT_SERVICE_DOMAIN
    resolve_timeout_ms: int = 3000
    use_ip_address: bool = False
    restart_delay_seconds: float = 5.0


@dataclass(slots=True)
class RangeConfig:
    default: Optional[AcceptableRange] = DEFAULT_RANGE
    devices: Dict[str, AcceptableRange] = field(default_factory=dict)


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class StatusConfig:
    enabled: bool = False
    host: str = constants.DEFAULT_STATUS_HOST
    port: int = constants.DEFAULT_STATUS_PORT


@dataclass(slots=True)
class HomenetConfig:
    controller: ControllerConfig
    discovery: DiscoveryConfig
    ranges: RangeConfig
    logging: LoggingConfig
    status: StatusConfig
    raw: ConfigParser
    path: Path


def parse_range(value: str) -> Optional[AcceptableRange]:
    """Parse ``"low, high"``; an empty value or ``none`` disables the range."""
    text = value.strip()
    if not text or text.lower() == "none":
        return None

    parts = [part.strip() for part in text.split(",")]
    if len(parts) != 2:
        raise ConfigError(f"Expected 'low, high' range, got {value!r}")
    try:
        return AcceptableRange(float(parts[0]), float(parts[1]))
    except ValueError as exc:
        raise ConfigError(f"Invalid range {value!r}: {exc}") from exc


def _build_parser() -> ConfigParser:
    parser = ConfigParser()
    # device ids are case sensitive
    parser.optionxform = str  # type: ignore[assignment]
    parser.read_dict(
        {
            "controller": {
                "poll_interval_seconds": "5.0",
                "request_timeout_seconds": "5.0",
                "poll_retries": "0",
                "history_size": "100",
                "shutdown_grace_seconds": "10.0",
            },
            "discovery": {
                "sensor_group": constants.DEFAULT_SENSOR_GROUP,
                "actuator_group": constants.DEFAULT_ACTUATOR_GROUP,
                "service_domain": constants.DEFAULT_SERVICE_DOMAIN,
                "resolve_timeout_ms": "3000",
                "use_ip_address": "false",
                "restart_delay_seconds": "5.0",
            },
            RANGES_SECTION: {
                DEFAULT_RANGE_KEY: f"{DEFAULT_RANGE.low:g}, {DEFAULT_RANGE.high:g}",
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
            },
            "status": {
                "enabled": "false",
                "host": constants.DEFAULT_STATUS_HOST,
                "port": str(constants.DEFAULT_STATUS_PORT),
            },
        }
    )
    return parser


def load_config(path: Optional[Path] = None) -> HomenetConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = _build_parser()

    if config_path.exists():
        parser.read(config_path, encoding="utf-8")

    try:
        controller = ControllerConfig(
            poll_interval_seconds=max(
                0.1, parser.getfloat("controller", "poll_interval_seconds", fallback=5.0)
            ),
            request_timeout_seconds=max(
                0.1, parser.getfloat("controller", "request_timeout_seconds", fallback=5.0)
            ),
            poll_retries=max(0, parser.getint("controller", "poll_retries", fallback=0)),
            history_size=max(1, parser.getint("controller", "history_size", fallback=100)),
            shutdown_grace_seconds=max(
                0.0, parser.getfloat("controller", "shutdown_grace_seconds", fallback=10.0)
            ),
        )

        discovery = DiscoveryConfig(
            sensor_group=parser.get("discovery", "sensor_group"),
            actuator_group=parser.get("discovery", "actuator_group"),
            service_domain=parser.get("discovery", "service_domain"),
            resolve_timeout_ms=max(
                100, parser.getint("discovery", "resolve_timeout_ms", fallback=3000)
            ),
            use_ip_address=parser.getboolean("discovery", "use_ip_address", fallback=False),
            restart_delay_seconds=max(
                0.0, parser.getfloat("discovery", "restart_delay_seconds", fallback=5.0)
            ),
        )

        log_path_value = parser.get("logging", "path", fallback="").strip()
        logging_config = LoggingConfig(
            level=parser.get("logging", "level", fallback="INFO"),
            path=Path(log_path_value).expanduser() if log_path_value else None,
            log_network=parser.getboolean("logging", "log_network", fallback=False),
        )

        status = StatusConfig(
            enabled=parser.getboolean("status", "enabled", fallback=False),
            host=parser.get("status", "host", fallback=constants.DEFAULT_STATUS_HOST),
            port=parser.getint("status", "port", fallback=constants.DEFAULT_STATUS_PORT),
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc

    ranges = RangeConfig(default=None)
    for key, value in parser.items(RANGES_SECTION):
        parsed = parse_range(value)
        if key == DEFAULT_RANGE_KEY:
            ranges.default = parsed
        elif parsed is not None:
            ranges.devices[key] = parsed

    return HomenetConfig(
        controller=controller,
        discovery=discovery,
        ranges=ranges,
        logging=logging_config,
        status=status,
        raw=parser,
        path=config_path,
    )
