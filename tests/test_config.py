from pathlib import Path

import pytest

from homenet import constants
from homenet.config import ConfigError, load_config, parse_range
from homenet.control import AcceptableRange


def test_defaults_when_file_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.cfg")

    assert config.path == tmp_path / "missing.cfg"
    assert config.controller.poll_interval_seconds == 5.0
    assert config.controller.poll_retries == 0
    assert config.discovery.sensor_group == constants.DEFAULT_SENSOR_GROUP
    assert config.discovery.actuator_group == constants.DEFAULT_ACTUATOR_GROUP
    assert config.discovery.service_domain == "_tcp.local."
    assert config.discovery.use_ip_address is False
    assert config.ranges.default == AcceptableRange(0.0, 100.0)
    assert config.ranges.devices == {}
    assert config.logging.level == "INFO"
    assert config.logging.path is None
    assert config.status.enabled is False
    assert config.status.port == constants.DEFAULT_STATUS_PORT


def test_load_overrides(tmp_path: Path) -> None:
    path = tmp_path / "homenet.cfg"
    path.write_text(
        """
[controller]
poll_interval_seconds = 2.5
poll_retries = 2
history_size = 10

[discovery]
sensor_group = _thermo
use_ip_address = yes
restart_delay_seconds = 0

[ranges]
default = none
LivingRoom = 18, 22
garage = -5.5, 40

[logging]
level = debug
path = logs/homenet.log

[status]
enabled = true
port = 9100
""",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.controller.poll_interval_seconds == 2.5
    assert config.controller.poll_retries == 2
    assert config.controller.history_size == 10
    assert config.discovery.sensor_group == "_thermo"
    assert config.discovery.use_ip_address is True
    assert config.discovery.restart_delay_seconds == 0.0
    assert config.ranges.default is None
    assert config.ranges.devices == {
        "LivingRoom": AcceptableRange(18.0, 22.0),
        "garage": AcceptableRange(-5.5, 40.0),
    }
    assert config.logging.level == "debug"
    assert config.logging.path == Path("logs/homenet.log")
    assert config.status.enabled is True
    assert config.status.port == 9100
    assert config.raw.get("discovery", "sensor_group") == "_thermo"


def test_values_are_clamped(tmp_path: Path) -> None:
    path = tmp_path / "homenet.cfg"
    path.write_text(
        "[controller]\npoll_interval_seconds = 0\npoll_retries = -3\nhistory_size = 0\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.controller.poll_interval_seconds == 0.1
    assert config.controller.poll_retries == 0
    assert config.controller.history_size == 1


def test_invalid_number_raises_config_error(tmp_path: Path) -> None:
    path = tmp_path / "homenet.cfg"
    path.write_text("[controller]\npoll_interval_seconds = soon\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize(
    "value", ["18", "1, 2, 3", "low, high", "30, 10", "inf, inf", "0, nan", "-inf, 100"]
)
def test_parse_range_rejects_bad_values(value) -> None:
    with pytest.raises(ConfigError):
        parse_range(value)


def test_parse_range_accepts_disabled_values() -> None:
    assert parse_range("") is None
    assert parse_range(" None ") is None
    assert parse_range("0, 100") == AcceptableRange(0.0, 100.0)


def test_non_finite_device_range_rejected(tmp_path: Path) -> None:
    path = tmp_path / "homenet.cfg"
    path.write_text("[ranges]\nabc = inf, inf\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)
