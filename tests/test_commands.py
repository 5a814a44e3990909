import json

import pytest

from homenet.commands import (
    COMMAND_TAGS,
    CoolTo,
    HeatTo,
    SetMaxTemperature,
    SetMinTemperature,
    SetPower,
    SetTarget,
    decode_command,
    encode_command,
)
from homenet.datum import ParseError


def test_encode_is_externally_tagged() -> None:
    assert json.loads(encode_command(SetMaxTemperature(100.0))) == {"SetMaxTemperature": 100.0}
    assert json.loads(encode_command(SetPower(True))) == {"SetPower": True}


def test_integer_target_is_stored_as_float() -> None:
    command = CoolTo(24)

    assert command.target == 24.0
    assert isinstance(command.target, float)
    assert encode_command(command) == '{"CoolTo": 24.0}'


@pytest.mark.parametrize(
    "command",
    [
        SetTarget(21.5),
        HeatTo(-3.25),
        CoolTo(100.0),
        SetMaxTemperature(80.0),
        SetMinTemperature(5.0),
        SetPower(False),
    ],
)
def test_decode_returns_equal_command(command) -> None:
    decoded = decode_command(encode_command(command))

    assert decoded == command
    assert type(decoded) is type(command)


def test_decode_accepts_integer_payload_for_targets() -> None:
    assert decode_command('{"HeatTo": 18}') == HeatTo(18.0)


def test_command_tags_cover_all_variants() -> None:
    assert COMMAND_TAGS == {
        "SetTarget",
        "HeatTo",
        "CoolTo",
        "SetMaxTemperature",
        "SetMinTemperature",
        "SetPower",
    }


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("not json", "Command"),
        ("[]", "Command"),
        ("{}", "Command"),
        ('{"CoolTo": 1.0, "HeatTo": 2.0}', "Command"),
        ('{"Explode": 1.0}', "Command"),
        ('{"CoolTo": "cold"}', "CoolTo"),
        ('{"CoolTo": true}', "CoolTo"),
        ('{"SetPower": 1}', "SetPower"),
    ],
)
def test_decode_rejects_malformed_commands(text, expected) -> None:
    with pytest.raises(ParseError) as excinfo:
        decode_command(text)

    assert excinfo.value.expected == expected


def test_targets_must_be_finite_numbers() -> None:
    with pytest.raises(ValueError):
        CoolTo(float("nan"))
    with pytest.raises(TypeError):
        HeatTo(True)
    with pytest.raises(TypeError):
        SetPower(1)  # type: ignore[arg-type]
