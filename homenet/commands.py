"""Actuator command vocabulary and its JSON encoding.

Commands are a closed set of tagged variants. Each serializes to an
externally tagged JSON object holding a single key, e.g.::

    {"SetMaxTemperature": 100.0}
    {"SetPower": true}
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import ClassVar, Dict, Type, Union

from .datum import ParseError

CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class TargetCommand:
    """Base for commands that carry a temperature-like float target."""

    TAG: ClassVar[str] = ""

    target: float

    def __post_init__(self) -> None:
        if isinstance(self.target, bool) or not isinstance(self.target, (int, float)):
            raise TypeError(f"{self.TAG} target must be a number")
        if not math.isfinite(self.target):
            raise ValueError(f"{self.TAG} target must be finite")
        object.__setattr__(self, "target", float(self.target))

    @property
    def payload(self) -> float:
        return self.target


@dataclass(frozen=True, slots=True)
class SetTarget(TargetCommand):
    TAG: ClassVar[str] = "SetTarget"


@dataclass(frozen=True, slots=True)
class HeatTo(TargetCommand):
    TAG: ClassVar[str] = "HeatTo"


@dataclass(frozen=True, slots=True)
class CoolTo(TargetCommand):
    TAG: ClassVar[str] = "CoolTo"


@dataclass(frozen=True, slots=True)
class SetMaxTemperature(TargetCommand):
    TAG: ClassVar[str] = "SetMaxTemperature"


@dataclass(frozen=True, slots=True)
class SetMinTemperature(TargetCommand):
    TAG: ClassVar[str] = "SetMinTemperature"


@dataclass(frozen=True, slots=True)
class SetPower:
    TAG: ClassVar[str] = "SetPower"

    on: bool

    def __post_init__(self) -> None:
        if not isinstance(self.on, bool):
            raise TypeError("SetPower expects a boolean")

    @property
    def payload(self) -> bool:
        return self.on


Command = Union[SetTarget, HeatTo, CoolTo, SetMaxTemperature, SetMinTemperature, SetPower]

_TARGET_COMMANDS: Dict[str, Type[TargetCommand]] = {
    cls.TAG: cls for cls in (SetTarget, HeatTo, CoolTo, SetMaxTemperature, SetMinTemperature)
}

COMMAND_TAGS = frozenset((*_TARGET_COMMANDS, SetPower.TAG))


def encode_command(command: Command) -> str:
    return json.dumps({command.TAG: command.payload})


def decode_command(text: str) -> Command:
    """Parse the JSON produced by :func:`encode_command`.

    Raises:
        ParseError: If the text is not a single-key object naming a known
            command with a payload of the right type.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(text, "Command", str(exc)) from exc

    if not isinstance(data, dict) or len(data) != 1:
        raise ParseError(text, "Command", "expected an object with exactly one key")

    ((tag, payload),) = data.items()

    if tag == SetPower.TAG:
        if not isinstance(payload, bool):
            raise ParseError(text, "SetPower", "payload must be a boolean")
        return SetPower(payload)

    command_cls = _TARGET_COMMANDS.get(tag)
    if command_cls is None:
        raise ParseError(text, "Command", f"unknown command {tag!r}")

    try:
        return command_cls(payload)
    except (TypeError, ValueError) as exc:
        raise ParseError(text, tag, str(exc)) from exc
