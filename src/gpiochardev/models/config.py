from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from enum import Enum, IntEnum, IntFlag
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field


class AbiVersion(IntEnum):
    """Kernel uAPI generation, AUTO is resolved by probing when a chip opens."""

    AUTO = 0
    V1 = 1
    V2 = 2


class LineConfigFlag(IntFlag):
    """Marks which fields of a LineConfig are meaningful."""

    ACTIVE_LOW = 1 << 0
    DIRECTION = 1 << 1
    DRIVE = 1 << 2
    BIAS = 1 << 3
    EDGE_DETECTION = 1 << 4
    DEBOUNCE = 1 << 5


class Direction(Enum):
    INPUT = "input"
    OUTPUT = "output"


class Drive(Enum):
    PUSH_PULL = "push-pull"
    OPEN_DRAIN = "open-drain"
    OPEN_SOURCE = "open-source"


class Bias(Enum):
    DISABLED = "disabled"
    PULL_UP = "pull-up"
    PULL_DOWN = "pull-down"


class EdgeDetection(Enum):
    NONE = "none"
    RISING = "rising"
    FALLING = "falling"
    BOTH = "both"


_FIELD_FLAGS: dict[str, LineConfigFlag] = {
    "active_low": LineConfigFlag.ACTIVE_LOW,
    "direction": LineConfigFlag.DIRECTION,
    "drive": LineConfigFlag.DRIVE,
    "bias": LineConfigFlag.BIAS,
    "edge_detection": LineConfigFlag.EDGE_DETECTION,
    "debounce": LineConfigFlag.DEBOUNCE,
}


class LineConfig(BaseModel):
    """Configuration of one or more lines.

    Only the fields named in ``flags`` carry meaning, the rest keep their
    defaults and are ignored when the config is encoded or overlaid.
    """

    model_config = ConfigDict(frozen=True)

    flags: LineConfigFlag = LineConfigFlag(0)
    active_low: bool = False
    direction: Direction = Direction.INPUT
    drive: Drive = Drive.PUSH_PULL
    bias: Bias = Bias.DISABLED
    edge_detection: EdgeDetection = EdgeDetection.NONE
    debounce: timedelta = timedelta(0)

    @classmethod
    def of(cls, **kwargs: Any) -> Self:
        """Build a config flagging every field passed with a value."""
        flags = LineConfigFlag(0)
        values = {}
        for name, value in kwargs.items():
            if name not in _FIELD_FLAGS:
                raise TypeError(f"unknown line config field {name!r}")
            if value is None:
                continue
            flags |= _FIELD_FLAGS[name]
            values[name] = value
        return cls(flags=flags, **values)

    def overlay(self, other: LineConfig | None) -> LineConfig:
        """Return a copy with every field flagged in other taken from other."""
        if other is None or not other.flags:
            return self
        update: dict[str, Any] = {}
        for name, flag in _FIELD_FLAGS.items():
            if other.flags & flag:
                update[name] = getattr(other, name)
        flags = self.flags | other.flags
        # A direction change drops settings that only apply to the other direction.
        if other.is_input and not other.has(LineConfigFlag.DRIVE):
            flags &= ~LineConfigFlag.DRIVE
        if other.is_output and not other.has(LineConfigFlag.EDGE_DETECTION):
            flags &= ~LineConfigFlag.EDGE_DETECTION
        update["flags"] = flags
        return self.model_copy(update=update)

    def has(self, flag: LineConfigFlag) -> bool:
        return bool(self.flags & flag)

    @property
    def is_output(self) -> bool:
        return self.has(LineConfigFlag.DIRECTION) and self.direction is Direction.OUTPUT

    @property
    def is_input(self) -> bool:
        return self.has(LineConfigFlag.DIRECTION) and self.direction is Direction.INPUT

    @property
    def has_edge_detection(self) -> bool:
        return (
            self.has(LineConfigFlag.EDGE_DETECTION)
            and self.edge_detection is not EdgeDetection.NONE
        )


class ChipOptions(BaseModel):
    """Defaults applied to every request made through a chip."""

    model_config = ConfigDict(frozen=True)

    consumer: str | None = None
    config: LineConfig = Field(default_factory=LineConfig)
    abi: AbiVersion = AbiVersion.AUTO


class LineOptions(BaseModel):
    """Per request options, overlaid on the chip defaults."""

    model_config = ConfigDict(frozen=True)

    consumer: str | None = None
    config: LineConfig = Field(default_factory=LineConfig)
    abi: AbiVersion | None = None
    values: list[int] = Field(default_factory=list)
    handler: Callable[..., None] | None = None
