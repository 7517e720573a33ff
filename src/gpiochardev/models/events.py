from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict

from gpiochardev.models.info import LineInfo


class LineEventType(Enum):
    RISING_EDGE = "rising"
    FALLING_EDGE = "falling"


class LineInfoChangeType(Enum):
    REQUESTED = "requested"
    RELEASED = "released"
    RECONFIGURED = "reconfigured"


class LineEvent(BaseModel):
    """Edge event on a requested line."""

    model_config = ConfigDict(frozen=True)

    offset: int
    timestamp_ns: int
    type: LineEventType
    # Only populated by ABI v2.
    seqno: int = 0
    line_seqno: int = 0

    @property
    def timestamp(self) -> timedelta:
        return timedelta(microseconds=self.timestamp_ns // 1000)


class LineInfoChangeEvent(BaseModel):
    """Change in the info of a watched line."""

    model_config = ConfigDict(frozen=True)

    info: LineInfo
    timestamp_ns: int
    type: LineInfoChangeType

    @property
    def timestamp(self) -> timedelta:
        return timedelta(microseconds=self.timestamp_ns // 1000)


EventHandler: TypeAlias = Callable[[LineEvent], None]
InfoChangeHandler: TypeAlias = Callable[[LineInfoChangeEvent], None]
