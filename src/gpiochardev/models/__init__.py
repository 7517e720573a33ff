from __future__ import annotations

from gpiochardev.models.config import (
    AbiVersion,
    Bias,
    ChipOptions,
    Direction,
    Drive,
    EdgeDetection,
    LineConfig,
    LineConfigFlag,
    LineOptions,
)
from gpiochardev.models.events import (
    EventHandler,
    InfoChangeHandler,
    LineEvent,
    LineEventType,
    LineInfoChangeEvent,
    LineInfoChangeType,
)
from gpiochardev.models.info import ChipInfo, LineInfo

__all__ = [
    "AbiVersion",
    "Bias",
    "ChipInfo",
    "ChipOptions",
    "Direction",
    "Drive",
    "EdgeDetection",
    "EventHandler",
    "InfoChangeHandler",
    "LineConfig",
    "LineConfigFlag",
    "LineEvent",
    "LineEventType",
    "LineInfo",
    "LineInfoChangeEvent",
    "LineInfoChangeType",
    "LineOptions",
]
