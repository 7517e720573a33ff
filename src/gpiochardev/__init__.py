"""Access to GPIO lines through the Linux GPIO character device."""

from gpiochardev.chip import Chip, check_chip, chips, find_line, is_chip
from gpiochardev.helper.exceptions import (
    ChipClosedError,
    ClosedError,
    ConfigError,
    GpioError,
    InvalidOffsetError,
    InvalidOperationError,
    LineClosedError,
    LineNotFoundError,
    NotCharacterDeviceError,
    PermissionDeniedError,
    UnsupportedError,
)
from gpiochardev.line import Line, Lines
from gpiochardev.models import (
    AbiVersion,
    Bias,
    ChipInfo,
    ChipOptions,
    Direction,
    Drive,
    EdgeDetection,
    LineConfig,
    LineConfigFlag,
    LineEvent,
    LineEventType,
    LineInfo,
    LineInfoChangeEvent,
    LineInfoChangeType,
    LineOptions,
)
from gpiochardev.version import __version__

__all__ = [
    "AbiVersion",
    "Bias",
    "Chip",
    "ChipClosedError",
    "ChipInfo",
    "ChipOptions",
    "ClosedError",
    "ConfigError",
    "Direction",
    "Drive",
    "EdgeDetection",
    "GpioError",
    "InvalidOffsetError",
    "InvalidOperationError",
    "Line",
    "LineClosedError",
    "LineConfig",
    "LineConfigFlag",
    "LineEvent",
    "LineEventType",
    "LineInfo",
    "LineInfoChangeEvent",
    "LineInfoChangeType",
    "LineNotFoundError",
    "LineOptions",
    "Lines",
    "NotCharacterDeviceError",
    "PermissionDeniedError",
    "UnsupportedError",
    "__version__",
    "check_chip",
    "chips",
    "find_line",
    "is_chip",
]
