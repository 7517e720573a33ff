"""Helper dir for gpiochardev."""

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
from gpiochardev.helper.util import bytes_to_str, name_to_path, str_to_bytes

__all__ = [
    "ChipClosedError",
    "ClosedError",
    "ConfigError",
    "GpioError",
    "InvalidOffsetError",
    "InvalidOperationError",
    "LineClosedError",
    "LineNotFoundError",
    "NotCharacterDeviceError",
    "PermissionDeniedError",
    "UnsupportedError",
    "bytes_to_str",
    "name_to_path",
    "str_to_bytes",
]
