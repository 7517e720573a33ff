"""gpiochardev Errors"""

from __future__ import annotations

import errno


class GpioError(Exception):
    """Base GPIO exception."""


class ClosedError(GpioError):
    """Chip or line has already been closed."""

    def __init__(self, what: str = "chip or line") -> None:
        super().__init__(f"{what} already closed")


class ChipClosedError(ClosedError):
    """Chip has already been closed."""

    def __init__(self) -> None:
        super().__init__("chip")


class LineClosedError(ClosedError):
    """Requested line has already been closed."""

    def __init__(self) -> None:
        super().__init__("line")


class InvalidOffsetError(GpioError, IndexError):
    """Line offset is outside the range of the chip."""

    def __init__(self, offset: int) -> None:
        super().__init__(f"invalid offset {offset}")
        self.offset = offset


class NotCharacterDeviceError(GpioError):
    """Device is not a GPIO character device."""

    def __init__(self, path: str) -> None:
        super().__init__(f"{path} is not a GPIO character device")
        self.path = path


class LineNotFoundError(GpioError, LookupError):
    """Named line was not found."""

    def __init__(self, name: str) -> None:
        super().__init__(f"line {name!r} not found")
        self.name = name


class PermissionDeniedError(GpioError, PermissionError):
    """Operation is not permitted for the current line direction."""


class ConfigError(GpioError, OSError):
    """Line configuration is invalid. Carries EINVAL like the kernel."""

    def __init__(self, message: str) -> None:
        super().__init__(errno.EINVAL, message)


class InvalidOperationError(GpioError, OSError):
    """Operation is not valid in the current state of the line."""

    def __init__(self, message: str) -> None:
        super().__init__(errno.EINVAL, message)


class UnsupportedError(GpioError, OSError):
    """Kernel does not support the requested ioctl."""

    def __init__(self, err: OSError, feature: str) -> None:
        super().__init__(err.errno, f"{feature} not supported by kernel: {err.strerror}")
