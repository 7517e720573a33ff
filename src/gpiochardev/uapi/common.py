"""Definitions shared by both generations of the GPIO character device ABI."""

from __future__ import annotations

import ctypes
import errno
import fcntl
import logging
import os
from enum import IntEnum
from typing import Any

_LOGGER = logging.getLogger(__name__)

GPIO_MAX_NAME_SIZE = 32
GPIO_MAGIC = 0xB4

_IOC_NRBITS = 8
_IOC_TYPEBITS = 8
_IOC_SIZEBITS = 14

_IOC_NRSHIFT = 0
_IOC_TYPESHIFT = _IOC_NRSHIFT + _IOC_NRBITS
_IOC_SIZESHIFT = _IOC_TYPESHIFT + _IOC_TYPEBITS
_IOC_DIRSHIFT = _IOC_SIZESHIFT + _IOC_SIZEBITS

_IOC_WRITE = 1
_IOC_READ = 2


def _IOC(direction: int, nr: int, size: int) -> int:
    return (
        (direction << _IOC_DIRSHIFT)
        | (GPIO_MAGIC << _IOC_TYPESHIFT)
        | (nr << _IOC_NRSHIFT)
        | (size << _IOC_SIZESHIFT)
    )


def _IOR(nr: int, struct_type: Any) -> int:
    return _IOC(_IOC_READ, nr, ctypes.sizeof(struct_type))


def _IOWR(nr: int, struct_type: Any) -> int:
    return _IOC(_IOC_READ | _IOC_WRITE, nr, ctypes.sizeof(struct_type))


class gpiochip_info(ctypes.Structure):
    _fields_ = [
        ("name", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("label", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("lines", ctypes.c_uint32),
    ]


class LineChangedType(IntEnum):
    """Kind of change reported by an info watch, same values in v1 and v2."""

    REQUESTED = 1
    RELEASED = 2
    CONFIG = 3


GPIO_GET_CHIPINFO_IOCTL = _IOR(0x01, gpiochip_info)
GPIO_GET_LINEINFO_UNWATCH_IOCTL = _IOWR(0x0C, ctypes.c_uint32)


def ioctl(fd: int, request: int, arg: Any) -> Any:
    """Issue one ioctl, kernel errors propagate as OSError."""
    return fcntl.ioctl(fd, request, arg)


def open_device(path: str) -> int:
    return os.open(path, os.O_RDONLY | os.O_CLOEXEC)


def read_record(fd: int, struct_type: type[ctypes.Structure]) -> Any:
    """Read exactly one fixed size record from fd."""
    size = ctypes.sizeof(struct_type)
    buf = os.read(fd, size)
    if len(buf) != size:
        raise OSError(errno.EIO, f"short read: got {len(buf)} of {size} bytes")
    return struct_type.from_buffer_copy(buf)


def get_chip_info(fd: int) -> gpiochip_info:
    info = gpiochip_info()
    ioctl(fd, GPIO_GET_CHIPINFO_IOCTL, info)
    return info


def unwatch_line_info(fd: int, offset: int) -> None:
    ioctl(fd, GPIO_GET_LINEINFO_UNWATCH_IOCTL, ctypes.c_uint32(offset))
