"""ABI v1 of the GPIO character device: per line handle and event requests."""

from __future__ import annotations

import ctypes
from enum import IntEnum, IntFlag

from gpiochardev.uapi import common
from gpiochardev.uapi.common import GPIO_MAX_NAME_SIZE, _IOWR

GPIOHANDLES_MAX = 64


class LineFlag(IntFlag):
    """Flags reported in gpioline_info."""

    KERNEL = 1 << 0
    IS_OUT = 1 << 1
    ACTIVE_LOW = 1 << 2
    OPEN_DRAIN = 1 << 3
    OPEN_SOURCE = 1 << 4
    BIAS_PULL_UP = 1 << 5
    BIAS_PULL_DOWN = 1 << 6
    BIAS_DISABLE = 1 << 7


class HandleFlag(IntFlag):
    """Flags accepted by handle requests and handle config."""

    INPUT = 1 << 0
    OUTPUT = 1 << 1
    ACTIVE_LOW = 1 << 2
    OPEN_DRAIN = 1 << 3
    OPEN_SOURCE = 1 << 4
    BIAS_PULL_UP = 1 << 5
    BIAS_PULL_DOWN = 1 << 6
    BIAS_DISABLE = 1 << 7


class EventFlag(IntFlag):
    RISING_EDGE = 1 << 0
    FALLING_EDGE = 1 << 1
    BOTH_EDGES = RISING_EDGE | FALLING_EDGE


class EventId(IntEnum):
    RISING_EDGE = 1
    FALLING_EDGE = 2


class gpioline_info(ctypes.Structure):
    _fields_ = [
        ("line_offset", ctypes.c_uint32),
        ("flags", ctypes.c_uint32),
        ("name", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("consumer", ctypes.c_char * GPIO_MAX_NAME_SIZE),
    ]


class gpioline_info_changed(ctypes.Structure):
    _fields_ = [
        ("info", gpioline_info),
        ("timestamp", ctypes.c_uint64),
        ("event_type", ctypes.c_uint32),
        ("padding", ctypes.c_uint32 * 5),
    ]


class gpiohandle_request(ctypes.Structure):
    _fields_ = [
        ("lineoffsets", ctypes.c_uint32 * GPIOHANDLES_MAX),
        ("flags", ctypes.c_uint32),
        ("default_values", ctypes.c_uint8 * GPIOHANDLES_MAX),
        ("consumer_label", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("lines", ctypes.c_uint32),
        ("fd", ctypes.c_int),
    ]


class gpiohandle_config(ctypes.Structure):
    _fields_ = [
        ("flags", ctypes.c_uint32),
        ("default_values", ctypes.c_uint8 * GPIOHANDLES_MAX),
        ("padding", ctypes.c_uint32 * 4),
    ]


class gpiohandle_data(ctypes.Structure):
    _fields_ = [
        ("values", ctypes.c_uint8 * GPIOHANDLES_MAX),
    ]


class gpioevent_request(ctypes.Structure):
    _fields_ = [
        ("lineoffset", ctypes.c_uint32),
        ("handleflags", ctypes.c_uint32),
        ("eventflags", ctypes.c_uint32),
        ("consumer_label", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("fd", ctypes.c_int),
    ]


class gpioevent_data(ctypes.Structure):
    _fields_ = [
        ("timestamp", ctypes.c_uint64),
        ("id", ctypes.c_uint32),
    ]


GPIO_GET_LINEINFO_IOCTL = _IOWR(0x02, gpioline_info)
GPIO_GET_LINEHANDLE_IOCTL = _IOWR(0x03, gpiohandle_request)
GPIO_GET_LINEEVENT_IOCTL = _IOWR(0x04, gpioevent_request)
GPIOHANDLE_GET_LINE_VALUES_IOCTL = _IOWR(0x08, gpiohandle_data)
GPIOHANDLE_SET_LINE_VALUES_IOCTL = _IOWR(0x09, gpiohandle_data)
GPIOHANDLE_SET_CONFIG_IOCTL = _IOWR(0x0A, gpiohandle_config)
GPIO_GET_LINEINFO_WATCH_IOCTL = _IOWR(0x0B, gpioline_info)


def get_line_info(fd: int, offset: int) -> gpioline_info:
    info = gpioline_info(line_offset=offset)
    common.ioctl(fd, GPIO_GET_LINEINFO_IOCTL, info)
    return info


def watch_line_info(fd: int, offset: int) -> gpioline_info:
    info = gpioline_info(line_offset=offset)
    common.ioctl(fd, GPIO_GET_LINEINFO_WATCH_IOCTL, info)
    return info


def get_line_handle(fd: int, request: gpiohandle_request) -> int:
    """Request a handle, returns the new line handle fd."""
    common.ioctl(fd, GPIO_GET_LINEHANDLE_IOCTL, request)
    return request.fd


def get_line_event(fd: int, request: gpioevent_request) -> int:
    """Request an event line, returns the new event fd."""
    common.ioctl(fd, GPIO_GET_LINEEVENT_IOCTL, request)
    return request.fd


def get_line_values(fd: int) -> gpiohandle_data:
    data = gpiohandle_data()
    common.ioctl(fd, GPIOHANDLE_GET_LINE_VALUES_IOCTL, data)
    return data


def set_line_values(fd: int, data: gpiohandle_data) -> None:
    common.ioctl(fd, GPIOHANDLE_SET_LINE_VALUES_IOCTL, data)


def set_line_config(fd: int, config: gpiohandle_config) -> None:
    common.ioctl(fd, GPIOHANDLE_SET_CONFIG_IOCTL, config)


def read_event(fd: int) -> gpioevent_data:
    return common.read_record(fd, gpioevent_data)


def read_line_info_changed(fd: int) -> gpioline_info_changed:
    return common.read_record(fd, gpioline_info_changed)
