"""ABI v2 of the GPIO character device: unified multi line requests."""

from __future__ import annotations

import ctypes
from enum import IntEnum, IntFlag

from gpiochardev.uapi import common
from gpiochardev.uapi.common import GPIO_MAX_NAME_SIZE, _IOWR

GPIO_V2_LINES_MAX = 64
GPIO_V2_LINE_NUM_ATTRS_MAX = 10


class LineFlag(IntFlag):
    USED = 1 << 0
    ACTIVE_LOW = 1 << 1
    INPUT = 1 << 2
    OUTPUT = 1 << 3
    EDGE_RISING = 1 << 4
    EDGE_FALLING = 1 << 5
    OPEN_DRAIN = 1 << 6
    OPEN_SOURCE = 1 << 7
    BIAS_PULL_UP = 1 << 8
    BIAS_PULL_DOWN = 1 << 9
    BIAS_DISABLED = 1 << 10
    EVENT_CLOCK_REALTIME = 1 << 11
    EVENT_CLOCK_HTE = 1 << 12


class LineAttrId(IntEnum):
    FLAGS = 1
    OUTPUT_VALUES = 2
    DEBOUNCE = 3


class LineEventId(IntEnum):
    RISING_EDGE = 1
    FALLING_EDGE = 2


class gpio_v2_line_values(ctypes.Structure):
    _fields_ = [
        ("bits", ctypes.c_uint64),
        ("mask", ctypes.c_uint64),
    ]


class _gpio_v2_line_attribute_data(ctypes.Union):
    _fields_ = [
        ("flags", ctypes.c_uint64),
        ("values", ctypes.c_uint64),
        ("debounce_period_us", ctypes.c_uint32),
    ]


class gpio_v2_line_attribute(ctypes.Structure):
    _anonymous_ = ("data",)
    _fields_ = [
        ("id", ctypes.c_uint32),
        ("padding", ctypes.c_uint32),
        ("data", _gpio_v2_line_attribute_data),
    ]


class gpio_v2_line_config_attribute(ctypes.Structure):
    _fields_ = [
        ("attr", gpio_v2_line_attribute),
        ("mask", ctypes.c_uint64),
    ]


class gpio_v2_line_config(ctypes.Structure):
    _fields_ = [
        ("flags", ctypes.c_uint64),
        ("num_attrs", ctypes.c_uint32),
        ("padding", ctypes.c_uint32 * 5),
        ("attrs", gpio_v2_line_config_attribute * GPIO_V2_LINE_NUM_ATTRS_MAX),
    ]


class gpio_v2_line_request(ctypes.Structure):
    _fields_ = [
        ("offsets", ctypes.c_uint32 * GPIO_V2_LINES_MAX),
        ("consumer", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("config", gpio_v2_line_config),
        ("num_lines", ctypes.c_uint32),
        ("event_buffer_size", ctypes.c_uint32),
        ("padding", ctypes.c_uint32 * 5),
        ("fd", ctypes.c_int32),
    ]


class gpio_v2_line_info(ctypes.Structure):
    _fields_ = [
        ("name", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("consumer", ctypes.c_char * GPIO_MAX_NAME_SIZE),
        ("offset", ctypes.c_uint32),
        ("num_attrs", ctypes.c_uint32),
        ("flags", ctypes.c_uint64),
        ("attrs", gpio_v2_line_attribute * GPIO_V2_LINE_NUM_ATTRS_MAX),
        ("padding", ctypes.c_uint32 * 4),
    ]


class gpio_v2_line_info_changed(ctypes.Structure):
    _fields_ = [
        ("info", gpio_v2_line_info),
        ("timestamp_ns", ctypes.c_uint64),
        ("event_type", ctypes.c_uint32),
        ("padding", ctypes.c_uint32 * 5),
    ]


class gpio_v2_line_event(ctypes.Structure):
    _fields_ = [
        ("timestamp_ns", ctypes.c_uint64),
        ("id", ctypes.c_uint32),
        ("offset", ctypes.c_uint32),
        ("seqno", ctypes.c_uint32),
        ("line_seqno", ctypes.c_uint32),
        ("padding", ctypes.c_uint32 * 6),
    ]


GPIO_V2_GET_LINEINFO_IOCTL = _IOWR(0x05, gpio_v2_line_info)
GPIO_V2_GET_LINEINFO_WATCH_IOCTL = _IOWR(0x06, gpio_v2_line_info)
GPIO_V2_GET_LINE_IOCTL = _IOWR(0x07, gpio_v2_line_request)
GPIO_V2_LINE_SET_CONFIG_IOCTL = _IOWR(0x0D, gpio_v2_line_config)
GPIO_V2_LINE_GET_VALUES_IOCTL = _IOWR(0x0E, gpio_v2_line_values)
GPIO_V2_LINE_SET_VALUES_IOCTL = _IOWR(0x0F, gpio_v2_line_values)


def get_line_info(fd: int, offset: int) -> gpio_v2_line_info:
    info = gpio_v2_line_info(offset=offset)
    common.ioctl(fd, GPIO_V2_GET_LINEINFO_IOCTL, info)
    return info


def watch_line_info(fd: int, offset: int) -> gpio_v2_line_info:
    info = gpio_v2_line_info(offset=offset)
    common.ioctl(fd, GPIO_V2_GET_LINEINFO_WATCH_IOCTL, info)
    return info


def get_line(fd: int, request: gpio_v2_line_request) -> int:
    """Request a set of lines, returns the new line request fd."""
    common.ioctl(fd, GPIO_V2_GET_LINE_IOCTL, request)
    return request.fd


def get_line_values(fd: int, mask: int) -> gpio_v2_line_values:
    values = gpio_v2_line_values(mask=mask)
    common.ioctl(fd, GPIO_V2_LINE_GET_VALUES_IOCTL, values)
    return values


def set_line_values(fd: int, values: gpio_v2_line_values) -> None:
    common.ioctl(fd, GPIO_V2_LINE_SET_VALUES_IOCTL, values)


def set_line_config(fd: int, config: gpio_v2_line_config) -> None:
    common.ioctl(fd, GPIO_V2_LINE_SET_CONFIG_IOCTL, config)


def read_event(fd: int) -> gpio_v2_line_event:
    return common.read_record(fd, gpio_v2_line_event)


def read_line_info_changed(fd: int) -> gpio_v2_line_info_changed:
    return common.read_record(fd, gpio_v2_line_info_changed)
