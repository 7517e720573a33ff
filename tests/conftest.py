"""Fixtures emulating a GPIO chip behind the character device ioctls."""

from __future__ import annotations

import ctypes
import errno
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from itertools import count

import anyio
import pytest

from gpiochardev.uapi import common, v1, v2

V1_TO_V2_HANDLE_FLAGS = {
    v1.HandleFlag.INPUT: v2.LineFlag.INPUT,
    v1.HandleFlag.OUTPUT: v2.LineFlag.OUTPUT,
    v1.HandleFlag.ACTIVE_LOW: v2.LineFlag.ACTIVE_LOW,
    v1.HandleFlag.OPEN_DRAIN: v2.LineFlag.OPEN_DRAIN,
    v1.HandleFlag.OPEN_SOURCE: v2.LineFlag.OPEN_SOURCE,
    v1.HandleFlag.BIAS_PULL_UP: v2.LineFlag.BIAS_PULL_UP,
    v1.HandleFlag.BIAS_PULL_DOWN: v2.LineFlag.BIAS_PULL_DOWN,
    v1.HandleFlag.BIAS_DISABLE: v2.LineFlag.BIAS_DISABLED,
}

V2_TO_V1_INFO_FLAGS = {
    v2.LineFlag.USED: v1.LineFlag.KERNEL,
    v2.LineFlag.OUTPUT: v1.LineFlag.IS_OUT,
    v2.LineFlag.ACTIVE_LOW: v1.LineFlag.ACTIVE_LOW,
    v2.LineFlag.OPEN_DRAIN: v1.LineFlag.OPEN_DRAIN,
    v2.LineFlag.OPEN_SOURCE: v1.LineFlag.OPEN_SOURCE,
    v2.LineFlag.BIAS_PULL_UP: v1.LineFlag.BIAS_PULL_UP,
    v2.LineFlag.BIAS_PULL_DOWN: v1.LineFlag.BIAS_PULL_DOWN,
    v2.LineFlag.BIAS_DISABLED: v1.LineFlag.BIAS_DISABLE,
}

EDGE_FLAGS = v2.LineFlag.EDGE_RISING | v2.LineFlag.EDGE_FALLING


def handle_flags_to_v2(flags: int) -> v2.LineFlag:
    result = v2.LineFlag(0)
    for flag_v1, flag_v2 in V1_TO_V2_HANDLE_FLAGS.items():
        if flags & flag_v1:
            result |= flag_v2
    return result


@dataclass
class FakeLine:
    offset: int
    name: str
    level: int = 0
    flags: v2.LineFlag = v2.LineFlag.INPUT
    consumer: str = ""
    debounce_us: int = 0
    line_seqno: int = 0

    @property
    def active_low(self) -> bool:
        return bool(self.flags & v2.LineFlag.ACTIVE_LOW)

    @property
    def value(self) -> int:
        return self.level ^ int(self.active_low)

    def set_value(self, value: int) -> None:
        self.level = (1 if value else 0) ^ int(self.active_low)


@dataclass
class FakeRequest:
    kind: str
    offsets: list[int]
    write_fd: int
    seqno: int = 0


@dataclass
class FakeKernel:
    """Answers the GPIO ioctls for a single chip.

    Every fd handed out is the read end of a pipe, so readiness waits behave
    like they do on a real chip. Edge and info change records are written to
    the matching write end.
    """

    num_lines: int = 8
    supports_v2: bool = True
    supports_watch: bool = True
    name: str = "gpiochip0"
    label: str = "fake-gpio"
    lines: list[FakeLine] = field(default_factory=list)
    chip_fds: dict[int, int] = field(default_factory=dict)
    requests: dict[int, FakeRequest] = field(default_factory=dict)
    watches: dict[int, dict[int, str]] = field(default_factory=dict)
    request_count: int = 0
    _write_fds: list[int] = field(default_factory=list)
    _clock: Iterator[int] = field(default_factory=lambda: count(1_000_000_000, 1_000))

    def __post_init__(self) -> None:
        if not self.lines:
            self.lines = [FakeLine(offset=i, name=f"line{i}") for i in range(self.num_lines)]

    def install(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(common, "ioctl", self.ioctl)
        monkeypatch.setattr(common, "open_device", self.open_device)
        monkeypatch.setattr("gpiochardev.chip.check_chip", self.check_chip)

    def cleanup(self) -> None:
        for fd in self._write_fds:
            os.close(fd)
        self._write_fds.clear()

    def check_chip(self, name: str) -> None:
        pass

    def _pipe(self) -> tuple[int, int]:
        read_fd, write_fd = os.pipe()
        self._write_fds.append(write_fd)
        return read_fd, write_fd

    def _write(self, write_fd: int, record: ctypes.Structure) -> None:
        try:
            os.write(write_fd, bytes(record))
        except BrokenPipeError:
            # reader already released the fd
            pass

    def open_device(self, path: str) -> int:
        read_fd, write_fd = self._pipe()
        self.requests.pop(read_fd, None)
        self.chip_fds[read_fd] = write_fd
        self.watches[read_fd] = {}
        return read_fd

    # Emulation

    def line_info_v2(self, offset: int, info: v2.gpio_v2_line_info | None = None) -> v2.gpio_v2_line_info:
        line = self.lines[offset]
        info = info or v2.gpio_v2_line_info()
        info.offset = offset
        info.name = line.name.encode()
        info.consumer = line.consumer.encode()
        info.flags = line.flags
        info.num_attrs = 0
        if line.debounce_us:
            info.attrs[0].id = v2.LineAttrId.DEBOUNCE
            info.attrs[0].debounce_period_us = line.debounce_us
            info.num_attrs = 1
        return info

    def line_info_v1(self, offset: int, info: v1.gpioline_info | None = None) -> v1.gpioline_info:
        line = self.lines[offset]
        info = info or v1.gpioline_info()
        info.line_offset = offset
        info.name = line.name.encode()
        info.consumer = line.consumer.encode()
        flags = v1.LineFlag(0)
        for flag_v2, flag_v1 in V2_TO_V1_INFO_FLAGS.items():
            if line.flags & flag_v2:
                flags |= flag_v1
        info.flags = flags
        return info

    def _check_offset(self, offset: int) -> None:
        if offset >= len(self.lines):
            raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))

    def _require_v2(self) -> None:
        if not self.supports_v2:
            raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))

    def _notify(self, offset: int, change: int) -> None:
        for chip_fd, watched in self.watches.items():
            abi = watched.get(offset)
            if abi is None:
                continue
            if abi == "v2":
                record = v2.gpio_v2_line_info_changed(
                    timestamp_ns=next(self._clock), event_type=change
                )
                self.line_info_v2(offset, record.info)
            else:
                record = v1.gpioline_info_changed(timestamp=next(self._clock), event_type=change)
                self.line_info_v1(offset, record.info)
            self._write(self.chip_fds[chip_fd], record)

    def write_info_change(self, offset: int, event_type: int) -> None:
        """Emit an info change record with an arbitrary event type."""
        self._notify(offset, event_type)

    def _new_request(self, kind: str, offsets: list[int], consumer: bytes) -> int:
        for offset in offsets:
            self._check_offset(offset)
        read_fd, write_fd = self._pipe()
        # fd numbers of closed chips get reused
        self.chip_fds.pop(read_fd, None)
        self.watches.pop(read_fd, None)
        self.requests[read_fd] = FakeRequest(kind=kind, offsets=offsets, write_fd=write_fd)
        self.request_count += 1
        return read_fd

    def _claim(self, offsets: list[int], consumer: bytes) -> None:
        for offset in offsets:
            line = self.lines[offset]
            line.flags |= v2.LineFlag.USED
            line.consumer = consumer.decode()
            self._notify(offset, common.LineChangedType.REQUESTED)

    def _apply_v2_config(self, offsets: list[int], config: v2.gpio_v2_line_config) -> None:
        for idx, offset in enumerate(offsets):
            line = self.lines[offset]
            line.flags = v2.LineFlag(config.flags) | (line.flags & v2.LineFlag.USED)
            for attr_idx in range(config.num_attrs):
                attr = config.attrs[attr_idx]
                if not attr.mask & (1 << idx):
                    continue
                if attr.attr.id == v2.LineAttrId.OUTPUT_VALUES:
                    line.set_value((attr.attr.values >> idx) & 1)
                elif attr.attr.id == v2.LineAttrId.DEBOUNCE:
                    line.debounce_us = attr.attr.debounce_period_us

    def _apply_v1_config(self, offsets: list[int], flags: int, values, edge: v2.LineFlag = v2.LineFlag(0)) -> None:
        for idx, offset in enumerate(offsets):
            line = self.lines[offset]
            line.flags = handle_flags_to_v2(flags) | edge | (line.flags & v2.LineFlag.USED)
            if line.flags & v2.LineFlag.OUTPUT:
                line.set_value(values[idx])

    def ioctl(self, fd: int, request: int, arg):  # noqa: C901
        if fd in self.chip_fds:
            return self._chip_ioctl(fd, request, arg)
        if fd in self.requests:
            return self._request_ioctl(self.requests[fd], request, arg)
        raise OSError(errno.EBADF, os.strerror(errno.EBADF))

    def _chip_ioctl(self, fd: int, request: int, arg):  # noqa: C901
        if request == common.GPIO_GET_CHIPINFO_IOCTL:
            arg.name = self.name.encode()
            arg.label = self.label.encode()
            arg.lines = len(self.lines)
        elif request in (v2.GPIO_V2_GET_LINEINFO_IOCTL, v2.GPIO_V2_GET_LINEINFO_WATCH_IOCTL):
            self._require_v2()
            self._check_offset(arg.offset)
            if request == v2.GPIO_V2_GET_LINEINFO_WATCH_IOCTL:
                self._watch(fd, arg.offset, "v2")
            self.line_info_v2(arg.offset, arg)
        elif request in (v1.GPIO_GET_LINEINFO_IOCTL, v1.GPIO_GET_LINEINFO_WATCH_IOCTL):
            self._check_offset(arg.line_offset)
            if request == v1.GPIO_GET_LINEINFO_WATCH_IOCTL:
                self._watch(fd, arg.line_offset, "v1")
            self.line_info_v1(arg.line_offset, arg)
        elif request == common.GPIO_GET_LINEINFO_UNWATCH_IOCTL:
            if self.watches[fd].pop(arg.value, None) is None:
                raise OSError(errno.EBUSY, os.strerror(errno.EBUSY))
        elif request == v2.GPIO_V2_GET_LINE_IOCTL:
            self._require_v2()
            offsets = list(arg.offsets[: arg.num_lines])
            arg.fd = self._new_request("v2", offsets, arg.consumer)
            self._apply_v2_config(offsets, arg.config)
            self._claim(offsets, arg.consumer)
        elif request == v1.GPIO_GET_LINEHANDLE_IOCTL:
            offsets = list(arg.lineoffsets[: arg.lines])
            arg.fd = self._new_request("v1-handle", offsets, arg.consumer_label)
            self._apply_v1_config(offsets, arg.flags, arg.default_values)
            self._claim(offsets, arg.consumer_label)
        elif request == v1.GPIO_GET_LINEEVENT_IOCTL:
            edge = v2.LineFlag(0)
            if arg.eventflags & v1.EventFlag.RISING_EDGE:
                edge |= v2.LineFlag.EDGE_RISING
            if arg.eventflags & v1.EventFlag.FALLING_EDGE:
                edge |= v2.LineFlag.EDGE_FALLING
            arg.fd = self._new_request("v1-event", [arg.lineoffset], arg.consumer_label)
            self._apply_v1_config([arg.lineoffset], arg.handleflags | v1.HandleFlag.INPUT, [0], edge)
            self._claim([arg.lineoffset], arg.consumer_label)
        else:
            raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))

    def _watch(self, fd: int, offset: int, abi: str) -> None:
        if not self.supports_watch:
            raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))
        if offset in self.watches[fd]:
            raise OSError(errno.EBUSY, os.strerror(errno.EBUSY))
        self.watches[fd][offset] = abi

    def _request_ioctl(self, req: FakeRequest, request: int, arg):  # noqa: C901
        lines = [self.lines[offset] for offset in req.offsets]
        if request == v2.GPIO_V2_LINE_GET_VALUES_IOCTL:
            bits = 0
            for idx, line in enumerate(lines):
                if arg.mask & (1 << idx) and line.value:
                    bits |= 1 << idx
            arg.bits = bits
        elif request == v2.GPIO_V2_LINE_SET_VALUES_IOCTL:
            for idx, line in enumerate(lines):
                if arg.mask & (1 << idx):
                    line.set_value((arg.bits >> idx) & 1)
        elif request == v2.GPIO_V2_LINE_SET_CONFIG_IOCTL:
            self._apply_v2_config(req.offsets, arg)
            for offset in req.offsets:
                self._notify(offset, common.LineChangedType.CONFIG)
        elif request == v1.GPIOHANDLE_GET_LINE_VALUES_IOCTL:
            for idx, line in enumerate(lines):
                arg.values[idx] = line.value
        elif request == v1.GPIOHANDLE_SET_LINE_VALUES_IOCTL:
            if req.kind == "v1-event":
                raise OSError(errno.EPERM, os.strerror(errno.EPERM))
            for idx, line in enumerate(lines):
                line.set_value(arg.values[idx])
        elif request == v1.GPIOHANDLE_SET_CONFIG_IOCTL:
            if req.kind == "v1-event":
                raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))
            self._apply_v1_config(req.offsets, arg.flags, arg.default_values)
            for offset in req.offsets:
                self._notify(offset, common.LineChangedType.CONFIG)
        else:
            raise OSError(errno.ENOTTY, os.strerror(errno.ENOTTY))

    def trigger(self, offset: int, level: int) -> None:
        """Drive the physical level of a line, emitting edge events."""
        line = self.lines[offset]
        old = line.value
        line.level = level
        new = line.value
        if old == new:
            return
        rising = new > old
        wanted = v2.LineFlag.EDGE_RISING if rising else v2.LineFlag.EDGE_FALLING
        if not line.flags & wanted:
            return
        event_id = v2.LineEventId.RISING_EDGE if rising else v2.LineEventId.FALLING_EDGE
        line.line_seqno += 1
        for req in self.requests.values():
            if offset not in req.offsets:
                continue
            if req.kind == "v2":
                req.seqno += 1
                record: ctypes.Structure = v2.gpio_v2_line_event(
                    timestamp_ns=next(self._clock),
                    id=event_id,
                    offset=offset,
                    seqno=req.seqno,
                    line_seqno=line.line_seqno,
                )
            elif req.kind == "v1-event":
                record = v1.gpioevent_data(timestamp=next(self._clock), id=event_id)
            else:
                continue
            self._write(req.write_fd, record)

    def write_partial_event(self, offset: int) -> None:
        """Write a truncated edge record to the v1 event fd of a line."""
        for req in self.requests.values():
            if req.kind == "v1-event" and offset in req.offsets:
                os.write(req.write_fd, b"\x01\x02")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(params=[True, False], ids=["v2", "v1"])
def kernel(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeKernel]:
    """Fake chip, run once per kernel ABI generation."""
    fake = FakeKernel(supports_v2=request.param)
    fake.install(monkeypatch)
    yield fake
    fake.cleanup()


@pytest.fixture
def kernel_v2(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeKernel]:
    fake = FakeKernel()
    fake.install(monkeypatch)
    yield fake
    fake.cleanup()


@pytest.fixture
def kernel_v1(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeKernel]:
    fake = FakeKernel(supports_v2=False)
    fake.install(monkeypatch)
    yield fake
    fake.cleanup()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2) -> None:
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)
