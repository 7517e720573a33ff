"""GPIO character device chip handle."""

from __future__ import annotations

import errno
import logging
import os
import stat
import threading
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Self, TypeVar

import anyio
import anyio.abc

from gpiochardev import codec
from gpiochardev.const import (
    CHIP_PREFIX,
    DEFAULT_CONSUMER,
    DEV_DIR,
    SYSFS_GPIO_DEVICES,
    UNKNOWN_LABEL,
)
from gpiochardev.helper.exceptions import (
    ChipClosedError,
    ConfigError,
    InvalidOffsetError,
    InvalidOperationError,
    LineNotFoundError,
    NotCharacterDeviceError,
    UnsupportedError,
)
from gpiochardev.helper.util import bytes_to_str, name_to_path
from gpiochardev.info_watcher import InfoWatcher
from gpiochardev.line import Line, Lines, _BaseLine
from gpiochardev.models import (
    AbiVersion,
    ChipInfo,
    ChipOptions,
    InfoChangeHandler,
    LineConfig,
    LineInfo,
    LineInfoChangeEvent,
    LineOptions,
)
from gpiochardev.uapi import common, v1, v2
from gpiochardev.watcher import EventWatcher

_LOGGER = logging.getLogger(__name__)

_LineT = TypeVar("_LineT", bound=_BaseLine)


def check_chip(name: str) -> None:
    """Raise unless name refers to a GPIO character device.

    The device node must be a character device whose major:minor matches the
    one the GPIO bus reports in sysfs.
    """
    path = name_to_path(name)
    st = os.lstat(path)
    if not stat.S_ISCHR(st.st_mode):
        raise NotCharacterDeviceError(path)
    sysfs_path = os.path.join(SYSFS_GPIO_DEVICES, os.path.basename(path), "dev")
    try:
        with open(sysfs_path, encoding="ascii") as f:
            sysfs_dev = f.read().strip()
    except OSError as err:
        raise NotCharacterDeviceError(path) from err
    if sysfs_dev != f"{os.major(st.st_rdev)}:{os.minor(st.st_rdev)}":
        raise NotCharacterDeviceError(path)


def is_chip(name: str) -> bool:
    try:
        check_chip(name)
    except (OSError, NotCharacterDeviceError):
        return False
    return True


def chips() -> list[str]:
    """Names of the GPIO chips available in /dev."""
    with os.scandir(DEV_DIR) as entries:
        names = sorted(
            entry.name for entry in entries if entry.name.startswith(CHIP_PREFIX)
        )
    return [name for name in names if is_chip(name)]


def find_line(name: str) -> tuple[str, int]:
    """Find the chip and offset of a named line."""
    for chip_name in chips():
        with Chip.open(chip_name) as chip:
            try:
                return chip.name, chip.find_line(name)
            except LineNotFoundError:
                continue
    raise LineNotFoundError(name)


def _probe_abi(fd: int) -> AbiVersion:
    try:
        v2.get_line_info(fd, 0)
    except OSError as err:
        _LOGGER.debug("ABI v2 probe failed (%s), falling back to v1", err)
        return AbiVersion.V1
    return AbiVersion.V2


@dataclass
class Chip:
    """An open GPIO chip.

    Requests made through the chip stay valid after it is closed.
    """

    fd: int
    name: str
    label: str
    lines: int
    options: ChipOptions
    tg: anyio.abc.TaskGroup | None = None
    closed: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _info_watcher: InfoWatcher | None = field(default=None, init=False, repr=False)
    _info_handlers: dict[int, InfoChangeHandler] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def open(
        cls,
        name: str,
        *,
        consumer: str | None = None,
        config: LineConfig | None = None,
        abi: AbiVersion = AbiVersion.AUTO,
        tg: anyio.abc.TaskGroup | None = None,
    ) -> Self:
        """Open a chip by name (gpiochip0) or path (/dev/gpiochip0).

        ``tg`` is the task group background watchers run in. Requests with
        an event handler and info watches need one.
        """
        path = name_to_path(name)
        check_chip(path)
        fd = common.open_device(path)
        try:
            info = common.get_chip_info(fd)
            if abi is AbiVersion.AUTO:
                abi = _probe_abi(fd)
        except OSError:
            os.close(fd)
            raise
        options = ChipOptions(
            consumer=consumer or DEFAULT_CONSUMER.format(pid=os.getpid()),
            config=config or LineConfig(),
            abi=abi,
        )
        chip = cls(
            fd=fd,
            name=bytes_to_str(info.name) or os.path.basename(path),
            label=bytes_to_str(info.label) or UNKNOWN_LABEL,
            lines=info.lines,
            options=options,
            tg=tg,
        )
        _LOGGER.debug("Opened %s (%s) with %s lines, ABI %s", chip.name, chip.label, chip.lines, abi.name)
        return chip

    @classmethod
    @asynccontextmanager
    async def create(
        cls,
        name: str,
        *,
        consumer: str | None = None,
        config: LineConfig | None = None,
        abi: AbiVersion = AbiVersion.AUTO,
    ) -> AsyncGenerator[Self, None]:
        """Open a chip with its own task group for background watchers.

        Errors from opening the chip and from the body of the ``async with``
        block propagate unwrapped.
        """
        chip = cls.open(name, consumer=consumer, config=config, abi=abi)
        try:
            async with anyio.create_task_group() as tg:
                chip.tg = tg
                try:
                    yield chip
                finally:
                    if not chip.closed:
                        chip.close()
                    tg.cancel_scope.cancel()
        except BaseExceptionGroup as group:
            if len(group.exceptions) == 1:
                raise group.exceptions[0] from None
            raise

    @property
    def abi(self) -> AbiVersion:
        return self.options.abi

    @property
    def info(self) -> ChipInfo:
        return ChipInfo(name=self.name, label=self.label, lines=self.lines)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self.closed:
            self.close()

    def close(self) -> None:
        with self._lock:
            if self.closed:
                raise ChipClosedError()
            self.closed = True
            watcher, self._info_watcher = self._info_watcher, None
            self._info_handlers.clear()
        try:
            if watcher is not None:
                watcher.close()
        finally:
            os.close(self.fd)
        _LOGGER.debug("Closed %s", self.name)

    def _check_offset(self, offset: int) -> None:
        if offset < 0 or offset >= self.lines:
            raise InvalidOffsetError(offset)

    def _line_info(self, offset: int) -> LineInfo:
        if self.abi is AbiVersion.V2:
            return codec.line_info_from_v2(v2.get_line_info(self.fd, offset))
        return codec.line_info_from_v1(v1.get_line_info(self.fd, offset))

    def line_info(self, offset: int) -> LineInfo:
        with self._lock:
            if self.closed:
                raise ChipClosedError()
            self._check_offset(offset)
            return self._line_info(offset)

    def find_line(self, name: str) -> int:
        """Offset of the named line on this chip."""
        for offset in range(self.lines):
            if self.line_info(offset).name == name:
                return offset
        raise LineNotFoundError(name)

    def find_lines(self, *names: str) -> list[int]:
        return [self.find_line(name) for name in names]

    def request_line(self, offset: int, options: LineOptions | None = None) -> Line:
        return self._request(Line, (offset,), options)

    def request_lines(self, offsets: Sequence[int], options: LineOptions | None = None) -> Lines:
        return self._request(Lines, tuple(offsets), options)

    def _request(
        self, line_cls: type[_LineT], offsets: tuple[int, ...], options: LineOptions | None
    ) -> _LineT:
        options = options or LineOptions()
        config = self.options.config.overlay(options.config)
        codec.validate(config, len(offsets))
        if options.handler is not None and not config.has_edge_detection:
            raise ConfigError("an event handler requires edge detection")
        if options.handler is None and config.has_edge_detection:
            raise ConfigError("edge detection requires an event handler")
        consumer = options.consumer or self.options.consumer
        abi = options.abi or self.abi
        values = codec.pad_values(options.values, len(offsets))

        with self._lock:
            if self.closed:
                raise ChipClosedError()
            for offset in offsets:
                self._check_offset(offset)
            if options.handler is not None and self.tg is None:
                raise InvalidOperationError("event handlers require a task group")
            if abi is AbiVersion.V2:
                request = codec.line_request_v2(offsets, config, values, consumer)
                fds = (v2.get_line(self.fd, request),)
                is_event = False
            elif options.handler is not None:
                fds = self._request_events_v1(offsets, config, consumer)
                is_event = True
            else:
                request = codec.handle_request(offsets, config, values, consumer)
                fds = (v1.get_line_handle(self.fd, request),)
                is_event = False
            tg = self.tg

        watcher = None
        if options.handler is not None:
            if is_event:
                watched = dict(zip(fds, offsets, strict=True))
            else:
                watched = {fds[0]: None}
            try:
                watcher = EventWatcher.start(tg, watched, options.handler, abi, owns_fds=is_event)
            except Exception:
                for fd in fds:
                    os.close(fd)
                raise
        _LOGGER.debug(
            "Requested lines %s on %s as %s with ABI %s", offsets, self.name, consumer, abi.name
        )
        return line_cls(
            offsets=offsets,
            fds=fds,
            chip=self.name,
            abi=abi,
            is_event=is_event,
            cached_config=config,
            cached_values=values if config.is_output else [0] * len(offsets),
            watcher=watcher,
        )

    def _request_events_v1(
        self, offsets: tuple[int, ...], config: LineConfig, consumer: str
    ) -> tuple[int, ...]:
        fds: list[int] = []
        try:
            for offset in offsets:
                request = codec.event_request(offset, config, consumer)
                fds.append(v1.get_line_event(self.fd, request))
        except OSError:
            for fd in fds:
                os.close(fd)
            raise
        return tuple(fds)

    def watch_line_info(self, offset: int, handler: InfoChangeHandler) -> LineInfo:
        """Watch a line for info changes, returning its current info.

        The kernel refuses a second watch of the same line with EBUSY.
        """
        with self._lock:
            if self.closed:
                raise ChipClosedError()
            self._check_offset(offset)
            if self.tg is None:
                raise InvalidOperationError("watching line info requires a task group")
            try:
                if self.abi is AbiVersion.V2:
                    info = codec.line_info_from_v2(v2.watch_line_info(self.fd, offset))
                else:
                    info = codec.line_info_from_v1(v1.watch_line_info(self.fd, offset))
            except OSError as err:
                if err.errno == errno.ENOTTY:
                    raise UnsupportedError(err, "line info watch") from err
                raise
            if self._info_watcher is None:
                self._info_watcher = InfoWatcher.start(
                    self.tg, self.fd, self.abi, self._dispatch_info_change
                )
            self._info_handlers[offset] = handler
        return info

    def unwatch_line_info(self, offset: int) -> None:
        with self._lock:
            if self.closed:
                return
            self._info_handlers.pop(offset, None)
            common.unwatch_line_info(self.fd, offset)

    def _dispatch_info_change(self, event: LineInfoChangeEvent) -> None:
        with self._lock:
            handler = self._info_handlers.get(event.info.offset)
        if handler is not None:
            handler(event)
