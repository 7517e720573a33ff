"""Requested lines, as returned by Chip.request_line and Chip.request_lines."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Self

from gpiochardev import codec
from gpiochardev.helper.exceptions import (
    InvalidOperationError,
    LineClosedError,
    PermissionDeniedError,
)
from gpiochardev.models import AbiVersion, LineConfig, LineInfo
from gpiochardev.uapi import v1, v2
from gpiochardev.watcher import EventWatcher

_LOGGER = logging.getLogger(__name__)


@dataclass
class _BaseLine:
    """State shared by single and multi line requests.

    ``fds`` holds the one request fd for ABI v2 and v1 handle requests, or one
    event fd per offset for v1 event requests. The latter are owned by the
    watcher and closed by it.
    """

    offsets: tuple[int, ...]
    fds: tuple[int, ...]
    chip: str
    abi: AbiVersion
    is_event: bool
    cached_config: LineConfig
    cached_values: list[int]
    watcher: EventWatcher | None = None
    cached_info: list[LineInfo] | None = field(default=None, init=False)
    closed: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def fd(self) -> int:
        return self.fds[0]

    @property
    def config(self) -> LineConfig:
        return self.cached_config

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self.closed:
            self.close()

    def close(self) -> None:
        """Release the lines. The watcher, if any, is stopped first."""
        with self._lock:
            if self.closed:
                raise LineClosedError()
            self.closed = True
            watcher, self.watcher = self.watcher, None
        try:
            if watcher is not None:
                watcher.close()
        finally:
            if not self.is_event:
                for fd in self.fds:
                    os.close(fd)
        _LOGGER.debug("Released lines %s on %s", self.offsets, self.chip)

    def reconfigure(
        self, config: LineConfig | None = None, values: Sequence[int] | None = None
    ) -> None:
        """Update the configuration of requested lines without releasing them.

        ``config`` is overlaid on the current configuration. Lines with edge
        detection cannot be reconfigured.
        """
        num_lines = len(self.offsets)
        with self._lock:
            if self.closed:
                raise LineClosedError()
            if self.is_event or self.cached_config.has_edge_detection:
                raise InvalidOperationError("lines with edge detection cannot be reconfigured")
            if config is None and values is None:
                return
            new_config = self.cached_config.overlay(config)
            codec.validate(new_config, num_lines)
            if new_config.has_edge_detection:
                raise InvalidOperationError("edge detection cannot be added by reconfigure")
            new_values = codec.pad_values(
                self.cached_values if values is None else values, num_lines
            )
            if self.abi is AbiVersion.V2:
                v2.set_line_config(self.fd, codec.line_config_v2(new_config, new_values, num_lines))
            else:
                v1.set_line_config(self.fd, codec.handle_config(new_config, new_values, num_lines))
            self.cached_config = new_config
            if new_config.is_output:
                self.cached_values = new_values
            self.cached_info = None
        _LOGGER.debug("Reconfigured lines %s on %s", self.offsets, self.chip)

    def _read_values(self) -> list[int]:
        num_lines = len(self.offsets)
        if self.abi is AbiVersion.V2:
            data = v2.get_line_values(self.fd, codec.lines_mask(num_lines))
            return codec.bits_to_values(data.bits, num_lines)
        if self.is_event:
            return [v1.get_line_values(fd).values[0] for fd in self.fds]
        return list(v1.get_line_values(self.fd).values[:num_lines])

    def _values(self, buffer: list[int] | None = None) -> list[int]:
        with self._lock:
            if self.closed:
                raise LineClosedError()
            current = self._read_values()
        if buffer is None:
            return current
        count = min(len(buffer), len(current))
        buffer[:count] = current[:count]
        return buffer

    def _set_values(self, values: Sequence[int]) -> None:
        num_lines = len(self.offsets)
        with self._lock:
            if self.closed:
                raise LineClosedError()
            if not self.cached_config.is_output:
                raise PermissionDeniedError("lines are not requested as output")
            padded = codec.pad_values(values, num_lines)
            if self.abi is AbiVersion.V2:
                v2.set_line_values(self.fd, codec.line_values(padded, num_lines))
            else:
                v1.set_line_values(self.fd, codec.handle_data(padded, num_lines))
            self.cached_values = padded

    def _infos(self) -> list[LineInfo]:
        with self._lock:
            if self.closed:
                raise LineClosedError()
            if self.cached_info is not None:
                return list(self.cached_info)
        infos = self._fetch_infos()
        with self._lock:
            self.cached_info = infos
        return list(infos)

    def _fetch_infos(self) -> list[LineInfo]:
        # Imported here as chip.py builds requests from this module.
        from gpiochardev.chip import Chip

        with Chip.open(self.chip, abi=self.abi) as chip:
            return [chip.line_info(offset) for offset in self.offsets]


@dataclass
class Line(_BaseLine):
    """A single requested line."""

    @property
    def offset(self) -> int:
        return self.offsets[0]

    def value(self) -> int:
        return self._values()[0]

    def set_value(self, value: int) -> None:
        self._set_values([value])

    def info(self) -> LineInfo:
        return self._infos()[0]


@dataclass
class Lines(_BaseLine):
    """A set of lines requested together."""

    def values(self, buffer: list[int] | None = None) -> list[int]:
        """Read line values in request order.

        With a buffer, fills ``min(len(buffer), len(offsets))`` entries and
        returns it.
        """
        return self._values(buffer)

    def set_values(self, values: Sequence[int]) -> None:
        """Set output values in request order, missing values are inactive."""
        self._set_values(values)

    def infos(self) -> list[LineInfo]:
        return self._infos()
