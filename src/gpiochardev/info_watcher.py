from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

import anyio
import anyio.abc
import anyio.from_thread
import anyio.lowlevel

from gpiochardev import codec
from gpiochardev.models import AbiVersion, LineInfoChangeEvent
from gpiochardev.uapi import v1, v2

_LOGGER = logging.getLogger(__name__)


@dataclass
class InfoWatcher:
    """Reads line info change records from a chip fd it does not own."""

    fd: int
    abi: AbiVersion
    dispatch: Callable[[LineInfoChangeEvent], None]
    closed: bool = field(default=False, init=False)
    _waiting: bool = field(default=False, init=False, repr=False)
    _cancel_scope: anyio.CancelScope = field(default_factory=anyio.CancelScope, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _token: object = field(default=None, init=False, repr=False)
    _loop_thread: int | None = field(default=None, init=False, repr=False)

    @classmethod
    def start(
        cls,
        tg: anyio.abc.TaskGroup,
        fd: int,
        abi: AbiVersion,
        dispatch: Callable[[LineInfoChangeEvent], None],
    ) -> InfoWatcher:
        watcher = cls(fd=fd, abi=abi, dispatch=dispatch)
        watcher._token = anyio.lowlevel.current_token()
        watcher._loop_thread = threading.get_ident()
        tg.start_soon(watcher._run, name=f"gpio-info-watcher-{fd}")
        _LOGGER.debug("Started info watcher on chip fd %s", fd)
        return watcher

    async def _run(self) -> None:
        with self._cancel_scope:
            while not self.closed:
                self._waiting = True
                try:
                    await anyio.wait_readable(self.fd)
                except anyio.ClosedResourceError:
                    return
                finally:
                    self._waiting = False
                if self.closed:
                    return
                try:
                    event = self._read_change()
                except OSError:
                    _LOGGER.exception("Reading info changes from chip fd %s failed", self.fd)
                    return
                except ValueError as err:
                    _LOGGER.warning("Dropped info change record on chip fd %s: %s", self.fd, err)
                    continue
                try:
                    self.dispatch(event)
                except Exception:
                    _LOGGER.exception("Info change handler failed for line %s", event.info.offset)

    def _read_change(self) -> LineInfoChangeEvent:
        if self.abi is AbiVersion.V2:
            return codec.info_changed_from_v2(v2.read_line_info_changed(self.fd))
        return codec.info_changed_from_v1(v1.read_line_info_changed(self.fd))

    def close(self) -> None:
        """Stop reading. May be called from any thread."""
        with self._lock:
            if self.closed:
                return
            self.closed = True
        if self._token is None or threading.get_ident() == self._loop_thread:
            self._stop()
        else:
            anyio.from_thread.run_sync(self._stop, token=self._token)
        _LOGGER.debug("Stopped info watcher on chip fd %s", self.fd)

    def _stop(self) -> None:
        if self._waiting:
            anyio.notify_closing(self.fd)
        self._cancel_scope.cancel()
