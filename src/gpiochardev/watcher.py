"""Background delivery of edge events from line request fds."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from enum import Enum

import anyio
import anyio.abc
import anyio.from_thread
import anyio.lowlevel
from anyio.streams.memory import MemoryObjectSendStream

from gpiochardev import codec
from gpiochardev.models import AbiVersion, EventHandler, LineEvent
from gpiochardev.uapi import v1, v2

_LOGGER = logging.getLogger(__name__)


class WatcherState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class EventWatcher:
    """Reads edge events from one or more fds and calls the handler.

    ABI v2 requests share a single fd carrying events for every line. ABI v1
    event requests have one fd per line, so ``fds`` maps each fd to its line
    offset and every fd gets its own reader. Readers feed one memory object
    stream and a single dispatcher calls the handler in arrival order.
    """

    fds: dict[int, int | None]
    handler: EventHandler
    abi: AbiVersion
    owns_fds: bool = False
    state: WatcherState = field(default=WatcherState.IDLE, init=False)
    _cancel_scope: anyio.CancelScope = field(default_factory=anyio.CancelScope, init=False, repr=False)
    _waiting: set[int] = field(default_factory=set, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _token: object = field(default=None, init=False, repr=False)
    _loop_thread: int | None = field(default=None, init=False, repr=False)

    @classmethod
    def start(
        cls,
        tg: anyio.abc.TaskGroup,
        fds: dict[int, int | None],
        handler: EventHandler,
        abi: AbiVersion,
        owns_fds: bool = False,
    ) -> EventWatcher:
        watcher = cls(fds=fds, handler=handler, abi=abi, owns_fds=owns_fds)
        watcher.state = WatcherState.RUNNING
        watcher._token = anyio.lowlevel.current_token()
        watcher._loop_thread = threading.get_ident()
        tg.start_soon(watcher._run, name=f"gpio-event-watcher-{min(fds)}")
        _LOGGER.debug("Started %s event watcher on fds %s", abi.name, list(fds))
        return watcher

    @property
    def closed(self) -> bool:
        return self.state is WatcherState.STOPPED

    async def _run(self) -> None:
        with self._cancel_scope:
            if self.closed:
                return
            sender, receiver = anyio.create_memory_object_stream[LineEvent]()
            async with anyio.create_task_group() as tg:
                async with sender:
                    for fd, offset in self.fds.items():
                        tg.start_soon(self._read, fd, offset, sender.clone())
                async with receiver:
                    async for event in receiver:
                        self._dispatch(event)

    async def _read(
        self, fd: int, offset: int | None, sender: MemoryObjectSendStream[LineEvent]
    ) -> None:
        async with sender:
            while not self.closed:
                self._waiting.add(fd)
                try:
                    await anyio.wait_readable(fd)
                except anyio.ClosedResourceError:
                    return
                finally:
                    self._waiting.discard(fd)
                if self.closed:
                    return
                try:
                    event = self._read_event(fd, offset)
                except (OSError, ValueError):
                    _LOGGER.exception("Reading edge events from fd %s failed, reader stopped", fd)
                    return
                await sender.send(event)

    def _read_event(self, fd: int, offset: int | None) -> LineEvent:
        if self.abi is AbiVersion.V2:
            return codec.line_event_from_v2(v2.read_event(fd))
        return codec.line_event_from_v1(v1.read_event(fd), offset)

    def _dispatch(self, event: LineEvent) -> None:
        if self.closed:
            return
        try:
            self.handler(event)
        except Exception:
            _LOGGER.exception("Event handler failed for line %s", event.offset)

    def close(self) -> None:
        """Stop delivery, nothing is dispatched once this returns.

        May be called from any thread. Owned fds are closed even if stopping
        the reader tasks fails.
        """
        with self._lock:
            if self.closed:
                return
            self.state = WatcherState.STOPPED
        try:
            if self._token is None or threading.get_ident() == self._loop_thread:
                self._stop()
            else:
                anyio.from_thread.run_sync(self._stop, token=self._token)
        finally:
            if self.owns_fds:
                for fd in self.fds:
                    os.close(fd)
            _LOGGER.debug("Stopped event watcher on fds %s", list(self.fds))

    def _stop(self) -> None:
        for fd in list(self._waiting):
            anyio.notify_closing(fd)
        self._cancel_scope.cancel()
