from __future__ import annotations

import signal
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import anyio
from click import ClickException


class CommandInterrupted(ClickException):
    """When command line is interrupted."""


async def handle_signals(msg: str) -> None:
    if threading.main_thread() != threading.current_thread():
        # signal handlers can only be installed from the main thread
        return

    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            signame = signal.Signals(signum).name
            raise CommandInterrupted(f"{msg} ({signame}). Exiting...")


_T = TypeVar("_T")


def asyncio_run(handler: Callable[..., Coroutine[Any, Any, _T]], **kwargs: object) -> None:
    async def fun() -> None:
        try:
            await handler(**kwargs)
        except* CommandInterrupted:
            pass

    return anyio.run(fun)
