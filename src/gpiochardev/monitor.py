"""Print edge events of requested lines, in the manner of gpiomon."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

import anyio

from gpiochardev.asyncio_ import handle_signals
from gpiochardev.chip import Chip
from gpiochardev.config import MonitorConfig
from gpiochardev.const import FALLING, GPIOMON, RISING
from gpiochardev.models import LineEvent, LineEventType, LineOptions

_LOGGER = logging.getLogger(__name__)


def format_event(event: LineEvent) -> str:
    edge = FALLING if event.type is LineEventType.FALLING_EDGE else RISING
    timestamp = datetime.fromtimestamp(event.timestamp_ns / 1e9, tz=timezone.utc)
    return f"event:{event.offset:3d} {edge:<7} {timestamp.isoformat()}"


async def async_run_monitor(
    config: MonitorConfig, output: Callable[[str], None] = print
) -> int:
    """Monitor lines until interrupted or num_events have been seen.

    Returns the number of events handled.
    """
    done = anyio.Event()
    count = 0

    def handle_event(event: LineEvent) -> None:
        nonlocal count
        if config.num_events and count >= config.num_events:
            return
        count += 1
        if not config.silent:
            output(format_event(event))
        if config.num_events and count >= config.num_events:
            done.set()

    async with Chip.create(config.chip, consumer=GPIOMON, abi=config.abi) as chip:
        options = LineOptions(config=config.line_config(), handler=handle_event)
        with chip.request_lines(config.offsets, options):
            _LOGGER.debug("Monitoring lines %s on %s", config.offsets, chip.name)
            async with anyio.create_task_group() as tg:

                async def wait_done() -> None:
                    await done.wait()
                    tg.cancel_scope.cancel()

                tg.start_soon(wait_done)
                tg.start_soon(handle_signals, f"{GPIOMON} interrupted")
    return count
