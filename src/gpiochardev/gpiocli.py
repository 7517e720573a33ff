"""gpiochardev command line."""

from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import Annotated, NoReturn

import click
import typer
from pydantic import ValidationError

from gpiochardev.config import LoggerConfig
from gpiochardev.const import GPIOMON
from gpiochardev.helper.exceptions import GpioError
from gpiochardev.logger import configure_logger, setup_logging
from gpiochardev.models import AbiVersion, ChipInfo, LineInfo
from gpiochardev.version import __version__

_LOGGER = logging.getLogger(__name__)


class AbiChoice(str, Enum):
    auto = "auto"
    v1 = "v1"
    v2 = "v2"


_ABI_VERSIONS = {
    AbiChoice.auto: AbiVersion.AUTO,
    AbiChoice.v1: AbiVersion.V1,
    AbiChoice.v2: AbiVersion.V2,
}

app = typer.Typer(help="Linux GPIO character device tools.")


def die(reason: str) -> NoReturn:
    typer.echo(f"{GPIOMON}: {reason}", err=True)
    raise typer.Exit(1)


def parse_offsets(args: list[str]) -> list[int]:
    offsets = []
    for arg in args:
        if not arg.isdigit():
            die(f"can't parse offset '{arg}'")
        offsets.append(int(arg))
    return offsets


def parse_log_levels(values: list[str] | None) -> LoggerConfig | None:
    """Turn ``LEVEL`` and ``LOGGER=LEVEL`` values into a logger config."""
    if not values:
        return None
    default = None
    logs = {}
    for value in values:
        name, sep, level = value.rpartition("=")
        if not sep:
            default = level.lower()
        elif name:
            logs[name] = level.lower()
        else:
            raise typer.BadParameter(f"missing logger name in '{value}'")
    try:
        return LoggerConfig(default=default, logs=logs)
    except ValidationError as err:
        raise typer.BadParameter(f"invalid log level in {values}") from err


LogOption = Annotated[
    list[str] | None,
    typer.Option(
        "--log",
        metavar="[LOGGER=]LEVEL",
        help="Log level for all loggers, or for one logger. Can be repeated.",
    ),
]
DebugOption = Annotated[
    int, typer.Option("-d", "--debug", count=True, help="Enable debug logging")
]


@app.command()
def monitor(
    chip: Annotated[str | None, typer.Argument(help="gpiochip name or path")] = None,
    offsets: Annotated[
        list[str] | None, typer.Argument(help="Line offsets to monitor")
    ] = None,
    active_low: Annotated[
        bool, typer.Option("-l", "--active-low", help="Set the line active state to low")
    ] = False,
    num_events: Annotated[
        int,
        typer.Option("-n", "--num-events", min=0, help="Exit after processing NUM events"),
    ] = 0,
    silent: Annotated[
        bool, typer.Option("-s", "--silent", help="Don't print event info")
    ] = False,
    rising_edge: Annotated[
        bool, typer.Option("-r", "--rising-edge", help="Only detect rising edge events")
    ] = False,
    falling_edge: Annotated[
        bool, typer.Option("-f", "--falling-edge", help="Only detect falling edge events")
    ] = False,
    abi: Annotated[
        AbiChoice, typer.Option(help="Kernel GPIO ABI to use")
    ] = AbiChoice.auto,
    log: LogOption = None,
    debug: DebugOption = 0,
) -> None:
    """Wait for events on GPIO lines and print them to standard output."""
    from gpiochardev.asyncio_ import asyncio_run
    from gpiochardev.config import MonitorConfig
    from gpiochardev.monitor import async_run_monitor

    if chip is None:
        die("gpiochip must be specified")
    if not offsets:
        die("at least one GPIO line offset must be specified")

    log_config = parse_log_levels(log)
    setup_logging(debug_level=debug)
    configure_logger(debug=debug, log_config=log_config)
    try:
        config = MonitorConfig(
            chip=chip,
            offsets=parse_offsets(offsets),
            active_low=active_low,
            rising_edge=rising_edge,
            falling_edge=falling_edge,
            num_events=num_events,
            silent=silent,
            abi=_ABI_VERSIONS[abi],
        )
    except ValidationError as err:
        die(str(err))

    failure = None
    try:
        asyncio_run(async_run_monitor, config=config, output=typer.echo)
    except* (GpioError, OSError) as eg:
        failure = eg.exceptions[0]
    if failure is not None:
        _LOGGER.debug("Monitor failed", exc_info=failure)
        die(f"error monitoring GPIO lines: {failure}")


@app.command()
def info(
    chips: Annotated[
        list[str] | None, typer.Argument(help="Chips to list, all when omitted")
    ] = None,
    log: LogOption = None,
    debug: DebugOption = 0,
) -> None:
    """Print the info of every line of the given chips."""
    from gpiochardev.chip import Chip
    from gpiochardev.chip import chips as all_chips

    log_config = parse_log_levels(log)
    setup_logging(debug_level=debug)
    configure_logger(debug=debug, log_config=log_config)
    try:
        for name in chips or all_chips():
            with Chip.open(name) as chip:
                typer.echo(format_chip_info(chip.info))
                for offset in range(chip.lines):
                    typer.echo(format_line_info(chip.line_info(offset)))
    except (GpioError, OSError) as err:
        typer.echo(f"gpioinfo: {err}", err=True)
        raise typer.Exit(1)


def format_chip_info(chip_info: ChipInfo) -> str:
    return f"{chip_info.name} [{chip_info.label}] - {chip_info.lines} lines:"


def format_line_info(line_info: LineInfo) -> str:
    config = line_info.config
    name = f'"{line_info.name}"' if line_info.name else "unnamed"
    consumer = f'"{line_info.consumer}"' if line_info.consumer else "unused"
    direction = config.direction.value
    active = "active-low" if config.active_low else "active-high"
    used = " [used]" if line_info.used else ""
    return f"\tline {line_info.offset:>3}: {name:>16} {consumer:>16} {direction:>6} {active}{used}"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """Linux GPIO character device tools."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


def main() -> int:
    """Start gpiochardev with typer.

    Usage errors exit with 1 like every other setup failure.
    """
    try:
        result = app(standalone_mode=False)
    except click.UsageError as e:
        e.show()
        return 1
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.Abort:
        typer.echo("Aborted!", err=True)
        return 1
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    sys.exit(main())
