import logging
import os
import tempfile
from logging import Formatter
from logging.handlers import RotatingFileHandler
from pathlib import Path

from colorlog import ColoredFormatter

from gpiochardev.config import LoggerConfig
from gpiochardev.const import ENV_LOG_DIR
from gpiochardev.version import __version__

_LOGGER = logging.getLogger(__name__)
_nameToLevel = {
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.FATAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

# Chatty at debug level, only enabled from -dd.
_WATCHER_LOGGERS = ("gpiochardev.watcher", "gpiochardev.info_watcher")


def configure_logger(debug: int, log_config: LoggerConfig | None = None) -> None:
    """Apply debug verbosity and per logger levels."""

    def debug_logger():
        if debug == 0:
            logging.getLogger().setLevel(logging.INFO)
        if debug > 0:
            logging.getLogger().setLevel(logging.DEBUG)
            for name in _WATCHER_LOGGERS:
                logging.getLogger(name).setLevel(logging.INFO)
            _LOGGER.info("Debug mode active")
            _LOGGER.debug("Lib version is %s", __version__)
        if debug > 1:
            for name in _WATCHER_LOGGERS:
                logging.getLogger(name).setLevel(logging.DEBUG)

    if log_config is None:
        debug_logger()
        return
    if log_config.default is not None:
        level = _nameToLevel.get(log_config.default.upper())
        if level is not None:
            logging.getLogger().setLevel(level)
            if debug == 0:
                debug = -1

    for log_key, log_level in log_config.logs.items():
        logger = logging.getLogger(log_key)
        val = _nameToLevel.get(log_level.upper())
        if val is not None:
            _LOGGER.info("Setting %s log level to %s", log_key, log_level)
            logger.setLevel(val)
    debug_logger()


def is_running_under_systemd():
    return os.getenv("JOURNAL_STREAM") is not None


def get_log_formatter(color: bool = True) -> Formatter:
    """Get log formatter with optional color support."""
    # journald adds its own timestamp
    if is_running_under_systemd():
        log_format = "%(levelname)s (%(threadName)s) [%(name)s] %(message)s"
    else:
        log_format = "%(asctime)s %(levelname)s (%(threadName)s) [%(name)s] %(message)s"

    date_format = "%Y-%m-%d %H:%M:%S"

    if color:
        return ColoredFormatter(
            fmt="%(log_color)s" + log_format + "%(reset)s",
            datefmt=date_format,
            reset=True,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red",
            },
        )
    return Formatter(log_format, datefmt=date_format)


def setup_logging(debug_level: int = 0) -> None:
    """Log to stderr, and with -dd also to a rotating file."""
    level = logging.INFO if debug_level == 0 else logging.DEBUG
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(get_log_formatter(color=True))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console_handler)

    if debug_level > 1:
        log_dir_env = os.environ.get(ENV_LOG_DIR)
        if log_dir_env:
            log_dir = Path(log_dir_env)
        else:
            log_dir = Path(tempfile.gettempdir()) / "gpiochardev"
            log_dir.mkdir(exist_ok=True, mode=0o700)

        log_file = log_dir / "gpiochardev.log"
        file_handler = RotatingFileHandler(
            str(log_file),
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(get_log_formatter(color=False))
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)

        _LOGGER.info("File logging enabled at: %s", log_file)
