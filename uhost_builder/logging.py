"""Logging configuration for uhost-builder.

This module provides structured logging via loguru. Logging is disabled by
default (library behavior) and enabled by the pipeline runner when a
LogConfig is supplied.

Example:
    from uhost_builder import LogConfig, run_steps

    # Custom: configure level and file output
    run_steps(steps, state, logging=LogConfig(level="DEBUG", file="build.log"))
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal

from loguru import logger

# Disable by default (library behavior)
logger.disable("uhost_builder")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} | {extra} - {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration for a build run.

    Attributes:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        file: Path to log file. If provided, logs are written to this file.
        console: Whether to log to stderr. Defaults to False because the UI
            already prints progress lines.
        rotation: File rotation policy (e.g., "50 MB", "1 day"). Defaults to "50 MB".
        retention: Number of old log files to keep. Defaults to 10.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = False
    rotation: str = "50 MB"
    retention: int = 10


def _setup_logging(config: LogConfig) -> list[int]:
    """Configure logging and return handler IDs for cleanup.

    Args:
        config: Logging configuration.

    Returns:
        List of handler IDs that were added (for later removal).
    """
    logger.enable("uhost_builder")
    logger.configure(extra={"component": "builder"})
    handler_ids: list[int] = []

    if config.console:
        hid = logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            colorize=True,
            filter="uhost_builder",
        )
        handler_ids.append(hid)

    if config.file:
        hid = logger.add(
            config.file,
            level="DEBUG",  # File always captures everything
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            diagnose=False,  # Don't expose credentials in tracebacks
            enqueue=True,
            filter="uhost_builder",
        )
        handler_ids.append(hid)

    return handler_ids


def _teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable logging.

    Args:
        handler_ids: List of handler IDs to remove.
    """
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("uhost_builder")
