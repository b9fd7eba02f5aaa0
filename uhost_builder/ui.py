"""Human-readable progress output for build steps.

Steps talk to a ``Ui``; ``ConsoleUi`` renders through rich and mirrors
every line into the log.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger
from rich.console import Console
from rich.markup import escape

log = logger.bind(component="ui")


class Ui(Protocol):
    def say(self, message: str) -> None:
        """Announce a phase."""
        ...

    def message(self, message: str) -> None:
        """Detail line under the current phase."""
        ...

    def error(self, message: str) -> None:
        """Report a failure."""
        ...


class ConsoleUi:
    def __init__(self, console: Console | None = None, prefix: str = "ucloud-uhost") -> None:
        self._console = console or Console(stderr=True, highlight=False)
        self._prefix = prefix

    def say(self, message: str) -> None:
        log.info(message)
        self._console.print(f"[bold green]==> {self._prefix}: {escape(message)}[/]")

    def message(self, message: str) -> None:
        log.info(message)
        self._console.print(f"    {self._prefix}: {escape(message)}")

    def error(self, message: str) -> None:
        log.error(message)
        self._console.print(f"[bold red]==> {self._prefix}: {escape(message)}[/]")
