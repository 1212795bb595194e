"""Notification sinks: where human-readable messages end up."""
from typing import List, Tuple
import logging

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger("bulk_ingest.notify")


class LoggingNotifier:
    """Sends messages to the logging system."""

    def info(self, message: str) -> None:
        logger.info(message)

    def warn(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class MemoryNotifier:
    """Collects (level, message) pairs, e.g. for a UI to show later."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def of(self, level: str) -> List[str]:
        return [m for lvl, m in self.messages if lvl == level]

    def clear(self) -> None:
        self.messages.clear()


class ConsoleNotifier:
    """Prints messages on a rich console."""

    STYLES = {"info": "green", "warn": "yellow", "error": "bold red"}
    ICONS = {"info": "✓", "warn": "!", "error": "✗"}

    def __init__(self, console: Console = None):
        self._console = console or Console(stderr=True)

    def _print(self, level: str, message: str) -> None:
        style = self.STYLES[level]
        self._console.print(f"[{style}]{self.ICONS[level]}[/{style}] {escape(message)}")

    def info(self, message: str) -> None:
        self._print("info", message)

    def warn(self, message: str) -> None:
        self._print("warn", message)

    def error(self, message: str) -> None:
        self._print("error", message)
