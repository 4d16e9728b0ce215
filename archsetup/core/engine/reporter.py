"""
Reporter — where operator-facing messages go.

The runner, the prompter and the session only know the Reporter
protocol. The CLI plugs in a colored console reporter; library callers
and tests get LogReporter, which routes everything to ``logging``.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Five message kinds, each with a distinct prefix on the console."""

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def prompt(self, message: str) -> None:
        """Print a prompt without a trailing newline."""
        ...


class LogReporter:
    """Reporter that writes to the ``archsetup`` logger hierarchy."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def info(self, message: str) -> None:
        self._log.info(message)

    def success(self, message: str) -> None:
        self._log.info("SUCCESS: %s", message)

    def warn(self, message: str) -> None:
        self._log.warning(message)

    def error(self, message: str) -> None:
        self._log.error(message)

    def prompt(self, message: str) -> None:
        self._log.info("INPUT REQUIRED: %s", message)


class RecordingReporter:
    """Keeps ``(kind, message)`` pairs in order. Used by tests and ``--json``."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def prompt(self, message: str) -> None:
        self.messages.append(("prompt", message))

    def of_kind(self, kind: str) -> list[str]:
        return [m for k, m in self.messages if k == kind]
