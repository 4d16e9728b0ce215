"""
Confirmation prompt — operator input, parsed once.

Raw input is turned into a ``Response`` in exactly one place
(``parse_response``); nothing downstream compares strings. The
Prompter reads line by line from a text stream so tests can feed it
an ``io.StringIO``. A closed stream is a ``RunnerFailure``: there is
nobody left to answer, so the run cannot go on.
"""

from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import TYPE_CHECKING, TextIO

import click

from archsetup.core.engine.reporter import LogReporter, Reporter

if TYPE_CHECKING:
    from archsetup.core.models.step import RunLog

logger = logging.getLogger(__name__)

INVALID_INPUT_MESSAGE = "Invalid input. Please enter 'y' or 'n'."


class Response(Enum):
    YES = "yes"
    NO = "no"
    INVALID = "invalid"


def parse_response(raw: str) -> Response:
    """``y``/``Y`` is YES; ``n``/``N`` and empty are NO; anything else is INVALID.

    Surrounding whitespace (including the newline) is ignored.
    """
    value = raw.strip()
    if value in ("y", "Y"):
        return Response.YES
    if value in ("n", "N", ""):
        return Response.NO
    return Response.INVALID


class RunnerFailure(Exception):
    """The input mechanism failed; the run cannot continue.

    ``log`` is filled in by the runner with the partial RunLog.
    """

    def __init__(self, message: str, log: RunLog | None = None):
        super().__init__(message)
        self.log = log


class Prompter:
    """Reads operator answers from a text stream.

    Args:
        stream: Where answers come from (default: sys.stdin).
        reporter: Where prompts and warnings are printed.
        auto_yes: Answer every confirmation with YES without reading.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        reporter: Reporter | None = None,
        auto_yes: bool = False,
    ):
        self._stream = stream
        self.reporter: Reporter = reporter or LogReporter()
        self.auto_yes = auto_yes

    @property
    def stream(self) -> TextIO:
        if self._stream is None:
            self._stream = sys.stdin
        return self._stream

    def _readline(self) -> str:
        try:
            line = self.stream.readline()
        except (OSError, ValueError) as e:
            raise RunnerFailure(f"Cannot read operator input: {e}") from e
        if line == "":
            raise RunnerFailure("Input stream closed while waiting for an answer")
        return line.rstrip("\r\n")

    def _is_tty(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def confirm(self, question: str, default: bool = False) -> bool:
        """Ask a yes/no question until the answer parses.

        ``default`` only changes what an empty answer means and the
        ``[y/N]`` / ``[Y/n]`` hint.
        """
        if self.auto_yes:
            logger.debug("Auto-confirmed: %s", question)
            return True

        hint = "[Y/n]" if default else "[y/N]"
        while True:
            self.reporter.prompt(f"{question} {hint}: ")
            raw = self._readline()
            if default and raw.strip() == "":
                return True
            response = parse_response(raw)
            if response is Response.YES:
                return True
            if response is Response.NO:
                return False
            logger.debug("Invalid confirmation input: %r", raw)
            self.reporter.warn(INVALID_INPUT_MESSAGE)

    def ask(self, question: str, secret: bool = False, default: str | None = None) -> str:
        """Read one free-text answer.

        An empty answer returns ``default`` when one is given. Secret
        answers are not echoed when the stream is a terminal.
        """
        suffix = f" [{default}]" if default and not secret else ""
        self.reporter.prompt(f"{question}{suffix}: ")

        if secret and self._is_tty():
            try:
                value = click.prompt(
                    "",
                    hide_input=True,
                    default=default or "",
                    show_default=False,
                    prompt_suffix="",
                )
            except click.Abort as e:
                # click turns both Ctrl-C and EOF into Abort
                if isinstance(e.__context__, KeyboardInterrupt):
                    raise KeyboardInterrupt from None
                raise RunnerFailure("Input stream closed at a secret prompt") from e
        else:
            value = self._readline().strip()

        if not value and default is not None:
            return default
        return value

    def choose(self, question: str, options: list[str]) -> str:
        """Pick one of ``options`` by its 1-based number.

        A single option is returned without asking.
        """
        if not options:
            raise ValueError("choose() needs at least one option")
        if len(options) == 1:
            return options[0]

        for i, option in enumerate(options, start=1):
            self.reporter.info(f"{i}) {option}")
        while True:
            raw = self.ask(question)
            if raw.isdigit() and 1 <= int(raw) <= len(options):
                return options[int(raw) - 1]
            self.reporter.warn("Invalid choice. Please try again.")

    def pause(self, message: str = "Press ENTER to continue...") -> None:
        """Wait for ENTER. Skipped when every prompt is auto-confirmed."""
        if self.auto_yes:
            logger.info("Not pausing (auto-confirm): %s", message)
            return
        self.reporter.prompt(message)
        self._readline()
