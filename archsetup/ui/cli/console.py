"""
Console reporter — colored operator output for the CLI.

Every line carries a prefix so outcomes stay distinguishable when the
terminal has no colors (or the output is piped into a file).
"""

from __future__ import annotations

import click

PREFIXES = {
    "info": ("INFO:", "blue"),
    "success": ("SUCCESS:", "green"),
    "warn": ("WARNING:", "yellow"),
    "error": ("ERROR:", "red"),
    "prompt": ("INPUT REQUIRED:", "blue"),
}


class ConsoleReporter:
    """Reporter that prints with click.secho.

    Args:
        quiet: Drop info lines. Warnings, errors and prompts still print.
        err: Print to stderr, keeping stdout for machine-readable output.
    """

    def __init__(self, quiet: bool = False, err: bool = False):
        self.quiet = quiet
        self.err = err

    def _emit(self, kind: str, message: str, nl: bool = True) -> None:
        prefix, color = PREFIXES[kind]
        click.secho(prefix, fg=color, bold=kind in ("error", "prompt"), nl=False, err=self.err)
        click.echo(f" {message}", nl=nl, err=self.err)

    def info(self, message: str) -> None:
        if not self.quiet:
            self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warn(self, message: str) -> None:
        self._emit("warn", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def prompt(self, message: str) -> None:
        self._emit("prompt", message, nl=False)
