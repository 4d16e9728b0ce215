"""
CLI commands for root-side operations.

Hidden from ``--help``: steps invoke these through
``sudo python -m archsetup.main privileged <op>``. Thin wrappers over
``archsetup.core.services.privileged``.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from archsetup.core.services.privileged import PrivilegedOpError
from archsetup.ui.cli.console import ConsoleReporter

_console = ConsoleReporter()

_root_option = click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default="/",
    show_default=True,
    help="System root to operate on.",
)


def _fail(error: Exception) -> None:
    _console.error(str(error))
    sys.exit(1)


@click.group(hidden=True)
def privileged() -> None:
    """Root-side system file edits (invoked through sudo)."""


@privileged.command("pacman-conf")
@_root_option
@click.option("--parallel", default=5, show_default=True, type=click.IntRange(min=1))
def pacman_conf(root: Path, parallel: int) -> None:
    """Enable Color, ILoveCandy, VerbosePkgLists and ParallelDownloads."""
    from archsetup.core.services.privileged import apply_pacman_conf

    try:
        changed, diff = apply_pacman_conf(root, parallel)
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    if changed:
        _console.success("Updated pacman.conf.")
    else:
        _console.info("pacman.conf already tweaked.")
    if diff:
        _console.info("Differences from backup:")
        click.echo(diff, nl=False)


@privileged.command("tty-font")
@_root_option
@click.argument("font")
def tty_font(root: Path, font: str) -> None:
    """Set the console FONT in vconsole.conf."""
    from archsetup.core.services.privileged import apply_tty_font

    try:
        changed = apply_tty_font(root, font)
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    if changed:
        _console.success(f"TTY font set to '{font}'.")
    else:
        _console.info(f"TTY font already '{font}'.")


@privileged.command("grub-font")
@_root_option
@click.argument("ttf", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--size", default=20, show_default=True, type=click.IntRange(min=6))
@click.option("--no-mkconfig", is_flag=True, help="Skip grub-mkconfig.")
def grub_font(root: Path, ttf: Path, size: int, no_mkconfig: bool) -> None:
    """Generate a bigger GRUB font and enable os-prober."""
    from archsetup.core.services.privileged import apply_grub_font

    try:
        font_path = apply_grub_font(root, ttf, size=size, mkconfig=not no_mkconfig)
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    _console.success(f"GRUB font configured: {font_path}")


@privileged.command("touchpad")
@_root_option
@click.argument("prefix")
def touchpad(root: Path, prefix: str) -> None:
    """Write PREFIX-touchpad.conf for libinput."""
    from archsetup.core.services.privileged import (
        TOUCHPAD_CONF,
        touchpad_conf_path,
        write_system_file,
    )

    try:
        target, _ = write_system_file(root, touchpad_conf_path(prefix), TOUCHPAD_CONF)
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    _console.success(f"Touchpad configuration written to: {target}")


@privileged.command("pkglist-hook")
@_root_option
@click.argument("save_dir")
def pkglist_hook(root: Path, save_dir: str) -> None:
    """Install a pacman hook that dumps package lists to SAVE_DIR."""
    from archsetup.core.services.privileged import (
        PKGLIST_HOOK,
        pkglist_hook_content,
        write_system_file,
    )

    try:
        target, _ = write_system_file(root, PKGLIST_HOOK, pkglist_hook_content(save_dir))
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    _console.success(f"Hook created at {target}")


@privileged.command("getty-issue")
@_root_option
def getty_issue(root: Path) -> None:
    """Replace /etc/issue with the Arch banner."""
    from archsetup.core.services.privileged import ISSUE, ISSUE_BANNER, write_system_file

    try:
        target, _ = write_system_file(root, ISSUE, ISSUE_BANNER)
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    _console.success(f"{target} has been updated.")


@privileged.command("autologin")
@_root_option
@click.argument("user")
def autologin(root: Path, user: str) -> None:
    """Skip the username prompt on tty1 for USER."""
    from archsetup.core.services.privileged import (
        AUTOLOGIN_CONF,
        autologin_content,
        write_system_file,
    )

    try:
        write_system_file(root, AUTOLOGIN_CONF, autologin_content(user))
    except (PrivilegedOpError, OSError) as e:
        _fail(e)
        return

    _console.success(f"Auto-login configured for user: {user}")
