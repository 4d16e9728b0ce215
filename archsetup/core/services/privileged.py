"""
Privileged operations — root-side edits of system files.

These run inside ``sudo archsetup privileged <op>``; the unprivileged
steps never write under /etc themselves. Each operation takes a
``root`` directory (``/`` on a live system) so it can target a chroot
or a test tree, rewrites one file atomically, and converges: applying
it twice leaves the same file as applying it once.

The text transforms (``tweak_pacman_conf``, ``set_assignment``, ...)
are pure functions; the ``apply_*`` / ``write_*`` wrappers do the I/O.
"""

from __future__ import annotations

import difflib
import logging
import re
import shutil
import subprocess
import time
from collections.abc import Callable
from pathlib import Path

from archsetup.core.persistence.atomic import atomic_write_text

logger = logging.getLogger(__name__)


class PrivilegedOpError(Exception):
    """A root-side operation could not complete."""


def under(root: Path, absolute: str) -> Path:
    """Map an absolute system path into ``root``."""
    return Path(root) / absolute.lstrip("/")


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise PrivilegedOpError(f"File not found: {path}") from e
    except OSError as e:
        raise PrivilegedOpError(f"Cannot read {path}: {e}") from e


def _join(lines: list[str], like: str) -> str:
    text = "\n".join(lines)
    return text + "\n" if like.endswith("\n") or not like else text


def unified_diff(before: str, after: str, before_name: str, after_name: str) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=before_name,
            tofile=after_name,
        )
    )


# ── pacman.conf ─────────────────────────────────────────────────

PACMAN_CONF = "/etc/pacman.conf"


def tweak_pacman_conf(text: str, parallel: int = 5) -> str:
    """Enable Color (plus ILoveCandy once), VerbosePkgLists and ParallelDownloads."""
    has_candy = any(line.startswith("ILoveCandy") for line in text.splitlines())
    out: list[str] = []
    for line in text.splitlines():
        trimmed = line.lstrip()
        if trimmed in ("Color", "#Color"):
            out.append("Color")
            if not has_candy:
                out.append("ILoveCandy")
                has_candy = True
        elif trimmed in ("VerbosePkgLists", "#VerbosePkgLists"):
            out.append("VerbosePkgLists")
        elif trimmed.startswith(("ParallelDownloads", "#ParallelDownloads")):
            out.append(f"ParallelDownloads = {parallel}")
        else:
            out.append(line)
    return _join(out, text)


def apply_pacman_conf(root: Path, parallel: int = 5) -> tuple[bool, str]:
    """Back up pacman.conf once, apply the tweaks, return ``(changed, diff vs backup)``."""
    conf = under(root, PACMAN_CONF)
    backup = conf.with_name(conf.name + ".bak")
    original = _read(conf)

    if not backup.exists():
        shutil.copy2(conf, backup)
        logger.info("Backup of %s created at %s", conf, backup)

    updated = tweak_pacman_conf(original, parallel)
    changed = updated != original
    if changed:
        atomic_write_text(conf, updated, mode=0o644)

    return changed, unified_diff(_read(backup), updated, str(backup), str(conf))


# ── KEY=value files (vconsole.conf, /etc/default/grub) ─────────

def set_assignment(text: str, key: str, value: str) -> str:
    """Replace every ``KEY=...`` line, or append one if there is none."""
    pattern = re.compile(rf"^{re.escape(key)}=.*$")
    lines = text.splitlines()
    found = False
    for i, line in enumerate(lines):
        if pattern.match(line):
            lines[i] = f"{key}={value}"
            found = True
    if not found:
        if lines and lines[-1].strip():
            lines.append("")
        lines.append(f"{key}={value}")
        return "\n".join(lines) + "\n"
    return _join(lines, text)


def uncomment(text: str, line: str) -> str:
    """Turn ``#line`` into ``line`` (exact match at start of line)."""
    return _join([line if cur == f"#{line}" else cur for cur in text.splitlines()], text)


# ── TTY font ────────────────────────────────────────────────────

VCONSOLE_CONF = "/etc/vconsole.conf"
CONSOLE_FONTS = "/usr/share/kbd/consolefonts"


def apply_tty_font(root: Path, font: str, now: Callable[[], float] = time.time) -> bool:
    """Set ``FONT=`` in vconsole.conf. Returns whether the file changed."""
    font_file = under(root, CONSOLE_FONTS) / f"{font}.psfu.gz"
    if not font_file.is_file():
        raise PrivilegedOpError(f"Font file not found: {font_file}")

    conf = under(root, VCONSOLE_CONF)
    original = conf.read_text(encoding="utf-8") if conf.exists() else ""
    updated = set_assignment(original, "FONT", font)
    if updated == original:
        return False

    if conf.exists():
        backup = conf.with_name(f"{conf.name}.bak.{int(now())}")
        shutil.copy2(conf, backup)
        logger.info("Backed up %s to %s", conf, backup)
    atomic_write_text(conf, updated)
    return True


# ── GRUB font ───────────────────────────────────────────────────

GRUB_DEFAULTS = "/etc/default/grub"
GRUB_FONTS = "/boot/grub/fonts"
GRUB_CFG = "/boot/grub/grub.cfg"
OS_PROBER_LINE = "GRUB_DISABLE_OS_PROBER=false"


def _run_tool(argv: list[str]) -> None:
    try:
        result = subprocess.run(argv, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise PrivilegedOpError(f"Command not found: {argv[0]}") from e
    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        raise PrivilegedOpError(f"{argv[0]} failed: {detail}")


def grub_font_path(size: int) -> str:
    return f"{GRUB_FONTS}/DejaVuSansMono{size}.pf2"


def edit_grub_defaults(text: str, font_path: str) -> str:
    return uncomment(set_assignment(text, "GRUB_FONT", font_path), OS_PROBER_LINE)


def apply_grub_font(
    root: Path,
    ttf: Path,
    size: int = 20,
    mkconfig: bool = True,
    run: Callable[[list[str]], None] = _run_tool,
) -> str:
    """Generate the GRUB font, point GRUB_FONT at it and enable os-prober.

    Returns the font path as GRUB sees it.
    """
    if not Path(ttf).is_file():
        raise PrivilegedOpError(f"TTF font not found at {ttf}")

    font_path = grub_font_path(size)
    target = under(root, font_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    run(["grub-mkfont", "-s", str(size), "-o", str(target), str(ttf)])

    defaults = under(root, GRUB_DEFAULTS)
    original = _read(defaults)
    updated = edit_grub_defaults(original, font_path)
    if updated != original:
        atomic_write_text(defaults, updated)

    if mkconfig:
        run(["grub-mkconfig", "-o", str(under(root, GRUB_CFG))])
    return font_path


# ── Generated files ─────────────────────────────────────────────

XORG_CONF_DIR = "/etc/X11/xorg.conf.d"
_PREFIX_RE = re.compile(r"^[0-9]{2}$")

TOUCHPAD_CONF = """\
Section "InputClass"
  Identifier "touchpad"
  Driver "libinput"
  MatchIsTouchpad "on"
  Option "Tapping" "on"
  Option "AccelProfile" "adaptive"
  Option "TappingButtonMap" "lrm"
EndSection
"""

PKGLIST_HOOK = "/etc/pacman.d/hooks/track_pkglist.hook"

_PKGLIST_HOOK_TEMPLATE = """\
[Trigger]
Operation = Install
Operation = Remove
Type = Package
Target = *

[Action]
Description = Updating package lists (pacman.txt and aur.txt)...
When = PostTransaction
Exec = /bin/sh -c '/usr/bin/pacman -Qqen > {save_dir}/pacman.txt && /usr/bin/pacman -Qqem | grep -vE "(-debug$|^yay-bin$)" > {save_dir}/aur.txt'
"""

ISSUE = "/etc/issue"

ISSUE_BANNER = r"""^[[H^[[2J
           ^[[0;36m.                                                     ^[[0;36m| \s \r
          ^[[0;36m/ \                                                    ^[[0;36m| ^[[0;37m\m
         ^[[0;36m/   \      ^[[1;37m               #     ^[[1;36m| *                     ^[[0;36m|
        ^[[0;36m/^.   \     ^[[1;37m a##e #%" a#"e 6##%  ^[[1;36m| | |-^-. |   | \ /     ^[[0;36m| ^[[0;37m\t
       ^[[0;36m/  .-.  \    ^[[1;37m.oOo# #   #    #  #  ^[[1;36m| | |   | |   |  X      ^[[0;36m| ^[[0;37m\d
      ^[[0;36m/  (   ) _\   ^[[1;37m%OoO# #   %#e" #  #  ^[[1;36m| | |   | ^._.| / \ ^[[0;37mTM  ^[[0;36m|
     ^[[1;36m/ _.~   ~._^\                                               ^[[0;36m| ^[[0;37m\U
    ^[[1;36m/.^         ^.\ ^[[0;37mTM                                           ^[[0;36m| \l ^[[0;37mon \n
^[[0m
""".replace("^[", "\x1b")

AUTOLOGIN_CONF = "/etc/systemd/system/getty@tty1.service.d/skip-username.conf"


def touchpad_conf_path(prefix: str) -> str:
    if not _PREFIX_RE.match(prefix):
        raise PrivilegedOpError("Invalid prefix. Must be exactly two digits.")
    return f"{XORG_CONF_DIR}/{prefix}-touchpad.conf"


def pkglist_hook_content(save_dir: str | Path) -> str:
    return _PKGLIST_HOOK_TEMPLATE.format(save_dir=save_dir)


def autologin_content(user: str) -> str:
    if not user or not re.match(r"^[a-z_][a-z0-9_-]*\$?$", user):
        raise PrivilegedOpError(f"Invalid user name: {user!r}")
    return (
        "[Service]\n"
        "ExecStart=\n"
        f"ExecStart=-/sbin/agetty -o '-p -- {user}' --noclear --skip-login - $TERM\n"
    )


def write_system_file(root: Path, absolute: str, content: str, mode: int = 0o644) -> tuple[Path, bool]:
    """Write a generated file unless it already has exactly this content."""
    target = under(root, absolute)
    if target.is_file() and target.read_text(encoding="utf-8") == content:
        return target, False
    atomic_write_text(target, content, mode=mode)
    return target, True
