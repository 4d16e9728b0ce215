"""
System steps — boot, console, login and mount configuration.

Everything that writes under /etc goes through ``session.privileged``;
these functions only gather input and pick arguments.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from archsetup.core.engine.session import Session
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.privileged import (
    ISSUE,
    ISSUE_BANNER,
    VCONSOLE_CONF,
    XORG_CONF_DIR,
)
from archsetup.core.services.steps.base import (
    clone_once,
    file_has_content,
    file_has_line,
    passwd_entries,
)

logger = logging.getLogger(__name__)

LAIN_GRUB_THEME = "https://github.com/uiriansan/LainGrubTheme"
SILENT_SDDM = "https://github.com/uiriansan/SilentSDDM"


def _clone_and_install(session: Session, url: str, name: str, branch: str | None = None) -> None:
    dest = Path(tempfile.gettempdir()) / name
    clone_once(session, url, dest, branch=branch)
    session.run(["./install.sh"], cwd=dest, sudo=True)
    session.success(f"{name} installed.")


def _run_mounter(session: Session) -> None:
    receipt = session.run(["mounter"], check=False)
    if receipt.failed:
        session.warn("Mounter script failed or was cancelled.")


# ── Touchpad ────────────────────────────────────────────────────

def configure_touchpad(session: Session, config: SetupConfig) -> None:
    prefix = config.touchpad_prefix
    if not prefix:
        existing = [p.name for p in session.listdir(XORG_CONF_DIR)]
        session.info(f"Existing configurations in {XORG_CONF_DIR}: {', '.join(existing) or '(none)'}")
        prefix = session.ask("Enter a two-digit prefix for the new touchpad config (e.g., 30)")
    session.privileged("touchpad", prefix)


# ── Console ─────────────────────────────────────────────────────

def tty_font_set(session: Session, config: SetupConfig) -> bool:
    return file_has_line(session, VCONSOLE_CONF, f"FONT={config.tty_font}")


def change_tty_font(session: Session, config: SetupConfig) -> None:
    session.privileged("tty-font", config.tty_font)


def issue_in_place(session: Session, config: SetupConfig) -> bool:
    return file_has_content(session, ISSUE, ISSUE_BANNER)


def update_issue(session: Session, config: SetupConfig) -> None:
    session.privileged("getty-issue")


def _login_users(session: Session) -> list[str]:
    return sorted(
        entry.name
        for entry in passwd_entries(session)
        if entry.uid >= 1000 and entry.name != "nobody"
    )


def setup_autologin(session: Session, config: SetupConfig) -> None:
    users = _login_users(session)
    if not users:
        session.warn("No regular user found. Skipping auto-login setup.")
        return
    user = session.choose("Select user for auto-login", users)
    session.privileged("autologin", user)


# ── Boot ────────────────────────────────────────────────────────

def configure_grub(session: Session, config: SetupConfig) -> None:
    if session.confirm("Mount Windows EFI for GRUB?"):
        session.info("Mounting Windows EFI...")
        _run_mounter(session)
    else:
        session.warn("Skipping Windows EFI mount.")

    session.privileged("grub-font", config.grub_ttf, "--size", str(config.grub.font_size))

    if session.confirm("Install LainGrubTheme?"):
        _clone_and_install(session, LAIN_GRUB_THEME, "LainGrubTheme")
    else:
        session.warn("Skipping LainGrubTheme installation.")


def install_sddm_theme(session: Session, config: SetupConfig) -> None:
    _clone_and_install(session, SILENT_SDDM, "SilentSDDM", branch="main")


# ── Mounts ──────────────────────────────────────────────────────

def setup_fstab(session: Session, config: SetupConfig) -> None:
    session.info("Mount the Windows drives using the mounter script.")
    while session.which("mounter") and not session.auto_yes and session.confirm("Mount a drive with mounter?"):
        _run_mounter(session)

    generated = session.run(["genfstab", "/"], sudo=True, capture=True)
    fstab_draft = session.home / "fstab"
    session.write_file(fstab_draft, generated.output + "\n")

    if session.which("xclip"):
        session.run(["xclip", "-selection", "clipboard"], input_text=generated.output)
        session.info("Generated fstab entries copied to clipboard.")
    else:
        session.warn(f"xclip not found. Copy the contents of {fstab_draft} manually.")

    session.pause("Paste the entries into /etc/fstab in the editor. Press ENTER to open it...")
    session.run(["sudoedit", "/etc/fstab"])
    session.info("Now check if mounted partitions work as expected.")


def reboot(session: Session, config: SetupConfig) -> None:
    session.info("Rebooting now...")
    session.run(["reboot"], sudo=True)
