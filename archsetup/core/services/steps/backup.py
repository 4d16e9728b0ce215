"""
Backup steps — collect this machine's state into ``paths.backup_dir``.

The layout is exactly what the restore steps read back: dotfiles/,
font_backup.zip, firefox_places/, newsboat-urls, shell-exports,
ssh_backup.tar.gz and fstab.bak. The last step moves the directory to
a mounted USB drive or packs it into an encrypted 7z zip.
"""

from __future__ import annotations

import logging
from pathlib import Path

from archsetup.core.engine.session import Session, StepError
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.steps.base import find_profile
from archsetup.core.services.steps.restore import (
    FIREFOX_PLACES_DIR,
    FONT_ARCHIVE,
    FSTAB_BACKUP,
    NEWSBOAT_URLS,
    SHELL_EXPORTS,
    SSH_ARCHIVE,
    places_backup_name,
)

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("git", "lazygit", "rsync")


def check_backup_tools(session: Session, config: SetupConfig) -> None:
    session.require(*REQUIRED_TOOLS)


# ── Dotfiles ────────────────────────────────────────────────────

def repo_is_clean(session: Session, repo: Path) -> bool:
    """No untracked, unstaged, staged or unpushed changes."""
    queries = (
        ["git", "ls-files", "--others", "--exclude-standard"],
        ["git", "diff", "--name-only"],
        ["git", "diff", "--cached", "--name-only"],
    )
    for argv in queries:
        if session.run(argv, cwd=repo, capture=True, read_only=True).output:
            return False
    unpushed = session.run(
        ["git", "rev-list", "@{u}..HEAD"], cwd=repo, capture=True, check=False, read_only=True,
    )
    return not (unpushed.ok and unpushed.output)


def commit_and_copy_dotfiles(session: Session, config: SetupConfig) -> None:
    dotfiles = session.home / "dotfiles"
    if not session.exists(dotfiles):
        raise StepError(f"Could not find {dotfiles}.")

    while not repo_is_clean(session, dotfiles):
        session.warn("dotfiles repo still has pending changes.")
        if session.auto_yes or not session.confirm("Open lazygit?", default=True):
            break
        session.run(["lazygit"], cwd=dotfiles, check=False)

    if not repo_is_clean(session, dotfiles):
        session.warn("Not copying dotfiles with pending changes.")
        return

    dest = config.paths.backup_dir / "dotfiles"
    session.copy(dotfiles, dest, overwrite=True, ignore=[".git"])
    session.success(f"dotfiles copied to '{dest}'.")


# ── Single files ────────────────────────────────────────────────

def _backup_file(session: Session, src: Path, dest: Path, label: str) -> None:
    if not session.exists(src):
        session.warn(f"{label} file '{src}' does not exist; skipping.")
        return
    session.copy(src, dest, overwrite=True)
    session.success(f"{label} backed up to '{dest}'.")


def backup_fonts(session: Session, config: SetupConfig) -> None:
    fonts_dir = session.home / ".local" / "share" / "fonts"
    if not session.exists(fonts_dir):
        session.warn(f"Fonts directory '{fonts_dir}' not found; skipping font backup.")
        return
    archive = config.paths.backup_dir / FONT_ARCHIVE
    session.archive("zip-create", archive, src=fonts_dir)
    session.success(f"Fonts backed up to '{archive}'.")


def backup_firefox_places(session: Session, config: SetupConfig) -> None:
    profiles_root = session.home / ".mozilla" / "firefox"
    dest_dir = config.paths.backup_dir / FIREFOX_PLACES_DIR
    session.mkdir(dest_dir)
    for name in config.firefox.profiles:
        profile_path = find_profile(session, profiles_root, name)
        if profile_path is None:
            session.warn(f"Profile directory matching '*{name}*' not found.")
            continue
        _backup_file(
            session,
            profile_path / "places.sqlite",
            dest_dir / places_backup_name(name),
            f"Firefox places ({name})",
        )


def backup_newsboat_urls(session: Session, config: SetupConfig) -> None:
    _backup_file(
        session,
        session.home / ".config" / "newsboat" / "urls",
        config.paths.backup_dir / NEWSBOAT_URLS,
        "Newsboat URL",
    )


def backup_zsh_exports(session: Session, config: SetupConfig) -> None:
    _backup_file(
        session,
        session.home / ".config" / "shell" / "exports",
        config.paths.backup_dir / SHELL_EXPORTS,
        "Zsh exports",
    )


def backup_ssh_keys(session: Session, config: SetupConfig) -> None:
    ssh_dir = session.home / ".ssh"
    if not session.exists(ssh_dir):
        session.warn(f"SSH directory '{ssh_dir}' not found; skipping SSH backup.")
        return
    archive = config.paths.backup_dir / SSH_ARCHIVE
    session.archive("tar-create", archive, src=ssh_dir, arcname=".ssh")
    session.success(f"SSH keys archived to '{archive}'.")


def backup_fstab(session: Session, config: SetupConfig) -> None:
    dest = config.paths.backup_dir / FSTAB_BACKUP
    session.mkdir(config.paths.backup_dir)
    session.copy("/etc/fstab", dest, overwrite=True)
    session.success(f"fstab backed up as '{dest}'.")


# ── Transfer ────────────────────────────────────────────────────

def mounted_usb_folders(session: Session, pattern: str) -> list[str]:
    """Mounted directories matching a glob like '/mnt/usb*'."""
    root = Path(pattern)
    return [str(p) for p in session.listdir(root.parent, pattern=root.name, kind="mount")]


def _encrypt_backup(session: Session, config: SetupConfig) -> None:
    session.require("7z")
    backup_dir = config.paths.backup_dir
    archive = backup_dir.parent / "backup.zip"
    password = session.ask("Enter a password for backup.zip", secret=True)
    if not password:
        raise StepError("An empty password would leave the backup unencrypted.")
    session.info("Compressing the backup directory...")
    session.run(
        ["7z", "a", "-tzip", f"-p{password}", "-mem=AES256", archive, backup_dir],
        redact=[password],
    )
    session.success(f"Backup directory compressed to '{archive}'.")


def transfer_backup(session: Session, config: SetupConfig) -> None:
    backup_dir = config.paths.backup_dir
    if not session.exists(backup_dir):
        raise StepError(f"Backup folder does not exist at {backup_dir}")

    folders = mounted_usb_folders(session, config.backup.usb_glob)
    if not folders:
        if session.confirm("No USB device found. Mount one using the mounter script?", default=True):
            receipt = session.run(["mounter"], check=False)
            if receipt.failed:
                session.warn("mounter command failed.")
            folders = mounted_usb_folders(session, config.backup.usb_glob)
        else:
            _encrypt_backup(session, config)
            return

    if not folders:
        session.warn("No mounted USB folder found; backup left in place.")
        return

    chosen = session.choose("Enter the number of the folder to move the backup to", folders)
    session.info(f"Moving backup folder to {chosen}")
    session.run(["rsync", "-a", "--delete", f"{backup_dir}/", f"{chosen}/backup/"])
    session.success("Backup completed successfully.")
