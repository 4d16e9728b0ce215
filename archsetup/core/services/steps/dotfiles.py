"""
Shell environment steps — git identity, dotfiles and zsh.
"""

from __future__ import annotations

import logging
import os

from archsetup.core.engine.session import Session, StepError
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.steps.base import clone_once, passwd_entries

logger = logging.getLogger(__name__)

CONFIG_DIRS = (
    "dunst", "gtk-2.0", "gtk-3.0", "kitty", "mpv", "newsboat",
    "shell", "x11", "zsh/completions",
)


def _git_identity(session: Session, config: SetupConfig) -> tuple[str, str]:
    name = config.user.name or session.ask("Enter your git user.name")
    email = config.user.email or session.ask("Enter your git user.email")
    if not name or not email:
        raise StepError("git user.name and user.email are required")
    return name, email


def configure_git(session: Session, config: SetupConfig) -> None:
    git_dir = session.home / ".config" / "git"
    session.mkdir(git_dir)
    if not session.exists(git_dir / "config"):
        session.write_file(git_dir / "config", "")

    name, email = _git_identity(session, config)
    settings = {
        "user.name": name,
        "user.email": email,
        "init.defaultBranch": "main",
        "pull.rebase": "false",
    }
    for key, value in settings.items():
        session.run(["git", "config", "--global", key, value])


def clone_and_stow_dotfiles(session: Session, config: SetupConfig) -> None:
    if not config.dotfiles_repo:
        raise StepError("dotfiles_repo is not set in archsetup.yml")

    dotfiles = session.home / "dotfiles"
    clone_once(session, config.dotfiles_repo, dotfiles, recursive=True)
    session.run(
        ["git", "submodule", "foreach", "git checkout main || git checkout master"],
        cwd=dotfiles,
        capture=True,
    )

    session.mkdir(*(session.home / ".config" / d for d in CONFIG_DIRS))
    session.mkdir(session.home / ".local" / "bin")

    bin_dir = dotfiles / "scripts" / ".local" / "bin"
    for script in ("stower", "unstower"):
        session.chmod(bin_dir / script, 0o755)
    session.run([bin_dir / "stower"], cwd=bin_dir)


def _login_shell(session: Session) -> str:
    entries = passwd_entries(session, str(os.getuid()))
    return entries[0].shell if entries else ""


def configure_zsh(session: Session, config: SetupConfig) -> None:
    cache = session.home / ".cache" / "zsh"
    session.mkdir(cache)
    if not session.exists(cache / "history"):
        session.write_file(cache / "history", "")

    zsh = session.which("zsh")
    if not zsh:
        raise StepError("zsh not found, but it should have been installed.")

    if _login_shell(session) != zsh:
        receipt = session.run(["chsh", "-s", zsh], check=False)
        if receipt.failed:
            raise StepError("Failed to change login shell. Check /etc/shells.", receipt=receipt)
        session.success(f"Changed login shell to: {zsh}")
    else:
        session.info("zsh is already the default shell.")

    updater = session.home / ".local" / "bin" / "zsh_updater"
    if session.is_executable(updater):
        session.info("Running zsh_updater...")
        session.run([updater], cwd=session.home)
    else:
        session.warn("zsh_updater not found or not executable.")
