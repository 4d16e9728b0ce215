"""
Package steps — pacman configuration, mirrors and package installs.

Package names come from plain lists (pacman.txt, aur.txt, npm.txt,
pipx.txt) in ``paths.lists_dir``. pacman and yay are fed the list on
stdin with ``--needed``, so installing twice is a no-op.
"""

from __future__ import annotations

import logging
from datetime import datetime

from archsetup.core.engine.session import Session, StepError
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.privileged import PKGLIST_HOOK, pkglist_hook_content
from archsetup.core.services.steps.base import clone_once, file_has_content, read_list

logger = logging.getLogger(__name__)

MIRRORLIST = "/etc/pacman.d/mirrorlist"
YAY_REPO = "https://aur.archlinux.org/yay-bin.git"


def _stdin_list(names: list[str]) -> str:
    return "\n".join(names) + "\n"


def configure_pacman(session: Session, config: SetupConfig) -> None:
    session.info("Tweaking pacman.conf for a better experience...")
    session.privileged("pacman-conf", "--parallel", str(config.pacman.parallel_downloads))


def update_mirrors(session: Session, config: SetupConfig) -> None:
    """Rank mirrors with reflector; restore the previous list if it fails."""
    if not session.which("reflector"):
        session.info("Installing reflector...")
        session.run(["pacman", "-S", "--noconfirm", "reflector"], sudo=True)

    backup = f"{MIRRORLIST}.bak.{datetime.now():%Y-%m-%d-%H%M%S}"
    session.info(f"Backing up current mirrorlist to {backup}")
    session.run(["cp", MIRRORLIST, backup], sudo=True)

    mirrors = config.mirrors
    session.info("Ranking and updating mirrors...")
    receipt = session.run(
        [
            "reflector",
            "-f", str(mirrors.fastest),
            "-l", str(mirrors.latest),
            "--number", str(mirrors.number),
            "--download-timeout", str(mirrors.download_timeout),
            "--verbose",
            "--save", MIRRORLIST,
        ],
        sudo=True,
        check=False,
    )
    if receipt.failed:
        session.warn("Reflector failed. Restoring backup...")
        session.run(["cp", backup, MIRRORLIST], sudo=True)
        raise StepError("Restored the previous mirrorlist. Please check your connection.")


def install_pacman_packages(session: Session, config: SetupConfig) -> None:
    packages = read_list(session, config, "pacman.txt")
    session.info(f"Installing {len(packages)} pacman packages from pacman.txt...")
    session.run(
        ["pacman", "-S", "--needed", "--noconfirm", "-"],
        sudo=True,
        input_text=_stdin_list(packages),
    )


def install_aur_packages(session: Session, config: SetupConfig) -> None:
    """Bootstrap yay-bin if needed, then install aur.txt."""
    if session.which("yay"):
        session.info("yay is already installed.")
    else:
        src_dir = config.paths.src_dir
        yay_dir = src_dir / "yay-bin"
        session.mkdir(src_dir)
        if not session.exists(yay_dir):
            session.run(["pacman", "-S", "--needed", "--noconfirm", "git", "base-devel"], sudo=True)
        clone_once(session, YAY_REPO, yay_dir, depth=None)
        session.run(["makepkg", "-si", "--noconfirm"], cwd=yay_dir)
        session.success("yay installed.")

    packages = read_list(session, config, "aur.txt")
    session.info(f"Installing {len(packages)} AUR packages from aur.txt...")
    session.run(["yay", "-S", "--needed", "--noconfirm", "-"], input_text=_stdin_list(packages))


def install_npm_pipx_packages(session: Session, config: SetupConfig) -> None:
    npm_packages = read_list(session, config, "npm.txt")
    if npm_packages:
        session.info("Installing global npm packages from npm.txt...")
        session.run(["npm", "install", "-g", *npm_packages])

    pipx_packages = read_list(session, config, "pipx.txt")
    session.info("Installing pipx packages from pipx.txt...")
    for package in pipx_packages:
        receipt = session.run(["pipx", "install", package], check=False)
        if receipt.failed:
            raise StepError(f"pipx install failed for {package}.", receipt=receipt)


def _hook_save_dir(config: SetupConfig) -> str:
    return str(config.paths.src_dir / "arch-install")


def pkglist_hook_installed(session: Session, config: SetupConfig) -> bool:
    return file_has_content(session, PKGLIST_HOOK, pkglist_hook_content(_hook_save_dir(config)))


def install_pkglist_hook(session: Session, config: SetupConfig) -> None:
    save_dir = _hook_save_dir(config)
    session.mkdir(save_dir)
    session.privileged("pkglist-hook", save_dir)
    session.info(f"Package lists will be saved under: {save_dir}")
