"""
Desktop tooling steps — themes, source builds, editor and player plugins.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from urllib.parse import urljoin

from archsetup.core.engine.session import Session, StepError
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.steps.base import clone_once

logger = logging.getLogger(__name__)

SUCKLESS_UPSTREAMS = {
    "dmenu": "https://github.com/bakkeby/dmenu-flexipatch.git",
    "dwm": "https://github.com/bakkeby/dwm-flexipatch.git",
    "dwmblocks": "https://github.com/UtkarshVerma/dwmblocks-async.git",
    "st": "https://github.com/bakkeby/st-flexipatch.git",
    "slock": "https://github.com/bakkeby/slock-flexipatch.git",
}

UOSC_INSTALLER = "https://raw.githubusercontent.com/tomasklaen/uosc/HEAD/installers/unix.sh"
THUMBFAST_BASE = "https://raw.githubusercontent.com/po5/thumbfast/master"
IKATUBE_PAGE = "https://chino-chan.gitlab.io/programs.html"
PANDOC_SIDENOTE = "https://github.com/jez/pandoc-sidenote"
VOIDRICE = "https://github.com/lukesmithxyz/voidrice.git"
BOOKMARKS = "https://github.com/fmhy/bookmarks.git"


def apply_theme(session: Session, config: SetupConfig) -> None:
    session.require("themeflip")
    session.run(["themeflip"])


def compile_suckless(session: Session, config: SetupConfig) -> None:
    for program, upstream in SUCKLESS_UPSTREAMS.items():
        src = session.home / ".config" / "suckless" / program
        if not session.exists(src):
            session.warn(f"Directory not found for {program}: {src}")
            continue

        remotes = session.run(["git", "remote"], cwd=src, capture=True, read_only=True)
        if "upstream" not in remotes.output.split():
            session.run(["git", "remote", "add", "upstream", upstream], cwd=src)
        session.run(["git", "fetch", "upstream"], cwd=src)
        session.run(["git", "config", "merge.ours.driver", "true"], cwd=src)
        session.info(f"Installing {program}...")
        session.run(["make", "install"], cwd=src, sudo=True)


def _make_install(session: Session, src: Path, bear: bool = True) -> None:
    if not session.exists(src):
        session.warn(f"Directory not found: {src}")
        return
    if bear:
        session.run(["bear", "--", "make"], cwd=src)
    session.run(["make", "install"], cwd=src, sudo=True)


def compile_from_source(session: Session, config: SetupConfig) -> None:
    src_dir = config.paths.src_dir
    _make_install(session, src_dir / "lf-file-handler")
    _make_install(session, src_dir / "fetch")
    _make_install(session, src_dir / "fast-files", bear=False)

    sidenote = src_dir / "pandoc-sidenote"
    clone_once(session, PANDOC_SIDENOTE, sidenote, depth=None)
    for argv in (["stack", "build"], ["stack", "install"]):
        receipt = session.run(argv, cwd=sidenote, check=False)
        if receipt.failed:
            session.warn(f"pandoc-sidenote: '{' '.join(argv)}' failed: {receipt.error}")
            return


def setup_neovim(session: Session, config: SetupConfig) -> None:
    session.run(["nvim", "--headless", "+Lazy! sync", "+qa"])


def _ikatube_link(page: str) -> str | None:
    """First quoted href on the line that mentions the plugin archive."""
    for line in page.splitlines():
        if "ikatube-mpvplugin" in line:
            parts = line.split('"')
            if len(parts) > 1 and parts[1]:
                return parts[1]
    return None


def install_ikatube(session: Session, mpv: Path) -> None:
    """Scrape the plugin zip off its download page and copy it into mpv's config."""
    link = _ikatube_link(session.fetch(IKATUBE_PAGE))
    if link is None:
        session.warn("Could not find the ikatube plugin on its download page.")
        return

    with tempfile.TemporaryDirectory(prefix="archsetup-") as tmp:
        archive = Path(tmp) / "ikatubeplugin.zip"
        session.download(urljoin(IKATUBE_PAGE, link), archive)
        session.archive("zip-extract", archive, dest=tmp)

        plugin = Path(tmp) / "ikatube-mpvplugin"
        receipt = session.copy(plugin / "ikatube", mpv / "ikatube")
        if receipt.skipped:
            session.info("Keeping the existing ikatube config.")
        scripts = session.listdir(plugin, pattern="*ikatube*.so", kind="file")
        if not scripts:
            raise StepError("The ikatube archive has no *ikatube*.so script.")
        session.copy(scripts[0], mpv / "scripts" / scripts[0].name, overwrite=True)

    session.info("Please change ikatube config manually if needed.")
    if not session.auto_yes:
        session.run(["nvim", mpv / "ikatube" / "ikatube.json"], check=False)


def install_mpv_scripts(session: Session, config: SetupConfig) -> None:
    mpv = session.home / ".config" / "mpv"
    with tempfile.TemporaryDirectory(prefix="archsetup-") as tmp:
        installer = Path(tmp) / "uosc-install.sh"
        session.download(UOSC_INSTALLER, installer)
        session.run(["/bin/bash", installer])

    session.mkdir(mpv / "scripts", mpv / "script-opts")
    session.download(f"{THUMBFAST_BASE}/thumbfast.lua", mpv / "scripts" / "thumbfast.lua")
    session.download(f"{THUMBFAST_BASE}/thumbfast.conf", mpv / "script-opts" / "thumbfast.conf")
    install_ikatube(session, mpv)
    session.success("mpv scripts installed.")


def _lf_marks(home: Path) -> str:
    return (
        "c:/mnt/c\n"
        "d:/mnt/d\n"
        "e:/mnt/e\n"
        f"r:{home}/Downloads/Videos/Recordings\n"
        f"s:{home}/Downloads/Images/Screenshots\n"
        f"w:{home}/.config/x11/themeconf\n"
    )


def misc_setup(session: Session, config: SetupConfig) -> None:
    home = session.home
    src_dir = config.paths.src_dir

    clone_once(session, VOIDRICE, src_dir / "voidrice", depth=None)

    bookmarks = src_dir / "bookmarks"
    if session.exists(bookmarks / ".git"):
        session.run(["git", "-C", bookmarks, "pull", "--rebase"])
    else:
        clone_once(session, BOOKMARKS, bookmarks, depth=None)

    for target, link in (("/mnt/d/Music", home / "Music"), ("/mnt/e/me", home / "Me")):
        receipt = session.symlink(target, link, check=False)
        if receipt.failed:
            session.warn(f"Could not link {link}: {receipt.error}")

    if session.which("cmus"):
        session.info("Add the music folder to cmus and set the theme to night, then quit cmus.")
        session.run(["cmus"], check=False)

    session.mkdir(
        home / "Downloads" / "Images" / "Screenshots",
        home / "Downloads" / "Videos" / "Recordings",
    )
    session.write_file(home / ".local" / "share" / "lf" / "marks", _lf_marks(home))

    receipt = session.run(["tldr", "--update"], check=False)
    if receipt.failed:
        session.warn(f"tldr --update failed: {receipt.error}")

    if session.which("qalc"):
        session.append_line(home / ".config" / "qalculate" / "qalc.cfg", "calculate_as_you_type=1")
    else:
        session.warn("qalc command not found.")
