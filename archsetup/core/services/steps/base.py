"""
Shared pieces of the step catalogue.

A catalogue entry (``StepSpec``) pairs a step name with a function
``(session, config) -> None``. ``build_plan`` binds those functions to
a session and turns them into runner Steps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from archsetup.core.engine.session import Session, StepError
from archsetup.core.models.config import SetupConfig

logger = logging.getLogger(__name__)

StepFunc = Callable[[Session, SetupConfig], Any]
GuardFunc = Callable[[Session, SetupConfig], bool]


@dataclass(frozen=True)
class StepSpec:
    """Catalogue entry. ``critical`` is the default; config can override it."""

    name: str
    func: StepFunc
    critical: bool = False
    guard: GuardFunc | None = None
    description: str = ""


def read_list(session: Session, config: SetupConfig, filename: str) -> list[str]:
    """Package names from ``<lists_dir>/<filename>``.

    Blank lines and ``#`` comments are skipped. A missing file is a
    step failure.
    """
    path = Path(config.paths.lists_dir) / filename
    try:
        text = session.read_file(path)
    except StepError as e:
        raise StepError(f"{filename} not found in {config.paths.lists_dir}") from e

    names = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            names.append(line)
    return names


def find_profile(session: Session, profiles_root: Path, name: str) -> Path | None:
    """First Firefox profile directory whose name contains ``name``."""
    matches = session.listdir(profiles_root, pattern=f"*{name}*", kind="dir")
    return matches[0] if matches else None


@dataclass(frozen=True)
class PasswdEntry:
    name: str
    uid: int
    shell: str


def passwd_entries(session: Session, *keys: str) -> list[PasswdEntry]:
    """Accounts from ``getent passwd`` (all of them, or only ``keys``)."""
    receipt = session.run(["getent", "passwd", *keys], capture=True, check=False, read_only=True)
    entries = []
    for line in receipt.output.splitlines():
        fields = line.split(":")
        if len(fields) != 7 or not fields[2].isdigit():
            continue
        entries.append(PasswdEntry(name=fields[0], uid=int(fields[2]), shell=fields[6]))
    return entries


def file_has_line(session: Session, path: str | Path, line: str) -> bool:
    """Guard helper: ``path`` exists and contains ``line`` verbatim."""
    if not session.exists(path):
        return False
    return line in session.read_file(path).splitlines()


def file_has_content(session: Session, path: str | Path, content: str) -> bool:
    """Guard helper: ``path`` exists with exactly ``content``."""
    if not session.exists(path):
        return False
    return session.read_file(path) == content


def clone_once(
    session: Session,
    url: str,
    dest: Path,
    *,
    depth: int | None = 1,
    branch: str | None = None,
    recursive: bool = False,
) -> bool:
    """``git clone`` unless ``dest`` exists. Returns whether it cloned."""
    if session.exists(dest):
        session.info(f"{dest} already exists. Skipping clone.")
        return False
    argv: list[str] = ["git", "clone"]
    if depth:
        argv += [f"--depth={depth}"]
    if branch:
        argv += ["-b", branch]
    if recursive:
        argv += ["--recursive"]
    session.run([*argv, url, str(dest)])
    return True
