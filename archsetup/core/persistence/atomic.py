"""
Atomic file replacement for system config edits.

pacman.conf, vconsole.conf and /etc/default/grub are rewritten by
writing a temp file in the same directory and renaming it over the
original, so a crash mid-write leaves either the old or the new file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, mode: int | None = None) -> None:
    """Replace ``path`` with ``content``.

    Args:
        path: Target file. Its parent directory is created if missing.
        content: New text content.
        mode: Permission bits for the new file. Defaults to the existing
            file's mode, or 0o644 for a new file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    if mode is None:
        mode = path.stat().st_mode & 0o7777 if path.exists() else 0o644

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise

    logger.debug("Wrote %s (%d bytes)", path, len(content))
