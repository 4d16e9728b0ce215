"""
Filesystem adapter — file, directory, link and mode operations.

Every operation converges: writing the same content twice, appending a
line that is already present, or linking to the same target again are
all no-ops the second time. The receipt's ``changed`` metadata says
whether anything was touched.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Read-only: the session runs these even in a dry run.
QUERIES = {"exists", "read", "list", "find", "which"}
OPERATIONS = QUERIES | {"write", "append", "mkdir", "copy", "symlink", "chmod"}


def _mode(value: object) -> int:
    if isinstance(value, int):
        return value
    return int(str(value), 8)


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of OPERATIONS.
        path (str): Target path (relative to ``cwd`` or absolute).
        content (str): Text for 'write' and 'append'.
        src (str): Source for 'copy', link target for 'symlink'.
        mode (int | str): Permission bits for 'chmod' (and optionally 'write').
        overwrite (bool): 'copy' replaces an existing destination.
        ignore (list[str]): Glob patterns skipped by a tree 'copy'.
        pattern (str): Name glob for 'list' (default: every entry).
        kind (str): 'list' filter: "dir", "file" or "mount".
        dirname (str): Directory name 'find' looks for below ``path``.

    For 'which', ``path`` is the bare tool name looked up on PATH.
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.params
        operation = params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"
        if operation not in OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(OPERATIONS))}"
        if not params.get("path"):
            return False, "Missing required param: 'path'"
        if operation in ("write", "append") and "content" not in params:
            return False, f"Missing required param: 'content' for {operation} operation"
        if operation in ("copy", "symlink") and not params.get("src"):
            return False, f"Missing required param: 'src' for {operation} operation"
        if operation == "find" and not params.get("dirname"):
            return False, "Missing required param: 'dirname' for find operation"
        if params.get("kind") not in (None, "dir", "file", "mount"):
            return False, f"Invalid kind: {params['kind']!r}"
        if operation == "chmod":
            try:
                _mode(params.get("mode"))
            except (TypeError, ValueError):
                return False, f"Invalid mode: {params.get('mode')!r}"
        return True, ""

    def _resolve(self, context: ExecutionContext, raw: str) -> Path:
        target = Path(raw).expanduser()
        if not target.is_absolute() and context.working_dir:
            target = Path(context.working_dir) / target
        return target

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.params["operation"]
        target = self._resolve(context, context.params["path"])

        handler = getattr(self, f"_{operation}")
        try:
            return handler(context, target)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    def _ok(self, ctx: ExecutionContext, target: Path, output: str, changed: bool, **extra) -> Receipt:
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=output,
            metadata={"path": str(target), "changed": changed, **extra},
        )

    def _exists(self, ctx: ExecutionContext, target: Path) -> Receipt:
        exists = target.exists() or target.is_symlink()
        return self._ok(
            ctx, target, str(exists), False,
            exists=exists,
            is_dir=target.is_dir(),
            executable=target.is_file() and os.access(target, os.X_OK),
        )

    def _list(self, ctx: ExecutionContext, target: Path) -> Receipt:
        """Entries of a directory; a missing directory lists as empty."""
        pattern = ctx.params.get("pattern", "*")
        kind = ctx.params.get("kind")
        entries = []
        if target.is_dir():
            for entry in sorted(target.glob(pattern)):
                if kind == "dir" and not entry.is_dir():
                    continue
                if kind == "file" and not entry.is_file():
                    continue
                if kind == "mount" and not (entry.is_dir() and os.path.ismount(entry)):
                    continue
                entries.append(str(entry))
        return self._ok(ctx, target, "\n".join(entries), False, entries=entries)

    def _find(self, ctx: ExecutionContext, target: Path) -> Receipt:
        name = ctx.params["dirname"]
        if target.is_dir():
            for dirpath, dirnames, _ in os.walk(target):
                if name in dirnames:
                    found = Path(dirpath) / name
                    return self._ok(ctx, target, str(found), False, found=True)
        return self._ok(ctx, target, "", False, found=False)

    def _which(self, ctx: ExecutionContext, target: Path) -> Receipt:
        found = shutil.which(ctx.params["path"])
        return self._ok(ctx, target, found or "", False, exists=found is not None)

    def _read(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {target}",
            )
        content = target.read_text(encoding="utf-8")
        return self._ok(ctx, target, content, False, size=len(content))

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content = ctx.params["content"]
        if target.is_file() and target.read_text(encoding="utf-8") == content:
            return self._ok(ctx, target, f"Unchanged: {target}", False)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        if ctx.params.get("mode") is not None:
            target.chmod(_mode(ctx.params["mode"]))
        return self._ok(ctx, target, f"Written {len(content)} bytes to {target}", True)

    def _append(self, ctx: ExecutionContext, target: Path) -> Receipt:
        line = ctx.params["content"].rstrip("\n")
        existing = target.read_text(encoding="utf-8") if target.is_file() else ""
        if line in existing.splitlines():
            return self._ok(ctx, target, f"Already present in {target}", False)
        target.parent.mkdir(parents=True, exist_ok=True)
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        with open(target, "a", encoding="utf-8") as f:
            f.write(f"{prefix}{line}\n")
        return self._ok(ctx, target, f"Appended to {target}", True)

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        existed = target.is_dir()
        target.mkdir(parents=True, exist_ok=True)
        return self._ok(ctx, target, f"Directory ready: {target}", not existed)

    def _copy(self, ctx: ExecutionContext, target: Path) -> Receipt:
        src = self._resolve(ctx, ctx.params["src"])
        overwrite = ctx.params.get("overwrite", False)
        if not src.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Source not found: {src}",
            )
        if target.exists() and not overwrite:
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"Destination exists: {target}",
                metadata={"path": str(target), "changed": False},
            )

        target.parent.mkdir(parents=True, exist_ok=True)
        if src.is_dir():
            ignore = ctx.params.get("ignore") or []
            shutil.copytree(
                src,
                target,
                symlinks=True,
                ignore=shutil.ignore_patterns(*ignore) if ignore else None,
                dirs_exist_ok=overwrite,
            )
        else:
            shutil.copy2(src, target)
        logger.debug("Copied %s -> %s", src, target)
        return self._ok(ctx, target, f"Copied {src} to {target}", True, src=str(src))

    def _symlink(self, ctx: ExecutionContext, target: Path) -> Receipt:
        link_to = self._resolve(ctx, ctx.params["src"])
        if target.is_symlink():
            if Path(os.readlink(target)) == link_to:
                return self._ok(ctx, target, f"Link already in place: {target}", False)
            target.unlink()
        elif target.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Refusing to replace non-link: {target}",
            )
        target.parent.mkdir(parents=True, exist_ok=True)
        target.symlink_to(link_to)
        return self._ok(ctx, target, f"Linked {target} -> {link_to}", True, src=str(link_to))

    def _chmod(self, ctx: ExecutionContext, target: Path) -> Receipt:
        mode = _mode(ctx.params["mode"])
        if not target.exists():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Path not found: {target}",
            )
        current = target.stat().st_mode & 0o7777
        if current == mode:
            return self._ok(ctx, target, f"Mode already {oct(mode)}", False)
        target.chmod(mode)
        return self._ok(ctx, target, f"Mode set to {oct(mode)}", True)
