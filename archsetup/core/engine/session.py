"""
Session — the explicit context every step action receives.

A step is a function ``(session, config) -> None``. Anything it does to
the machine goes through the session, which turns the call into an
Action, dispatches it through the adapter registry and hands back the
Receipt. With ``check=True`` (the default) a failed receipt raises
``StepError``, which the runner records as the step's failure.
"""

from __future__ import annotations

import itertools
import logging
import sys
from pathlib import Path
from typing import Any

from archsetup.adapters.registry import AdapterRegistry
from archsetup.core.engine.prompt import Prompter
from archsetup.core.engine.reporter import LogReporter, Reporter
from archsetup.core.models.action import Action, Receipt
from archsetup.core.models.config import SetupConfig

logger = logging.getLogger(__name__)


class StepError(Exception):
    """A step could not do its work."""

    def __init__(self, message: str, receipt: Receipt | None = None):
        super().__init__(message)
        self.receipt = receipt


class Session:
    """Dispatches step side effects and talks to the operator.

    Args:
        registry: Adapter registry (real, or in mock mode).
        config: The loaded setup configuration.
        prompter: Operator input (nested confirmations, free text).
        reporter: Operator output.
        dry_run: Validate actions without executing them.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        config: SetupConfig | None = None,
        prompter: Prompter | None = None,
        reporter: Reporter | None = None,
        dry_run: bool = False,
    ):
        self.registry = registry
        self.config = config or SetupConfig()
        self.reporter: Reporter = reporter or (prompter.reporter if prompter else LogReporter())
        self.prompter = prompter or Prompter(reporter=self.reporter)
        self.dry_run = dry_run
        self.receipts: list[Receipt] = []
        self._seq = itertools.count(1)

    @property
    def home(self) -> Path:
        return self.config.paths.home

    @property
    def auto_yes(self) -> bool:
        """Whether every prompt is answered automatically."""
        return self.prompter.auto_yes

    # ── Dispatch ────────────────────────────────────────────────

    def execute(
        self,
        adapter: str,
        name: str,
        *,
        check: bool = True,
        read_only: bool = False,
        **params: Any,
    ) -> Receipt:
        """Dispatch one action and keep its receipt.

        ``read_only`` actions run even in dry-run mode so that checks
        like ``exists`` answer truthfully.
        """
        action = Action(
            id=f"{adapter}-{next(self._seq):04d}",
            name=name,
            adapter=adapter,
            params={k: v for k, v in params.items() if v is not None},
        )
        receipt = self.registry.execute_action(action, dry_run=self.dry_run and not read_only)
        self.receipts.append(receipt)

        if receipt.failed:
            logger.debug("Action %s (%s) failed: %s", action.id, name, receipt.error)
            if check:
                raise StepError(f"{name}: {receipt.error}", receipt=receipt)
        return receipt

    # ── Commands ────────────────────────────────────────────────

    def run(
        self,
        argv: list[str | Path],
        *,
        sudo: bool = False,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        capture: bool = False,
        check: bool = True,
        input_text: str | None = None,
        timeout: int | None = None,
        read_only: bool = False,
        redact: list[str] | None = None,
    ) -> Receipt:
        """Run an external command through the shell adapter.

        ``read_only`` marks queries (``git diff --name-only``) that run
        even in dry-run mode. Values in ``redact`` are masked wherever
        the command line is logged or recorded.
        """
        argv = [str(a) for a in argv]
        display = " ".join(argv)
        for secret in redact or []:
            if secret:
                display = display.replace(secret, "***")
        return self.execute(
            "shell",
            display,
            check=check,
            read_only=read_only,
            redact=redact,
            argv=argv,
            sudo=sudo,
            cwd=str(cwd) if cwd is not None else None,
            env=env,
            capture=capture,
            input=input_text,
            timeout=timeout,
        )

    def privileged(self, op: str, *args: str | Path, check: bool = True) -> Receipt:
        """Run one of the fixed ``archsetup privileged`` sub-commands as root."""
        argv = [sys.executable, "-m", "archsetup.main", "privileged", op, *[str(a) for a in args]]
        return self.run(argv, sudo=True, check=check)

    def which(self, tool: str) -> str | None:
        """Full path of ``tool`` on PATH, or None."""
        receipt = self.execute(
            "filesystem", f"which {tool}", check=False, read_only=True,
            operation="which", path=tool,
        )
        if receipt.failed or not receipt.output:
            return None
        return receipt.output

    def require(self, *tools: str) -> None:
        """Raise StepError naming every tool that is not on PATH."""
        missing = [t for t in tools if not self.which(t)]
        if missing:
            raise StepError(f"Missing required tools: {' '.join(missing)}")

    # ── Filesystem ──────────────────────────────────────────────

    def exists(self, path: str | Path) -> bool:
        receipt = self.execute(
            "filesystem", f"exists {path}", check=False, read_only=True,
            operation="exists", path=str(path),
        )
        return bool(receipt.metadata.get("exists", False))

    def is_executable(self, path: str | Path) -> bool:
        receipt = self.execute(
            "filesystem", f"exists {path}", check=False, read_only=True,
            operation="exists", path=str(path),
        )
        return bool(receipt.metadata.get("executable", False))

    def listdir(self, path: str | Path, pattern: str = "*", kind: str | None = None) -> list[Path]:
        """Entries of ``path`` matching ``pattern``; ``kind`` is dir, file or mount."""
        receipt = self.execute(
            "filesystem", f"list {path}", check=False, read_only=True,
            operation="list", path=str(path), pattern=pattern, kind=kind,
        )
        return [Path(p) for p in receipt.metadata.get("entries", [])]

    def find_dir(self, roots: list[Path], name: str) -> Path | None:
        """First directory called ``name`` below any of ``roots``."""
        for root in roots:
            receipt = self.execute(
                "filesystem", f"find {name} in {root}", check=False, read_only=True,
                operation="find", path=str(root), dirname=name,
            )
            if receipt.output:
                return Path(receipt.output)
        return None

    def read_file(self, path: str | Path) -> str:
        receipt = self.execute(
            "filesystem", f"read {path}", read_only=True,
            operation="read", path=str(path),
        )
        return receipt.output

    def write_file(self, path: str | Path, content: str, mode: int | None = None) -> Receipt:
        return self.execute(
            "filesystem", f"write {path}",
            operation="write", path=str(path), content=content, mode=mode,
        )

    def append_line(self, path: str | Path, line: str) -> Receipt:
        """Append ``line`` unless the file already contains it."""
        return self.execute(
            "filesystem", f"append to {path}",
            operation="append", path=str(path), content=line,
        )

    def mkdir(self, *paths: str | Path) -> None:
        for path in paths:
            self.execute("filesystem", f"mkdir {path}", operation="mkdir", path=str(path))

    def copy(
        self,
        src: str | Path,
        dest: str | Path,
        *,
        overwrite: bool = False,
        ignore: list[str] | None = None,
        check: bool = True,
    ) -> Receipt:
        """Copy a file or tree. An existing destination is left alone unless ``overwrite``."""
        return self.execute(
            "filesystem", f"copy {src} -> {dest}", check=check,
            operation="copy", path=str(dest), src=str(src), overwrite=overwrite, ignore=ignore,
        )

    def symlink(self, target: str | Path, link: str | Path, check: bool = True) -> Receipt:
        return self.execute(
            "filesystem", f"link {link} -> {target}", check=check,
            operation="symlink", path=str(link), src=str(target),
        )

    def chmod(self, path: str | Path, mode: int, check: bool = True) -> Receipt:
        return self.execute(
            "filesystem", f"chmod {oct(mode)} {path}", check=check,
            operation="chmod", path=str(path), mode=mode,
        )

    def archive(
        self,
        op: str,
        path: str | Path,
        *,
        src: str | Path | None = None,
        dest: str | Path | None = None,
        arcname: str | None = None,
        check: bool = True,
    ) -> Receipt:
        """``tar-create`` / ``tar-extract`` / ``zip-create`` / ``zip-extract``."""
        return self.execute(
            "archive", f"{op} {path}", check=check,
            operation=op,
            path=str(path),
            src=str(src) if src is not None else None,
            dest=str(dest) if dest is not None else None,
            arcname=arcname,
        )

    def read_zip_member(self, archive: str | Path, member: str) -> str | None:
        """Text of one file inside a zip, or None when it is not there."""
        receipt = self.execute(
            "archive", f"read {member} from {archive}", check=False, read_only=True,
            operation="zip-read", path=str(archive), member=member,
        )
        return receipt.output if receipt.ok else None

    def download(self, url: str, dest: str | Path, *, check: bool = True) -> Receipt:
        return self.execute(
            "http", f"download {url}", check=check, operation="download", url=url, dest=str(dest),
        )

    def fetch(self, url: str) -> str:
        """Body of a web page; runs in a dry run too."""
        return self.execute("http", f"fetch {url}", read_only=True, operation="fetch", url=url).output

    # ── Operator ────────────────────────────────────────────────

    def confirm(self, question: str, default: bool = False) -> bool:
        return self.prompter.confirm(question, default=default)

    def ask(self, question: str, secret: bool = False, default: str | None = None) -> str:
        return self.prompter.ask(question, secret=secret, default=default)

    def choose(self, question: str, options: list[str]) -> str:
        return self.prompter.choose(question, options)

    def pause(self, message: str = "Press ENTER to continue...") -> None:
        self.prompter.pause(message)

    def info(self, message: str) -> None:
        self.reporter.info(message)

    def success(self, message: str) -> None:
        self.reporter.success(message)

    def warn(self, message: str) -> None:
        self.reporter.warn(message)
