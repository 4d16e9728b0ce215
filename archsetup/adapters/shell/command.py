"""
Shell command adapter — run external programs from an argv list.

Commands are never passed through a shell. Output is captured only when
the step asks for it; otherwise the child inherits the terminal so that
interactive tools (lazygit, 7z password prompts, makepkg) work.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)


def _is_root() -> bool:
    return os.geteuid() == 0


def build_argv(argv: list[str], sudo: bool = False) -> list[str]:
    """Prefix ``sudo`` when requested and not already root."""
    argv = [str(a) for a in argv]
    if sudo and not _is_root():
        return ["sudo", *argv]
    return argv


class ShellCommandAdapter(Adapter):
    """Execute commands and report the exit status.

    Action params:
        argv (list[str]): Program and arguments.
        sudo (bool): Run through sudo unless already root (default: False).
        cwd (str): Working directory.
        env (dict): Variables added to the inherited environment.
        capture (bool): Capture stdout/stderr into the receipt (default: False).
        input (str): Text fed to stdin. Implies a pipe instead of the terminal.
        timeout (int): Seconds before the command is killed (default: none).
        redact (list[str]): Values masked in logged and recorded command text.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        argv = context.params.get("argv")
        if not argv or not isinstance(argv, (list, tuple)):
            return False, "Missing required param: 'argv' (non-empty list)"

        cwd = context.working_dir
        if cwd and not context.dry_run and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        argv = build_argv(params["argv"], sudo=params.get("sudo", False))
        capture = params.get("capture", False)
        input_text = params.get("input")
        timeout = params.get("timeout")
        cwd = context.working_dir

        env = None
        if params.get("env"):
            env = {**os.environ, **{k: str(v) for k, v in params["env"].items()}}

        command = " ".join(argv)
        for secret in params.get("redact") or []:
            if secret:
                command = command.replace(secret, "***")
        logger.debug("Executing: %s (cwd=%s)", command, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                input=input_text,
                capture_output=capture,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {argv[0]}",
                metadata={"command": command},
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = (result.stdout or "").strip()
        stderr = (result.stderr or "").strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=stdout,
                duration_ms=elapsed_ms,
                metadata={
                    "command": command,
                    "return_code": result.returncode,
                    "stderr": stderr,
                },
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"'{command}' exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={
                "command": command,
                "return_code": result.returncode,
                "stdout": stdout,
            },
        )
