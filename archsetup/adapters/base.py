"""
Adapter base — the contract between the session and external tools.

Step code never calls subprocess, urllib or shutil directly. It builds
an Action and hands it to the registry, which picks the adapter. That
keeps dry-run and mock mode in one place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from archsetup.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action
    dry_run: bool = False

    @property
    def params(self) -> dict:
        return self.action.params

    @property
    def working_dir(self) -> str | None:
        """``cwd`` param, if the action pins one."""
        cwd = self.action.params.get("cwd")
        return str(cwd) if cwd else None


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'filesystem')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the adapter's underlying tool is available. Never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt. Never raises."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
