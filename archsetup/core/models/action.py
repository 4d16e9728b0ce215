"""
Action and Receipt models — the adapter contract.

A step never touches the machine directly. It asks the session to
perform an Action; the adapter that owns the action returns a Receipt.
Adapters report failures in the Receipt instead of raising, so a step
decides for itself whether a failed receipt is fatal.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "skipped", "failed"]


class Action(BaseModel):
    """A requested operation for one adapter.

    ``params`` is adapter-specific: the shell adapter reads ``argv``,
    the filesystem adapter reads ``operation`` and ``path``, and so on.
    """

    id: str
    name: str = ""
    adapter: str
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """What an adapter did with one action.

    ``output`` holds captured stdout for commands, or the skip reason.
    ``metadata`` carries adapter facts a guard can read back, such as
    ``exists`` from a filesystem query or ``return_code`` from a command.
    """

    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"
    duration_ms: int = 0
    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def _build(cls, status: ReceiptStatus, adapter: str, action_id: str, **fields: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status=status, **fields)

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls._build("ok", adapter, action_id, output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls._build("failed", adapter, action_id, error=error, **kwargs)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        """Nothing was done: dry run, or the target was already in place."""
        return cls._build("skipped", adapter, action_id, output=reason, **kwargs)
