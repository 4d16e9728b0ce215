"""
Mock adapter — stands in for any adapter name.

``archsetup run --mock`` routes every adapter to one of these so a
whole plan can be walked on a machine that is not the target. Tests
register it as ``shell`` and read back ``call_log`` to see which
commands a step issued. Every action succeeds unless a receipt was queued for its ID.

Read-only queries get neutral answers: nothing exists, files and pages
are empty, listings find nothing, and every tool is on PATH.
"""

from __future__ import annotations

from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.core.models.action import Receipt

QUERY_ANSWERS: dict[str, dict] = {
    "exists": {"exists": False, "is_dir": False, "executable": False},
    "read": {},
    "list": {"entries": []},
    "find": {"found": False},
    "which": {"exists": True},
    "zip-read": {},
    "fetch": {},
}


class MockAdapter(Adapter):
    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._responses[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Make the action with this session ID (``shell-0003``) fail."""
        self.set_response(action_id, Receipt.failure(self._name, action_id, error))

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action_id = context.action.id
        if action_id in self._responses:
            return self._responses[action_id]

        operation = context.params.get("operation")
        if operation in QUERY_ANSWERS:
            output = f"/usr/bin/{context.params['path']}" if operation == "which" else ""
            return Receipt.success(
                self._name, action_id, output=output,
                metadata={"mock": True, **QUERY_ANSWERS[operation]},
            )
        return Receipt.success(
            self._name, action_id, output=self._default_output, metadata={"mock": True},
        )

    def reset(self) -> None:
        self.call_log.clear()
        self._responses.clear()
