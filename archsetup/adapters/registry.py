"""
Adapter registry — central dispatch for all adapter operations.

The session never talks to adapters directly. The registry resolves
the adapter (or the mock), validates, honours dry-run, executes, and
always hands back a Receipt.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters.

    Features:
        - Register/unregister adapters by name
        - Mock mode: route every action to a mock that always succeeds
        - Dry run: validate, then return a skip receipt
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional custom mock adapter. If None, uses default.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def unregister(self, name: str) -> None:
        self._adapters.pop(name, None)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def list_adapters(self) -> list[str]:
        return list(self._adapters.keys())

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def _resolve(self, adapter_name: str) -> Adapter | None:
        if self._mock_mode:
            if self._mock_adapter is None:
                from archsetup.adapters.mock import MockAdapter

                self._mock_adapter = MockAdapter()
            return self._mock_adapter
        return self._adapters.get(adapter_name)

    def execute_action(self, action: Action, dry_run: bool = False) -> Receipt:
        """Execute an action through the appropriate adapter.

        Never raises: a missing adapter, a failed validation and an
        adapter that raised anyway all come back as failed receipts.
        """
        start_time = time.monotonic()
        context = ExecutionContext(action=action, dry_run=dry_run)

        adapter = self._resolve(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] {action.name or action.id}",
                metadata={"dry_run": True},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        if not receipt.duration_ms:
            receipt.duration_ms = int((time.monotonic() - start_time) * 1000)

        return receipt
