"""Adapters — the only code that touches the machine.

Public re-exports for convenient access.
"""

from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.adapters.mock import MockAdapter
from archsetup.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
