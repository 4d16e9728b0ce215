"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from archsetup.adapters.mock import MockAdapter
from archsetup.adapters.registry import AdapterRegistry
from archsetup.adapters.shell.archive import ArchiveAdapter
from archsetup.adapters.shell.filesystem import FilesystemAdapter
from archsetup.core.engine.prompt import Prompter
from archsetup.core.engine.reporter import RecordingReporter
from archsetup.core.engine.session import Session
from archsetup.core.models.config import SetupConfig
from tests.helpers import answers


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path, home: Path) -> SetupConfig:
    """Config with every path inside tmp_path."""
    lists = tmp_path / "lists"
    lists.mkdir()
    return SetupConfig.model_validate(
        {
            "user": {"name": "Test User", "email": "test@example.com"},
            "paths": {
                "home": str(home),
                "lists_dir": str(lists),
                "backup_dir": str(tmp_path / "backup"),
                "state_dir": str(tmp_path / "state"),
            },
        }
    )


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def shell_mock() -> MockAdapter:
    """Stands in for the shell adapter; records every command."""
    return MockAdapter(adapter_name="shell")


@pytest.fixture
def registry(shell_mock: MockAdapter) -> AdapterRegistry:
    """Real filesystem and archive adapters, mocked commands."""
    reg = AdapterRegistry()
    reg.register(FilesystemAdapter())
    reg.register(ArchiveAdapter())
    reg.register(shell_mock)
    return reg


@pytest.fixture
def make_session(registry: AdapterRegistry, config: SetupConfig, reporter: RecordingReporter):
    """Factory: a Session whose prompter reads the given answers."""

    def _make(*lines: str, auto_yes: bool = False, dry_run: bool = False) -> Session:
        prompter = Prompter(stream=answers(*lines), reporter=reporter, auto_yes=auto_yes)
        return Session(registry, config, prompter=prompter, reporter=reporter, dry_run=dry_run)

    return _make


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir
