"""
Tests for the archsetup CLI — commands, output and exit codes.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from archsetup import __version__
from archsetup.core.engine.session import StepError
from archsetup.core.services.steps import PLANS
from archsetup.core.services.steps.base import StepSpec
from archsetup.main import cli


def _hello(session, config):
    session.info("hello")


def _boom(session, config):
    raise StepError("boom")


@pytest.fixture
def cfg(tmp_path: Path) -> Path:
    """archsetup.yml with every path inside tmp_path."""
    lists = tmp_path / "lists"
    lists.mkdir()
    for name in ("pacman.txt", "aur.txt", "npm.txt", "pipx.txt"):
        (lists / name).write_text("")
    path = tmp_path / "archsetup.yml"
    path.write_text(
        "user:\n"
        "  name: Test User\n"
        "  email: test@example.com\n"
        "dotfiles_repo: https://example.com/dotfiles.git\n"
        "paths:\n"
        f"  home: {tmp_path / 'home'}\n"
        f"  lists_dir: {lists}\n"
        f"  state_dir: {tmp_path / 'state'}\n"
    )
    return path


@pytest.fixture
def plan(monkeypatch):
    specs = [StepSpec("Say hello", _hello), StepSpec("Break things", _boom)]
    monkeypatch.setitem(PLANS, "test", specs)
    return specs


def _invoke(cfg: Path, *args: str, input: str | None = None):
    return CliRunner().invoke(cli, ["-c", str(cfg), *args], input=input)


class TestTopLevel:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "plans", "config", "history"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_plans(self):
        result = CliRunner().invoke(cli, ["plans"])
        assert result.exit_code == 0
        assert "pre-gui (default)" in result.output
        assert f"backup: {len(PLANS['backup'])} steps" in result.output

    def test_plans_json(self):
        result = CliRunner().invoke(cli, ["plans", "--json"])
        data = json.loads(result.stdout)
        assert list(data) == ["pre-gui", "post-gui", "backup"]
        assert data["backup"][0] == "Check backup tools"


class TestRunCommand:
    def test_list(self, cfg: Path):
        result = _invoke(cfg, "run", "pre-gui", "--list")
        assert result.exit_code == 0
        assert "Update Mirrors [critical]" in result.output
        assert "Pacman pkglist hook [guarded]" in result.output

    def test_list_unknown_plan_json(self, cfg: Path):
        result = _invoke(cfg, "run", "nope", "--list", "--json")
        assert result.exit_code == 1
        assert "Unknown plan" in json.loads(result.stdout)["error"]

    def test_all_confirmed(self, cfg: Path, plan):
        plan.pop()
        result = _invoke(cfg, "run", "test", "--yes", "--mock")
        assert result.exit_code == 0
        assert "SUCCESS: Say hello complete." in result.output
        assert "ok" in result.output

    def test_non_critical_failure_still_exits_zero(self, cfg: Path, plan):
        result = _invoke(cfg, "run", "test", "--yes", "--mock")
        assert result.exit_code == 0
        assert "WARNING: Break things failed: boom. Continuing." in result.output

    def test_mock_run_ignores_the_real_machine(self, cfg: Path, monkeypatch):
        monkeypatch.setenv("PATH", "")
        result = _invoke(cfg, "run", "backup", "--mock", "--yes", "--no-audit")
        assert result.exit_code == 0
        assert "SUCCESS: Check backup tools complete." in result.output
        assert "Missing required tools" not in result.output
        assert not (cfg.parent / "home").exists()

    def test_ctrl_c_exits_130(self, cfg: Path, plan):
        def _interrupted(session, config):
            raise KeyboardInterrupt

        plan[1] = StepSpec("Ask a secret", _interrupted)
        result = _invoke(cfg, "run", "test", "--yes", "--mock", "--no-audit")
        assert result.exit_code == 130
        assert "Interrupted." in result.output

    def test_critical_failure_exits_one(self, cfg: Path, plan):
        plan[1] = StepSpec("Break things", _boom, critical=True)
        result = _invoke(cfg, "run", "test", "--yes", "--mock")
        assert result.exit_code == 1
        assert "ERROR: Break things failed: boom. Aborting." in result.output
        assert "Aborted at: Break things" in result.output

    def test_declined(self, cfg: Path, plan):
        result = _invoke(cfg, "run", "test", "--mock", input="n\nn\n")
        assert result.exit_code == 0
        assert "WARNING: Skipping Say hello." in result.output
        assert "0 succeeded, 0 failed, 2 declined" in result.output

    def test_closed_input_exits_two(self, cfg: Path, plan):
        result = _invoke(cfg, "run", "test", "--mock", input="")
        assert result.exit_code == 2
        assert "Input closed" in result.output

    def test_unknown_plan(self, cfg: Path):
        result = _invoke(cfg, "run", "mid-gui", "--yes")
        assert result.exit_code == 1
        assert "Unknown plan 'mid-gui'" in result.output

    def test_json_keeps_stdout_clean(self, cfg: Path, plan):
        plan.pop()
        result = _invoke(cfg, "run", "test", "--yes", "--mock", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["log"]["status"] == "ok"
        assert data["log"]["records"][0]["outcome"] == "confirmed-success"

    def test_run_then_history(self, cfg: Path, plan):
        assert "No runs recorded yet." in _invoke(cfg, "history").output

        _invoke(cfg, "run", "test", "--yes", "--mock")
        result = _invoke(cfg, "history", "--json")

        (entry,) = json.loads(result.stdout)
        assert entry["plan"] == "test"
        assert entry["status"] == "partial"
        assert entry["context"]["mock"] is True

        text = _invoke(cfg, "history").output
        assert "Last 1 run(s)" in text

    def test_no_audit(self, cfg: Path, plan):
        _invoke(cfg, "run", "test", "--yes", "--mock", "--no-audit")
        assert json.loads(_invoke(cfg, "history", "--json").stdout) == []


class TestConfigCommand:
    def test_valid(self, cfg: Path):
        result = _invoke(cfg, "config", "check")
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert f"Source: {cfg}" in result.output

    def test_invalid(self, cfg: Path):
        cfg.write_text(cfg.read_text() + "touchpad_prefix: 'abc'\n")
        result = _invoke(cfg, "config", "check")
        assert result.exit_code == 1
        assert "Configuration errors:" in result.output

    def test_json(self, cfg: Path):
        result = _invoke(cfg, "config", "check", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["valid"] is True


class TestLogLevel:
    def test_flags_win_over_env(self, monkeypatch):
        from archsetup.core.observability.logging_config import resolve_level

        monkeypatch.setenv("ARCHSETUP_LOG_LEVEL", "ERROR")
        assert resolve_level(debug=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level() == "ERROR"
        monkeypatch.delenv("ARCHSETUP_LOG_LEVEL")
        assert resolve_level() == "WARNING"
