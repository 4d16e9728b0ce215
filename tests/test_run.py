"""
Tests for the run use case — plan wiring, exit codes and the audit ledger.
"""

import json
from pathlib import Path

import pytest

from archsetup.core.engine.prompt import Prompter, RunnerFailure
from archsetup.core.engine.session import StepError
from archsetup.core.models.step import Outcome
from archsetup.core.services.steps import PLANS
from archsetup.core.services.steps.base import StepSpec
from archsetup.core.use_cases.run import describe_plan, run_plan
from tests.helpers import answers


def _hello(session, config):
    session.info("hello")


def _boom(session, config):
    raise StepError("boom")


@pytest.fixture
def small_plan(monkeypatch):
    """Install a small 'test' plan and return its StepSpec list for editing."""
    specs = [StepSpec("Say hello", _hello), StepSpec("Break things", _boom)]
    monkeypatch.setitem(PLANS, "test", specs)
    return specs


def _ledger(config) -> list[dict]:
    path = config.paths.state_dir / "audit.ndjson"
    if not path.is_file():
        return []
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestRunPlan:
    def test_partial_run_is_audited(self, small_plan, config, registry, reporter):
        result = run_plan("test", auto_yes=True, config=config, registry=registry, reporter=reporter)

        assert result.error is None
        assert result.log.status == "partial"
        assert result.exit_code == 0
        assert result.audit_path == config.paths.state_dir / "audit.ndjson"

        (entry,) = _ledger(config)
        assert entry["plan"] == "test"
        assert entry["status"] == "partial"
        assert entry["errors"] == ["Break things: boom"]
        assert entry["context"] == {"mock": False, "auto_yes": True}

    def test_critical_failure_exit_code(self, small_plan, config, registry, reporter):
        small_plan[1] = StepSpec("Break things", _boom, critical=True)
        small_plan.append(StepSpec("Never reached", _hello))

        result = run_plan("test", auto_yes=True, config=config, registry=registry, reporter=reporter)

        assert result.exit_code == 1
        assert result.log.aborted_at == "Break things"
        assert [r.name for r in result.log.records] == ["Say hello", "Break things"]
        assert "Break things failed: boom. Aborting." in reporter.of_kind("error")

    def test_answers_come_from_the_prompter(self, small_plan, config, registry, reporter):
        prompter = Prompter(stream=answers("n", "y"), reporter=reporter)
        result = run_plan("test", config=config, registry=registry, reporter=reporter, prompter=prompter)
        assert [r.outcome.value for r in result.log.records] == ["declined", "confirmed-failure"]

    def test_dry_run_skips_audit(self, small_plan, config, registry, reporter):
        result = run_plan(
            "test", auto_yes=True, dry_run=True, config=config, registry=registry, reporter=reporter,
        )
        assert result.dry_run
        assert result.audit_path is None
        assert _ledger(config) == []

    def test_audit_can_be_turned_off(self, small_plan, config, registry, reporter):
        run_plan("test", auto_yes=True, config=config, registry=registry, reporter=reporter, audit=False)
        assert _ledger(config) == []

    def test_unknown_plan(self, config, registry, reporter):
        result = run_plan("mid-gui", config=config, registry=registry, reporter=reporter)
        assert result.exit_code == 1
        assert "Unknown plan 'mid-gui'" in result.error
        assert result.to_dict() == {"plan": "mid-gui", "dry_run": False, "error": result.error}

    def test_config_error(self, tmp_path: Path):
        result = run_plan("pre-gui", config_path=tmp_path / "missing.yml")
        assert result.exit_code == 1
        assert result.config is None

    def test_closed_input_is_audited_and_reraised(self, small_plan, config, registry, reporter):
        prompter = Prompter(stream=answers("y"), reporter=reporter)

        with pytest.raises(RunnerFailure) as exc_info:
            run_plan("test", config=config, registry=registry, reporter=reporter, prompter=prompter)

        assert exc_info.value.log.entries[0][0] == "Say hello"
        assert exc_info.value.log.completed

        (entry,) = _ledger(config)
        assert entry["status"] == "runner-failure"
        assert entry["steps_total"] == 1
        assert "Input stream closed" in entry["context"]["error"]

    def test_to_dict(self, small_plan, config, registry, reporter):
        result = run_plan("test", auto_yes=True, config=config, registry=registry, reporter=reporter)
        data = result.to_dict()
        assert data["plan"] == "test"
        assert data["log"]["succeeded"] == 1
        assert data["audit_path"].endswith("audit.ndjson")


class TestDescribePlan:
    def test_lists_steps_after_policy(self, tmp_path: Path):
        path = tmp_path / "archsetup.yml"
        path.write_text("steps:\n  Reboot System:\n    enabled: false\n")

        overview = describe_plan("pre-gui", config_path=path)

        names = [s["name"] for s in overview.steps]
        assert "Reboot System" not in names
        assert len(names) == len(PLANS["pre-gui"]) - 1
        hook = next(s for s in overview.steps if s["name"] == "Pacman pkglist hook")
        assert hook["guarded"] is True
        assert overview.to_dict()["plan"] == "pre-gui"

    def test_unknown_plan(self, tmp_path: Path):
        path = tmp_path / "archsetup.yml"
        path.write_text("")
        overview = describe_plan("nope", config_path=path)
        assert overview.steps == []
        assert "Unknown plan" in overview.to_dict()["error"]


class TestMockRuns:
    """Whole plans against the mock adapter: nothing outside it is consulted."""

    @pytest.fixture
    def mock_config(self, config):
        backup = config.backup.model_copy(
            update={"source": "network", "url": "https://example.com/backup.zip"}
        )
        return config.model_copy(update={
            "backup": backup,
            "touchpad_prefix": "30",
            "dotfiles_repo": "https://example.com/dotfiles.git",
        })

    def _run(self, plan, config, reporter, monkeypatch):
        monkeypatch.setenv("PATH", "")
        prompter = Prompter(stream=answers("pw"), reporter=reporter, auto_yes=True)
        return run_plan(
            plan, auto_yes=True, mock_mode=True, config=config, reporter=reporter, prompter=prompter, audit=False,
        )

    @pytest.mark.parametrize("plan", ["pre-gui", "post-gui"])
    def test_install_plans_complete(self, plan, mock_config, reporter, home, monkeypatch):
        result = self._run(plan, mock_config, reporter, monkeypatch)

        assert result.error is None
        assert result.exit_code == 0
        assert result.log.aborted_at is None
        assert result.log.total == len(PLANS[plan])
        assert list(home.iterdir()) == []

    def test_backup_plan(self, mock_config, reporter, home, monkeypatch):
        result = self._run("backup", mock_config, reporter, monkeypatch)

        assert result.exit_code == 0
        outcomes = dict(result.log.entries)
        assert outcomes["Check backup tools"] is Outcome.SUCCEEDED
        assert outcomes["Backup /etc/fstab"] is Outcome.SUCCEEDED
        # the mock never reports a dotfiles repo or backup dir
        assert outcomes["Commit and copy dotfiles"] is Outcome.FAILED
        assert outcomes["Transfer backup"] is Outcome.FAILED
        assert result.log.status == "partial"
        assert list(home.iterdir()) == []
