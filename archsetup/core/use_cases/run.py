"""
Run use case — execute one provisioning plan end to end.

Loads the config, wires the adapter registry and the session, builds
the plan, hands it to the step runner and appends the outcome to the
audit ledger. The CLI is a thin layer over ``run_plan``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from archsetup.adapters.registry import AdapterRegistry
from archsetup.core.config.loader import ConfigError, load_config
from archsetup.core.engine.prompt import Prompter, RunnerFailure
from archsetup.core.engine.reporter import Reporter
from archsetup.core.engine.runner import generate_run_id, run_steps
from archsetup.core.engine.session import Session
from archsetup.core.models.config import SetupConfig
from archsetup.core.models.step import RunLog, Step
from archsetup.core.persistence.audit import AuditEntry, AuditWriter
from archsetup.core.services.steps import DEFAULT_PLAN, UnknownPlanError, build_plan

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_RUNNER_FAILURE = 2


@dataclass
class RunResult:
    """Result of running a plan."""

    plan: str = DEFAULT_PLAN
    log: RunLog | None = None
    config: SetupConfig | None = None
    steps: list[Step] = field(default_factory=list)
    dry_run: bool = False
    duration_ms: int = 0
    audit_path: Path | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return EXIT_ABORTED
        return self.log.exit_code if self.log else EXIT_OK

    def to_dict(self) -> dict:
        result: dict = {"plan": self.plan, "dry_run": self.dry_run}
        if self.error:
            result["error"] = self.error
            return result
        result["duration_ms"] = self.duration_ms
        result["audit_path"] = str(self.audit_path) if self.audit_path else None
        if self.log:
            result["log"] = self.log.to_dict()
        return result


@dataclass
class PlanOverview:
    """What ``run --list`` prints."""

    plan: str
    steps: list[dict] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"plan": self.plan, "error": self.error}
        return {"plan": self.plan, "steps": self.steps}


def create_registry(mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every adapter the steps use."""
    from archsetup.adapters.net.download import DownloadAdapter
    from archsetup.adapters.shell.archive import ArchiveAdapter
    from archsetup.adapters.shell.command import ShellCommandAdapter
    from archsetup.adapters.shell.filesystem import FilesystemAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    registry.register(ArchiveAdapter())
    registry.register(DownloadAdapter())
    return registry


def describe_plan(plan: str = DEFAULT_PLAN, config_path: Path | None = None) -> PlanOverview:
    """List a plan's steps after config policy, without executing anything."""
    overview = PlanOverview(plan=plan)
    try:
        config = load_config(config_path)
        session = Session(create_registry(mock_mode=True), config)
        steps = build_plan(plan, session, config)
    except (ConfigError, UnknownPlanError) as e:
        overview.error = str(e)
        return overview

    overview.steps = [
        {
            "name": s.name,
            "critical": s.critical,
            "guarded": s.guard is not None,
            "description": s.description,
        }
        for s in steps
    ]
    return overview


def _audit(
    config: SetupConfig,
    log: RunLog,
    duration_ms: int,
    *,
    status: str | None = None,
    context: dict | None = None,
) -> Path | None:
    writer = AuditWriter(state_dir=config.paths.state_dir)
    entry = AuditEntry.from_run_log(log, duration_ms=duration_ms, status=status, context=context)
    return writer.path if writer.write(entry) else None


def run_plan(
    plan: str = DEFAULT_PLAN,
    config_path: Path | None = None,
    *,
    auto_yes: bool = False,
    dry_run: bool = False,
    mock_mode: bool = False,
    reporter: Reporter | None = None,
    prompter: Prompter | None = None,
    registry: AdapterRegistry | None = None,
    config: SetupConfig | None = None,
    audit: bool = True,
) -> RunResult:
    """Run a plan interactively.

    Args:
        plan: Plan name (``pre-gui``, ``post-gui``, ``backup``).
        config_path: Optional explicit path to archsetup.yml.
        auto_yes: Confirm every prompt without asking.
        dry_run: Validate actions but do not execute them.
        mock_mode: Route every action to the mock adapter.
        reporter: Operator output (default: logging).
        prompter: Operator input (default: stdin).
        registry: Optional pre-configured adapter registry.
        config: Already-loaded config; skips loading from ``config_path``.
        audit: Append the outcome to the audit ledger.

    Returns:
        RunResult with the RunLog.

    Raises:
        RunnerFailure: Operator input closed. The partial run has already
            been audited; ``exc.log`` holds it.
    """
    result = RunResult(plan=plan, dry_run=dry_run)

    try:
        config = config or load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.config = config

    if prompter is None:
        prompter = Prompter(reporter=reporter, auto_yes=auto_yes)
    else:
        prompter.auto_yes = prompter.auto_yes or auto_yes
    reporter = reporter or prompter.reporter

    if registry is None:
        registry = create_registry(mock_mode=mock_mode)
    session = Session(registry, config, prompter=prompter, reporter=reporter, dry_run=dry_run)

    try:
        result.steps = build_plan(plan, session, config)
    except UnknownPlanError as e:
        result.error = str(e)
        return result

    write_audit = audit and not dry_run
    context = {"mock": registry.mock_mode, "auto_yes": prompter.auto_yes}
    run_id = generate_run_id()
    start = time.monotonic()

    try:
        log = run_steps(
            result.steps,
            prompter=prompter,
            reporter=reporter,
            auto_yes=auto_yes,
            run_id=run_id,
            plan=plan,
        )
    except RunnerFailure as exc:
        if write_audit and exc.log is not None:
            _audit(
                config,
                exc.log,
                int((time.monotonic() - start) * 1000),
                status="runner-failure",
                context={**context, "error": str(exc)},
            )
        raise

    result.log = log
    result.duration_ms = int((time.monotonic() - start) * 1000)
    if write_audit:
        result.audit_path = _audit(config, log, result.duration_ms, context=context)

    return result
