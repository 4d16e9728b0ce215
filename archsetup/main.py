"""
archsetup — CLI entrypoint.

Usage:
    python -m archsetup.main --help
    python -m archsetup.main run pre-gui
    python -m archsetup.main config check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from archsetup import __version__
from archsetup.core.observability.logging_config import configure_from_cli

EXIT_INTERRUPTED = 130


@click.group()
@click.version_option(version=__version__, prog_name="archsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to archsetup.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """archsetup — confirm-gated Arch Linux provisioning."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    configure_from_cli(debug=debug, verbose=verbose, quiet=quiet)


# ── run ─────────────────────────────────────────────────────────


def _print_overview(overview) -> None:
    click.secho(f"\n📋 {overview.plan}", fg="cyan", bold=True)
    for i, step in enumerate(overview.steps, 1):
        marker = click.style(" [critical]", fg="red") if step["critical"] else ""
        guarded = click.style(" [guarded]", fg="blue") if step["guarded"] else ""
        click.echo(f"   {i:2d}. {step['name']}{marker}{guarded}")
        if step["description"]:
            click.echo(f"       {step['description']}")
    click.echo()


def _print_summary(result) -> None:
    log = result.log
    status_color = {"ok": "green", "partial": "yellow", "aborted": "red"}.get(log.status, "white")
    click.echo()
    click.secho(f"Run {log.run_id} ({result.plan}): ", bold=True, nl=False)
    click.secho(log.status, fg=status_color, bold=True)
    click.echo(
        f"   {log.succeeded} succeeded, {log.failed} failed, {log.declined} declined"
        f" ({result.duration_ms}ms)"
    )
    for record in log.records:
        icon = {
            "confirmed-success": "✅",
            "confirmed-failure": "❌",
            "declined": "⏭️ ",
        }[record.outcome.value]
        line = f"   {icon} {record.name}"
        if record.error:
            line += f": {record.error}"
        click.echo(line)
    if log.aborted_at:
        click.secho(f"   Aborted at: {log.aborted_at}", fg="red")
    if result.dry_run:
        click.secho("   (dry run: nothing was changed)", fg="yellow")
    click.echo()


@cli.command()
@click.argument("plan", default="pre-gui")
@click.option("--yes", "-y", "auto_yes", is_flag=True, help="Confirm every prompt.")
@click.option("--list", "list_only", is_flag=True, help="Print the plan's steps and exit.")
@click.option("--dry-run", is_flag=True, help="Validate actions without executing them.")
@click.option("--mock", "mock_mode", is_flag=True, help="Route every action to the mock adapter.")
@click.option("--no-audit", is_flag=True, help="Don't append the run to the audit ledger.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    plan: str,
    auto_yes: bool,
    list_only: bool,
    dry_run: bool,
    mock_mode: bool,
    no_audit: bool,
    as_json: bool,
) -> None:
    """Run a provisioning plan (pre-gui, post-gui, backup)."""
    from archsetup.core.engine.prompt import RunnerFailure
    from archsetup.core.use_cases.run import EXIT_RUNNER_FAILURE, describe_plan, run_plan
    from archsetup.ui.cli.console import ConsoleReporter

    config_path = ctx.obj.get("config_path")

    if list_only:
        overview = describe_plan(plan, config_path=config_path)
        if as_json:
            click.echo(json.dumps(overview.to_dict(), indent=2))
        elif overview.error:
            click.secho(f"❌ {overview.error}", fg="red")
        else:
            _print_overview(overview)
        sys.exit(1 if overview.error else 0)

    reporter = ConsoleReporter(quiet=ctx.obj.get("quiet", False), err=as_json)

    try:
        result = run_plan(
            plan,
            config_path=config_path,
            auto_yes=auto_yes,
            dry_run=dry_run,
            mock_mode=mock_mode,
            reporter=reporter,
            audit=not no_audit,
        )
    except RunnerFailure as exc:
        reporter.error(f"Input closed: {exc}")
        if as_json and exc.log is not None:
            click.echo(json.dumps({"plan": plan, "error": str(exc), "log": exc.log.to_dict()}, indent=2))
        sys.exit(EXIT_RUNNER_FAILURE)
    except KeyboardInterrupt:
        click.echo()
        reporter.error("Interrupted.")
        sys.exit(EXIT_INTERRUPTED)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    _print_summary(result)
    sys.exit(result.exit_code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def plans(as_json: bool) -> None:
    """List available plans and their step counts."""
    from archsetup.core.services.steps import DEFAULT_PLAN, PLANS

    if as_json:
        click.echo(json.dumps({name: [s.name for s in specs] for name, specs in PLANS.items()}, indent=2))
        return

    click.secho("\n📋 Plans:", fg="cyan", bold=True)
    for name, specs in PLANS.items():
        default = " (default)" if name == DEFAULT_PLAN else ""
        click.echo(f"   • {name}{default}: {len(specs)} steps")
    click.echo()


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Setup configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate archsetup.yml configuration."""
    from archsetup.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        source = result.config_path or "built-in defaults"
        click.echo(f"   Source: {source}")
        click.echo(f"   Lists: {result.config.paths.lists_dir}")
        click.echo(f"   Step overrides: {len(result.config.steps)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── history ─────────────────────────────────────────────────────


@cli.command()
@click.option("-n", "count", default=10, show_default=True, type=click.IntRange(min=1),
              help="Number of entries to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent runs from the audit ledger."""
    from archsetup.core.config.loader import ConfigError, load_config
    from archsetup.core.persistence.audit import AuditWriter

    try:
        cfg = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    writer = AuditWriter(state_dir=cfg.paths.state_dir)
    entries = writer.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump() for e in entries], indent=2))
        return

    if not entries:
        click.secho("No runs recorded yet.", fg="yellow")
        return

    status_colors = {"ok": "green", "partial": "yellow", "aborted": "red", "runner-failure": "red"}
    click.secho(f"\n📜 Last {len(entries)} run(s):", fg="cyan", bold=True)
    for entry in entries:
        click.echo(f"   {entry.timestamp[:19]}  {entry.plan:<9} ", nl=False)
        click.secho(f"{entry.status:<15}", fg=status_colors.get(entry.status, "white"), nl=False)
        click.echo(
            f" {entry.steps_succeeded}✓ {entry.steps_failed}✗ {entry.steps_declined}⏭"
        )
        if entry.aborted_at:
            click.echo(f"      aborted at: {entry.aborted_at}")
    click.echo()


# ── Register sub-groups ─────────────────────────────────────────

from archsetup.ui.cli.privileged import privileged  # noqa: E402

cli.add_command(privileged)


if __name__ == "__main__":
    cli()
