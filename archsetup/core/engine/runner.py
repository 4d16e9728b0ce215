"""
Step runner — the confirm-gated, fail-fast-or-continue loop.

For every step in order:

    Pending ──decline──▶ Declined                 (warn, next step)
       │
    confirm
       ▼
    guard true? ──▶ Succeeded ("already satisfied")
       │
    action()
       ├── ok ─────▶ Succeeded                    (next step)
       └── raises ─▶ Failed ─┬─ critical ───▶ Aborted (stop)
                             └─ non-critical ▶ next step

The runner never looks at why an action failed. Any ``Exception`` or a
failed ``Receipt`` return value is a failure. ``RunnerFailure`` (no one
left to answer prompts) is the only thing that escapes, with the
partial RunLog attached.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime

from archsetup.core.engine.prompt import Prompter, RunnerFailure
from archsetup.core.engine.reporter import LogReporter, Reporter
from archsetup.core.models.action import Receipt
from archsetup.core.models.step import Outcome, RunLog, Step, StepRecord

logger = logging.getLogger(__name__)

ALREADY_SATISFIED = "already satisfied"


def generate_run_id() -> str:
    """Sortable, unique-enough run identifier."""
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    return f"run-{stamp}-{uuid.uuid4().hex[:6]}"


def _failure_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _execute(step: Step) -> tuple[str | None, str]:
    """Run guard and action. Returns ``(error, detail)``; error None means success."""
    if step.guard is not None and step.guard():
        return None, ALREADY_SATISFIED

    result = step.action()
    if isinstance(result, Receipt) and result.failed:
        return result.error or f"{result.adapter} action {result.action_id} failed", ""
    return None, ""


def run_steps(
    steps: Iterable[Step],
    *,
    prompter: Prompter | None = None,
    reporter: Reporter | None = None,
    auto_yes: bool = False,
    run_id: str | None = None,
    plan: str = "",
) -> RunLog:
    """Offer each step to the operator and execute the confirmed ones.

    Args:
        steps: Ordered steps. Consumed once.
        prompter: Source of confirmations (default: stdin).
        reporter: Where outcome messages go (default: logging).
        auto_yes: Confirm every step without asking.
        run_id: Identifier recorded on the RunLog (default: generated).
        plan: Plan name recorded on the RunLog.

    Returns:
        The completed RunLog.

    Raises:
        RunnerFailure: The input stream closed. ``exc.log`` holds the
            records of the steps finished before it happened.
    """
    reporter = reporter or (prompter.reporter if prompter else LogReporter())
    prompter = prompter or Prompter(reporter=reporter)
    auto_yes = auto_yes or prompter.auto_yes

    log = RunLog(run_id=run_id or generate_run_id(), plan=plan)
    logger.info("Run %s started (plan=%s, auto_yes=%s)", log.run_id, plan or "-", auto_yes)

    try:
        for step in steps:
            if not auto_yes and not prompter.confirm(f"Proceed with '{step.name}'?"):
                log.append(StepRecord(name=step.name, outcome=Outcome.DECLINED, critical=step.critical))
                reporter.warn(f"Skipping {step.name}.")
                logger.info("Step declined: %s", step.name)
                continue

            reporter.info(f"{step.name}...")
            start = time.monotonic()
            try:
                error, detail = _execute(step)
            except RunnerFailure:
                raise
            except Exception as exc:
                logger.debug("Step %r raised", step.name, exc_info=True)
                error, detail = _failure_message(exc), ""
            duration_ms = int((time.monotonic() - start) * 1000)

            if error is None:
                log.append(
                    StepRecord(
                        name=step.name,
                        outcome=Outcome.SUCCEEDED,
                        critical=step.critical,
                        detail=detail,
                        duration_ms=duration_ms,
                    )
                )
                if detail == ALREADY_SATISFIED:
                    reporter.success(f"{step.name}: {ALREADY_SATISFIED}.")
                else:
                    reporter.success(f"{step.name} complete.")
                logger.info("Step succeeded: %s (%d ms)", step.name, duration_ms)
                continue

            log.append(
                StepRecord(
                    name=step.name,
                    outcome=Outcome.FAILED,
                    critical=step.critical,
                    error=error,
                    duration_ms=duration_ms,
                )
            )
            if step.critical:
                reporter.error(f"{step.name} failed: {error}. Aborting.")
                logger.error("Critical step failed, aborting run: %s: %s", step.name, error)
                break

            reporter.warn(f"{step.name} failed: {error}. Continuing.")
            logger.warning("Step failed: %s: %s", step.name, error)

    except RunnerFailure as exc:
        if exc.log is None:
            exc.log = log
        logger.error("Run %s stopped: %s", log.run_id, exc)
        raise
    finally:
        log.complete()

    logger.info(
        "Run %s finished: %s (%d succeeded, %d failed, %d declined)",
        log.run_id, log.status, log.succeeded, log.failed, log.declined,
    )
    return log
