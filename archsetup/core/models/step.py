"""
Step and RunLog models — what the runner executes and what it records.

A Step is a named, confirm-gated unit of provisioning work. The runner
knows nothing about what a step does: it calls ``action()`` and looks at
whether it raised. Each confirmed or declined step leaves one StepRecord
in the RunLog, in the order the steps were offered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class Outcome(str, Enum):
    """Terminal outcome of a single step."""

    SUCCEEDED = "confirmed-success"
    FAILED = "confirmed-failure"
    DECLINED = "declined"


@dataclass(frozen=True)
class Step:
    """A named unit of provisioning work.

    Attributes:
        name: Shown in the confirmation prompt and the run summary.
        action: Zero-argument callable doing the work. Failure is
            signalled by raising, or by returning a failed Receipt.
        critical: A failure of a critical step ends the run.
        guard: Optional predicate; True means the work is already in
            place and the action is not invoked.
        description: One-liner for ``run --list``.
    """

    name: str
    action: Callable[[], Any]
    critical: bool = False
    guard: Callable[[], bool] | None = None
    description: str = ""


@dataclass
class StepRecord:
    """One RunLog entry."""

    name: str
    outcome: Outcome
    critical: bool = False
    error: str | None = None
    detail: str = ""
    duration_ms: int = 0

    @property
    def failure_kind(self) -> str | None:
        """``critical`` / ``non-critical`` for failures, None otherwise."""
        if self.outcome is not Outcome.FAILED:
            return None
        return "critical" if self.critical else "non-critical"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "critical": self.critical,
            "error": self.error,
            "detail": self.detail,
            "duration_ms": self.duration_ms,
        }


@dataclass
class RunLog:
    """Ordered, append-only record of one run.

    The runner calls ``complete()`` when it stops; after that the log
    is read-only.
    """

    run_id: str = ""
    plan: str = ""
    records: list[StepRecord] = field(default_factory=list)
    aborted_at: str | None = None
    _completed: bool = field(default=False, repr=False)

    def append(self, record: StepRecord) -> None:
        if self._completed:
            raise RuntimeError("RunLog is complete; no further records can be added")
        self.records.append(record)
        if record.failure_kind == "critical":
            self.aborted_at = record.name

    def complete(self) -> None:
        self._completed = True

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def entries(self) -> list[tuple[str, Outcome]]:
        """``(step name, outcome)`` pairs in run order."""
        return [(r.name, r.outcome) for r in self.records]

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.records if r.outcome is Outcome.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.records if r.outcome is Outcome.FAILED)

    @property
    def declined(self) -> int:
        return sum(1 for r in self.records if r.outcome is Outcome.DECLINED)

    @property
    def aborted(self) -> bool:
        return self.aborted_at is not None

    @property
    def status(self) -> str:
        if self.aborted:
            return "aborted"
        if self.failed:
            return "partial"
        return "ok"

    @property
    def exit_code(self) -> int:
        """0 unless a critical step failed."""
        return 1 if self.aborted else 0

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "plan": self.plan,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "declined": self.declined,
            "aborted_at": self.aborted_at,
            "records": [r.to_dict() for r in self.records],
        }
