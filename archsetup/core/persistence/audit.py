"""
Audit ledger — append-only history of runs.

Each run appends one NDJSON line to ``<state_dir>/audit.ndjson`` with the
RunLog summary: plan, status, counts, the step that aborted the run and
the per-step outcomes. ``archsetup history`` reads it back.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from archsetup.core.models.step import RunLog

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    plan: str = ""

    status: str = ""               # ok, partial, aborted, runner-failure
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_failed: int = 0
    steps_declined: int = 0
    aborted_at: str | None = None
    duration_ms: int = 0

    outcomes: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_run_log(
        cls,
        log: RunLog,
        *,
        duration_ms: int = 0,
        status: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Summarise a RunLog. ``status`` overrides the log's own status."""
        return cls(
            run_id=log.run_id,
            plan=log.plan,
            status=status or log.status,
            steps_total=log.total,
            steps_succeeded=log.succeeded,
            steps_failed=log.failed,
            steps_declined=log.declined,
            aborted_at=log.aborted_at,
            duration_ms=duration_ms,
            outcomes=[{"name": r.name, "outcome": r.outcome.value} for r in log.records],
            errors=[f"{r.name}: {r.error}" for r in log.records if r.error],
            context=context or {},
        )


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif state_dir is not None:
            self._path = state_dir / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(DEFAULT_AUDIT_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append an audit entry to the ledger.

        Returns False when the ledger could not be written. A run is
        never failed because its history could not be recorded.
        """
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit entry to %s: %s", self._path, e)
            return False

        logger.debug("Audit entry written: %s/%s", entry.plan, entry.run_id)
        return True

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count non-empty lines without parsing them."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
