"""
Tests for persistence — audit ledger and atomic writes.
"""

import json
import os
from pathlib import Path

from archsetup.core.models.step import Outcome, RunLog, StepRecord
from archsetup.core.persistence.atomic import atomic_write_text
from archsetup.core.persistence.audit import AuditEntry, AuditWriter


def _log() -> RunLog:
    log = RunLog(run_id="run-1", plan="pre-gui")
    log.append(StepRecord(name="Pacman Configuration", outcome=Outcome.SUCCEEDED))
    log.append(StepRecord(name="Git Configuration", outcome=Outcome.DECLINED))
    log.append(
        StepRecord(name="Update Mirrors", outcome=Outcome.FAILED, critical=True, error="reflector failed")
    )
    log.complete()
    return log


class TestAuditEntry:
    def test_from_run_log(self):
        entry = AuditEntry.from_run_log(_log(), duration_ms=1200, context={"mock": True})
        assert entry.run_id == "run-1"
        assert entry.plan == "pre-gui"
        assert entry.status == "aborted"
        assert (entry.steps_total, entry.steps_succeeded, entry.steps_failed, entry.steps_declined) == (3, 1, 1, 1)
        assert entry.aborted_at == "Update Mirrors"
        assert entry.errors == ["Update Mirrors: reflector failed"]
        assert entry.outcomes[1] == {"name": "Git Configuration", "outcome": "declined"}
        assert entry.context == {"mock": True}

    def test_status_override(self):
        entry = AuditEntry.from_run_log(_log(), status="runner-failure")
        assert entry.status == "runner-failure"


class TestAuditWriter:
    def test_write_and_read(self, tmp_state_dir: Path):
        writer = AuditWriter(state_dir=tmp_state_dir)
        assert writer.write(AuditEntry.from_run_log(_log()))
        assert writer.path == tmp_state_dir / "audit.ndjson"

        entries = writer.read_all()
        assert len(entries) == 1
        assert entries[0].aborted_at == "Update Mirrors"

    def test_one_json_line_per_entry(self, tmp_state_dir: Path):
        writer = AuditWriter(state_dir=tmp_state_dir)
        writer.write(AuditEntry(plan="backup", status="ok"))
        writer.write(AuditEntry(plan="post-gui", status="partial"))
        lines = writer.path.read_text().splitlines()
        assert [json.loads(line)["plan"] for line in lines] == ["backup", "post-gui"]
        assert writer.entry_count() == 2

    def test_corrupt_lines_are_skipped(self, tmp_state_dir: Path):
        writer = AuditWriter(state_dir=tmp_state_dir)
        writer.write(AuditEntry(plan="backup"))
        with writer.path.open("a") as f:
            f.write("not json {{{\n")
            f.write('{"steps_total": "many"}\n')
        writer.write(AuditEntry(plan="pre-gui"))
        assert [e.plan for e in writer.read_all()] == ["backup", "pre-gui"]

    def test_read_recent(self, tmp_state_dir: Path):
        writer = AuditWriter(state_dir=tmp_state_dir)
        for i in range(5):
            writer.write(AuditEntry(run_id=f"run-{i}"))
        assert [e.run_id for e in writer.read_recent(2)] == ["run-3", "run-4"]
        assert writer.read_recent(0) == []

    def test_missing_ledger(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "none.ndjson")
        assert writer.read_all() == []
        assert writer.entry_count() == 0

    def test_unwritable_ledger_returns_false(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = AuditWriter(state_dir=blocker)
        assert writer.write(AuditEntry()) is False


class TestAtomicWrite:
    def test_creates_with_default_mode(self, tmp_path: Path):
        target = tmp_path / "etc" / "issue"
        atomic_write_text(target, "hello\n")
        assert target.read_text() == "hello\n"
        assert target.stat().st_mode & 0o777 == 0o644

    def test_keeps_existing_mode(self, tmp_path: Path):
        target = tmp_path / "conf"
        target.write_text("old")
        os.chmod(target, 0o600)
        atomic_write_text(target, "new")
        assert target.read_text() == "new"
        assert target.stat().st_mode & 0o777 == 0o600

    def test_no_temp_files_left(self, tmp_path: Path):
        atomic_write_text(tmp_path / "a", "x", mode=0o640)
        assert [p.name for p in tmp_path.iterdir()] == ["a"]
        assert (tmp_path / "a").stat().st_mode & 0o777 == 0o640
