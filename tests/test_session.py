"""
Tests for the Session — dispatch, check semantics, dry-run and helpers.
"""

import sys
import zipfile
from pathlib import Path

import pytest

from archsetup.adapters.registry import AdapterRegistry
from archsetup.core.engine.session import Session, StepError
from archsetup.core.services.steps.base import find_profile, read_list
from tests.helpers import commands


class TestDispatch:
    def test_action_ids_are_sequential(self, make_session, shell_mock):
        session = make_session()
        session.run(["echo", "one"])
        session.run(["echo", "two"])
        assert [ctx.action.id for ctx in shell_mock.call_log] == ["shell-0001", "shell-0002"]
        assert len(session.receipts) == 2

    def test_none_params_are_dropped(self, make_session, shell_mock):
        make_session().run(["ls"])
        params = shell_mock.call_log[0].params
        assert "cwd" not in params
        assert "input" not in params
        assert params["argv"] == ["ls"]

    def test_failed_receipt_raises_step_error(self, make_session, shell_mock):
        shell_mock.set_failure("shell-0001", error="exit status 1")
        session = make_session()
        with pytest.raises(StepError) as exc_info:
            session.run(["pacman", "-Syu"], sudo=True)
        assert "exit status 1" in str(exc_info.value)
        assert exc_info.value.receipt.failed

    def test_check_false_returns_failed_receipt(self, make_session, shell_mock):
        shell_mock.set_failure("shell-0001")
        receipt = make_session().run(["reflector"], check=False)
        assert receipt.failed

    def test_redacted_name(self, make_session, shell_mock):
        make_session().run(["7z", "x", "-phunter2", "backup.zip"], redact=["hunter2"])
        ctx = shell_mock.call_log[0]
        assert ctx.action.name == "7z x -p*** backup.zip"
        assert ctx.params["argv"][2] == "-phunter2"

    def test_privileged_runs_module_through_sudo(self, make_session, shell_mock):
        make_session().privileged("tty-font", "iso07u-16")
        params = shell_mock.call_log[0].params
        assert params["argv"] == [
            sys.executable, "-m", "archsetup.main", "privileged", "tty-font", "iso07u-16",
        ]
        assert params["sudo"] is True

    def test_require_names_missing_tools(self, make_session):
        session = make_session()
        with pytest.raises(StepError) as exc_info:
            session.require("definitely-not-a-tool-xyz", "also-missing-abc")
        assert str(exc_info.value) == (
            "Missing required tools: definitely-not-a-tool-xyz also-missing-abc"
        )

    def test_which_goes_through_the_registry(self, make_session, tmp_path: Path, monkeypatch):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "reflector").write_text("#!/bin/sh\n")
        (bin_dir / "reflector").chmod(0o755)
        monkeypatch.setenv("PATH", str(bin_dir))

        session = make_session()
        assert session.which("reflector") == str(bin_dir / "reflector")
        assert session.which("yay") is None
        assert session.receipts[-1].adapter == "filesystem"


class TestQueryHelpers:
    def test_listdir_and_find_dir(self, make_session, home: Path):
        (home / "fonts" / "public" / "inter").mkdir(parents=True)
        (home / "fonts" / "README").write_text("")
        session = make_session()
        assert session.listdir(home / "fonts", kind="dir") == [home / "fonts" / "public"]
        assert session.find_dir([home / "missing", home], "inter") == home / "fonts" / "public" / "inter"
        assert session.find_dir([home], "lato") is None

    def test_is_executable(self, make_session, home: Path):
        script = home / "zsh_updater"
        script.write_text("#!/bin/sh\n")
        session = make_session()
        assert not session.is_executable(script)
        script.chmod(0o755)
        assert session.is_executable(script)

    def test_read_zip_member(self, make_session, home: Path):
        archive = home / "a.xpi"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("manifest.json", "{}")
        session = make_session()
        assert session.read_zip_member(archive, "manifest.json") == "{}"
        assert session.read_zip_member(archive, "other.json") is None


class TestMockMode:
    """``--mock`` must not read the real machine."""

    @pytest.fixture
    def session(self, config, reporter):
        return Session(AdapterRegistry(mock_mode=True), config, reporter=reporter)

    def test_tools_are_always_found(self, session, monkeypatch):
        monkeypatch.setenv("PATH", "")
        session.require("git", "lazygit", "rsync")
        assert session.which("zsh") == "/usr/bin/zsh"

    def test_files_read_as_empty(self, session, config):
        (config.paths.lists_dir / "pacman.txt").write_text("base\nneovim\n")
        assert read_list(session, config, "pacman.txt") == []
        assert not session.exists(config.paths.lists_dir / "pacman.txt")

    def test_listings_are_empty(self, session, home: Path):
        (home / "abcd.default-release").mkdir()
        assert session.listdir(home) == []
        assert find_profile(session, home, "default-release") is None
        assert session.find_dir([home], "abcd.default-release") is None
        assert not session.is_executable(home)


class TestFilesystemHelpers:
    def test_write_read_exists(self, make_session, home: Path):
        session = make_session()
        target = home / ".config" / "git" / "config"
        assert not session.exists(target)
        session.write_file(target, "[user]\n")
        assert session.exists(target)
        assert session.read_file(target) == "[user]\n"

    def test_read_missing_raises(self, make_session, home: Path):
        with pytest.raises(StepError):
            make_session().read_file(home / "missing")

    def test_append_line_once(self, make_session, home: Path):
        session = make_session()
        target = home / "user.js"
        session.append_line(target, "// START: MY OVERRIDES")
        session.append_line(target, "// START: MY OVERRIDES")
        assert target.read_text() == "// START: MY OVERRIDES\n"

    def test_mkdir_many(self, make_session, home: Path):
        make_session().mkdir(home / "a", home / "b" / "c")
        assert (home / "a").is_dir()
        assert (home / "b" / "c").is_dir()


class TestDryRun:
    def test_writes_are_skipped(self, make_session, home: Path):
        session = make_session(dry_run=True)
        receipt = session.write_file(home / "file", "content")
        assert receipt.skipped
        assert not (home / "file").exists()

    def test_queries_still_answer(self, make_session, home: Path):
        (home / "present").write_text("yes")
        session = make_session(dry_run=True)
        assert session.exists(home / "present")
        assert session.read_file(home / "present") == "yes"

    def test_commands_are_not_executed(self, make_session, shell_mock):
        receipt = make_session(dry_run=True).run(["reboot"], sudo=True)
        assert receipt.skipped
        assert shell_mock.call_count == 0

    def test_read_only_commands_run(self, make_session, shell_mock):
        make_session(dry_run=True).run(["git", "status"], read_only=True)
        assert commands(shell_mock) == [["git", "status"]]


class TestOperator:
    def test_confirm_and_ask_use_the_prompter(self, make_session):
        session = make_session("y", "/dev/sdb1")
        assert session.confirm("Mount Windows EFI for GRUB?") is True
        assert session.ask("Device") == "/dev/sdb1"

    def test_auto_yes_property(self, make_session):
        assert make_session(auto_yes=True).auto_yes is True
        assert make_session().auto_yes is False

    def test_messages_reach_the_reporter(self, make_session, reporter):
        session = make_session()
        session.info("i")
        session.success("s")
        session.warn("w")
        assert reporter.messages == [("info", "i"), ("success", "s"), ("warn", "w")]
