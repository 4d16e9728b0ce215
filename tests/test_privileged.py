"""
Tests for root-side operations — text transforms, file edits and CLI.
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from archsetup.core.services.privileged import (
    AUTOLOGIN_CONF,
    ISSUE,
    ISSUE_BANNER,
    OS_PROBER_LINE,
    PKGLIST_HOOK,
    PrivilegedOpError,
    apply_grub_font,
    apply_pacman_conf,
    apply_tty_font,
    autologin_content,
    edit_grub_defaults,
    pkglist_hook_content,
    set_assignment,
    touchpad_conf_path,
    tweak_pacman_conf,
    uncomment,
    under,
    write_system_file,
)
from archsetup.main import cli

PACMAN_CONF_SAMPLE = """\
[options]
HoldPkg     = pacman glibc
Architecture = auto

# Misc options
#UseSyslog
#Color
#NoProgressBar
CheckSpace
#VerbosePkgLists
#ParallelDownloads = 5

[core]
Include = /etc/pacman.d/mirrorlist
"""


def _etc(root: Path, absolute: str, content: str) -> Path:
    path = under(root, absolute)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestPacmanConf:
    def test_tweaks(self):
        out = tweak_pacman_conf(PACMAN_CONF_SAMPLE, parallel=8)
        lines = out.splitlines()
        assert "Color" in lines
        assert lines[lines.index("Color") + 1] == "ILoveCandy"
        assert "VerbosePkgLists" in lines
        assert "ParallelDownloads = 8" in lines
        assert "#UseSyslog" in lines
        assert out.endswith("\n")

    def test_idempotent(self):
        once = tweak_pacman_conf(PACMAN_CONF_SAMPLE)
        assert tweak_pacman_conf(once) == once
        assert once.count("ILoveCandy") == 1

    def test_apply_backs_up_once(self, tmp_path: Path):
        conf = _etc(tmp_path, "/etc/pacman.conf", PACMAN_CONF_SAMPLE)
        changed, diff = apply_pacman_conf(tmp_path)
        assert changed
        assert "+ILoveCandy" in diff
        backup = conf.with_name("pacman.conf.bak")
        assert backup.read_text() == PACMAN_CONF_SAMPLE

        changed, diff = apply_pacman_conf(tmp_path)
        assert not changed
        assert backup.read_text() == PACMAN_CONF_SAMPLE
        assert "+ILoveCandy" in diff

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(PrivilegedOpError):
            apply_pacman_conf(tmp_path)


class TestAssignments:
    def test_replace(self):
        assert set_assignment("KEYMAP=us\nFONT=lat2\n", "FONT", "iso07u-16") == "KEYMAP=us\nFONT=iso07u-16\n"

    def test_append(self):
        assert set_assignment("KEYMAP=us\n", "FONT", "x") == "KEYMAP=us\n\nFONT=x\n"
        assert set_assignment("", "FONT", "x") == "FONT=x\n"

    def test_uncomment_exact_line_only(self):
        text = "#GRUB_DISABLE_OS_PROBER=false\n# GRUB_DISABLE_OS_PROBER=false\n"
        out = uncomment(text, OS_PROBER_LINE)
        assert out.splitlines() == [OS_PROBER_LINE, "# GRUB_DISABLE_OS_PROBER=false"]


class TestTtyFont:
    def _font(self, root: Path, name: str = "iso07u-16") -> None:
        fonts = root / "usr" / "share" / "kbd" / "consolefonts"
        fonts.mkdir(parents=True)
        (fonts / f"{name}.psfu.gz").write_bytes(b"")

    def test_sets_font_with_backup(self, tmp_path: Path):
        self._font(tmp_path)
        conf = _etc(tmp_path, "/etc/vconsole.conf", "KEYMAP=us\n")

        assert apply_tty_font(tmp_path, "iso07u-16", now=lambda: 1700000000) is True
        assert conf.read_text() == "KEYMAP=us\n\nFONT=iso07u-16\n"
        assert conf.with_name("vconsole.conf.bak.1700000000").read_text() == "KEYMAP=us\n"

    def test_second_run_is_a_no_op(self, tmp_path: Path):
        self._font(tmp_path)
        _etc(tmp_path, "/etc/vconsole.conf", "FONT=iso07u-16\n")
        assert apply_tty_font(tmp_path, "iso07u-16", now=lambda: 1) is False
        assert sorted(p.name for p in (tmp_path / "etc").iterdir()) == ["vconsole.conf"]

    def test_missing_font(self, tmp_path: Path):
        with pytest.raises(PrivilegedOpError, match="Font file not found"):
            apply_tty_font(tmp_path, "nope")


class TestGrubFont:
    def test_edit_defaults(self):
        text = 'GRUB_TIMEOUT=5\n#GRUB_DISABLE_OS_PROBER=false\n'
        out = edit_grub_defaults(text, "/boot/grub/fonts/DejaVuSansMono20.pf2")
        assert "GRUB_FONT=/boot/grub/fonts/DejaVuSansMono20.pf2" in out.splitlines()
        assert OS_PROBER_LINE in out.splitlines()
        assert edit_grub_defaults(out, "/boot/grub/fonts/DejaVuSansMono20.pf2") == out

    def test_apply_runs_tools(self, tmp_path: Path):
        ttf = tmp_path / "DejaVuSansMono.ttf"
        ttf.write_bytes(b"")
        defaults = _etc(tmp_path, "/etc/default/grub", "GRUB_TIMEOUT=5\n")
        ran = []

        font_path = apply_grub_font(tmp_path, ttf, size=24, run=ran.append)

        assert font_path == "/boot/grub/fonts/DejaVuSansMono24.pf2"
        assert ran[0][:3] == ["grub-mkfont", "-s", "24"]
        assert ran[1] == ["grub-mkconfig", "-o", str(tmp_path / "boot" / "grub" / "grub.cfg")]
        assert f"GRUB_FONT={font_path}" in defaults.read_text()

    def test_skip_mkconfig(self, tmp_path: Path):
        ttf = tmp_path / "f.ttf"
        ttf.write_bytes(b"")
        _etc(tmp_path, "/etc/default/grub", "")
        ran = []
        apply_grub_font(tmp_path, ttf, mkconfig=False, run=ran.append)
        assert [argv[0] for argv in ran] == ["grub-mkfont"]

    def test_missing_ttf(self, tmp_path: Path):
        with pytest.raises(PrivilegedOpError, match="TTF font not found"):
            apply_grub_font(tmp_path, tmp_path / "none.ttf", run=lambda argv: None)


class TestGeneratedFiles:
    def test_touchpad_prefix(self):
        assert touchpad_conf_path("30") == "/etc/X11/xorg.conf.d/30-touchpad.conf"
        for bad in ("3", "300", "ab", ""):
            with pytest.raises(PrivilegedOpError):
                touchpad_conf_path(bad)

    def test_autologin_user_validation(self):
        assert "-o '-p -- alice'" in autologin_content("alice")
        with pytest.raises(PrivilegedOpError):
            autologin_content("alice; rm -rf /")

    def test_pkglist_hook_mentions_save_dir(self):
        content = pkglist_hook_content("/home/a/.local/src/arch-install")
        assert "> /home/a/.local/src/arch-install/pacman.txt" in content
        assert "When = PostTransaction" in content

    def test_issue_banner_has_escape_codes(self):
        assert "\x1b[H\x1b[2J" in ISSUE_BANNER
        assert "^[" not in ISSUE_BANNER

    def test_write_system_file_converges(self, tmp_path: Path):
        target, changed = write_system_file(tmp_path, AUTOLOGIN_CONF, "x\n")
        assert changed
        assert target == tmp_path / AUTOLOGIN_CONF.lstrip("/")
        assert write_system_file(tmp_path, AUTOLOGIN_CONF, "x\n")[1] is False


class TestPrivilegedCLI:
    def _invoke(self, *args: str):
        return CliRunner().invoke(cli, ["privileged", *args])

    def test_hidden_from_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert "privileged" not in result.output

    def test_touchpad(self, tmp_path: Path):
        result = self._invoke("touchpad", "--root", str(tmp_path), "30")
        assert result.exit_code == 0
        assert "SUCCESS:" in result.output
        assert (tmp_path / "etc/X11/xorg.conf.d/30-touchpad.conf").read_text().startswith('Section "InputClass"')

    def test_touchpad_bad_prefix(self, tmp_path: Path):
        result = self._invoke("touchpad", "--root", str(tmp_path), "3")
        assert result.exit_code == 1
        assert "ERROR: Invalid prefix" in result.output

    def test_getty_issue(self, tmp_path: Path):
        result = self._invoke("getty-issue", "--root", str(tmp_path))
        assert result.exit_code == 0
        assert under(tmp_path, ISSUE).read_text() == ISSUE_BANNER

    def test_pkglist_hook(self, tmp_path: Path):
        result = self._invoke("pkglist-hook", "--root", str(tmp_path), "/srv/lists")
        assert result.exit_code == 0
        assert under(tmp_path, PKGLIST_HOOK).read_text() == pkglist_hook_content("/srv/lists")

    def test_pacman_conf(self, tmp_path: Path):
        _etc(tmp_path, "/etc/pacman.conf", PACMAN_CONF_SAMPLE)
        result = self._invoke("pacman-conf", "--root", str(tmp_path), "--parallel", "3")
        assert result.exit_code == 0
        assert "ParallelDownloads = 3" in under(tmp_path, "/etc/pacman.conf").read_text()

        again = self._invoke("pacman-conf", "--root", str(tmp_path), "--parallel", "3")
        assert "already tweaked" in again.output

    def test_pacman_conf_missing(self, tmp_path: Path):
        result = self._invoke("pacman-conf", "--root", str(tmp_path))
        assert result.exit_code == 1
        assert "ERROR:" in result.output

    def test_autologin(self, tmp_path: Path):
        result = self._invoke("autologin", "--root", str(tmp_path), "alice")
        assert result.exit_code == 0
        assert "alice" in under(tmp_path, AUTOLOGIN_CONF).read_text()
