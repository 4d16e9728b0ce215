"""
Setup configuration — the explicit inputs every step reads.

Loaded from archsetup.yml. Everything has a default, so an empty file
(or no file at all) describes a usable setup. Paths left unset are
derived from ``paths.home`` so a test or a chroot can relocate the
whole tree by setting one value.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


def _expand(value: object) -> object:
    if isinstance(value, str):
        return Path(value).expanduser()
    if isinstance(value, Path):
        return value.expanduser()
    return value


class UserConfig(BaseModel):
    """Identity used for git and ssh-keygen."""

    name: str = ""
    email: str = ""


class PathsConfig(BaseModel):
    """Filesystem locations. Unset paths are derived from ``home``."""

    home: Path = Field(default_factory=Path.home)
    backup_dir: Path | None = None      # default: <home>/backup
    lists_dir: Path | None = None       # default: cwd (pacman.txt, aur.txt, ...)
    src_dir: Path | None = None         # default: <home>/.local/src
    state_dir: Path | None = None       # default: <home>/.local/state/archsetup

    @field_validator("home", "backup_dir", "lists_dir", "src_dir", "state_dir", mode="before")
    @classmethod
    def _expand_user(cls, value: object) -> object:
        return _expand(value)

    @model_validator(mode="after")
    def _derive_defaults(self) -> PathsConfig:
        if self.backup_dir is None:
            self.backup_dir = self.home / "backup"
        if self.lists_dir is None:
            self.lists_dir = Path.cwd()
        if self.src_dir is None:
            self.src_dir = self.home / ".local" / "src"
        if self.state_dir is None:
            self.state_dir = self.home / ".local" / "state" / "archsetup"
        return self


class MirrorConfig(BaseModel):
    """reflector ranking options."""

    fastest: int = 30
    latest: int = 30
    number: int = 10
    download_timeout: int = 30


class PacmanConfig(BaseModel):
    parallel_downloads: int = 5


class FontsConfig(BaseModel):
    """Fonts linked from the TeX Live tree into ~/.local/share/fonts."""

    roots: list[Path] = Field(
        default_factory=lambda: [
            Path("/usr/share/texmf-dist/fonts/opentype"),
            Path("/usr/share/texmf-dist/fonts/truetype"),
        ]
    )
    texlive: list[str] = Field(
        default_factory=lambda: [
            "cantarell", "plex", "fontawesome", "garamond-libre", "garamond-math",
            "gfsbodoni", "gfsdidot", "inconsolata", "inter", "kpfonts-otf",
            "libertine", "libertinus-fonts", "montserrat", "newcomputermodern",
            "stix2-otf", "tex-gyre", "tex-gyre-math", "opensans",
            "librebaskerville", "dejavu", "lato",
        ]
    )


class FirefoxConfig(BaseModel):
    profiles: list[str] = Field(default_factory=lambda: ["default-release", "olddefault"])
    # addons.mozilla.org slugs installed into each profile
    addons: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "default-release": [
                "ublock-origin", "sponsorblock", "bitwarden-password-manager",
                "turbo-download-manager", "tridactyl-vim", "youtube-shorts-block",
                "sci-hub-addon",
            ],
            "olddefault": [
                "ublock-origin", "bitwarden-password-manager", "turbo-download-manager",
                "youtube-shorts-block", "proton-vpn-firefox-extension", "4chanx", "imagus",
            ],
        }
    )
    user_js_url: str = "https://raw.githubusercontent.com/yokoffing/Betterfox/main/user.js"
    overrides: list[str] = Field(
        default_factory=lambda: [
            'user_pref("browser.tabs.closeWindowWithLastTab", false);',
            'user_pref("layout.css.devPixelsPerPx", "0.95");',
            'user_pref("media.videocontrols.picture-in-picture.video-toggle.enabled", false);',
            'user_pref("browser.startup.homepage", "chrome://browser/content/blanktab.html");',
            'user_pref("browser.newtabpage.enabled", false);',
            'user_pref("ui.context_menus.after_mouseup", true);',
        ]
    )


class GrubConfig(BaseModel):
    font_size: int = 20
    ttf: Path | None = None             # default: <home>/.local/share/fonts/dejavu/DejaVuSansMono.ttf

    @field_validator("ttf", mode="before")
    @classmethod
    def _expand_user(cls, value: object) -> object:
        return _expand(value)


class BackupConfig(BaseModel):
    """Where a restore reads from and where a backup goes."""

    source: str = ""                    # "usb" | "network" | "" (ask)
    url: str = ""                       # encrypted backup.zip for network restores
    device: str = ""                    # block device for usb restores
    mount_point: Path = Path("/mnt/usb1")
    usb_glob: str = "/mnt/usb*"


class StepPolicy(BaseModel):
    """Per-step override of the catalogue defaults."""

    critical: bool | None = None
    enabled: bool = True


class SetupConfig(BaseModel):
    """Root configuration — loaded from archsetup.yml."""

    version: int = 1

    user: UserConfig = Field(default_factory=UserConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    dotfiles_repo: str = ""
    mirrors: MirrorConfig = Field(default_factory=MirrorConfig)
    pacman: PacmanConfig = Field(default_factory=PacmanConfig)
    fonts: FontsConfig = Field(default_factory=FontsConfig)
    firefox: FirefoxConfig = Field(default_factory=FirefoxConfig)
    grub: GrubConfig = Field(default_factory=GrubConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    tty_font: str = "iso07u-16"
    touchpad_prefix: str = ""

    steps: dict[str, StepPolicy] = Field(default_factory=dict)

    def policy_for(self, step_name: str) -> StepPolicy:
        """Look up the override for a step, or an empty policy."""
        return self.steps.get(step_name) or StepPolicy()

    @property
    def grub_ttf(self) -> Path:
        if self.grub.ttf is not None:
            return self.grub.ttf
        return self.paths.home / ".local" / "share" / "fonts" / "dejavu" / "DejaVuSansMono.ttf"
