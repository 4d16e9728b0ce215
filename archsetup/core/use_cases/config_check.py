"""
Config check use case — validate archsetup.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from archsetup.core.config.loader import ConfigError, load_config, resolve_config_path
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.steps import step_names

LIST_FILES = ("pacman.txt", "aur.txt", "npm.txt", "pipx.txt")


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: SetupConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "dotfiles_repo": self.config.dotfiles_repo if self.config else None,
            "lists_dir": str(self.config.paths.lists_dir) if self.config else None,
            "step_overrides": len(self.config.steps) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate the setup configuration and report issues.

    Args:
        config_path: Optional explicit path to archsetup.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()
    result.config_path = resolve_config_path(config_path)

    try:
        config = load_config(result.config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.config = config

    if result.config_path is None:
        result.warnings.append("No archsetup.yml found; using built-in defaults.")

    known = step_names()
    for name in sorted(config.steps):
        if name not in known:
            result.warnings.append(f"Unknown step in 'steps': {name!r}")

    lists_dir = Path(config.paths.lists_dir)
    for filename in LIST_FILES:
        if not (lists_dir / filename).is_file():
            result.warnings.append(f"Package list not found: {lists_dir / filename}")

    if not config.dotfiles_repo:
        result.warnings.append("dotfiles_repo is empty; 'Clone and Stow Dotfiles' will fail.")

    if not (config.user.name and config.user.email):
        result.warnings.append("user.name / user.email not set; git setup will ask for them.")

    if config.touchpad_prefix and not (
        len(config.touchpad_prefix) == 2 and config.touchpad_prefix.isdigit()
    ):
        result.errors.append(f"touchpad_prefix must be two digits, got {config.touchpad_prefix!r}")

    if config.backup.source not in ("", "usb", "network"):
        result.errors.append(f"backup.source must be 'usb' or 'network', got {config.backup.source!r}")

    result.valid = len(result.errors) == 0
    return result
