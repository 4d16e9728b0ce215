"""
Configuration loader — reads archsetup.yml into a SetupConfig.

Lookup order:
    explicit path  >  ARCHSETUP_CONFIG env var  >  archsetup.yml in cwd
    or any parent  >  ~/.config/archsetup/archsetup.yml

When none of those exist the built-in defaults are used; a machine
with no config file at all can still be provisioned.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from archsetup.core.models.config import SetupConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "archsetup.yml"
CONFIG_ENV = "ARCHSETUP_CONFIG"


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for archsetup.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to archsetup.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def user_config_file() -> Path:
    """Per-user fallback location."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "archsetup" / CONFIG_FILE


def resolve_config_path(path: Path | None = None) -> Path | None:
    """Apply the lookup order; None means "use defaults"."""
    if path is not None:
        return path

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()

    found = find_config_file()
    if found is not None:
        return found

    fallback = user_config_file()
    return fallback if fallback.is_file() else None


def load_config(path: Path | None = None) -> SetupConfig:
    """Load and validate the setup configuration.

    Args:
        path: Explicit path to archsetup.yml. If None, the lookup order applies.

    Returns:
        Validated SetupConfig.

    Raises:
        ConfigError: If an explicitly named file is missing, or any file is invalid.
    """
    path = resolve_config_path(path)

    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return SetupConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = SetupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s (%d step overrides)", path, len(config.steps))
    return config
