"""
Domain models for archsetup.

    from archsetup.core.models import Action, Receipt, Step, RunLog, SetupConfig
"""

from archsetup.core.models.action import Action, Receipt
from archsetup.core.models.config import (
    BackupConfig,
    FirefoxConfig,
    FontsConfig,
    GrubConfig,
    MirrorConfig,
    PacmanConfig,
    PathsConfig,
    SetupConfig,
    StepPolicy,
    UserConfig,
)
from archsetup.core.models.step import Outcome, RunLog, Step, StepRecord

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # config.py
    "BackupConfig",
    "FirefoxConfig",
    "FontsConfig",
    "GrubConfig",
    "MirrorConfig",
    "PacmanConfig",
    "PathsConfig",
    "SetupConfig",
    "StepPolicy",
    "UserConfig",
    # step.py
    "Outcome",
    "RunLog",
    "Step",
    "StepRecord",
]
