"""
Step catalogue — the three provisioning plans.

    pre-gui    fresh install, before a graphical session exists
    post-gui   inside the new desktop
    backup     collect the current machine into a backup directory

``build_plan`` applies the per-step config policy (``steps.<name>``:
``critical`` overrides the default, ``enabled: false`` drops the step)
and binds each function to the session.
"""

from __future__ import annotations

import logging
from functools import partial

from archsetup.core.engine.session import Session
from archsetup.core.models.config import SetupConfig
from archsetup.core.models.step import Step
from archsetup.core.services.steps import backup, build, dotfiles, packages, restore, system
from archsetup.core.services.steps.base import StepSpec

logger = logging.getLogger(__name__)

DEFAULT_PLAN = "pre-gui"

PLANS: dict[str, list[StepSpec]] = {
    "pre-gui": [
        StepSpec("Pacman Configuration", packages.configure_pacman,
                 description="Color, ILoveCandy, VerbosePkgLists, ParallelDownloads"),
        StepSpec("Update Mirrors", packages.update_mirrors, critical=True,
                 description="Rank mirrors with reflector"),
        StepSpec("Install Pacman Packages", packages.install_pacman_packages, critical=True,
                 description="pacman -S --needed from pacman.txt"),
        StepSpec("Restore Backup", restore.restore_backup, critical=True,
                 description="Copy the backup from USB or download it"),
        StepSpec("Git Configuration", dotfiles.configure_git,
                 description="Global git identity and defaults"),
        StepSpec("Restore SSH Keys", restore.restore_ssh_keys,
                 description="Unpack ~/.ssh or generate a new key"),
        StepSpec("Clone and Stow Dotfiles", dotfiles.clone_and_stow_dotfiles, critical=True,
                 description="Clone the dotfiles repo and run stower"),
        StepSpec("Zsh Configuration", dotfiles.configure_zsh,
                 description="Login shell and zsh plugins"),
        StepSpec("Restore zsh exports", restore.restore_zsh_exports),
        StepSpec("Compile Suckless Utilities", build.compile_suckless,
                 description="dmenu, dwm, dwmblocks, st, slock"),
        StepSpec("Setup fonts", restore.setup_fonts,
                 description="Personal fonts and TeX Live links"),
        StepSpec("Configure Touchpad", system.configure_touchpad,
                 description="libinput tapping for X11"),
        StepSpec("Pacman pkglist hook", packages.install_pkglist_hook,
                 guard=packages.pkglist_hook_installed,
                 description="Keep pacman.txt and aur.txt up to date"),
        StepSpec("Reboot System", system.reboot),
    ],
    "post-gui": [
        StepSpec("Apply Theme", build.apply_theme, description="Run themeflip"),
        StepSpec("Install AUR Helper (yay) and Packages", packages.install_aur_packages,
                 critical=True, description="yay-bin, then aur.txt"),
        StepSpec("Compile Tools from Source", build.compile_from_source,
                 description="lf-file-handler, fetch, fast-files, pandoc-sidenote"),
        StepSpec("Install npm and pipx Packages", packages.install_npm_pipx_packages),
        StepSpec("Setup Neovim (Lazy Sync)", build.setup_neovim),
        StepSpec("Install mpv scripts", build.install_mpv_scripts,
                 description="uosc, thumbfast and ikatube"),
        StepSpec("Restore newsboat URLs", restore.restore_newsboat_urls),
        StepSpec("Change TTY font", system.change_tty_font, guard=system.tty_font_set),
        StepSpec("GRUB Configuration", system.configure_grub,
                 description="Bigger font, os-prober, optional theme"),
        StepSpec("Install SilentSDDM Theme", system.install_sddm_theme),
        StepSpec("Update /etc/issue", system.update_issue, guard=system.issue_in_place),
        StepSpec("Setup auto-login (skip username prompt)", system.setup_autologin),
        StepSpec("Setup Firefox", restore.setup_firefox,
                 description="Places, user.js, overrides and add-ons"),
        StepSpec("Setup /etc/fstab", system.setup_fstab),
        StepSpec("Perform miscellaneous setup", build.misc_setup),
        StepSpec("Reboot", system.reboot),
    ],
    "backup": [
        StepSpec("Check backup tools", backup.check_backup_tools, critical=True),
        StepSpec("Commit and copy dotfiles", backup.commit_and_copy_dotfiles),
        StepSpec("Backup fonts", backup.backup_fonts),
        StepSpec("Backup Firefox places", backup.backup_firefox_places),
        StepSpec("Backup newsboat URLs", backup.backup_newsboat_urls),
        StepSpec("Backup zsh exports", backup.backup_zsh_exports),
        StepSpec("Backup SSH keys", backup.backup_ssh_keys),
        StepSpec("Backup /etc/fstab", backup.backup_fstab, critical=True),
        StepSpec("Transfer backup", backup.transfer_backup,
                 description="rsync to a mounted USB drive or 7z-encrypt"),
    ],
}


class UnknownPlanError(ValueError):
    """Raised for a plan name that is not in PLANS."""


def plan_names() -> list[str]:
    return list(PLANS)


def step_names() -> set[str]:
    """Every step name across all plans (for config validation)."""
    return {spec.name for specs in PLANS.values() for spec in specs}


def get_plan(name: str) -> list[StepSpec]:
    if name not in PLANS:
        raise UnknownPlanError(f"Unknown plan '{name}'. Available: {', '.join(PLANS)}")
    return PLANS[name]


def build_plan(name: str, session: Session, config: SetupConfig) -> list[Step]:
    """Turn a plan's catalogue entries into runner Steps bound to ``session``."""
    steps = []
    for spec in get_plan(name):
        policy = config.policy_for(spec.name)
        if not policy.enabled:
            logger.info("Step disabled by config: %s", spec.name)
            continue
        critical = spec.critical if policy.critical is None else policy.critical
        steps.append(
            Step(
                name=spec.name,
                action=partial(spec.func, session, config),
                critical=critical,
                guard=partial(spec.guard, session, config) if spec.guard else None,
                description=spec.description,
            )
        )
    return steps
