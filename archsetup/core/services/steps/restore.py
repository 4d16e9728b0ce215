"""
Restore steps — bring a backup made by the ``backup`` plan back.

File names here and in ``backup.py`` must agree; both import them from
this module.
"""

from __future__ import annotations

import json
import logging
import re
import tempfile
from pathlib import Path

from archsetup.core.engine.session import Session, StepError
from archsetup.core.models.config import SetupConfig
from archsetup.core.services.steps.base import find_profile

logger = logging.getLogger(__name__)

SSH_ARCHIVE = "ssh_backup.tar.gz"
FONT_ARCHIVE = "font_backup.zip"
FIREFOX_PLACES_DIR = "firefox_places"
NEWSBOAT_URLS = "newsboat-urls"
SHELL_EXPORTS = "shell-exports"
FSTAB_BACKUP = "fstab.bak"

USER_JS_HEADER = "// START: MY OVERRIDES"
AMO_ADDON_PAGE = "https://addons.mozilla.org/en-US/firefox/addon/{slug}/"
AMO_FILE_URL = re.compile(r'https://addons\.mozilla\.org/firefox/downloads/file/[^"\s]+')


def places_backup_name(profile: str) -> str:
    return f"places_{profile}.sqlite"


# ── Restore Backup ──────────────────────────────────────────────

def _backup_source(session: Session, config: SetupConfig) -> str:
    if config.backup.source:
        return config.backup.source
    answer = session.ask("Get backup from (1:usb/2:network)? [1/2]")
    sources = {"1": "usb", "2": "network"}
    if answer not in sources:
        raise StepError("Invalid option. Choose '1' or '2'.")
    return sources[answer]


def _restore_from_usb(session: Session, config: SetupConfig) -> None:
    session.info("Please plug in your USB device now.")
    session.pause("Press ENTER once the USB is connected...")
    session.run(["lsblk"])
    device = config.backup.device or session.ask("Enter the device path (e.g., /dev/sdX1)")
    if not device:
        raise StepError("No device path given.")

    mount_point = config.backup.mount_point
    session.run(["mkdir", "-p", mount_point], sudo=True)
    session.info(f"Mounting {device} to {mount_point}...")
    session.run(["mount", device, mount_point], sudo=True)
    try:
        receipt = session.copy(mount_point / "backup", config.paths.backup_dir)
        if receipt.skipped:
            session.warn(f"{config.paths.backup_dir} already exists; not overwriting it.")
        else:
            session.success(f"Backup copied to {config.paths.backup_dir}")
    finally:
        session.info("Unmounting USB...")
        session.run(["umount", mount_point], sudo=True, check=False)


def _restore_from_network(session: Session, config: SetupConfig) -> None:
    url = config.backup.url or session.ask("Enter the URL to the encrypted backup.zip")
    if not url:
        raise StepError("No backup URL given.")

    with tempfile.TemporaryDirectory(prefix="archsetup-") as tmp:
        zip_path = Path(tmp) / "backup.zip"
        session.info("Downloading backup from network...")
        session.download(url, zip_path)

        password = session.ask("Enter the password to decrypt backup.zip", secret=True)
        session.info("Extracting encrypted zip file...")
        session.run(
            ["7z", "x", f"-p{password}", zip_path, f"-o{session.home}"],
            redact=[password],
        )
    session.success(f"Backup extracted to {session.home}")


def restore_backup(session: Session, config: SetupConfig) -> None:
    source = _backup_source(session, config)
    if source == "usb":
        _restore_from_usb(session, config)
    elif source == "network":
        _restore_from_network(session, config)
    else:
        raise StepError(f"Unknown backup source: {source!r}")


# ── Individual restores ─────────────────────────────────────────

def restore_ssh_keys(session: Session, config: SetupConfig) -> None:
    ssh_dir = session.home / ".ssh"
    archive = config.paths.backup_dir / SSH_ARCHIVE
    session.mkdir(ssh_dir)

    if session.exists(archive):
        session.archive("tar-extract", archive, dest=session.home)
        session.chmod(ssh_dir, 0o700)
        for key in session.listdir(ssh_dir, pattern="id_*", kind="file"):
            session.chmod(key, 0o644 if key.suffix == ".pub" else 0o600)
        session.success("SSH keys restored from backup.")
    else:
        session.warn("SSH backup not found. A new key will be generated.")

    key = ssh_dir / "id_ed25519"
    if not session.exists(key):
        session.info("Generating new ED25519 SSH key...")
        session.run(["ssh-keygen", "-t", "ed25519", "-C", config.user.email, "-N", "", "-f", key])
        session.info("Please add this public key to your GitHub account:")
        if session.exists(key.with_suffix(".pub")):
            session.info(session.read_file(key.with_suffix(".pub")).strip())
        session.pause("Press ENTER when you have added the key to GitHub...")

    session.info("Testing SSH connection to GitHub...")
    receipt = session.run(["ssh", "-T", "git@github.com"], capture=True, check=False)
    # github exits 1 even after a successful handshake
    if "successfully authenticated" in f"{receipt.output} {receipt.error or ''}":
        session.success("GitHub accepted the SSH key.")
    else:
        session.warn("Could not connect to GitHub. Please verify your SSH key setup.")


def _restore_file(session: Session, src: Path, dest: Path, label: str) -> None:
    """Copy a single backed-up file, asking before replacing an existing one."""
    if not session.exists(src):
        session.warn(f"{label} backup not found at {src}")
        return
    overwrite = False
    if session.exists(dest):
        overwrite = session.confirm(f"Overwrite {dest}?")
        if not overwrite:
            session.info(f"Keeping existing {dest}.")
            return
    session.copy(src, dest, overwrite=overwrite)
    session.success(f"{label} restored.")


def restore_zsh_exports(session: Session, config: SetupConfig) -> None:
    _restore_file(
        session,
        config.paths.backup_dir / SHELL_EXPORTS,
        session.home / ".config" / "shell" / "exports",
        "Zsh exports",
    )


def restore_newsboat_urls(session: Session, config: SetupConfig) -> None:
    _restore_file(
        session,
        config.paths.backup_dir / NEWSBOAT_URLS,
        session.home / ".config" / "newsboat" / "urls",
        "Newsboat URLs",
    )


def setup_fonts(session: Session, config: SetupConfig) -> None:
    """Unpack personal fonts and link TeX Live fonts into ~/.local/share/fonts."""
    fonts_dir = session.home / ".local" / "share" / "fonts"
    session.mkdir(fonts_dir)

    archive = config.paths.backup_dir / FONT_ARCHIVE
    if session.exists(archive):
        receipt = session.archive("zip-extract", archive, dest=fonts_dir, check=False)
        if receipt.failed:
            session.warn(f"Failed to restore personal font backup: {receipt.error}")
    else:
        session.warn(f"Personal font backup not found at {archive}")

    session.info("Linking fonts from TeX Live...")
    for font in config.fonts.texlive:
        font_path = session.find_dir(config.fonts.roots, font)
        if font_path is None:
            session.warn(f"Font not found: {font}")
            continue
        receipt = session.symlink(font_path, fonts_dir / font, check=False)
        if receipt.failed:
            session.warn(f"Could not link {font}: {receipt.error}")

    session.info("Updating font cache...")
    session.run(["fc-cache", "-v"], capture=True)


# ── Firefox ─────────────────────────────────────────────────────

def _ensure_profiles(session: Session, config: SetupConfig, profiles_root: Path) -> None:
    if find_profile(session, profiles_root, "default-release") is None:
        session.info("Starting Firefox headless once to create the default profile...")
        session.run(["timeout", "5", "firefox", "--headless"], check=False)
    for name in config.firefox.profiles:
        if name != "default-release" and find_profile(session, profiles_root, name) is None:
            session.run(["firefox", "--CreateProfile", name], capture=True)


def _apply_user_js(session: Session, config: SetupConfig, profile_path: Path) -> None:
    user_js = profile_path / "user.js"
    session.download(config.firefox.user_js_url, user_js)
    session.chmod(user_js, 0o644)
    for line in [USER_JS_HEADER, *config.firefox.overrides]:
        session.append_line(user_js, line)
    session.success(f"Applied user.js to {profile_path}")


def _dig(data: object, *keys: str) -> object:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _json_member(session: Session, xpi: Path, member: str) -> object:
    text = session.read_zip_member(xpi, member)
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("%s in %s is not valid JSON", member, xpi)
        return None


def _addon_id(session: Session, xpi: Path) -> str | None:
    """Extension ID from manifest.json, or mozilla-recommendation.json as a fallback."""
    manifest = _json_member(session, xpi, "manifest.json")
    addon_id = _dig(manifest, "id") or _dig(manifest, "browser_specific_settings", "gecko", "id")
    if not addon_id:
        addon_id = _dig(_json_member(session, xpi, "mozilla-recommendation.json"), "addon_id")
    return str(addon_id) if addon_id else None


def install_firefox_addons(session: Session, profile_path: Path, addons: list[str]) -> None:
    """Download each add-on from addons.mozilla.org into ``extensions/<id>.xpi``."""
    if not addons:
        return
    extensions = profile_path / "extensions"
    session.info(f"Installing addons for profile: {profile_path}")
    session.mkdir(extensions)

    with tempfile.TemporaryDirectory(prefix="archsetup-") as tmp:
        for slug in addons:
            session.info(f"Processing addon: {slug}")
            try:
                page = session.fetch(AMO_ADDON_PAGE.format(slug=slug))
            except StepError as e:
                session.warn(f"Could not load the page for {slug}: {e}")
                continue
            match = AMO_FILE_URL.search(page)
            if match is None:
                session.warn(f"Could not find download URL for {slug}")
                continue

            url = match.group(0)
            xpi = Path(tmp) / url.rsplit("/", 1)[-1]
            receipt = session.download(url, xpi, check=False)
            if receipt.failed:
                session.warn(f"Could not download {slug}: {receipt.error}")
                continue

            addon_id = _addon_id(session, xpi)
            if addon_id is None:
                session.warn(f"Could not find addon ID for {slug}")
                continue
            session.copy(xpi, extensions / f"{addon_id}.xpi", overwrite=True)
            session.success(f"Installed {slug}")


def setup_firefox(session: Session, config: SetupConfig) -> None:
    profiles_root = session.home / ".mozilla" / "firefox"
    _ensure_profiles(session, config, profiles_root)

    places_dir = config.paths.backup_dir / FIREFOX_PLACES_DIR
    found: list[tuple[str, Path]] = []
    for name in config.firefox.profiles:
        profile_path = find_profile(session, profiles_root, name)
        if profile_path is None:
            session.warn(f"Firefox profile matching '*{name}*' not found.")
            continue
        found.append((name, profile_path))

        places = places_dir / places_backup_name(name)
        if session.exists(places):
            session.copy(places, profile_path / "places.sqlite", overwrite=True)
            session.chmod(profile_path / "places.sqlite", 0o600)
            session.success(f"Restored places for profile '{name}'.")
        else:
            session.warn(f"No places backup for '{name}' at {places}")

        _apply_user_js(session, config, profile_path)
        install_firefox_addons(session, profile_path, config.firefox.addons.get(name, []))

    for name, _ in found:
        session.info(f"Launching '{name}'. Configure it, then close Firefox to continue.")
        session.run(
            [
                "firefox", "-P", name, "--no-remote",
                "about:settings#search",
                "about:addons",
                "https://github.com/yokoffing/filterlists#guidelines",
            ],
            check=False,
        )
