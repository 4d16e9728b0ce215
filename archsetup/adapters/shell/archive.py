"""
Archive adapter — gzip tarballs and zip files.

Backups are written with tarfile/zipfile directly rather than shelling
out to tar and zip, so a backup run only needs those binaries for the
things Python cannot do (7z encryption).
"""

from __future__ import annotations

import logging
import tarfile
import zipfile
from pathlib import Path

from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

OPERATIONS = {"tar-create", "tar-extract", "zip-create", "zip-extract", "zip-read"}


class ArchiveAdapter(Adapter):
    """Create and extract archives.

    Action params:
        operation (str): One of OPERATIONS.
        path (str): The archive file.
        src (str): Directory or file to pack ('*-create').
        arcname (str): Name of ``src`` inside a tarball (default: its basename).
        dest (str): Directory to unpack into ('*-extract').
        member (str): File inside a zip whose text 'zip-read' returns.
    """

    @property
    def name(self) -> str:
        return "archive"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.params
        operation = params.get("operation", "")
        if operation not in OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(OPERATIONS))}"
        if not params.get("path"):
            return False, "Missing required param: 'path'"
        if operation.endswith("-create") and not params.get("src"):
            return False, f"Missing required param: 'src' for {operation}"
        if operation.endswith("-extract") and not params.get("dest"):
            return False, f"Missing required param: 'dest' for {operation}"
        if operation == "zip-read" and not params.get("member"):
            return False, "Missing required param: 'member' for zip-read"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        operation = params["operation"]
        archive = Path(params["path"]).expanduser()
        if operation == "zip-read":
            return self._zip_read(context, archive, params["member"])

        try:
            if operation == "tar-create":
                count = self._tar_create(archive, Path(params["src"]).expanduser(), params.get("arcname"))
            elif operation == "zip-create":
                count = self._zip_create(archive, Path(params["src"]).expanduser())
            else:
                if not archive.is_file():
                    return Receipt.failure(
                        adapter=self.name,
                        action_id=context.action.id,
                        error=f"Archive not found: {archive}",
                    )
                dest = Path(params["dest"]).expanduser()
                dest.mkdir(parents=True, exist_ok=True)
                if operation == "tar-extract":
                    count = self._tar_extract(archive, dest)
                else:
                    count = self._zip_extract(archive, dest)
        except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{operation} failed for {archive}: {e}",
                metadata={"operation": operation, "path": str(archive)},
            )

        logger.debug("%s %s: %d entries", operation, archive, count)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"{operation}: {archive} ({count} entries)",
            metadata={"operation": operation, "path": str(archive), "entries": count},
        )

    @staticmethod
    def _tar_create(archive: Path, src: Path, arcname: str | None) -> int:
        if not src.exists():
            raise FileNotFoundError(f"Source not found: {src}")
        archive.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(str(src), arcname=arcname or src.name)
            return len(tar.getmembers())

    @staticmethod
    def _tar_extract(archive: Path, dest: Path) -> int:
        with tarfile.open(archive, "r:*") as tar:
            members = tar.getmembers()
            tar.extractall(dest, filter="data")
        return len(members)

    @staticmethod
    def _zip_create(archive: Path, src: Path) -> int:
        if not src.is_dir():
            raise FileNotFoundError(f"Source directory not found: {src}")
        archive.parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(src.rglob("*")):
                if path.resolve() == archive.resolve():
                    continue
                zf.write(path, arcname=str(path.relative_to(src)))
                count += 1
        return count

    @staticmethod
    def _zip_extract(archive: Path, dest: Path) -> int:
        with zipfile.ZipFile(archive) as zf:
            names = zf.namelist()
            zf.extractall(dest)
        return len(names)

    def _zip_read(self, context: ExecutionContext, archive: Path, member: str) -> Receipt:
        metadata = {"operation": "zip-read", "path": str(archive), "member": member}
        try:
            with zipfile.ZipFile(archive) as zf:
                text = zf.read(member).decode("utf-8")
        except KeyError:
            return Receipt.failure(
                self.name, context.action.id, f"{member} not found in {archive}", metadata=metadata,
            )
        except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as e:
            return Receipt.failure(
                self.name, context.action.id, f"zip-read failed for {archive}: {e}", metadata=metadata,
            )
        return Receipt.success(self.name, context.action.id, output=text, metadata=metadata)
