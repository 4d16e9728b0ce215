"""
HTTP adapter — download a URL to a file, or fetch a page as text.

Downloads land in a sibling temp file first and are renamed into place,
so an interrupted transfer never leaves a truncated user.js or script
behind. Fetches are for small HTML pages that a step scrapes for the
real download link.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
import urllib.error
import urllib.request
from pathlib import Path

from archsetup import __version__
from archsetup.adapters.base import Adapter, ExecutionContext
from archsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

_USER_AGENT = f"archsetup/{__version__}"
_CHUNK = 64 * 1024
_FETCH_LIMIT = 4 * 1024 * 1024

OPERATIONS = {"download", "fetch"}


class DownloadAdapter(Adapter):
    """Download or fetch a URL.

    Action params:
        operation (str): 'download' (default) or 'fetch'.
        url (str): http(s) URL.
        dest (str): Destination file path ('download' only).
        timeout (int): Socket timeout in seconds (default: 60).
    """

    @property
    def name(self) -> str:
        return "http"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "download")
        if operation not in OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(OPERATIONS))}"
        url = context.params.get("url", "")
        if not url:
            return False, "Missing required param: 'url'"
        if not url.startswith(("http://", "https://")):
            return False, f"Unsupported URL scheme: {url}"
        if operation == "download" and not context.params.get("dest"):
            return False, "Missing required param: 'dest'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.params.get("operation", "download") == "fetch":
            return self._fetch(context)
        return self._download(context)

    def _request(self, url: str) -> urllib.request.Request:
        return urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})

    def _fetch(self, context: ExecutionContext) -> Receipt:
        url = context.params["url"]
        timeout = context.params.get("timeout", 60)
        logger.debug("Fetching %s", url)
        try:
            with urllib.request.urlopen(self._request(url), timeout=timeout) as resp:
                body = resp.read(_FETCH_LIMIT)
        except (urllib.error.URLError, OSError) as e:
            return Receipt.failure(
                self.name, context.action.id, f"Fetch failed for {url}: {e}", metadata={"url": url},
            )
        return Receipt.success(
            self.name,
            context.action.id,
            output=body.decode("utf-8", errors="replace"),
            metadata={"url": url, "size": len(body)},
        )

    def _download(self, context: ExecutionContext) -> Receipt:
        url = context.params["url"]
        dest = Path(context.params["dest"]).expanduser()
        timeout = context.params.get("timeout", 60)

        logger.debug("Downloading %s -> %s", url, dest)
        start = time.monotonic()
        dest.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.", suffix=".part")
        size = 0
        try:
            with os.fdopen(fd, "wb") as out, urllib.request.urlopen(self._request(url), timeout=timeout) as resp:
                for chunk in iter(lambda: resp.read(_CHUNK), b""):
                    out.write(chunk)
                    size += len(chunk)
            os.replace(tmp_path, dest)
        except (urllib.error.URLError, OSError) as e:
            Path(tmp_path).unlink(missing_ok=True)
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Download failed for {url}: {e}",
                metadata={"url": url, "dest": str(dest)},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Downloaded {size} bytes to {dest}",
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"url": url, "dest": str(dest), "size": size},
        )
