# hermione/transport/downloader.py
from __future__ import annotations
import logging
import tempfile
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from hermione.core.errors import PackageIOError
from hermione.core.redaction import redactText
from hermione.packages.packer import ARCHIVE_SUFFIX, Packer
from .http import Transport

logger = logging.getLogger(__name__)

__all__ = ["Downloader"]



def archiveFileName(url: str) -> str:
    name = PurePosixPath(unquote(urlsplit(url).path)).name
    if not name or name in (".", ".."):
        return f"package{ARCHIVE_SUFFIX}"
    return name



class Downloader:
    """Fetches a remote `.hpkg` into a temporary file and unpacks it into the download root."""

    def __init__(self, transport: Transport, packer: Packer) -> None:
        self.transport = transport
        self.packer = packer

    def download(self, url: str, destRoot: Path) -> Path:
        logger.info("Downloading hermione package from %s", redactText(url))
        payload = self.transport.fetch(url)
        try:
            tmp = tempfile.TemporaryDirectory(prefix="hermione_pkg_", ignore_cleanup_errors=True)
        except OSError as err:
            raise PackageIOError(f"Unable to create a temporary directory for '{redactText(url)}': {err}") from err
        with tmp as tmpDir:
            archivePath = Path(tmpDir) / archiveFileName(url)
            try:
                archivePath.write_bytes(payload)
            except OSError as err:
                raise PackageIOError(f"Unable to save '{archivePath}': {err}") from err
            logger.debug("Saved %d bytes to '%s'", len(payload), archivePath)
            return self.packer.unpack(archivePath, destRoot)
