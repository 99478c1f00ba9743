# hermione/repositories/remote.py
from __future__ import annotations
import logging
from dataclasses import dataclass

from hermione.core.errors import ManifestError
from hermione.core.redaction import redactText
from hermione.transport.http import Transport
from .models import RepositoryContents

logger = logging.getLogger(__name__)

__all__ = ["RemoteRepository"]



@dataclass(frozen=True)
class RemoteRepository:
    url: str

    def downloadContents(self, transport: Transport) -> RepositoryContents:
        safeUrl = redactText(self.url)
        logger.info("Fetching repository %s", safeUrl)
        raw = transport.fetch(self.url)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise ManifestError(f"Repository {safeUrl} is not UTF-8 text") from err
        contents = RepositoryContents.fromToml(text, source=safeUrl)
        logger.debug("Repository '%s' lists %d package(s)", contents.name, len(contents.available_packages))
        return contents
