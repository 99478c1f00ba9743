# hermione/repositories/publish.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from urllib.parse import urlsplit

from hermione.core.errors import HermioneError, PackageIOError
from hermione.packages.packer import Packer
from .models import AvailablePackage, AvailableVersion, RepositoryContents

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_REPO_FILE", "buildRepositoryContents", "publishRepository"]

DEFAULT_REPO_FILE = "repo.hermione.toml"



def _joinUrl(prefix: str, relative: str) -> str:
    return prefix.rstrip("/") + "/" + relative.lstrip("/")



def buildRepositoryContents(packagesDir: str | Path, urlPrefix: str, name: str) -> RepositoryContents:
    """
    Describes every valid `.hpkg` under `packagesDir`. Archive URLs are
    `urlPrefix` joined with the archive path relative to `packagesDir`.
    Packages come out sorted by id, versions in discovery order.
    """
    parts = urlsplit(urlPrefix)
    if parts.scheme not in ("http", "https", "file") or not (parts.netloc or parts.scheme == "file"):
        raise HermioneError(f"Invalid or malformed prefix URL '{urlPrefix}'")

    packagesDir = Path(packagesDir)
    grouped: dict[str, list[AvailableVersion]] = {}
    for archive, manifest in Packer.collectManifests(packagesDir):
        relative = archive.relative_to(packagesDir).as_posix()
        versions = grouped.setdefault(manifest.id, [])
        if any(entry.version == manifest.version for entry in versions):
            logger.warning("Duplicate %s %s in '%s', keeping the first", manifest.id, manifest.version, archive)
            continue
        versions.append(AvailableVersion(version=manifest.version, url=_joinUrl(urlPrefix, relative)))
        logger.info("Listed %s %s", manifest.id, manifest.version)

    return RepositoryContents(
        name=name,
        available_packages=[
            AvailablePackage(id=packageId, available_versions=grouped[packageId]) for packageId in sorted(grouped)
        ],
    )



def publishRepository(
    packagesDir: str | Path,
    urlPrefix: str,
    repoFile: str | Path = DEFAULT_REPO_FILE,
    name: str | None = None,
) -> RepositoryContents:
    """Writes the repository descriptor for `packagesDir` to `repoFile` as TOML."""
    repoFile = Path(repoFile)
    contents = buildRepositoryContents(packagesDir, urlPrefix, name or Path(packagesDir).resolve().name)

    tmpPath = repoFile.with_suffix(repoFile.suffix + ".tmp")
    try:
        repoFile.parent.mkdir(parents=True, exist_ok=True)
        tmpPath.write_text(contents.toToml(), encoding="utf-8")
        os.replace(tmpPath, repoFile)
    except OSError as err:
        tmpPath.unlink(missing_ok=True)
        raise PackageIOError(f"Unable to write repository file '{repoFile}': {err}") from err

    logger.info("Wrote %d package(s) to '%s'", len(contents.available_packages), repoFile)
    return contents
