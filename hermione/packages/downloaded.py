# hermione/packages/downloaded.py
from __future__ import annotations
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from hermione.core.errors import HermioneError, HookError, PackageIOError
from .hooks import runHook
from .installed import InstalledPackage, linkMappings
from .manifest import Manifest
from .mapping import validateMappings

if TYPE_CHECKING:
    from .service import PackageService

logger = logging.getLogger(__name__)

__all__ = ["DownloadedPackage", "copyTreeInto"]

# Hidden names so listings never mistake a half-copied tree for a package.
_STAGING_PREFIX = "."



def copyTreeInto(source: Path, root: Path, slotName: str) -> Path:
    """
    Copies `source` to `root/slotName` through a hidden staging directory,
    replacing any previous slot. Returns the final path.
    """
    final = root / slotName
    try:
        root.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(dir=root, prefix=f"{_STAGING_PREFIX}{slotName}.copy-"))
    except OSError as err:
        raise PackageIOError(f"Unable to prepare '{root}': {err}") from err

    try:
        shutil.copytree(source, staging, symlinks=True, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git"))
        if final.is_symlink() or final.is_file():
            final.unlink()
        elif final.exists():
            shutil.rmtree(final)
        os.replace(staging, final)
    except (OSError, shutil.Error) as err:
        shutil.rmtree(staging, ignore_errors=True)
        raise PackageIOError(f"Unable to copy '{source}' to '{final}': {err}") from err
    return final



def _setAside(root: Path, slotName: str) -> Path | None:
    """Moves an existing `root/slotName` into a hidden holding directory and returns its new path."""
    current = root / slotName
    if not current.exists():
        return None
    try:
        holding = Path(tempfile.mkdtemp(dir=root, prefix=f"{_STAGING_PREFIX}{slotName}.old-"))
        aside = holding / slotName
        os.replace(current, aside)
    except OSError as err:
        raise PackageIOError(f"Unable to move '{current}' aside: {err}") from err
    return aside



def _putBack(aside: Path | None, final: Path) -> None:
    shutil.rmtree(final, ignore_errors=True)
    if aside is None:
        return
    try:
        os.replace(aside, final)
    except OSError as err:
        logger.error("Unable to restore '%s' from '%s': %s", final, aside, err)
        return
    shutil.rmtree(aside.parent, ignore_errors=True)



@dataclass
class DownloadedPackage:
    """A package tree sitting in the download cache, ready to install."""
    localPath: Path
    service: "PackageService"
    packageId: str

    @property
    def manifest(self) -> Manifest:
        return Manifest.fromPath(self.localPath)

    def install(self) -> InstalledPackage:
        """
        Validates every mapping first; nothing on disk changes unless all of them
        pass. Then runs pre_install, copies the tree into the install root, links
        each mapping and runs post_install.

        A previous install tree in the same slot is held aside until every new
        link is made, and put back if copying or linking fails.

        A failing post_install hook raises HookError after the install completed;
        the package stays installed.
        """
        manifest = self.manifest
        service = self.service
        validateMappings(manifest, self.localPath, service.homeDir, service.platform)

        runHook(service.hookExecutor, manifest.hooks, "pre_install", manifest.id, cwd=self.localPath)

        previous = _setAside(service.installDir, manifest.id)
        try:
            installPath = copyTreeInto(self.localPath, service.installDir, manifest.id)
            logger.debug("Copied '%s' to '%s'", self.localPath, installPath)
            linkMappings(manifest, installPath, service.homeDir, service.platform)
        except HermioneError:
            _putBack(previous, service.installDir / manifest.id)
            raise
        if previous is not None:
            shutil.rmtree(previous.parent, ignore_errors=True)

        installed = InstalledPackage(localPath=installPath, manifest=manifest, service=service, packageId=manifest.id)
        logger.info("Installed %s %s", manifest.id, manifest.version)

        try:
            runHook(service.hookExecutor, manifest.hooks, "post_install", manifest.id, cwd=installPath)
        except HookError:
            logger.error("post_install failed for '%s', the package is installed", manifest.id)
            raise
        return installed

    def remove(self) -> None:
        """Deletes the cached tree."""
        if not self.localPath.exists():
            return
        try:
            shutil.rmtree(self.localPath)
        except OSError as err:
            raise PackageIOError(f"Unable to remove '{self.localPath}': {err}") from err
        logger.debug("Removed download cache '%s'", self.localPath)
