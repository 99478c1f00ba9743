# hermione/packages/installed.py
from __future__ import annotations
import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from hermione.core.errors import HermioneError, HookError, PackageIOError
from .hooks import runHook
from .manifest import Manifest
from .mapping import FileMapping, applicableMappings, validateMappings

if TYPE_CHECKING:
    from .downloaded import DownloadedPackage
    from .service import PackageService

logger = logging.getLogger(__name__)

__all__ = ["InstalledPackage", "linkMappings"]



def linkMappings(manifest: Manifest, packageRoot: Path, homeDir: Path, platform: str) -> list[FileMapping]:
    """
    Links every applicable mapping of an installed tree. If any link fails, the
    ones already made are removed again before the error propagates.
    """
    mappings = validateMappings(manifest, packageRoot, homeDir, platform)
    done: list[FileMapping] = []
    try:
        for mapping in mappings:
            logger.info(mapping.install())
            done.append(mapping)
    except HermioneError:
        for mapping in reversed(done):
            try:
                mapping.uninstall()
            except HermioneError as undoErr:
                logger.error("Rollback of '%s' failed: %s", mapping.destination, undoErr)
        raise
    return mappings



@dataclass
class InstalledPackage:
    """A package copied into the install root with its mappings linked."""
    localPath: Path
    manifest: Manifest
    service: "PackageService"
    packageId: str
    lastUninstallErrors: list[HermioneError] = field(default_factory=list)

    def describe(self) -> str:
        return f"{self.manifest.describe()}\n  installed at: {self.localPath}"

    def uninstall(self) -> "DownloadedPackage":
        """
        Unlinks every applicable mapping. Failures are logged and kept in
        `lastUninstallErrors` instead of stopping the pass. Safe to repeat.
        """
        from .downloaded import DownloadedPackage

        service = self.service
        self.lastUninstallErrors = []
        for definition in applicableMappings(self.manifest.mappings, service.platform):
            try:
                mapping = definition.render(service.homeDir, self.localPath)
                logger.info(mapping.uninstall())
            except HermioneError as err:
                logger.warning("Unable to unlink '%s' of '%s': %s", definition.o, self.packageId, err)
                self.lastUninstallErrors.append(err)

        return DownloadedPackage(
            localPath=service.downloadDir / self.packageId,
            service=service,
            packageId=self.packageId,
        )

    def remove(self) -> None:
        """pre_remove, unlink, delete the install and download trees, post_remove."""
        service = self.service
        hooks = self.manifest.hooks
        runHook(service.hookExecutor, hooks, "pre_remove", self.packageId, cwd=self.localPath)

        downloaded = self.uninstall()
        try:
            shutil.rmtree(self.localPath)
        except FileNotFoundError:
            pass
        except OSError as err:
            raise PackageIOError(f"Unable to remove '{self.localPath}': {err}") from err
        downloaded.remove()
        logger.info("Removed %s", self.packageId)

        runHook(service.hookExecutor, hooks, "post_remove", self.packageId)

    def relink(self) -> list[FileMapping]:
        """Links the mappings of the installed tree again (after an uninstall)."""
        return linkMappings(self.manifest, self.localPath, self.service.homeDir, self.service.platform)

    def upgrade(self, fetch: Callable[["InstalledPackage"], "DownloadedPackage"]) -> "InstalledPackage":
        """
        pre_upgrade, unlink, refresh the download slot through `fetch`, install
        the refreshed tree, post_upgrade.

        If fetching or installing the new tree fails, the current tree is linked
        again and the error is re-raised, so the package never ends up unlinked.
        """
        service = self.service
        runHook(service.hookExecutor, self.manifest.hooks, "pre_upgrade", self.packageId, cwd=self.localPath)
        self.uninstall()

        try:
            downloaded = fetch(self)
            upgraded = downloaded.install()
        except HookError as err:
            if err.hookName == "post_install":
                raise # new tree is installed already
            self._restoreAfter(err)
            raise
        except HermioneError as err:
            self._restoreAfter(err)
            raise

        runHook(service.hookExecutor, upgraded.manifest.hooks, "post_upgrade", self.packageId, cwd=upgraded.localPath)
        return upgraded

    def _restoreAfter(self, err: HermioneError) -> None:
        logger.warning("Upgrade of '%s' failed, restoring the current install: %s", self.packageId, err)
        if not self.localPath.is_dir():
            logger.error("Install tree '%s' is gone, '%s' stays unlinked", self.localPath, self.packageId)
            return
        try:
            self.relink()
        except HermioneError as restoreErr:
            logger.error("Unable to restore '%s': %s", self.packageId, restoreErr)
