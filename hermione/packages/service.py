# hermione/packages/service.py
from __future__ import annotations
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit
from urllib.request import url2pathname

from hermione.app.environment import ProjectDirs, homeDir as defaultHomeDir, platformFamily
from hermione.core.errors import HermioneError, NotFoundError, PackageIOError
from hermione.core.lockfile import Lockfile
from hermione.repositories.index import PackageIndex
from hermione.transport.downloader import Downloader
from hermione.transport.git import GitFetcher, looksLikeGitUrl
from hermione.transport.http import HttpTransport, Transport
from .downloaded import DownloadedPackage, copyTreeInto
from .hooks import HookExecutor, ShellHookExecutor
from .installed import InstalledPackage
from .manifest import Manifest
from .packer import Packer

logger = logging.getLogger(__name__)

__all__ = ["INDEX_FILE_NAME", "PACKAGES_DIR_NAME", "PackageService"]

INDEX_FILE_NAME = "index.toml"
PACKAGES_DIR_NAME = "packages"



def _looksLikePath(source: str) -> bool:
    return source.startswith((".", "~")) or "/" in source or "\\" in source or source.endswith(".hpkg")



@dataclass
class PackageService:
    """
    Owns the directory layout and hands out Downloaded/Installed packages.

        <cacheDir>/packages/<id>     download cache (one slot per package id)
        <dataDir>/packages/<id>      installed trees
        <dataDir>/herm.lock          single-instance lock
        <dataDir>/index.toml         persisted package index

    Directories are created lazily.
    """
    cacheDir: Path
    dataDir: Path
    homeDir: Path = field(default_factory=defaultHomeDir)
    platform: str = field(default_factory=platformFamily)
    hookExecutor: HookExecutor = field(default_factory=ShellHookExecutor)
    packer: Packer | None = None
    transport: Transport | None = None
    gitFetcher: GitFetcher = field(default_factory=GitFetcher)
    reclaimStaleLock: bool = False

    @classmethod
    def fromProjectDirs(cls, dirs: ProjectDirs, **kwargs) -> "PackageService":
        return cls(cacheDir=dirs.cacheDir, dataDir=dirs.dataDir, **kwargs)

    def __post_init__(self) -> None:
        self.cacheDir = Path(self.cacheDir)
        self.dataDir = Path(self.dataDir)
        self.homeDir = Path(self.homeDir)
        if self.packer is None:
            self.packer = Packer(runningPlatform=self.platform)

    @property
    def downloadDir(self) -> Path:
        return self.cacheDir / PACKAGES_DIR_NAME

    @property
    def installDir(self) -> Path:
        return self.dataDir / PACKAGES_DIR_NAME

    @property
    def indexPath(self) -> Path:
        return self.dataDir / INDEX_FILE_NAME

    def init(self) -> None:
        for label, path in (("download", self.downloadDir), ("install", self.installDir)):
            logger.debug("Creating %s directory '%s'", label, path)
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as err:
                raise PackageIOError(f"Unable to create {label} directory '{path}': {err}") from err

    def lockfile(self) -> Lockfile:
        return Lockfile.acquire(self.dataDir, reclaimStale=self.reclaimStaleLock)

    def _requireTransport(self) -> Transport:
        if self.transport is None:
            self.transport = HttpTransport()
        return self.transport

    # ----- Download -----

    def download(self, source: str | Path, version: str | None = None) -> DownloadedPackage:
        """
        Brings a package into the download cache. `source` may be a package
        directory, a `.hpkg` file, an archive URL, a git URL, or a package id
        looked up in the persisted index (optionally pinned by `version`).
        """
        return self._download(str(source).strip(), version, allowIndex=True)

    def _download(self, source: str, version: str | None, *, allowIndex: bool) -> DownloadedPackage:
        if not source:
            raise NotFoundError("No package source given")

        if looksLikeGitUrl(source):
            return self._downloadGit(source)

        scheme = urlsplit(source).scheme.lower()
        if scheme in ("http", "https"):
            path = Downloader(self._requireTransport(), self.packer).download(source, self.downloadDir)
            return self._downloaded(path)
        if scheme == "file":
            source = url2pathname(urlsplit(source).path)

        path = Path(source).expanduser()
        if path.is_dir():
            return self._downloadDirectory(path)
        if path.is_file():
            return self._downloaded(self.packer.unpack(path, self.downloadDir))

        if not allowIndex or _looksLikePath(source):
            raise NotFoundError(f"Path to package does not exist: '{path}'")

        entry = self.loadPackageIndex().resolve(source, version)
        logger.info("Resolved %s to version %s", source, entry.version)
        return self._download(entry.url, None, allowIndex=False)

    def _downloadDirectory(self, path: Path) -> DownloadedPackage:
        manifest = Manifest.fromPath(path)
        slot = self.downloadDir / manifest.id
        if slot.exists() and slot.resolve() == path.resolve():
            return DownloadedPackage(localPath=slot, service=self, packageId=manifest.id)
        logger.info("Copying package '%s' to '%s'", path, slot)
        return self._downloaded(copyTreeInto(path, self.downloadDir, manifest.id))

    def _downloadGit(self, url: str) -> DownloadedPackage:
        try:
            self.downloadDir.mkdir(parents=True, exist_ok=True)
            checkout = Path(tempfile.mkdtemp(dir=self.downloadDir, prefix=".git-"))
        except OSError as err:
            raise PackageIOError(f"Unable to prepare '{self.downloadDir}': {err}") from err
        try:
            self.gitFetcher.clone(url, checkout)
            manifest = Manifest.fromPath(checkout)
            slot = self.downloadDir / manifest.id
            try:
                if slot.exists():
                    shutil.rmtree(slot)
                os.replace(checkout, slot)
            except OSError as err:
                raise PackageIOError(f"Unable to move checkout of '{manifest.id}' into '{slot}': {err}") from err
        except BaseException:
            shutil.rmtree(checkout, ignore_errors=True)
            raise
        return DownloadedPackage(localPath=slot, service=self, packageId=manifest.id)

    def _downloaded(self, path: Path) -> DownloadedPackage:
        manifest = Manifest.fromPath(path)
        return DownloadedPackage(localPath=path, service=self, packageId=manifest.id)

    def downloadAndInstall(self, source: str | Path, version: str | None = None) -> InstalledPackage:
        return self.download(source, version).install()

    def refetch(self, installed: InstalledPackage) -> DownloadedPackage:
        """
        Refreshes the download slot of an installed package: a git checkout is
        fast-forwarded, anything else is re-downloaded at the latest indexed version.
        """
        slot = self.downloadDir / installed.packageId
        if GitFetcher.isCheckout(slot):
            self.gitFetcher.update(slot)
            return self._downloaded(slot)
        index = self.loadPackageIndex()
        if installed.packageId not in index:
            raise NotFoundError(f"No upstream known for '{installed.packageId}', run 'herm update' first")
        entry = index.resolve(installed.packageId)
        logger.info("Upgrading %s %s -> %s", installed.packageId, installed.manifest.version, entry.version)
        return self._download(entry.url, None, allowIndex=False)

    # ----- Installed packages -----

    def installedPackagePath(self, packageId: str) -> Path:
        path = self.installDir / packageId
        if packageId.startswith(".") or not path.is_dir():
            raise NotFoundError(f"It appears that '{packageId}' isn't installed")
        return path

    def getInstalledPackage(self, packageId: str) -> InstalledPackage:
        path = self.installedPackagePath(packageId)
        return InstalledPackage(localPath=path, manifest=Manifest.fromPath(path), service=self, packageId=packageId)

    def listInstalledPackages(self) -> list[InstalledPackage]:
        if not self.installDir.is_dir():
            return []
        packages: list[InstalledPackage] = []
        for entry in sorted(self.installDir.iterdir()):
            # Staging directories are hidden
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            try:
                packages.append(self.getInstalledPackage(entry.name))
            except HermioneError as err:
                logger.warning("Skipping '%s': %s", entry, err)
        return packages

    def implode(self) -> int:
        """Unlinks every installed package and deletes the download and install roots."""
        packages = self.listInstalledPackages()
        for package in packages:
            package.uninstall()
            for err in package.lastUninstallErrors:
                logger.warning("%s: %s", package.packageId, err)
        for path in (self.installDir, self.downloadDir):
            if path.exists():
                logger.info("Deleting '%s'", path)
                try:
                    shutil.rmtree(path)
                except OSError as err:
                    raise PackageIOError(f"Unable to delete '{path}': {err}") from err
        self.indexPath.unlink(missing_ok=True)
        return len(packages)

    # ----- Package index -----

    def persistPackageIndex(self, index: PackageIndex) -> int:
        """Writes the index as TOML and returns the number of bytes written."""
        payload = index.toToml().encode("utf-8")
        tmpPath = self.indexPath.with_suffix(self.indexPath.suffix + ".tmp")
        try:
            self.dataDir.mkdir(parents=True, exist_ok=True)
            tmpPath.write_bytes(payload)
            os.replace(tmpPath, self.indexPath)
        except OSError as err:
            tmpPath.unlink(missing_ok=True)
            raise PackageIOError(f"Unable to write package index '{self.indexPath}': {err}") from err
        logger.debug("Wrote %d bytes to '%s'", len(payload), self.indexPath)
        return len(payload)

    def loadPackageIndex(self) -> PackageIndex:
        if not self.indexPath.is_file():
            logger.debug("No package index at '%s'", self.indexPath)
            return PackageIndex()
        try:
            text = self.indexPath.read_text(encoding="utf-8")
        except OSError as err:
            raise PackageIOError(f"Unable to read package index '{self.indexPath}': {err}") from err
        return PackageIndex.fromToml(text, source=f"'{self.indexPath}'")
