# hermione/packages/packer.py
from __future__ import annotations
import logging
import os
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path, PurePosixPath

from hermione.app.environment import platformFamily
from hermione.core.errors import HermioneError, ManifestError, NotFoundError, PackageIOError
from hermione.core.hashing import DEFAULT_ALGORITHM, computeFileIntegrity
from hermione.core.paths import resolveInside
from .manifest import MANIFEST_FILE_NAME, Manifest

logger = logging.getLogger(__name__)

__all__ = ["ARCHIVE_SUFFIX", "Packer"]

ARCHIVE_SUFFIX = ".hpkg"

# Everything tarfile/gzip can raise on a truncated or foreign archive.
_ARCHIVE_ERRORS = (tarfile.TarError, EOFError, zlib.error, OSError)



def _memberPath(name: str) -> PurePosixPath:
    parts = [part for part in PurePosixPath(name).parts if part not in ("", ".")]
    return PurePosixPath(*parts) if parts else PurePosixPath(".")



class Packer:
    """
    Builds and reads `.hpkg` archives: a gzip tar of every mapped source file
    under its package-relative path, with the manifest appended last.
    """

    def __init__(
        self,
        *,
        integrityAlgorithm: str = DEFAULT_ALGORITHM,
        compressLevel: int = 9,
        runningPlatform: str | None = None,
    ) -> None:
        self.integrityAlgorithm = integrityAlgorithm
        self.compressLevel = compressLevel
        self.runningPlatform = runningPlatform or platformFamily()

    # ----- Packing -----

    def pack(self, packageDir: str | Path, outputDir: str | Path | None = None) -> Path:
        """
        Recomputes the integrity of every applicable mapping, writes the updated
        manifest back into `packageDir`, and produces `<id>_<version>.hpkg` in
        `outputDir` (current directory by default). Returns the archive path.
        """
        packageDir = Path(packageDir)
        if not packageDir.is_dir():
            raise NotFoundError(f"Package path '{packageDir}' is not a directory")
        manifest = Manifest.fromPath(packageDir)

        outputDir = Path(outputDir) if outputDir is not None else Path.cwd()
        try:
            outputDir.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise PackageIOError(f"Unable to create output directory '{outputDir}': {err}") from err

        sources: dict[str, Path] = {}
        updatedMappings = []
        for definition in manifest.mappings:
            if not definition.validPlatform(self.runningPlatform):
                logger.debug("Skipping '%s' (platform %s)", definition.i, definition.platform)
                updatedMappings.append(definition)
                continue
            source = resolveInside(packageDir, definition.i)
            if not source.is_file():
                raise NotFoundError(f"Mapping source '{definition.i}' is missing from '{packageDir}'")
            integrity = computeFileIntegrity(source, self.integrityAlgorithm)
            updatedMappings.append(definition.model_copy(update={"integrity": integrity}))
            sources.setdefault(_memberPath(Path(definition.i).as_posix()).as_posix(), source)

        manifest = manifest.model_copy(update={"mappings": updatedMappings})
        manifestPath = manifest.writeTo(packageDir)
        logger.info("Wrote integrity data to '%s'", manifestPath)

        archivePath = outputDir / f"{manifest.archiveName}{ARCHIVE_SUFFIX}"
        try:
            fd, tmpName = tempfile.mkstemp(dir=outputDir, prefix=f".{manifest.archiveName}.", suffix=".tmp")
            os.close(fd)
        except OSError as err:
            raise PackageIOError(f"Unable to create a temporary archive in '{outputDir}': {err}") from err
        try:
            with tarfile.open(tmpName, "w:gz", compresslevel=self.compressLevel) as tar:
                for arcname, source in sources.items():
                    tar.add(source, arcname=arcname, recursive=False)
                    logger.info("Added '%s' to package archive", arcname)
                tar.add(manifestPath, arcname=MANIFEST_FILE_NAME, recursive=False)
            os.replace(tmpName, archivePath)
        except OSError as err:
            Path(tmpName).unlink(missing_ok=True)
            raise PackageIOError(f"Unable to write archive '{archivePath}': {err}") from err
        except BaseException:
            Path(tmpName).unlink(missing_ok=True)
            raise

        logger.info("Packed '%s' %s into '%s'", manifest.id, manifest.version, archivePath)
        return archivePath.resolve()

    # ----- Reading -----

    @staticmethod
    def getManifestFromArchive(archivePath: str | Path) -> Manifest:
        """Streams the archive until the top-level manifest member, without extracting."""
        archivePath = Path(archivePath)
        if not archivePath.is_file():
            raise NotFoundError(f"Archive '{archivePath}' is not a file")
        try:
            with tarfile.open(archivePath, "r|gz") as tar:
                for member in tar:
                    if not member.isfile() or _memberPath(member.name) != PurePosixPath(MANIFEST_FILE_NAME):
                        continue
                    reader = tar.extractfile(member)
                    if reader is None:
                        break
                    with reader:
                        return Manifest.fromReader(reader, source=f"in '{archivePath}'")
        except _ARCHIVE_ERRORS as err:
            raise PackageIOError(f"Unable to read archive '{archivePath}': {err}") from err
        raise NotFoundError(f"Could not find {MANIFEST_FILE_NAME} in archive '{archivePath}'")

    def unpack(self, archivePath: str | Path, destRoot: str | Path) -> Path:
        """
        Extracts the archive into `destRoot/<id>`, replacing whatever was in that
        slot. Members that would land outside the slot are rejected.
        """
        archivePath = Path(archivePath)
        destRoot = Path(destRoot)
        manifest = self.getManifestFromArchive(archivePath)
        finalDest = destRoot / manifest.id

        try:
            destRoot.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(dir=destRoot, prefix=f".{manifest.id}.unpack-"))
        except OSError as err:
            raise PackageIOError(f"Unable to prepare '{destRoot}' for unpacking: {err}") from err

        try:
            with tarfile.open(archivePath, "r:gz") as tar:
                tar.extractall(staging, filter="data")
            if not (staging / MANIFEST_FILE_NAME).is_file():
                raise ManifestError(f"Archive '{archivePath}' has no top-level {MANIFEST_FILE_NAME}")
            if finalDest.exists() or finalDest.is_symlink():
                logger.debug("Replacing existing '%s'", finalDest)
                _removeTree(finalDest)
            os.replace(staging, finalDest)
        except _ARCHIVE_ERRORS as err:
            shutil.rmtree(staging, ignore_errors=True)
            raise PackageIOError(f"Unable to unpack '{archivePath}' into '{finalDest}': {err}") from err
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("Unpacked '%s' into '%s'", archivePath.name, finalDest)
        return finalDest

    @staticmethod
    def collectManifests(directory: str | Path) -> list[tuple[Path, Manifest]]:
        """Every readable archive under `directory` (recursively) with its manifest."""
        directory = Path(directory)
        if not directory.is_dir():
            raise NotFoundError(f"Packages directory '{directory}' does not exist")
        found: list[tuple[Path, Manifest]] = []
        for archive in sorted(directory.glob(f"**/*{ARCHIVE_SUFFIX}")):
            try:
                found.append((archive, Packer.getManifestFromArchive(archive)))
            except HermioneError as err:
                logger.warning("Skipping '%s': %s", archive, err)
        return found



def _removeTree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)
