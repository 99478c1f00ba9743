# hermione/packages/mapping.py
from __future__ import annotations
import logging
import os
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import jinja2
from pydantic import BaseModel, ConfigDict, field_validator

from hermione.core.errors import (
    ConflictError,
    HermioneError,
    IntegrityError,
    NotFoundError,
    PackageIOError,
    TemplateError,
    ValidationError,
)
from hermione.core.hashing import verifyFileIntegrity
from hermione.core.paths import isPackageRelative, resolveInside

if TYPE_CHECKING:
    from .manifest import Manifest

logger = logging.getLogger(__name__)

__all__ = ["FileMappingDefinition", "FileMapping", "validateMappings", "applicableMappings"]

# Destination templates only ever see HOME, anything else is an error.
_templateEnv = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)



class FileMappingDefinition(BaseModel):
    """One `mappings` entry of a manifest, before rendering."""
    model_config = ConfigDict(extra="forbid")

    i: str
    o: str
    platform: Literal["unix", "windows"] | None = None
    integrity: str | None = None

    @field_validator("i")
    @classmethod
    def _insidePackage(cls, value: str) -> str:
        if not isPackageRelative(value):
            raise ValueError(f"input path '{value}' must be relative and stay inside the package")
        return value

    @field_validator("o")
    @classmethod
    def _nonEmptyTemplate(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("output path must not be empty")
        return value

    def validPlatform(self, runningPlatform: str) -> bool:
        return self.platform is None or self.platform == runningPlatform

    def renderDestination(self, homeDir: Path) -> Path:
        try:
            rendered = _templateEnv.from_string(self.o).render(HOME=str(homeDir))
        except jinja2.TemplateError as err:
            raise TemplateError(f"Unable to render destination '{self.o}' for '{self.i}': {err}") from err
        if not rendered.strip():
            raise TemplateError(f"Destination '{self.o}' for '{self.i}' rendered to an empty path")
        destination = Path(rendered)
        if not destination.is_absolute():
            destination = Path(homeDir) / destination
        return destination

    def render(self, homeDir: Path, packageRoot: Path) -> "FileMapping":
        """Resolves the source under `packageRoot` and renders the destination template."""
        source = resolveInside(Path(packageRoot), self.i)
        return FileMapping(source=source, destination=self.renderDestination(Path(homeDir)))



@dataclass(frozen=True)
class FileMapping:
    source: Path
    destination: Path

    @property
    def displayLine(self) -> str:
        return f"{self.source} -> {self.destination}"

    def preInstallCheck(self) -> None:
        # lexists so a dangling link also counts as occupied
        if os.path.lexists(self.destination):
            raise ConflictError(f"Destination '{self.destination}' already exists, refusing to overwrite it")
        for parent in self.destination.parents:
            if parent.is_dir():
                break
            if os.path.lexists(parent):
                raise ConflictError(
                    f"Cannot create '{self.destination}', '{parent}' exists and is not a directory"
                )

    def install(self) -> str:
        """
        Links source to destination, creating parent directories.
        Never overwrites an existing destination. The check and the link are
        separate steps, so a file appearing in between is reported as a conflict
        by the link call itself rather than being replaced.
        """
        if not self.source.is_file():
            raise NotFoundError(f"Mapping source '{self.source}' does not exist")
        try:
            self.destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise PackageIOError(f"Unable to create directory '{self.destination.parent}': {err}") from err
        self.preInstallCheck()

        try:
            os.symlink(self.source, self.destination)
            return f"Linked {self.source} -> {self.destination}"
        except FileExistsError as err:
            raise ConflictError(f"Destination '{self.destination}' appeared during install") from err
        except OSError as err:
            # Symlinks need a privilege on Windows
            logger.debug("Symlink '%s' failed (%s), trying a hard link", self.destination, err)

        try:
            os.link(self.source, self.destination)
            return f"Hard linked {self.source} -> {self.destination}"
        except FileExistsError as err:
            raise ConflictError(f"Destination '{self.destination}' appeared during install") from err
        except OSError as err:
            logger.debug("Hard link '%s' failed (%s), copying", self.destination, err)

        try:
            with self.source.open("rb") as src, self.destination.open("xb") as dst:
                shutil.copyfileobj(src, dst)
            shutil.copystat(self.source, self.destination)
        except FileExistsError as err:
            raise ConflictError(f"Destination '{self.destination}' appeared during install") from err
        except OSError as err:
            raise PackageIOError(f"Unable to copy '{self.source}' to '{self.destination}': {err}") from err
        return f"Copied {self.source} -> {self.destination}"

    def uninstall(self) -> str:
        """Removes the destination if it is a file or a link to one. Safe to repeat."""
        dest = self.destination
        isLink = dest.is_symlink()
        if not isLink and not dest.is_file():
            return f"Nothing to do for {dest}"
        if isLink and dest.is_dir():
            return f"Nothing to do for {dest} (links to a directory)"
        try:
            dest.unlink()
        except FileNotFoundError:
            return f"Nothing to do for {dest}"
        except OSError as err:
            raise PackageIOError(f"Unable to remove '{dest}': {err}") from err
        return f"Removed {dest}"



def applicableMappings(
    definitions: Iterable[FileMappingDefinition],
    runningPlatform: str,
) -> list[FileMappingDefinition]:
    return [definition for definition in definitions if definition.validPlatform(runningPlatform)]



def validateMappings(
    manifest: "Manifest",
    packageRoot: Path,
    homeDir: Path,
    runningPlatform: str,
) -> list[FileMapping]:
    """
    Renders, integrity-checks and conflict-checks every applicable mapping
    without touching the filesystem. All failures are reported together as a
    ValidationError; on success the rendered mappings are returned in manifest order.
    """
    errors: list[HermioneError] = []
    rendered: list[FileMapping] = []
    seenDestinations: dict[Path, str] = {}

    for definition in applicableMappings(manifest.mappings, runningPlatform):
        try:
            mapping = definition.render(homeDir, packageRoot)
        except HermioneError as err:
            errors.append(err)
            continue

        previous = seenDestinations.get(mapping.destination)
        if previous is not None:
            errors.append(ConflictError(
                f"'{definition.i}' and '{previous}' both map to '{mapping.destination}'"
            ))
            continue
        seenDestinations[mapping.destination] = definition.i

        try:
            if not mapping.source.is_file():
                raise NotFoundError(f"Mapping source '{definition.i}' is missing from '{packageRoot}'")
            if not verifyFileIntegrity(definition.integrity, mapping.source):
                raise IntegrityError(f"Integrity mismatch for '{definition.i}' in package '{manifest.id}'")
            mapping.preInstallCheck()
        except HermioneError as err:
            errors.append(err)
            continue

        rendered.append(mapping)

    if errors:
        raise ValidationError(manifest.id, errors)
    return rendered
