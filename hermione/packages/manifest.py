# hermione/packages/manifest.py
from __future__ import annotations
import io
import logging
from pathlib import Path
from typing import IO, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from hermione.core.errors import ManifestError, NotFoundError, PackageIOError
from .mapping import FileMappingDefinition

logger = logging.getLogger(__name__)

__all__ = ["MANIFEST_FILE_NAME", "Hooks", "Manifest"]

MANIFEST_FILE_NAME = "hermione.yml"



class Hooks(BaseModel):
    """Optional lifecycle script bodies, executed by an injected hook executor."""
    model_config = ConfigDict(extra="forbid")

    pre_install: str | None = None
    post_install: str | None = None
    pre_remove: str | None = None
    post_remove: str | None = None
    pre_upgrade: str | None = None
    post_upgrade: str | None = None

    def script(self, hookName: str) -> str | None:
        if hookName not in type(self).model_fields:
            raise KeyError(f"Unknown hook '{hookName}'")
        return getattr(self, hookName)



class Manifest(BaseModel):
    """
    Declarative package description, read from `hermione.yml` at a package root.

    Parsing and serialization are exact inverses for any valid manifest:
        Manifest.fromYaml(manifest.toYaml()) == manifest
    """
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    version: str
    authors: list[str] = Field(default_factory=list)
    description: str = ""
    mappings: list[FileMappingDefinition] = Field(default_factory=list)
    hooks: Hooks | None = None

    @field_validator("version", mode="before")
    @classmethod
    def _numericVersionAsText(cls, value: Any) -> Any:
        # `version: 2` in YAML loads as an int
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id", "version")
    @classmethod
    def _nonEmpty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        if value != value.strip():
            raise ValueError("must not have surrounding whitespace")
        return value

    @field_validator("id")
    @classmethod
    def _noPathSeparators(cls, value: str) -> str:
        # The id names directories under the cache and install roots; a leading
        # dot would hide it from listings.
        if any(ch in value for ch in ("/", "\\")) or value.startswith("."):
            raise ValueError(f"'{value}' is not usable as a package id")
        return value

    @property
    def archiveName(self) -> str:
        return f"{self.id}_{self.version}"

    # ----- Parsing -----

    @classmethod
    def fromDict(cls, data: Any, *, source: str = "<memory>") -> "Manifest":
        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {source} must be a mapping, not '{type(data).__name__}'")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as err:
            raise ManifestError(f"Invalid manifest {source}: {err}") from err

    @classmethod
    def fromYaml(cls, text: str, *, source: str = "<memory>") -> "Manifest":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as err:
            raise ManifestError(f"Unable to parse manifest {source}: {err}") from err
        return cls.fromDict(data, source=source)

    @classmethod
    def fromReader(cls, reader: IO[bytes] | IO[str], *, source: str = "<stream>") -> "Manifest":
        """Parses from any readable stream, e.g. an archive member."""
        try:
            raw = reader.read()
        except OSError as err:
            raise PackageIOError(f"Unable to read manifest {source}: {err}") from err
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as err:
                raise ManifestError(f"Manifest {source} is not valid UTF-8") from err
        return cls.fromYaml(raw, source=source)

    @classmethod
    def fromPath(cls, path: str | Path) -> "Manifest":
        """
        Loads a manifest from a package directory (reads `<dir>/hermione.yml`)
        or directly from a manifest file path.
        """
        path = Path(path)
        if path.is_dir():
            path = path / MANIFEST_FILE_NAME
        if not path.is_file():
            raise NotFoundError(f"Could not find manifest at '{path}'")
        try:
            with path.open("rb") as reader:
                return cls.fromReader(reader, source=f"'{path}'")
        except OSError as err:
            raise PackageIOError(f"Unable to open manifest '{path}': {err}") from err

    # ----- Serialization -----

    def toDict(self) -> dict[str, Any]:
        return self.model_dump(mode="python", exclude_none=True)

    def toYaml(self) -> str:
        try:
            return yaml.safe_dump(
                self.toDict(),
                sort_keys=False,
                allow_unicode=True,
                default_flow_style=False,
            )
        except yaml.YAMLError as err:
            raise ManifestError(f"Unable to serialize manifest '{self.id}': {err}") from err

    def writeTo(self, path: str | Path) -> Path:
        """Writes the manifest to `path` (a package directory or a file path)."""
        path = Path(path)
        if path.is_dir():
            path = path / MANIFEST_FILE_NAME
        try:
            path.write_text(self.toYaml(), encoding="utf-8")
        except OSError as err:
            raise PackageIOError(f"Unable to write manifest '{path}': {err}") from err
        logger.debug("Wrote manifest '%s' to '%s'", self.id, path)
        return path

    def describe(self) -> str:
        out = io.StringIO()
        out.write(f"{self.name} ({self.id}) {self.version}\n")
        if self.authors:
            out.write(f"  authors: {', '.join(self.authors)}\n")
        if self.description:
            out.write(f"  {self.description}\n")
        out.write(f"  mappings: {len(self.mappings)}\n")
        for definition in self.mappings:
            platformTag = f" [{definition.platform}]" if definition.platform else ""
            out.write(f"    {definition.i} -> {definition.o}{platformTag}\n")
        return out.getvalue().rstrip("\n")
