# hermione/repositories/models.py
from __future__ import annotations
import tomllib
from typing import Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from hermione.core.errors import ManifestError

__all__ = ["AvailableVersion", "AvailablePackage", "RepositoryContents"]



class AvailableVersion(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    version: str
    url: str



class AvailablePackage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    homepage: str | None = None
    available_versions: list[AvailableVersion] = Field(default_factory=list)



class RepositoryContents(BaseModel):
    """
    A repository descriptor as served at a repository URL (TOML):

        name = "Example"
        url = "https://example.org/repo.hermione.toml"

        [[available_packages]]
        id = "org.example.dotfiles"

        [[available_packages.available_versions]]
        version = "1.0.0"
        url = "https://example.org/org.example.dotfiles_1.0.0.hpkg"

    Unknown keys are ignored so newer repositories stay readable.
    """
    model_config = ConfigDict(extra="ignore")

    name: str
    url: str | None = None
    available_packages: list[AvailablePackage] = Field(default_factory=list)

    @classmethod
    def fromToml(cls, text: str, *, source: str = "<memory>") -> "RepositoryContents":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as err:
            raise ManifestError(f"Repository {source} is not valid TOML: {err}") from err
        try:
            return cls.model_validate(data)
        except PydanticValidationError as err:
            raise ManifestError(f"Invalid repository descriptor {source}: {err}") from err

    def toDict(self) -> dict[str, Any]:
        return self.model_dump(mode="python", exclude_none=True)

    def toToml(self) -> str:
        return tomli_w.dumps(self.toDict())
