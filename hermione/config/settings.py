# hermione/config/settings.py
from __future__ import annotations
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "HttpSettings",
    "LockSettings",
    "LoggingSettings",
    "PackagingSettings",
    "HermioneSettings",
    "DEFAULT_SETTINGS",
    "validateSettings",
]



class HttpSettings(BaseModel):
    """Outbound transport for repository and archive fetches."""
    model_config = ConfigDict(extra="forbid")

    timeoutMs: int = Field(default=7_000, gt=0)
    retries: int = Field(default=2, ge=0)
    backoffBaseMs: int = Field(default=250, ge=0)
    backoffMaxMs: int = Field(default=2_000, ge=0)



class LockSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Off by default: a stale lock must be removed by hand.
    reclaimStale: bool = False



class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file: str | None = None
    maxBytes: int = Field(default=5 * 1024 * 1024, gt=0)
    backupCount: int = Field(default=3, ge=0)



class PackagingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    integrityAlgorithm: Literal["sha256", "sha384", "sha512"] = "sha256"
    compressLevel: int = Field(default=9, ge=0, le=9)



class HermioneSettings(BaseModel):
    """Validated shape of the effective (merged) configuration document."""
    model_config = ConfigDict(extra="forbid")

    repositoryUrls: list[str] = Field(default_factory=list)
    http: HttpSettings = Field(default_factory=HttpSettings)
    lock: LockSettings = Field(default_factory=LockSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    packaging: PackagingSettings = Field(default_factory=PackagingSettings)

    @field_validator("repositoryUrls")
    @classmethod
    def _urlsAreUnique(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("repositoryUrls must not contain duplicates")
        return value



DEFAULT_SETTINGS: dict[str, Any] = HermioneSettings().model_dump()



def validateSettings(document: dict[str, Any]) -> HermioneSettings:
    return HermioneSettings.model_validate(document)
