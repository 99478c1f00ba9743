# hermione/config/service.py
from __future__ import annotations
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import ValidationError as PydanticValidationError

from hermione.core.errors import HermioneError
from .providers import DefaultsProvider, FileProvider, OverrideProvider
from .settings import DEFAULT_SETTINGS, HermioneSettings, validateSettings
from .store import ConfigStore

logger = logging.getLogger(__name__)

__all__ = ["CONFIG_FILE_NAME", "ConfigError", "HermioneConfig"]

CONFIG_FILE_NAME = "hermione.json5"



class ConfigError(HermioneError):
    """Configuration file or value is invalid."""
    pass



def _validator(document: dict[str, Any]) -> HermioneSettings:
    return validateSettings(document)



def _checkRepoUrl(url: str) -> str:
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https", "file") or not (parts.netloc or parts.scheme == "file"):
        raise ConfigError(f"Could not use repo URL ({url}), not a valid http(s) or file URL")
    return parts.geturl()



@dataclass
class HermioneConfig:
    """
    User configuration: shipped defaults < <configDir>/hermione.json5 < runtime overrides.

    Holds the list of configured repository URLs plus transport, lock, logging
    and packaging settings.
    """
    store: ConfigStore
    path: Path

    @classmethod
    def load(cls, configDir: str | Path, *, overrides: Mapping[str, Any] | None = None) -> "HermioneConfig":
        path = Path(configDir) / CONFIG_FILE_NAME
        try:
            store = ConfigStore(
                namespace="config:hermione",
                validator=_validator,
                providers={
                    "defaults": DefaultsProvider(data=DEFAULT_SETTINGS),
                    "user": FileProvider(path),
                    "runtime": OverrideProvider(overrides),
                },
            )
            store.validated()
        except (PydanticValidationError, TypeError, ValueError, OSError) as err:
            raise ConfigError(f"Invalid configuration in '{path}': {err}") from err
        logger.debug("Loaded config from '%s'", path)
        return cls(store=store, path=path)

    @property
    def settings(self) -> HermioneSettings:
        return self.store.validated()

    def get(self, key: str, default: Any | None = None) -> Any:
        return self.store.get(key, default)

    def set(self, key: str, value: Any, *, persist: bool = False) -> None:
        try:
            self.store.set(key, value, target="user" if persist else "runtime")
        except (PydanticValidationError, TypeError, ValueError, KeyError) as err:
            raise ConfigError(f"Invalid value for '{key}': {err}") from err

    # ----- Repositories -----

    def repoList(self) -> list[str]:
        return list(self.settings.repositoryUrls)

    def addRepoUrl(self, url: str) -> None:
        normalized = _checkRepoUrl(url)
        urls = [existing for existing in self.repoList() if existing != normalized]
        urls.append(normalized)
        self.set("repositoryUrls", urls, persist=True)

    def removeRepoUrl(self, url: str) -> bool:
        normalized = _checkRepoUrl(url)
        urls = self.repoList()
        if normalized not in urls:
            return False
        self.set("repositoryUrls", [existing for existing in urls if existing != normalized], persist=True)
        return True

    def save(self) -> None:
        try:
            self.store.save("user")
        except OSError as err:
            raise ConfigError(f"Couldn't save config to '{self.path}': {err}") from err
