# hermione/app/environment.py
from __future__ import annotations
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

__all__ = [
    "PlatformFamily",
    "ProjectDirs",
    "QUALIFIER",
    "ORGANIZATION",
    "APPLICATION",
    "platformFamily",
    "homeDir",
    "defaultProjectDirs",
]

QUALIFIER = "dev"
ORGANIZATION = "hermione"
APPLICATION = "herm"

PlatformFamily = Literal["unix", "windows"]

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

def _resolve(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()

def _isWindows() -> bool:
    return platform.system().lower().startswith("win")

def _envPath(name: str) -> Path | None:
    value = os.getenv(name)
    return _resolve(value) if value else None

# ------------------------------------------------------------------ #
# Host lookups
# ------------------------------------------------------------------ #

def platformFamily() -> PlatformFamily:
    """Family of the running platform as used by mapping `platform` constraints."""
    return "windows" if _isWindows() else "unix"

def homeDir() -> Path:
    """
    Home directory used to render `{{ HOME }}` in mapping destinations.
    HERMIONE_HOME overrides the user's real home (scratch installs, tests).
    """
    return _envPath("HERMIONE_HOME") or _resolve(Path.home())

# ------------------------------------------------------------------ #
# Directory roots
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class ProjectDirs:
    """
    Per-user directory roots. Existence is *not* guaranteed; callers create
    them lazily on first use.
    """
    cacheDir: Path
    dataDir: Path
    configDir: Path


def defaultProjectDirs() -> ProjectDirs:
    """
    Resolves the platform conventional roots:

      Linux/BSD: $XDG_CACHE_HOME/herm, $XDG_DATA_HOME/herm, $XDG_CONFIG_HOME/herm
      macOS:     ~/Library/Caches/dev.hermione.herm, ~/Library/Application Support/dev.hermione.herm
      Windows:   %LOCALAPPDATA%\\hermione\\herm\\cache, %APPDATA%\\hermione\\herm\\{data,config}

    Each root can be overridden with HERMIONE_CACHE_DIR / HERMIONE_DATA_DIR / HERMIONE_CONFIG_DIR.
    """
    home = Path.home()
    if _isWindows():
        roaming = Path(os.getenv("APPDATA") or home / "AppData" / "Roaming")
        local = Path(os.getenv("LOCALAPPDATA") or home / "AppData" / "Local")
        cache = local / ORGANIZATION / APPLICATION / "cache"
        data = roaming / ORGANIZATION / APPLICATION / "data"
        config = roaming / ORGANIZATION / APPLICATION / "config"
    elif sys.platform == "darwin":
        bundle = f"{QUALIFIER}.{ORGANIZATION}.{APPLICATION}"
        cache = home / "Library" / "Caches" / bundle
        data = home / "Library" / "Application Support" / bundle
        config = data
    else:
        xdgCache = os.getenv("XDG_CACHE_HOME")
        xdgData = os.getenv("XDG_DATA_HOME")
        xdgConfig = os.getenv("XDG_CONFIG_HOME")
        cache = (Path(xdgCache) if xdgCache else home / ".cache") / APPLICATION
        data = (Path(xdgData) if xdgData else home / ".local" / "share") / APPLICATION
        config = (Path(xdgConfig) if xdgConfig else home / ".config") / APPLICATION

    return ProjectDirs(
        cacheDir=_envPath("HERMIONE_CACHE_DIR") or _resolve(cache),
        dataDir=_envPath("HERMIONE_DATA_DIR") or _resolve(data),
        configDir=_envPath("HERMIONE_CONFIG_DIR") or _resolve(config),
    )
