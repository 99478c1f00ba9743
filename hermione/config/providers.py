# hermione/config/providers.py
from __future__ import annotations
import copy
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import json5

from hermione.core.dictpath import getByPath, setByPath, deleteByPath

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigProvider", "OverrideProvider", "DefaultsProvider", "FileProvider",
]



class ConfigProvider(Protocol):
    def get(self, key: str) -> Any | None: ...
    def set(self, key: str, value: Any) -> None: ...
    def to_dict(self) -> dict[str, Any]: ...
    def save(self) -> None: ...



def _asDocument(data: Any, origin: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Config from {origin} must be an object, not '{type(data).__name__}'")
    return copy.deepcopy(dict(data))

# ----------------------------------------------
#      OverrideProvider (herm --set, tests)
# ----------------------------------------------

class OverrideProvider:
    """
    Topmost layer, kept in memory only. Setting a key to None removes it.
    """
    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        for key, value in (data or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any | None:
        return getByPath(self._data, key, None)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            deleteByPath(self._data, key, pruneEmptyParents=True)
            return
        setByPath(self._data, key, copy.deepcopy(value), createIfMissing=True)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def save(self) -> None:
        return # Nothing to persist

# ----------------------------------------------
#       DefaultsProvider (shipped with herm)
# ----------------------------------------------

class DefaultsProvider:
    """Bottom layer holding the shipped defaults. Read-only."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = _asDocument(data, "defaults")

    def get(self, key: str) -> Any | None:
        return getByPath(self._data, key, None)

    def set(self, key: str, value: Any) -> None:
        raise RuntimeError(f"Shipped defaults are read-only, cannot set '{key}'")

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def save(self) -> None:
        return

# ----------------------------------------------
#    FileProvider (user config, json5 on disk)
# ----------------------------------------------

class FileProvider:
    """
    The user's `hermione.json5`. A missing file is an empty layer and is
    created on the first save. A file that does not parse raises ValueError
    rather than being replaced on the next save.
    """
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            logger.debug("No user config at '%s'", self.path)
            return {}
        if not self.path.is_file():
            raise IsADirectoryError(f"Config path '{self.path}' exists but is not a file")

        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            parsed = json5.loads(text)
        except ValueError as err:
            raise ValueError(f"'{self.path}' is not valid JSON5: {err}") from err
        return _asDocument(parsed, f"'{self.path}'")

    def get(self, key: str) -> Any | None:
        return getByPath(self._data, key, None)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            deleteByPath(self._data, key, pruneEmptyParents=True)
            return
        setByPath(self._data, key, copy.deepcopy(value), createIfMissing=True)

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        out = json5.dumps(self._data, indent=2, quote_keys=True)
        if not out.endswith("\n"):
            out += "\n"

        tmpPath = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmpPath.write_text(out, encoding="utf-8")
            os.replace(tmpPath, self.path)
        except OSError:
            tmpPath.unlink(missing_ok=True)
            raise
        logger.debug("Saved %d top-level key(s) to '%s'", len(self._data), self.path)
