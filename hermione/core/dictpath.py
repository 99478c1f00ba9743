# hermione/core/dictpath.py
from __future__ import annotations
from typing import Any
from collections.abc import Mapping, MutableMapping

__all__ = ["getByPath", "setByPath", "deleteByPath"]



def _splitPath(path: str) -> list[str]:
    """
    Splits a dotted config key into segments. Empty segments are invalid.

      - "http.timeoutMs" -> ["http", "timeoutMs"]
      - "http..x"        -> ValueError
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Path must be a non-empty string")
    parts = path.split(".")
    if any(part == "" for part in parts):
        raise ValueError(f"Path '{path}' contains empty segment(s)")
    return parts



def getByPath(obj: Mapping[str, Any], path: str, default: Any | None = None) -> Any:
    """Returns the value at `path` or `default` when any hop is missing."""
    try:
        parts = _splitPath(path)
    except ValueError:
        return default
    current: Any = obj
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        return default
    return current



def setByPath(obj: MutableMapping[str, Any], path: str, value: Any, *, createIfMissing: bool = False) -> None:
    """
    Sets the value at `path`. Intermediate mappings are created only when
    createIfMissing is True; otherwise a missing hop raises KeyError.
    """
    parts = _splitPath(path)
    current: Any = obj
    for part in parts[:-1]:
        if not isinstance(current, MutableMapping):
            raise TypeError(f"Cannot descend into '{part}', parent is {type(current).__name__}")
        if part not in current:
            if not createIfMissing:
                raise KeyError(f"path segment '{part}' not found in mapping")
            current[part] = {}
        current = current[part]
    if not isinstance(current, MutableMapping):
        raise TypeError(f"Cannot write '{parts[-1]}' into {type(current).__name__}")
    current[parts[-1]] = value



def deleteByPath(obj: MutableMapping[str, Any], path: str, *, pruneEmptyParents: bool = True) -> bool:
    """
    Deletes the value at `path`. Returns True if something was removed.
    Empty parent mappings left behind are pruned (never the root itself).
    """
    parts = _splitPath(path)
    stack: list[tuple[MutableMapping[str, Any], str]] = []
    current: Any = obj
    for part in parts[:-1]:
        if not isinstance(current, MutableMapping) or part not in current:
            return False
        stack.append((current, part))
        current = current[part]

    last = parts[-1]
    if not isinstance(current, MutableMapping) or last not in current:
        return False
    del current[last]

    if pruneEmptyParents:
        for parent, key in reversed(stack):
            child = parent.get(key)
            if isinstance(child, MutableMapping) and len(child) == 0:
                del parent[key]
            else:
                break
    return True
