# hermione/core/paths.py
from __future__ import annotations
from pathlib import Path, PurePosixPath, PureWindowsPath
from os import PathLike

from hermione.core.errors import ManifestError

__all__ = ["isPackageRelative", "resolveInside"]



def isPackageRelative(raw: str) -> bool:
    """
    True when `raw` is a relative path that stays inside its root
    on both path flavours (no drive, no leading slash, no '..' escape).
    """
    if not isinstance(raw, str) or not raw.strip():
        return False
    for flavour in (PurePosixPath, PureWindowsPath):
        pure = flavour(raw)
        if pure.is_absolute() or pure.drive or pure.root:
            return False
        depth = 0
        for part in pure.parts:
            if part == "..":
                depth -= 1
                if depth < 0:
                    return False
            elif part not in ("", "."):
                depth += 1
    return True



def resolveInside(root: Path, requested: str | PathLike[str] | None) -> Path:
    """
    Returns the absolute path of `requested` under `root`, rejecting anything
    that would land outside of it (traversal or a symlinked parent escaping the root).
    Raises ManifestError if the path leaves root.
    """
    if not isinstance(root, Path):
        root = Path(root)

    requested = requested or "."
    rootResolved = root.resolve(strict=False)
    resolved = rootResolved.joinpath(requested).resolve(strict=False) # Don't raise if file doesn't exist yet

    if not resolved.is_relative_to(rootResolved):
        raise ManifestError(f"Path '{requested}' points outside of package root '{root}'")
    return resolved
