# hermione/core/errors.py
from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "HermioneError",
    "NotFoundError",
    "ManifestError",
    "IntegrityError",
    "ConflictError",
    "TemplateError",
    "NoResolvableVersionError",
    "AlreadyRunningError",
    "PackageIOError",
    "HookError",
    "ValidationError",
]



class HermioneError(Exception):
    """Base class for every failure Hermione reports to the operator."""
    pass



class NotFoundError(HermioneError):
    """Manifest, installed package, archive entry or index entry is absent."""
    pass



class ManifestError(HermioneError):
    """Manifest could not be parsed, validated or serialized."""
    pass



class IntegrityError(HermioneError):
    """Recorded integrity digest does not match the file content."""
    pass



class ConflictError(HermioneError):
    """Destination already exists and Hermione will not overwrite it."""
    pass



class TemplateError(HermioneError):
    """Destination path template could not be rendered."""
    pass



class NoResolvableVersionError(HermioneError):
    """None of the available versions of a package parses as a semantic version."""
    pass



class AlreadyRunningError(HermioneError):
    """Another invocation holds the lockfile for the install directory."""
    pass



class PackageIOError(HermioneError):
    """Filesystem or compression failure, wrapped with the operation's context."""
    pass



class HookError(HermioneError):
    """A lifecycle hook script reported failure."""

    def __init__(self, hookName: str, packageId: str, detail: str | None = None):
        message = f"{hookName} hook failed for package '{packageId}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.hookName = hookName
        self.packageId = packageId



class ValidationError(HermioneError):
    """
    Aggregate of every per-mapping failure found during the validation pass
    that precedes an install. Raised before any filesystem mutation.
    """

    def __init__(self, packageId: str, errors: Iterable[HermioneError]):
        self.packageId = packageId
        self.errors: list[HermioneError] = list(errors)
        lines = [f"Unable to install '{packageId}', {len(self.errors)} mapping(s) failed validation:"]
        lines.extend(f"  - {err}" for err in self.errors)
        super().__init__("\n".join(lines))
