# hermione/repositories/index.py
from __future__ import annotations
import logging
import tomllib
from collections.abc import Iterable, Iterator
from typing import Any

import tomli_w
from pydantic import ValidationError as PydanticValidationError

from hermione.core.errors import HermioneError, ManifestError, NoResolvableVersionError, NotFoundError
from hermione.core.redaction import redactText
from hermione.semver.semver import SemVerResolver, parseRequirement
from hermione.transport.http import Transport
from .models import AvailableVersion, RepositoryContents
from .remote import RemoteRepository

logger = logging.getLogger(__name__)

__all__ = ["PackageIndex", "buildPackageIndex"]



class PackageIndex:
    """
    Package id -> versions available for it, merged from every configured
    repository. A later repository replaces an earlier one's entry for the
    same id wholesale.
    """

    def __init__(self, packages: dict[str, list[AvailableVersion]] | None = None) -> None:
        self.packages: dict[str, list[AvailableVersion]] = {
            packageId: list(versions) for packageId, versions in (packages or {}).items()
        }

    def __contains__(self, packageId: object) -> bool:
        return packageId in self.packages

    def __len__(self) -> int:
        return len(self.packages)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.packages))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageIndex):
            return NotImplemented
        return self.packages == other.packages

    def versions(self, packageId: str) -> list[AvailableVersion]:
        try:
            return list(self.packages[packageId])
        except KeyError as err:
            raise NotFoundError(f"Package '{packageId}' is not in the package index") from err

    def merge(self, contents: RepositoryContents) -> None:
        for package in contents.available_packages:
            if package.id in self.packages:
                logger.debug("Repository '%s' overrides entry for '%s'", contents.name, package.id)
            self.packages[package.id] = list(package.available_versions)

    def resolve(self, packageId: str, requested: str | None = None) -> AvailableVersion:
        """
        Picks the version to install.

        No request: the highest version that parses as semver.
        A request: the entry whose version string equals it, otherwise the best
        entry satisfying it as a requirement ("^1.2", ">=1.0 <2").
        """
        versions = self.versions(packageId)
        candidates = [(entry.version, entry) for entry in versions]

        if requested is None or not requested.strip() or requested.strip() == "latest":
            result = SemVerResolver.matchCandidates(candidates, None)
            for skipped in result.skipped:
                logger.debug("Ignoring unparseable version '%s' of '%s'", skipped.version, packageId)
            if result.best is None:
                raise NoResolvableVersionError(
                    f"None of the {len(versions)} version(s) of '{packageId}' is a valid semantic version"
                )
            return result.best[1]

        requested = requested.strip()
        for entry in versions:
            if entry.version == requested:
                return entry

        try:
            requirement = parseRequirement(requested)
        except (TypeError, ValueError) as err:
            raise NotFoundError(f"Version '{requested}' of '{packageId}' is not available") from err
        result = SemVerResolver.matchCandidates(candidates, requirement)
        if result.best is None:
            raise NotFoundError(f"No version of '{packageId}' satisfies '{requested}'")
        return result.best[1]

    # ----- Persistence -----

    def toDict(self) -> dict[str, Any]:
        return {
            packageId: [entry.model_dump(mode="python") for entry in self.packages[packageId]]
            for packageId in sorted(self.packages)
        }

    def toToml(self) -> str:
        return tomli_w.dumps(self.toDict())

    @classmethod
    def fromToml(cls, text: str, *, source: str = "<memory>") -> "PackageIndex":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as err:
            raise ManifestError(f"Package index {source} is not valid TOML: {err}") from err
        packages: dict[str, list[AvailableVersion]] = {}
        try:
            for packageId, entries in data.items():
                if not isinstance(entries, list):
                    raise ManifestError(f"Package index {source}: '{packageId}' must be a list of versions")
                packages[packageId] = [AvailableVersion.model_validate(entry) for entry in entries]
        except PydanticValidationError as err:
            raise ManifestError(f"Invalid package index {source}: {err}") from err
        return cls(packages)



def buildPackageIndex(urls: Iterable[str], transport: Transport) -> PackageIndex:
    """Folds every repository in order. Unreachable or invalid repositories are skipped."""
    index = PackageIndex()
    for url in urls:
        try:
            contents = RemoteRepository(url).downloadContents(transport)
        except HermioneError as err:
            logger.warning("Skipping repository %s: %s", redactText(url), err)
            continue
        index.merge(contents)
    logger.info("Package index holds %d package(s)", len(index))
    return index
