# hermione/semver/semver.py
from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Callable, Literal, Iterable, Generic, TypeVar

__all__ = [
    "SemVerVersion",
    "SemVerComparator",
    "SemVerRequirement",
    "SemVerMatchResult",
    "SemVerResolver",
    "parseVersion",
    "tryParseVersion",
    "parseRequirement",
    "versionSatisfiesRequirement",
]



SEMVER_PATTERN_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_NUMERIC_RE = re.compile(r"0|[1-9]\d*")
# Hyphen ranges need whitespace around the dash so "1.2.3-beta" stays a prerelease
_HYPHEN_RANGE_RE = re.compile(r"^(?P<left>\S+)\s+-\s+(?P<right>\S+)$")

Operator = Literal["<", "<=", ">", ">=", "=="]

_OPERATORS: dict[str, Callable[[object, object], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}



T = TypeVar("T")


@total_ordering
@dataclass(frozen=True)
class SemVerVersion:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        prerelease = f"-{'.'.join(self.prerelease)}" if self.prerelease else ""
        build = f"+{'.'.join(self.build)}" if self.build else ""
        return f"{base}{prerelease}{build}"

    def _prereleaseCmpKey(self) -> tuple:
        # Numeric identifiers have lower precedence than non-numeric.
        # Encoded as (0, int) / (1, str) so numeric < non-numeric in tuple comparison.
        parts: list[tuple[int, int | str]] = []
        for ident in self.prerelease:
            if ident.isdigit():
                parts.append((0, int(ident)))
            else:
                parts.append((1, ident))
        return tuple(parts)

    def _cmpKey(self) -> tuple:
        # Build metadata is ignored for ordering.
        # A release outranks any prerelease of the same core version.
        releaseFlag = 1 if not self.prerelease else 0
        return (
            self.major,
            self.minor,
            self.patch,
            releaseFlag,
            self._prereleaseCmpKey()
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVerVersion):
            return NotImplemented
        return self._cmpKey() == other._cmpKey()

    def __hash__(self) -> int:
        return hash(self._cmpKey())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVerVersion):
            return NotImplemented
        return self._cmpKey() < other._cmpKey()



def parseVersion(raw: str) -> SemVerVersion:
    """
    Parse a semantic version string into SemVerVersion.

    Accepted forms (examples):
        "1"             -> 1.0.0
        "1.2"           -> 1.2.0
        "1.2.3"         -> 1.2.3
        "1.2.3-alpha.1"
        "1.2.3+build.1"
        "v1.2.3"

    Rejected:
        ".1", "1.", "1..3", "1.2.3.4", "01.2.3" (leading zeroes), "not-a-version", etc.
    """
    if raw is None:
        raise ValueError("Version string cannot be None")

    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")

    # Accept a single 'v' and remove it (v1.2.3 -> 1.2.3)
    if raw.startswith("v") and len(raw) > 1 and raw[1].isdigit():
        raw = raw[1:]

    # Split into core (numeric) and suffix (-prerelease +build)
    sepIndex = len(raw)
    for ch in ("-", "+"):
        idx = raw.find(ch)
        if idx != -1 and idx < sepIndex:
            sepIndex = idx

    core = raw[:sepIndex]
    suffix = raw[sepIndex:]

    coreParts = core.split(".")
    if not 1 <= len(coreParts) <= 3:
        raise ValueError(f"Invalid version core {core!r} in {raw!r}")

    numericParts: list[int] = []
    for part in coreParts:
        if not _NUMERIC_RE.fullmatch(part):
            raise ValueError(f"Invalid numeric component {part!r} in version {raw!r}")
        numericParts.append(int(part))

    while len(numericParts) < 3:
        numericParts.append(0)

    major, minor, patch = numericParts
    normalized = f"{major}.{minor}.{patch}{suffix}"

    mtch = SEMVER_PATTERN_RE.match(normalized)
    if not mtch:
        raise ValueError(f"Invalid semantic version {raw!r} (normalized {normalized!r})")

    prereleaseGroup = mtch.group("prerelease")
    buildGroup = mtch.group("build")

    return SemVerVersion(
        major=major,
        minor=minor,
        patch=patch,
        prerelease=tuple(prereleaseGroup.split(".")) if prereleaseGroup is not None else (),
        build=tuple(buildGroup.split(".")) if buildGroup is not None else (),
    )



def tryParseVersion(raw: str | None) -> SemVerVersion | None:
    """Like parseVersion, but returns None for anything unparseable."""
    try:
        return parseVersion(raw) # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None



@dataclass(frozen=True)
class SemVerComparator:
    operator: Operator
    version: SemVerVersion

    def matches(self, version: SemVerVersion) -> bool:
        return _OPERATORS[self.operator](version, self.version)



@dataclass(frozen=True)
class SemVerRequirement:
    # All comparators are AND-ed.
    comparators: tuple[SemVerComparator, ...] = ()
    raw: str = ""

    def __str__(self) -> str:
        return self.raw or " ".join(f"{c.operator}{c.version}" for c in self.comparators)



def _makeComparator(op: str, versionStr: str, rawRequirement: str) -> SemVerComparator:
    if not versionStr:
        raise ValueError(f"Missing version after operator {op!r} in requirement {rawRequirement!r}")
    canonOp = "==" if op == "=" else op
    if canonOp not in _OPERATORS:
        raise ValueError(f"Unsupported operator {op!r} in requirement {rawRequirement!r}")
    return SemVerComparator(canonOp, parseVersion(versionStr)) # type: ignore[arg-type]



def _caretToComparators(version: SemVerVersion) -> tuple[SemVerComparator, SemVerComparator]:
    """
    ^M.m.p:
      - M > 0            -> >= M.m.p and < (M+1).0.0
      - M == 0, m > 0    -> >= 0.m.p and < 0.(m+1).0
      - M == 0, m == 0   -> >= 0.0.p and < 0.0.(p+1)
    """
    major, minor, patch = version.major, version.minor, version.patch
    if major > 0:
        upperVersion = SemVerVersion(major + 1, 0, 0)
    elif minor > 0:
        upperVersion = SemVerVersion(0, minor + 1, 0)
    else:
        upperVersion = SemVerVersion(0, 0, patch + 1)
    return SemVerComparator(">=", version), SemVerComparator("<", upperVersion)



def _numericComponents(raw: str) -> int:
    core = raw.strip().lstrip("vV").split("-", 1)[0].split("+", 1)[0]
    return len(core.split("."))



def _tildeToComparators(version: SemVerVersion, components: int = 3) -> tuple[SemVerComparator, SemVerComparator]:
    """
    ~M.m.p, ~M.m -> >= M.m.p and < M.(m+1).0
    ~M           -> >= M.0.0 and < (M+1).0.0

    `components` counts the numeric parts as written; "~1.0" and "~1"
    parse to the same version but bound differently.
    """
    major, minor = version.major, version.minor
    if components > 1:
        upperVersion = SemVerVersion(major, minor + 1, 0)
    else:
        upperVersion = SemVerVersion(major + 1, 0, 0)
    return SemVerComparator(">=", version), SemVerComparator("<", upperVersion)



def parseRequirement(rawVersion: str | None) -> SemVerRequirement | None:
    """
    Parse a version request into SemVerRequirement.

        None, "", "*", "latest" -> None (no constraint)
        "1.2.3"                 -> == 1.2.3
        ">=1.2.0 <2.0.0"        -> >=1.2.0 AND <2.0.0
        "^1.2.3"                -> >=1.2.3 AND <2.0.0
        "~1.2.3"                -> >=1.2.3 AND <1.3.0
        "1.2.3 - 2.0.0"         -> >=1.2.3 AND <=2.0.0

    Raises ValueError when any token is not a valid version/operator.
    """
    if rawVersion is None:
        return None
    if not isinstance(rawVersion, str):
        raise TypeError(f"Requirement must be a string or None, got {type(rawVersion).__name__}")

    rawVersion = rawVersion.strip()
    if not rawVersion or rawVersion in ("*", "latest"):
        return None

    mtch = _HYPHEN_RANGE_RE.match(rawVersion)
    if mtch:
        versionLeft = parseVersion(mtch.group("left"))
        versionRight = parseVersion(mtch.group("right"))
        if versionRight < versionLeft:
            raise ValueError(f"Invalid hyphen range {rawVersion!r}: upper < lower")
        return SemVerRequirement(
            comparators=(SemVerComparator(">=", versionLeft), SemVerComparator("<=", versionRight)),
            raw=rawVersion,
        )

    comparators: list[SemVerComparator] = []
    for token in rawVersion.split():
        if token[0] in ("^", "~"):
            if len(token) == 1:
                raise ValueError(f"Missing version after {token[0]!r} in requirement {rawVersion!r}")
            parsedVersion = parseVersion(token[1:])
            if token[0] == "^":
                comparators.extend(_caretToComparators(parsedVersion))
            else:
                comparators.extend(_tildeToComparators(parsedVersion, _numericComponents(token[1:])))
            continue

        for candidate in ("<=", ">=", "==", "<", ">", "="):
            if token.startswith(candidate):
                comparators.append(_makeComparator(candidate, token[len(candidate):], rawVersion))
                break
        else:
            # Plain version -> ==version
            comparators.append(SemVerComparator("==", parseVersion(token)))

    return SemVerRequirement(comparators=tuple(comparators), raw=rawVersion)



def versionSatisfiesRequirement(
    version: SemVerVersion,
    requirement: SemVerRequirement | None,
) -> bool:
    """requirement None => always True."""
    if requirement is None:
        return True
    return all(comparator.matches(version) for comparator in requirement.comparators)



@dataclass(frozen=True)
class SemVerMatchResult(Generic[T]):
    """
    Result of semver-based selection among candidate versions.

    - candidates: (version, payload) pairs whose version string parsed.
    - skipped: payloads whose version string did not parse (never selected).
    - matches: candidates that satisfy the requirement.
    - best: highest matching version (first in input order on ties), or None.
    """
    requirement: SemVerRequirement | None
    candidates: tuple[tuple[SemVerVersion, T], ...]
    skipped: tuple[T, ...]
    matches: tuple[tuple[SemVerVersion, T], ...]
    best: tuple[SemVerVersion, T] | None



class SemVerResolver:
    @staticmethod
    def matchCandidates(
        candidates: Iterable[tuple[str, T]],
        requirement: SemVerRequirement | None,
    ) -> SemVerMatchResult[T]:
        """
        Filter raw (versionString, payload) candidates by requirement and
        select the best version.

        Unparseable version strings are incomparable: they are reported in
        `skipped` and never take part in selection.
        """
        parsed: list[tuple[SemVerVersion, T]] = []
        skipped: list[T] = []
        for rawVersion, payload in candidates:
            version = tryParseVersion(rawVersion)
            if version is None:
                skipped.append(payload)
            else:
                parsed.append((version, payload))

        matchList = [
            (version, payload)
            for version, payload in parsed
            if versionSatisfiesRequirement(version, requirement)
        ]

        best: tuple[SemVerVersion, T] | None = None
        for version, payload in matchList:
            if best is None or version > best[0]:
                best = (version, payload)

        return SemVerMatchResult(
            requirement=requirement,
            candidates=tuple(parsed),
            skipped=tuple(skipped),
            matches=tuple(matchList),
            best=best
        )
