# tests/hermione/semver/test_semver_version.py
import pytest

from hermione.semver.semver import parseVersion, tryParseVersion


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1",        (1, 0, 0, (), ())),
        ("1.2",      (1, 2, 0, (), ())),
        ("1.2.3",    (1, 2, 3, (), ())),
        ("0.0.1",    (0, 0, 1, (), ())),
        ("v1.2.3",   (1, 2, 3, (), ())),
        ("1.2.3-alpha.1",         (1, 2, 3, ("alpha", "1"), ())),
        ("1.2.3+build.1",         (1, 2, 3, (), ("build", "1"))),
        ("1.2.3-alpha+exp.sha",   (1, 2, 3, ("alpha",), ("exp", "sha"))),
    ],
)
def test_parseVersion_valid(raw, expected):
    v = parseVersion(raw)
    assert (v.major, v.minor, v.patch, v.prerelease, v.build) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "   ", ".1", "1.", "1..2", "1.2.3.4", "01.2.3", "1.2.3-", "1.2.3+", "v", "not-a-version"],
)
def test_parseVersion_invalid(raw):
    with pytest.raises(ValueError):
        parseVersion(raw)


def test_tryParseVersion_returnsNoneInsteadOfRaising():
    assert tryParseVersion("not-a-version") is None
    assert tryParseVersion(None) is None
    assert str(tryParseVersion("2.3.1")) == "2.3.1"


@pytest.mark.parametrize(
    "a, b",
    [
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-alpha.1", "1.0.0-alpha.beta"),
        ("1.0.0-beta.2", "1.0.0-beta.11"),
        ("1.0.0-rc.1", "1.0.0"),
        ("1.0.0", "1.0.1"),
        ("1.9.0", "1.10.0"),
        ("2.3.1", "10.0.0"),
    ],
)
def test_precedence(a, b):
    assert parseVersion(a) < parseVersion(b)
    assert parseVersion(b) > parseVersion(a)


def test_buildMetadataIgnoredForEquality():
    assert parseVersion("1.2.3+a") == parseVersion("1.2.3+b")
    assert hash(parseVersion("1.2.3+a")) == hash(parseVersion("1.2.3"))
