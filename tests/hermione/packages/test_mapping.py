# tests/hermione/packages/test_mapping.py
from __future__ import annotations
import os
from pathlib import Path

import pytest

from hermione.core.errors import (
    ConflictError,
    IntegrityError,
    NotFoundError,
    TemplateError,
    ValidationError,
)
from hermione.core.hashing import computeIntegrity
from hermione.packages.manifest import Manifest
from hermione.packages.mapping import FileMapping, FileMappingDefinition, validateMappings


def _manifest(*mappings: dict) -> Manifest:
    return Manifest.fromDict({"id": "org.example.sample", "name": "Sample", "version": "1.0.0", "mappings": list(mappings)})


# ----------------------------------------
# Rendering
# ----------------------------------------

def test_render_substitutesHome(tmp_path: Path, homeDir: Path):
    definition = FileMappingDefinition(i="sample.txt", o="{{ HOME }}/sample.txt")
    mapping = definition.render(homeDir, tmp_path)
    assert mapping.source == tmp_path.resolve() / "sample.txt"
    assert mapping.destination == homeDir / "sample.txt"


def test_render_relativeDestinationLandsUnderHome(tmp_path: Path, homeDir: Path):
    mapping = FileMappingDefinition(i="a", o=".config/app/a").render(homeDir, tmp_path)
    assert mapping.destination == homeDir / ".config" / "app" / "a"


def test_render_absoluteDestinationKept(tmp_path: Path, homeDir: Path):
    target = tmp_path / "elsewhere" / "a"
    mapping = FileMappingDefinition(i="a", o=str(target)).render(homeDir, tmp_path)
    assert mapping.destination == target


@pytest.mark.parametrize("template", ["{{ USER }}/x", "{{ HOME ", "{% if %}", "{{ '' }}"])
def test_render_badTemplate_raisesTemplateError(tmp_path: Path, homeDir: Path, template: str):
    with pytest.raises(TemplateError):
        FileMappingDefinition(i="a", o=template).render(homeDir, tmp_path)


@pytest.mark.parametrize(
    "platform, running, expected",
    [(None, "unix", True), (None, "windows", True), ("unix", "unix", True), ("unix", "windows", False), ("windows", "unix", False)],
)
def test_validPlatform(platform, running, expected):
    assert FileMappingDefinition(i="a", o="b", platform=platform).validPlatform(running) is expected


# ----------------------------------------
# FileMapping install / uninstall
# ----------------------------------------

def _mapping(tmp_path: Path, content: str = "payload") -> FileMapping:
    source = tmp_path / "pkg" / "file.txt"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text(content, encoding="utf-8")
    return FileMapping(source=source, destination=tmp_path / "home" / "deep" / "file.txt")


def test_install_linksAndCreatesParents(tmp_path: Path):
    mapping = _mapping(tmp_path)
    line = mapping.install()
    assert line == f"Linked {mapping.source} -> {mapping.destination}"
    assert mapping.destination.is_symlink()
    assert mapping.destination.read_text(encoding="utf-8") == "payload"


def test_install_neverOverwritesExistingFile(tmp_path: Path):
    mapping = _mapping(tmp_path)
    mapping.destination.parent.mkdir(parents=True)
    mapping.destination.write_text("user data", encoding="utf-8")
    with pytest.raises(ConflictError):
        mapping.install()
    assert mapping.destination.read_text(encoding="utf-8") == "user data"


def test_preInstallCheck_countsDanglingLinks(tmp_path: Path):
    mapping = _mapping(tmp_path)
    mapping.destination.parent.mkdir(parents=True)
    mapping.destination.symlink_to(tmp_path / "gone")
    with pytest.raises(ConflictError):
        mapping.preInstallCheck()


def test_install_missingSource_raisesNotFound(tmp_path: Path):
    mapping = FileMapping(source=tmp_path / "missing", destination=tmp_path / "dest")
    with pytest.raises(NotFoundError):
        mapping.install()
    assert not os.path.lexists(mapping.destination)


def test_install_fallsBackToCopy(tmp_path: Path, monkeypatch):
    mapping = _mapping(tmp_path)

    def _denied(*args, **kwargs):
        raise PermissionError("not permitted")

    monkeypatch.setattr(os, "symlink", _denied)
    monkeypatch.setattr(os, "link", _denied)
    line = mapping.install()
    assert line.startswith("Copied ")
    assert not mapping.destination.is_symlink()
    assert mapping.destination.read_text(encoding="utf-8") == "payload"


def test_uninstall_isIdempotent(tmp_path: Path):
    mapping = _mapping(tmp_path)
    mapping.install()
    assert mapping.uninstall() == f"Removed {mapping.destination}"
    assert not os.path.lexists(mapping.destination)
    assert mapping.uninstall().startswith("Nothing to do")
    assert mapping.source.exists()


def test_uninstall_leavesDirectoriesAlone(tmp_path: Path):
    mapping = FileMapping(source=tmp_path / "src", destination=tmp_path / "adir")
    mapping.destination.mkdir()
    assert mapping.uninstall().startswith("Nothing to do")
    assert mapping.destination.is_dir()


# ----------------------------------------
# Batch validation
# ----------------------------------------

def test_validateMappings_returnsApplicableInOrder(tmp_path: Path, homeDir: Path):
    root = tmp_path / "pkg"
    root.mkdir()
    for name in ("a", "b", "c"):
        (root / name).write_text(name, encoding="utf-8")
    manifest = _manifest(
        {"i": "a", "o": "{{ HOME }}/a"},
        {"i": "b", "o": "{{ HOME }}/b", "platform": "windows"},
        {"i": "c", "o": "{{ HOME }}/c", "platform": "unix", "integrity": computeIntegrity(b"c")},
    )
    mappings = validateMappings(manifest, root, homeDir, "unix")
    assert [m.destination.name for m in mappings] == ["a", "c"]


def test_validateMappings_collectsEveryFailure(tmp_path: Path, homeDir: Path):
    root = tmp_path / "pkg"
    root.mkdir()
    (root / "ok").write_text("ok", encoding="utf-8")
    (root / "tampered").write_text("tampered", encoding="utf-8")
    (root / "clash").write_text("clash", encoding="utf-8")
    (homeDir / "clash").write_text("user file", encoding="utf-8")
    manifest = _manifest(
        {"i": "ok", "o": "{{ HOME }}/ok"},
        {"i": "tampered", "o": "{{ HOME }}/tampered", "integrity": computeIntegrity(b"original")},
        {"i": "clash", "o": "{{ HOME }}/clash"},
        {"i": "missing", "o": "{{ HOME }}/missing"},
        {"i": "ok", "o": "{{ NOPE }}/ok"},
        {"i": "ok", "o": "{{ HOME }}/ok"},
    )
    with pytest.raises(ValidationError) as excinfo:
        validateMappings(manifest, root, homeDir, "unix")

    kinds = [type(err) for err in excinfo.value.errors]
    assert kinds == [IntegrityError, ConflictError, NotFoundError, TemplateError, ConflictError]
    assert "org.example.sample" in str(excinfo.value)
    # Nothing was touched
    assert not os.path.lexists(homeDir / "ok")
    assert (homeDir / "clash").read_text(encoding="utf-8") == "user file"


def test_validateMappings_skipsOtherPlatformEvenIfBroken(tmp_path: Path, homeDir: Path):
    root = tmp_path / "pkg"
    root.mkdir()
    manifest = _manifest({"i": "missing.ps1", "o": "{{ BROKEN", "platform": "windows"})
    assert validateMappings(manifest, root, homeDir, "unix") == []
