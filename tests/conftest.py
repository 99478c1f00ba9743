# tests/conftest.py
from __future__ import annotations
import sys
from pathlib import Path
from typing import Any

import pytest

from hermione.packages.manifest import Manifest
from hermione.packages.service import PackageService



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



class RecordingHookExecutor:
    """Hook executor that records calls instead of spawning a shell."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.failing = set(failing or ())

    def __call__(self, hookName: str, script: str, *, cwd: Path | None = None, packageId: str = "") -> bool:
        self.calls.append((hookName, script, packageId))
        return hookName not in self.failing

    @property
    def names(self) -> list[str]:
        return [name for name, _script, _packageId in self.calls]



def writePackage(
    root: Path,
    *,
    packageId: str = "org.example.sample",
    version: str = "1.0.0",
    files: dict[str, str] | None = None,
    mappings: list[dict[str, Any]] | None = None,
    hooks: dict[str, str] | None = None,
) -> Path:
    """Creates a package directory with a manifest and the given source files."""
    files = {"sample.txt": "hello from hermione\n"} if files is None else files
    if mappings is None:
        mappings = [{"i": name, "o": f"{{{{ HOME }}}}/{name}"} for name in files]
    root.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    data: dict[str, Any] = {
        "id": packageId,
        "name": packageId.rsplit(".", 1)[-1].title(),
        "version": version,
        "authors": ["Test Author"],
        "description": "Package used by the test suite",
        "mappings": mappings,
    }
    if hooks:
        data["hooks"] = hooks
    Manifest.fromDict(data).writeTo(root)
    return root



@pytest.fixture
def homeDir(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path



@pytest.fixture
def hookExecutor() -> RecordingHookExecutor:
    return RecordingHookExecutor()



@pytest.fixture
def service(tmp_path: Path, homeDir: Path, hookExecutor: RecordingHookExecutor) -> PackageService:
    svc = PackageService(
        cacheDir=tmp_path / "cache",
        dataDir=tmp_path / "data",
        homeDir=homeDir,
        platform="unix",
        hookExecutor=hookExecutor,
    )
    svc.init()
    return svc



@pytest.fixture
def makePackage(tmp_path: Path):
    """Factory: makePackage(name, **kwargs) writes a package under tmp_path/src."""
    def _make(name: str = "sample", **kwargs: Any) -> Path:
        return writePackage(tmp_path / "src" / name, **kwargs)
    return _make



@pytest.fixture
def packageDir(makePackage) -> Path:
    return makePackage()
