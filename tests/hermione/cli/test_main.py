# tests/hermione/cli/test_main.py
from __future__ import annotations
import logging
import os
from pathlib import Path

import pytest

from hermione import __version__
from hermione.cli.actions import splitSourceVersion
from hermione.cli.main import main


@pytest.fixture(autouse=True)
def _restoreRootLogger():
    root = logging.getLogger()
    previous = list(root.handlers), root.level
    yield
    root.handlers[:] = previous[0]
    root.setLevel(previous[1])


@pytest.fixture
def env(tmp_path: Path, monkeypatch) -> dict[str, Path]:
    dirs = {
        "cache": tmp_path / "cache",
        "data": tmp_path / "data",
        "config": tmp_path / "config",
        "home": tmp_path / "home",
    }
    dirs["home"].mkdir()
    monkeypatch.setenv("HERMIONE_CACHE_DIR", str(dirs["cache"]))
    monkeypatch.setenv("HERMIONE_DATA_DIR", str(dirs["data"]))
    monkeypatch.setenv("HERMIONE_CONFIG_DIR", str(dirs["config"]))
    monkeypatch.setenv("HERMIONE_HOME", str(dirs["home"]))
    return dirs


@pytest.mark.parametrize(
    "source, expected",
    [
        ("org.example.pkg", ("org.example.pkg", None)),
        ("org.example.pkg@1.2.0", ("org.example.pkg", "1.2.0")),
        ("org.example.pkg@^1", ("org.example.pkg", "^1")),
        ("org.example.pkg@", ("org.example.pkg", None)),
        ("./packages/pkg@2", ("./packages/pkg@2", None)),
        ("git@github.com:example/pkg.git", ("git@github.com:example/pkg.git", None)),
        ("https://example.org/pkg.hpkg", ("https://example.org/pkg.hpkg", None)),
    ],
)
def test_splitSourceVersion(source, expected):
    assert splitSourceVersion(source) == expected


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_usageErrors_exitWithTwo(env):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
    with pytest.raises(SystemExit) as excinfo:
        main(["install"])
    assert excinfo.value.code == 2


def test_installListInfoRemove(env, packageDir: Path, capsys):
    assert main(["install", str(packageDir)]) == 0
    assert (env["home"] / "sample.txt").is_symlink()

    capsys.readouterr()
    assert main(["list"]) == 0
    assert capsys.readouterr().out.splitlines() == ["Displaying: 1 Packages", "org.example.sample 1.0.0"]

    assert main(["info", "org.example.sample"]) == 0
    assert "org.example.sample" in capsys.readouterr().out

    assert main(["remove", "org.example.sample"]) == 0
    assert not os.path.lexists(env["home"] / "sample.txt")

    capsys.readouterr()
    assert main(["ls"]) == 0
    assert capsys.readouterr().out.splitlines() == ["Displaying: 0 Packages"]
    assert not (env["data"] / "herm.lock").exists()


def test_errorsExitWithOne(env, capsys):
    assert main(["remove", "org.example.missing"]) == 1
    assert "error:" in capsys.readouterr().err

    assert main(["install", "./does/not/exist"]) == 1


def test_conflictingInstall_reportsEveryProblem(env, makePackage, capsys):
    packageDir = makePackage(files={"a.txt": "a", "b.txt": "b"})
    (env["home"] / "a.txt").write_text("mine", encoding="utf-8")
    (env["home"] / "b.txt").write_text("mine", encoding="utf-8")

    assert main(["install", str(packageDir)]) == 1
    err = capsys.readouterr().err
    assert "2 mapping(s) failed validation" in err


def test_lockHeld_refusesToRun(env, packageDir: Path, capsys):
    env["data"].mkdir(parents=True)
    (env["data"] / "herm.lock").write_text(f"{os.getpid()}\n", encoding="utf-8")

    assert main(["install", str(packageDir)]) == 1
    assert "already running" in capsys.readouterr().err
    assert not os.path.lexists(env["home"] / "sample.txt")


def test_repoAddListRemove(env, capsys):
    assert main(["repo", "add", "https://example.org/repo.hermione.toml"]) == 0
    assert main(["repo", "add", "https://mirror.example.org/repo.hermione.toml"]) == 0
    assert (env["config"] / "hermione.json5").is_file()

    capsys.readouterr()
    assert main(["repo", "list"]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "1. https://example.org/repo.hermione.toml",
        "2. https://mirror.example.org/repo.hermione.toml",
    ]

    assert main(["repo", "remove", "https://example.org/repo.hermione.toml"]) == 0
    capsys.readouterr()
    assert main(["repo"]) == 0
    assert capsys.readouterr().out.splitlines() == ["1. https://mirror.example.org/repo.hermione.toml"]


def test_repoAdd_rejectsInvalidUrl(env, capsys):
    assert main(["repo", "add", "not a url"]) == 1
    assert "not a valid" in capsys.readouterr().err


def test_invalidOverride_isAConfigError(env, capsys):
    assert main(["--set", "http.timeoutMs=soon", "list"]) == 1
    assert "error:" in capsys.readouterr().err


def test_packagePublishUpdateInstallUpgrade(env, makePackage, tmp_path: Path, capsys):
    dist = tmp_path / "dist"
    assert main(["package", str(makePackage("v1")), "-o", str(dist)]) == 0
    assert main(["pack", str(makePackage("v2", version="1.1.0")), "-o", str(dist)]) == 0
    assert Path(capsys.readouterr().out.splitlines()[-1]).name == "org.example.sample_1.1.0.hpkg"

    repoFile = dist / "repo.hermione.toml"
    assert main(["publish", str(dist), "--url-prefix", dist.as_uri(), "-f", str(repoFile)]) == 0
    assert main(["repo", "add", repoFile.as_uri()]) == 0
    assert main(["update"]) == 0
    assert (env["data"] / "index.toml").is_file()

    assert main(["install", "org.example.sample@1.0.0"]) == 0
    capsys.readouterr()
    main(["list"])
    assert "org.example.sample 1.0.0" in capsys.readouterr().out

    assert main(["upgrade"]) == 0
    main(["list"])
    assert "org.example.sample 1.1.0" in capsys.readouterr().out
    assert (env["home"] / "sample.txt").is_symlink()


def test_upgrade_unknownPackage_fails(env):
    assert main(["upgrade", "org.example.missing"]) == 1


def test_upgrade_withoutIndex_fails(env, packageDir: Path):
    assert main(["install", str(packageDir)]) == 0
    assert main(["upgrade", "org.example.sample"]) == 1
    assert (env["home"] / "sample.txt").is_symlink()


def test_implode(env, packageDir: Path, capsys):
    assert main(["install", str(packageDir)]) == 0

    assert main(["implode"]) == 1
    assert "--yes-i-am-sure" in capsys.readouterr().err
    assert (env["home"] / "sample.txt").is_symlink()

    assert main(["implode", "--yes-i-am-sure"]) == 0
    assert not os.path.lexists(env["home"] / "sample.txt")
    assert not (env["data"] / "packages").exists()
    assert not (env["cache"] / "packages").exists()
