# tests/hermione/packages/test_lifecycle.py
from __future__ import annotations
import os
from pathlib import Path

import pytest

from hermione.core.errors import ConflictError, HookError, NotFoundError, PackageIOError, ValidationError
from hermione.packages.mapping import FileMapping
from hermione.packages.packer import Packer

ALL_HOOKS = {
    "pre_install": "echo pre_install",
    "post_install": "echo post_install",
    "pre_remove": "echo pre_remove",
    "post_remove": "echo post_remove",
    "pre_upgrade": "echo pre_upgrade",
    "post_upgrade": "echo post_upgrade",
}


# ----------------------------------------
# Install / remove
# ----------------------------------------

def test_packInstallRemove_endToEnd(service, makePackage, homeDir: Path, tmp_path: Path):
    archive = Packer(runningPlatform="unix").pack(makePackage(), tmp_path / "dist")

    downloaded = service.download(archive)
    assert downloaded.localPath == service.downloadDir / "org.example.sample"

    installed = downloaded.install()
    linked = homeDir / "sample.txt"
    assert linked.is_symlink()
    assert linked.resolve() == (service.installDir / "org.example.sample" / "sample.txt").resolve()
    assert linked.read_text(encoding="utf-8") == "hello from hermione\n"
    assert [p.packageId for p in service.listInstalledPackages()] == ["org.example.sample"]

    installed.remove()
    assert not os.path.lexists(linked)
    assert not (service.installDir / "org.example.sample").exists()
    assert not (service.downloadDir / "org.example.sample").exists()
    assert service.listInstalledPackages() == []


def test_install_isAllOrNothing(service, makePackage, homeDir: Path, hookExecutor):
    packageDir = makePackage(files={"a.txt": "a", "b.txt": "b"}, hooks={"pre_install": "echo hi"})
    (homeDir / "b.txt").write_text("mine", encoding="utf-8")

    with pytest.raises(ValidationError) as excinfo:
        service.downloadAndInstall(packageDir)

    assert [type(err) for err in excinfo.value.errors] == [ConflictError]
    assert not os.path.lexists(homeDir / "a.txt")
    assert (homeDir / "b.txt").read_text(encoding="utf-8") == "mine"
    assert not (service.installDir / "org.example.sample").exists()
    assert hookExecutor.calls == []


def test_install_parentIsAFile_failsValidationBeforeHooks(service, makePackage, homeDir: Path, hookExecutor):
    (homeDir / "blocker").write_text("not a directory", encoding="utf-8")
    packageDir = makePackage(
        files={"a.txt": "a", "b.txt": "b"},
        mappings=[
            {"i": "a.txt", "o": "{{ HOME }}/a.txt"},
            {"i": "b.txt", "o": "{{ HOME }}/blocker/b.txt"},
        ],
        hooks={"pre_install": "echo hi"},
    )

    with pytest.raises(ValidationError) as excinfo:
        service.downloadAndInstall(packageDir)

    assert [type(err) for err in excinfo.value.errors] == [ConflictError]
    assert hookExecutor.calls == []
    assert not os.path.lexists(homeDir / "a.txt")
    assert (homeDir / "blocker").read_text(encoding="utf-8") == "not a directory"
    assert service.listInstalledPackages() == []


def test_install_withPlatformSpecificMappings(service, makePackage, homeDir: Path):
    packageDir = makePackage(
        files={"unix.sh": "u", "win.ps1": "w"},
        mappings=[
            {"i": "unix.sh", "o": "{{ HOME }}/bin/tool", "platform": "unix"},
            {"i": "win.ps1", "o": "{{ HOME }}/bin/tool", "platform": "windows"},
        ],
    )
    service.downloadAndInstall(packageDir)
    assert (homeDir / "bin" / "tool").read_text(encoding="utf-8") == "u"


def test_hooks_runInLifecycleOrder(service, makePackage, hookExecutor):
    installed = service.downloadAndInstall(makePackage(hooks=ALL_HOOKS))
    installed.remove()
    assert hookExecutor.names == ["pre_install", "post_install", "pre_remove", "post_remove"]
    assert {packageId for _name, _script, packageId in hookExecutor.calls} == {"org.example.sample"}


def test_preInstallFailure_leavesNothingInstalled(service, makePackage, homeDir: Path, hookExecutor):
    hookExecutor.failing.add("pre_install")
    with pytest.raises(HookError):
        service.downloadAndInstall(makePackage(hooks=ALL_HOOKS))
    assert not os.path.lexists(homeDir / "sample.txt")
    assert service.listInstalledPackages() == []


def test_postInstallFailure_keepsPackageInstalled(service, makePackage, homeDir: Path, hookExecutor):
    hookExecutor.failing.add("post_install")
    with pytest.raises(HookError) as excinfo:
        service.downloadAndInstall(makePackage(hooks=ALL_HOOKS))
    assert excinfo.value.hookName == "post_install"
    assert (homeDir / "sample.txt").is_symlink()
    assert [p.packageId for p in service.listInstalledPackages()] == ["org.example.sample"]


def test_uninstall_isIdempotentAndKeepsTrees(service, packageDir, homeDir: Path):
    installed = service.downloadAndInstall(packageDir)
    downloaded = installed.uninstall()
    installed.uninstall()

    assert installed.lastUninstallErrors == []
    assert not os.path.lexists(homeDir / "sample.txt")
    assert installed.localPath.is_dir()
    assert downloaded.localPath == service.downloadDir / "org.example.sample"

    # The tree can be linked again
    installed.relink()
    assert (homeDir / "sample.txt").is_symlink()


def test_uninstall_leavesUserReplacedFiles(service, packageDir, homeDir: Path):
    installed = service.downloadAndInstall(packageDir)
    (homeDir / "sample.txt").unlink()
    (homeDir / "sample.txt").mkdir()
    installed.uninstall()
    assert (homeDir / "sample.txt").is_dir()


def test_reinstall_afterRemove(service, packageDir, homeDir: Path):
    service.downloadAndInstall(packageDir).remove()
    service.downloadAndInstall(packageDir)
    assert (homeDir / "sample.txt").is_symlink()


# ----------------------------------------
# Upgrade
# ----------------------------------------

def test_upgrade_installsNewTree(service, makePackage, homeDir: Path, hookExecutor):
    installed = service.downloadAndInstall(makePackage("v1", hooks=ALL_HOOKS))
    newer = makePackage(
        "v2",
        version="1.1.0",
        files={"sample.txt": "second edition\n", "extra.txt": "more\n"},
        hooks=ALL_HOOKS,
    )
    hookExecutor.calls.clear()

    upgraded = installed.upgrade(lambda package: service.download(newer))

    assert upgraded.manifest.version == "1.1.0"
    assert (homeDir / "sample.txt").read_text(encoding="utf-8") == "second edition\n"
    assert (homeDir / "extra.txt").is_symlink()
    assert hookExecutor.names == ["pre_upgrade", "pre_install", "post_install", "post_upgrade"]
    assert service.getInstalledPackage("org.example.sample").manifest.version == "1.1.0"


def test_upgrade_fetchFailure_restoresCurrentInstall(service, packageDir, homeDir: Path):
    installed = service.downloadAndInstall(packageDir)

    def _fetch(package):
        raise NotFoundError("no upstream")

    with pytest.raises(NotFoundError):
        installed.upgrade(_fetch)
    assert (homeDir / "sample.txt").is_symlink()
    assert service.getInstalledPackage("org.example.sample").manifest.version == "1.0.0"


def test_upgrade_invalidNewVersion_restoresCurrentInstall(service, makePackage, homeDir: Path):
    installed = service.downloadAndInstall(makePackage("v1"))
    broken = makePackage("v2", version="2.0.0", files={}, mappings=[{"i": "gone.txt", "o": "{{ HOME }}/gone.txt"}])

    with pytest.raises(ValidationError):
        installed.upgrade(lambda package: service.download(broken))
    assert (homeDir / "sample.txt").read_text(encoding="utf-8") == "hello from hermione\n"
    assert not os.path.lexists(homeDir / "gone.txt")


def test_upgrade_linkFailure_keepsCurrentTree(service, makePackage, homeDir: Path, monkeypatch):
    installed = service.downloadAndInstall(makePackage("v1"))
    newer = makePackage("v2", version="1.1.0", files={"sample.txt": "second edition\n", "extra.txt": "more\n"})

    realInstall = FileMapping.install

    def _install(mapping):
        if mapping.destination.name == "extra.txt":
            raise PackageIOError("disk full")
        return realInstall(mapping)

    monkeypatch.setattr(FileMapping, "install", _install)

    with pytest.raises(PackageIOError):
        installed.upgrade(lambda package: service.download(newer))

    assert (homeDir / "sample.txt").is_symlink()
    assert (homeDir / "sample.txt").read_text(encoding="utf-8") == "hello from hermione\n"
    assert not os.path.lexists(homeDir / "extra.txt")
    assert (service.installDir / "org.example.sample" / "sample.txt").is_file()
    assert [p.manifest.version for p in service.listInstalledPackages()] == ["1.0.0"]
    assert [entry.name for entry in service.installDir.iterdir()] == ["org.example.sample"]


def test_reinstall_linkFailure_restoresPreviousTree(service, packageDir, monkeypatch):
    installed = service.downloadAndInstall(packageDir)
    installed.uninstall()

    def _install(mapping):
        raise PackageIOError("disk full")

    monkeypatch.setattr(FileMapping, "install", _install)
    with pytest.raises(PackageIOError):
        service.download(packageDir).install()
    assert (service.installDir / "org.example.sample" / "sample.txt").is_file()
