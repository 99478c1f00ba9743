# hermione/cli/actions.py
from __future__ import annotations
import argparse
import logging
from dataclasses import dataclass

from hermione.config.service import HermioneConfig
from hermione.core.errors import HermioneError
from hermione.core.logging import getActionLogger, setLogContext
from hermione.packages.packer import Packer
from hermione.packages.service import PackageService
from hermione.repositories.index import buildPackageIndex
from hermione.repositories.publish import publishRepository
from hermione.transport.git import looksLikeGitUrl
from hermione.transport.http import HttpTransport

logger = logging.getLogger(__name__)

__all__ = ["ActionContext", "ACTIONS", "splitSourceVersion"]



@dataclass
class ActionContext:
    service: PackageService
    config: HermioneConfig
    transport: HttpTransport



def splitSourceVersion(source: str) -> tuple[str, str | None]:
    """`org.example.pkg@^1.2` -> ("org.example.pkg", "^1.2"). Paths and URLs are left alone."""
    if looksLikeGitUrl(source) or "://" in source or "/" in source or "\\" in source:
        return source, None
    packageId, sep, version = source.rpartition("@")
    if not sep or not packageId:
        return source, None
    return packageId, version or None



def installAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    source, version = splitSourceVersion(args.source)
    log = getActionLogger("install")
    downloaded = ctx.service.download(source, version)
    setLogContext(packageId=downloaded.packageId)
    installed = downloaded.install()
    log.info("Installed %s %s", installed.packageId, installed.manifest.version)
    return 0



def removeAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    setLogContext(packageId=args.id)
    package = ctx.service.getInstalledPackage(args.id)
    package.remove()
    for err in package.lastUninstallErrors:
        logger.warning("%s", err)
    getActionLogger("remove").info("Removed package %s", args.id)
    return 0



def listAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    packages = ctx.service.listInstalledPackages()
    print(f"Displaying: {len(packages)} Packages")
    for package in packages:
        print(f"{package.packageId} {package.manifest.version}")
    return 0



def infoAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    setLogContext(packageId=args.id)
    print(ctx.service.getInstalledPackage(args.id).describe())
    return 0



def packageAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    packaging = ctx.config.settings.packaging
    packer = Packer(
        integrityAlgorithm=packaging.integrityAlgorithm,
        compressLevel=packaging.compressLevel,
        runningPlatform=ctx.service.platform,
    )
    archive = packer.pack(args.path, args.output)
    print(archive)
    return 0



def publishAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    contents = publishRepository(args.directory, args.url_prefix, args.repo_file, args.name)
    count = sum(len(package.available_versions) for package in contents.available_packages)
    getActionLogger("publish").info("Published %d version(s) of %d package(s) to %s",
                                    count, len(contents.available_packages), args.repo_file)
    return 0



def upgradeAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    log = getActionLogger("upgrade")
    service = ctx.service
    if args.ids:
        targets = []
        for packageId in args.ids:
            try:
                targets.append(service.getInstalledPackage(packageId))
            except HermioneError as err:
                log.error("%s", err)
    else:
        log.info("No packages given, defaulting to all of them")
        targets = service.listInstalledPackages()

    failures = len(args.ids) - len(targets) if args.ids else 0
    for package in targets:
        setLogContext(packageId=package.packageId)
        try:
            upgraded = package.upgrade(service.refetch)
        except HermioneError as err:
            log.error("Unable to upgrade %s: %s", package.packageId, err)
            failures += 1
            continue
        log.info("Upgraded %s to %s", upgraded.packageId, upgraded.manifest.version)
    return 1 if failures else 0



def updateAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    log = getActionLogger("update")
    urls = ctx.config.repoList()
    if not urls:
        log.warning("No repositories configured, see 'herm repo add'")
    index = buildPackageIndex(urls, ctx.transport)
    byteCount = ctx.service.persistPackageIndex(index)
    log.info("Wrote %d bytes to package index.", byteCount)
    return 0



def repoAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    log = getActionLogger("repo")
    config = ctx.config
    command = args.repo_command or "list"
    if command == "add":
        config.addRepoUrl(args.url)
        config.save()
        log.info("Repo: (%s) Added", args.url)
    elif command == "remove":
        if config.removeRepoUrl(args.url):
            config.save()
            log.info("Repo: (%s) Removed", args.url)
        else:
            log.warning("Repo: (%s) was not configured", args.url)
    else:
        urls = config.repoList()
        for position, url in enumerate(urls, start=1):
            print(f"{position}. {url}")
        log.info("Displayed: %d Repo", len(urls))
    return 0



def implodeAction(ctx: ActionContext, args: argparse.Namespace) -> int:
    if not args.yes_i_am_sure:
        raise HermioneError("Please pass --yes-i-am-sure if you really want to remove every hermione package")
    count = ctx.service.implode()
    getActionLogger("implode").info("Removed %d package(s) and all hermione directories", count)
    return 0



ACTIONS = {
    "install": installAction,
    "remove": removeAction,
    "list": listAction,
    "info": infoAction,
    "package": packageAction,
    "publish": publishAction,
    "upgrade": upgradeAction,
    "update": updateAction,
    "repo": repoAction,
    "implode": implodeAction,
}
