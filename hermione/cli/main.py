# hermione/cli/main.py
from __future__ import annotations
import argparse
import contextlib
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import json5

from hermione import __version__
from hermione.app.environment import defaultProjectDirs, homeDir
from hermione.config.service import HermioneConfig
from hermione.core.errors import HermioneError
from hermione.core.logging import clearLogContext, configureLogging, setLogContext
from hermione.packages.packer import Packer
from hermione.packages.service import PackageService
from hermione.repositories.publish import DEFAULT_REPO_FILE
from hermione.transport.http import HttpTransport
from .actions import ACTIONS, ActionContext

logger = logging.getLogger(__name__)

__all__ = ["buildParser", "main"]

# Commands that run without taking the install-root lock.
_UNLOCKED = {"implode"}



def _parseOverride(raw: str) -> tuple[str, Any]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{raw}'")
    try:
        parsed = json5.loads(value)
    except ValueError:
        parsed = value
    return key.strip(), parsed



def buildParser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="herm", description="Hermione, a package manager for your dotfiles and other files")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Show debug output with logger names")
    p.add_argument("--debug", action="store_true", help="Like --verbose, and print tracebacks on errors")
    p.add_argument("--log-file", type=Path, default=None, help="Also write JSON logs to this file")
    p.add_argument(
        "--set",
        dest="overrides",
        action="append",
        type=_parseOverride,
        default=[],
        metavar="KEY=VALUE",
        help="Override a config value for this run (e.g. --set http.timeoutMs=20000)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    install = sub.add_parser("install", help="Install a package from a directory, archive, URL, git repo or package id")
    install.add_argument("source", help="Package source, optionally ID@VERSION for indexed packages")
    install.set_defaults(action="install")

    remove = sub.add_parser("remove", aliases=["uninstall"], help="Remove an installed package")
    remove.add_argument("id", help="Package id")
    remove.set_defaults(action="remove")

    listing = sub.add_parser("list", aliases=["ls"], help="List installed packages")
    listing.set_defaults(action="list")

    info = sub.add_parser("info", help="Describe an installed package")
    info.add_argument("id", help="Package id")
    info.set_defaults(action="info")

    package = sub.add_parser("package", aliases=["pack"], help="Build a .hpkg archive from a package directory")
    package.add_argument("path", nargs="?", type=Path, default=Path("."), help="Package directory (default: .)")
    package.add_argument("-o", "--output", type=Path, default=None, help="Output directory (default: current directory)")
    package.set_defaults(action="package")

    publish = sub.add_parser("publish", help="Write a repository file listing every .hpkg under a directory")
    publish.add_argument("directory", type=Path, help="Directory holding .hpkg archives")
    publish.add_argument("--url-prefix", required=True, help="URL the directory will be served from")
    publish.add_argument(
        "-f",
        "--repo-file",
        type=Path,
        default=Path(DEFAULT_REPO_FILE),
        help=f"Repository file to write (default: {DEFAULT_REPO_FILE})",
    )
    publish.add_argument("--name", default=None, help="Repository name (default: directory name)")
    publish.set_defaults(action="publish")

    upgrade = sub.add_parser("upgrade", help="Upgrade installed packages (all of them by default)")
    upgrade.add_argument("ids", nargs="*", help="Package ids")
    upgrade.set_defaults(action="upgrade")

    update = sub.add_parser("update", help="Refresh the package index from the configured repositories")
    update.set_defaults(action="update")

    repo = sub.add_parser("repo", help="Manage repository URLs")
    repoSub = repo.add_subparsers(dest="repo_command")
    repoAdd = repoSub.add_parser("add", help="Add a repository URL")
    repoAdd.add_argument("url")
    repoRemove = repoSub.add_parser("remove", help="Remove a repository URL")
    repoRemove.add_argument("url")
    repoSub.add_parser("list", help="List repository URLs")
    repo.set_defaults(action="repo")

    implode = sub.add_parser("implode", help="Remove every package and all hermione directories")
    implode.add_argument(
        "--yes-i-am-sure",
        action="store_true",
        help="Confirms your choice to implode, all hermione packages will be removed",
    )
    implode.set_defaults(action="implode")

    return p



def _buildContext(args: argparse.Namespace) -> ActionContext:
    dirs = defaultProjectDirs()
    config = HermioneConfig.load(dirs.configDir, overrides=dict(args.overrides))
    settings = config.settings
    transport = HttpTransport(
        timeoutMs=settings.http.timeoutMs,
        retries=settings.http.retries,
        backoffBaseMs=settings.http.backoffBaseMs,
        backoffMaxMs=settings.http.backoffMaxMs,
    )
    service = PackageService.fromProjectDirs(
        dirs,
        homeDir=homeDir(),
        packer=Packer(
            integrityAlgorithm=settings.packaging.integrityAlgorithm,
            compressLevel=settings.packaging.compressLevel,
        ),
        transport=transport,
        reclaimStaleLock=settings.lock.reclaimStale,
    )
    return ActionContext(service=service, config=config, transport=transport)



def main(argv: Sequence[str] | None = None) -> int:
    args = buildParser().parse_args(argv)
    configureLogging(verbose=args.verbose, debug=args.debug, logFile=args.log_file)
    setLogContext(action=args.action)

    try:
        ctx = _buildContext(args)
        if args.log_file is None and ctx.config.settings.logging.file:
            loggingSettings = ctx.config.settings.logging
            configureLogging(
                verbose=args.verbose,
                debug=args.debug,
                logFile=loggingSettings.file,
                maxBytes=loggingSettings.maxBytes,
                backupCount=loggingSettings.backupCount,
            )

        with contextlib.ExitStack() as stack:
            stack.callback(ctx.transport.close)
            if args.action not in _UNLOCKED:
                stack.enter_context(ctx.service.lockfile())
            return ACTIONS[args.action](ctx, args)

    except HermioneError as err:
        if args.debug:
            logger.exception("Unhandled error in '%s'", args.command)
        print(f"error: {err}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("error: interrupted", file=sys.stderr)
        return 130
    finally:
        clearLogContext()



if __name__ == "__main__":
    sys.exit(main())
