# hermione/core/lockfile.py
from __future__ import annotations

import logging
import os
from pathlib import Path

import psutil

from hermione.core.errors import AlreadyRunningError, PackageIOError

logger = logging.getLogger(__name__)

__all__ = ["LOCKFILE_NAME", "Lockfile"]



LOCKFILE_NAME = "herm.lock"



class Lockfile:
    """
    Process-exclusive advisory lock over an install directory.

    The lock is a plain file created with O_EXCL; its existence is the lock.
    The owning pid is written as diagnostic content only. A lock left behind by
    a crashed process is not reclaimed unless `reclaimStale=True`, in which case
    a lock whose recorded pid is no longer alive is removed and re-acquired.

    Reclaiming is not atomic: two processes that both find the same stale lock
    can race, and the slower one may unlink the lock the faster one just took.
    Only the O_EXCL create is exclusive, so reclaiming stays opt-in.

    Usage:
        with Lockfile.acquire(installDir):
            ...
    """

    def __init__(self, path: Path, pid: int) -> None:
        self.path = path
        self.pid = pid
        self._released = False

    @classmethod
    def acquire(cls, installDir: str | Path, *, reclaimStale: bool = False) -> "Lockfile":
        installDir = Path(installDir)
        try:
            installDir.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise PackageIOError(f"Unable to create install directory '{installDir}': {err}") from err

        path = installDir / LOCKFILE_NAME
        pid = os.getpid()
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as err:
            if reclaimStale and cls._isStale(path):
                logger.warning("Reclaiming stale lockfile '%s'", path)
                path.unlink(missing_ok=True)
                return cls.acquire(installDir, reclaimStale=False)
            holder = cls.readOwner(path)
            detail = f" (held by pid {holder})" if holder is not None else ""
            raise AlreadyRunningError(
                f"Another herm process is already running against '{installDir}'{detail}. "
                f"If that is not the case, delete '{path}'."
            ) from err
        except OSError as err:
            raise PackageIOError(f"Unable to create lockfile '{path}': {err}") from err

        with os.fdopen(fd, "w", encoding="utf-8") as file:
            file.write(f"{pid}\n")
        logger.debug("Acquired lockfile '%s' (pid %d)", path, pid)
        return cls(path, pid)

    @staticmethod
    def readOwner(path: Path) -> int | None:
        try:
            raw = path.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return int(raw) if raw.isdigit() else None

    @classmethod
    def _isStale(cls, path: Path) -> bool:
        owner = cls.readOwner(path)
        if owner is None:
            return False
        return not psutil.pid_exists(owner)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("Lockfile '%s' vanished before release", self.path)
        except OSError as err:
            raise PackageIOError(f"Unable to release lockfile '{self.path}': {err}") from err
        self._released = True
        logger.debug("Released lockfile '%s'", self.path)

    def __enter__(self) -> "Lockfile":
        return self

    def __exit__(self, excType, exc, tb) -> None:
        self.release()
