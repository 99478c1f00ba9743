# hermione/packages/hooks.py
from __future__ import annotations
import logging
import os
import subprocess
from pathlib import Path
from typing import Protocol

from hermione.core.errors import HookError
from .manifest import Hooks

logger = logging.getLogger(__name__)

__all__ = ["HookExecutor", "ShellHookExecutor", "runHook"]



class HookExecutor(Protocol):
    def __call__(self, hookName: str, script: str, *, cwd: Path | None = None, packageId: str = "") -> bool: ...



class ShellHookExecutor:
    """
    Runs a hook body through the platform shell with the package directory as cwd.
    Output goes to the operator's terminal. Exit status 0 means success.
    """

    def __init__(self, *, timeoutSec: float | None = None, extraEnv: dict[str, str] | None = None) -> None:
        self.timeoutSec = timeoutSec
        self.extraEnv = dict(extraEnv or {})

    def __call__(self, hookName: str, script: str, *, cwd: Path | None = None, packageId: str = "") -> bool:
        env = dict(os.environ)
        env.update(self.extraEnv)
        env["HERMIONE_HOOK"] = hookName
        env["HERMIONE_PACKAGE_ID"] = packageId
        if cwd is not None:
            env["HERMIONE_PACKAGE_DIR"] = str(cwd)

        logger.debug("Running %s hook for '%s'", hookName, packageId)
        try:
            proc = subprocess.run(
                script,
                shell=True,
                cwd=str(cwd) if cwd else None,
                env=env,
                timeout=self.timeoutSec,
            )
        except subprocess.TimeoutExpired:
            logger.error("%s hook for '%s' timed out after %ss", hookName, packageId, self.timeoutSec)
            return False
        except OSError as err:
            logger.error("Unable to start %s hook for '%s': %s", hookName, packageId, err)
            return False

        if proc.returncode != 0:
            logger.error("%s hook for '%s' exited with status %d", hookName, packageId, proc.returncode)
            return False
        return True



def runHook(
    executor: HookExecutor,
    hooks: Hooks | None,
    hookName: str,
    packageId: str,
    *,
    cwd: Path | None = None,
) -> bool:
    """
    Runs one lifecycle hook if the manifest defines it.
    Returns False when there was nothing to run; raises HookError on failure.
    """
    if hooks is None:
        return False
    script = hooks.script(hookName)
    if not script or not script.strip():
        return False
    if not executor(hookName, script, cwd=cwd, packageId=packageId):
        raise HookError(hookName, packageId)
    logger.info("Ran %s hook for '%s'", hookName, packageId)
    return True
