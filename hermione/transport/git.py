# hermione/transport/git.py
from __future__ import annotations
import logging
import shutil
import subprocess
from pathlib import Path

from hermione.core.errors import PackageIOError
from hermione.core.redaction import redactText

logger = logging.getLogger(__name__)

__all__ = ["GitFetcher", "looksLikeGitUrl"]



def looksLikeGitUrl(source: str) -> bool:
    source = source.strip()
    if source.startswith(("git@", "git://", "ssh://")):
        return True
    return source.startswith(("http://", "https://", "file://")) and source.rstrip("/").endswith(".git")



class GitFetcher:
    """Thin wrapper over the `git` command line."""

    def __init__(self, gitExecutable: str = "git", *, timeoutSec: float | None = 300) -> None:
        self.gitExecutable = gitExecutable
        self.timeoutSec = timeoutSec

    def _run(self, args: list[str], *, cwd: Path | None = None) -> str:
        cmd = [self.gitExecutable, *args]
        pretty = redactText(" ".join(cmd))
        logger.debug("Running %s", pretty)
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=self.timeoutSec,
            )
        except FileNotFoundError as err:
            raise PackageIOError(f"'{self.gitExecutable}' is not installed or not on PATH") from err
        except (OSError, subprocess.TimeoutExpired) as err:
            raise PackageIOError(f"Failed to run {pretty}: {err}") from err
        if proc.returncode != 0:
            detail = redactText(proc.stderr.strip() or proc.stdout.strip())
            raise PackageIOError(f"{pretty} exited with status {proc.returncode}: {detail}")
        return proc.stdout

    def clone(self, url: str, dest: Path) -> Path:
        dest = Path(dest)
        try:
            if dest.exists():
                logger.info("Obliterating cached checkout '%s'", dest)
                shutil.rmtree(dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise PackageIOError(f"Unable to prepare '{dest}' for cloning: {err}") from err
        logger.info("Cloning %s", redactText(url))
        self._run(["clone", "--quiet", url, str(dest)])
        return dest

    def update(self, dest: Path) -> Path:
        dest = Path(dest)
        logger.info("Updating checkout '%s'", dest)
        self._run(["pull", "--ff-only", "--quiet"], cwd=dest)
        return dest

    def cloneOrUpdate(self, url: str, dest: Path) -> Path:
        """Fast-forwards an existing checkout of `url`, otherwise clones afresh."""
        dest = Path(dest)
        if (dest / ".git").is_dir():
            try:
                origin = self._run(["config", "--get", "remote.origin.url"], cwd=dest).strip()
            except PackageIOError:
                origin = ""
            if origin == url:
                return self.update(dest)
        return self.clone(url, dest)

    @staticmethod
    def isCheckout(path: Path) -> bool:
        return (Path(path) / ".git").is_dir()
