# hermione/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from pathlib import Path

from .formatters import ConsoleFormatter, JsonFormatter, RedactingFormatter

__all__ = [
    "NO_PROPAGATE",
    "configureLogging",
]



# Disable propagation from chatty libraries
NO_PROPAGATE = [
    "httpcore.connection", "httpcore.http11",
    "httpx",
]



def configureLogging(
    *,
    verbose: bool = False,
    debug: bool = False,
    logFile: str | Path | None = None,
    maxBytes: int = 5 * 1024 * 1024,
    backupCount: int = 3,
) -> None:
    """
    Initiate the process logging configuration.

    Default:
      - Console INFO, bare messages (reads like regular CLI output)
    Verbose / debug:
      - Console DEBUG with level + logger name + log context
    Log file (optional):
      - JSON lines with rotation, always DEBUG
    Credentials embedded in repository URLs are masked in every sink.
    """
    consoleLevel = logging.DEBUG if (verbose or debug) else logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG if logFile else consoleLevel)

    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(consoleLevel)
    consoleHandler.setFormatter(RedactingFormatter(ConsoleFormatter(showLoggerName=verbose or debug)))
    root.addHandler(consoleHandler)

    if logFile:
        logPath = Path(logFile)
        logPath.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            logPath,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding="utf-8"
        )
        fileHandler.setLevel(logging.DEBUG)
        fileHandler.setFormatter(RedactingFormatter(JsonFormatter()))
        root.addHandler(fileHandler)

    # Per-logger tweaks (reduce noise)
    logging.getLogger("httpx").setLevel(logging.WARNING)
