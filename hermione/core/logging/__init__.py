# hermione/core/logging/__init__.py
from __future__ import annotations

from .context import setLogContext, clearLogContext, getLogContext
from .setup import configureLogging
from .util import getLogger, getActionLogger

__all__ = [
    "configureLogging",
    "getLogger",
    "getActionLogger",
    "setLogContext",
    "clearLogContext",
    "getLogContext",
]
