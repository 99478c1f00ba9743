# hermione/core/logging/formatters.py
from __future__ import annotations

import json
import logging

from hermione.core.redaction import redactText
from .context import getLogContext



class RedactingFormatter(logging.Formatter):
    """
    Wraps another formatter and redacts the final formatted string.
    """
    def __init__(self, inner: logging.Formatter):
        super().__init__()
        self._inner = inner

    def format(self, record: logging.LogRecord) -> str:
        rendered = self._inner.format(record)
        try:
            return redactText(rendered)
        except Exception:
            # Never crash logging due to redaction failure
            return rendered



class JsonFormatter(logging.Formatter):
    """One-line JSON records for the log file."""
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "ctx": getLogContext() or {},
            "proc": {"pid": record.process, "name": record.processName},
        }

        if record.exc_info:
            excType = record.exc_info[0]
            excValue = record.exc_info[1]
            try:
                typ = getattr(excType, "__name__", type(excType).__name__)
                msg = str(excValue)
                stack = self.formatException(record.exc_info)
            except Exception:
                typ, msg, stack = "Error", "format failed", None
            base["exc"] = {"type": typ, "message": msg, "stack": stack}

        return json.dumps(base, ensure_ascii=False, default=str, separators=(",", ":"))



class ConsoleFormatter(logging.Formatter):
    """
    Human-friendly console formatter.

    INFO records are printed bare so regular command output reads like a CLI,
    everything else is prefixed with its level and logger name.
    """
    def __init__(self, *, showLoggerName: bool = False):
        super().__init__()
        self._showLoggerName = showLoggerName

    def format(self, record: logging.LogRecord) -> str:
        ctx = getLogContext()
        ctxStr = ""
        if ctx and self._showLoggerName:
            md = [str(ctx[key]) for key in ("packageId", "action") if ctx.get(key)]
            if md:
                ctxStr = " [" + "/".join(md) + "]"
        msg = record.getMessage()
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            msg += "\n" + str(record.stack_info)
        if record.levelno == logging.INFO and not self._showLoggerName:
            return msg
        if self._showLoggerName:
            return f"{record.levelname}: [{record.name}] {msg}{ctxStr}"
        return f"{record.levelname.lower()}: {msg}"
