# hermione/core/logging/util.py
from __future__ import annotations

import logging

def getLogger(name: str) -> logging.Logger:
    return logging.getLogger(name if name.startswith("hermione") else f"hermione.{name}")

def getActionLogger(action: str) -> logging.Logger:
    return getLogger(f"actions.{action}")
