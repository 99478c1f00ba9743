# hermione/transport/http.py
from __future__ import annotations
import logging
import random
import time
from collections.abc import Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import httpx

from hermione.core.errors import HermioneError, NotFoundError, PackageIOError
from hermione.core.redaction import redactText

logger = logging.getLogger(__name__)

__all__ = ["Transport", "HttpTransport", "HTTPError", "TransportError"]

USER_AGENT = "herm (hermione package manager)"



class HTTPError(HermioneError):
    def __init__(self, url: str, status: int, body: str):
        super().__init__(f"GET {redactText(url)} failed with HTTP {status}: {body[:200]}")
        self.url = url
        self.status = status
        self.body = body



class TransportError(HermioneError):
    """Network-level failure (DNS, connect, timeout) after all retries."""
    pass



class Transport(Protocol):
    def fetch(self, url: str) -> bytes: ...



def _parseRetryAfter(value: str | None) -> float | None:
    """Return seconds suggested by Retry-After header, if parsable."""
    if not value:
        return None
    # Retry-After: seconds
    try:
        secondsF = float(value)
        if secondsF >= 0:
            return secondsF
    except ValueError:
        pass
    # Retry-After: HTTP-date
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = datetime.now(timezone.utc).timestamp()
    return max(0.0, dt.timestamp() - now)



def _shouldRetry(status: int) -> bool:
    # Typical transient HTTP errors upon which retry makes sense
    return status in (408, 429, 500, 502, 503, 504)



def _localPath(url: str) -> Path | None:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(url2pathname(unquote(parsed.path)))
    return None



class HttpTransport:
    """
    Blocking GET-only client used for repository descriptors and package archives.

    Retries 408/429/5xx and connection failures with exponential backoff and
    jitter, honouring Retry-After. `file://` URLs are read from disk so local
    repositories work without a server.
    """

    def __init__(
        self,
        *,
        timeoutMs: int = 7_000,
        retries: int = 2,
        backoffBaseMs: int = 250,
        backoffMaxMs: int = 2_000,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retries = max(0, retries)
        self.backoffBaseMs = backoffBaseMs
        self.backoffMaxMs = backoffMaxMs
        self._sleep = sleep
        self._ownsClient = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(max(1, timeoutMs) / 1_000),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    def _backoffSec(self, attempt: int) -> float:
        base = min(self.backoffMaxMs, self.backoffBaseMs * (2 ** attempt))
        jitter = base * 0.25
        return max(0.0, base + random.uniform(-jitter, jitter)) / 1000.0

    def fetch(self, url: str) -> bytes:
        localPath = _localPath(url)
        if localPath is not None:
            try:
                return localPath.read_bytes()
            except FileNotFoundError as err:
                raise NotFoundError(f"'{localPath}' does not exist") from err
            except OSError as err:
                raise PackageIOError(f"Unable to read '{localPath}': {err}") from err

        safeUrl = redactText(url)
        attempt = 0
        while True:
            try:
                resp = self._client.get(url)
            except httpx.HTTPError as err:
                if attempt >= self.retries:
                    raise TransportError(f"GET {safeUrl} failed: {err}") from err
                delay = self._backoffSec(attempt)
                attempt += 1
                logger.warning("GET %s failed (%s), retry %d in %.2fs", safeUrl, err, attempt, delay)
                self._sleep(delay)
                continue

            status = resp.status_code
            if _shouldRetry(status) and attempt < self.retries:
                delay = _parseRetryAfter(resp.headers.get("Retry-After"))
                if delay is None:
                    delay = self._backoffSec(attempt)
                attempt += 1
                logger.warning("GET %s returned %d, retry %d in %.2fs", safeUrl, status, attempt, delay)
                self._sleep(delay)
                continue

            if status >= 400:
                raise HTTPError(url, status, resp.text)

            logger.debug("GET %s -> %d (%d bytes)", safeUrl, status, len(resp.content))
            return resp.content

    def close(self) -> None:
        if self._ownsClient:
            self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, excType, exc, tb) -> None:
        self.close()
