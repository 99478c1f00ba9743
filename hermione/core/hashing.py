# hermione/core/hashing.py
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from pathlib import Path

from hermione.core.errors import IntegrityError, NotFoundError, PackageIOError

__all__ = [
    "DEFAULT_ALGORITHM",
    "SUPPORTED_ALGORITHMS",
    "computeIntegrity",
    "computeFileIntegrity",
    "verifyIntegrity",
    "verifyFileIntegrity",
    "parseIntegrity",
]



DEFAULT_ALGORITHM = "sha256"
SUPPORTED_ALGORITHMS: tuple[str, ...] = ("sha256", "sha384", "sha512")

_CHUNK_SIZE = 64 * 1024



def _newHasher(algorithm: str):
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise IntegrityError(
            f"Unsupported integrity algorithm '{algorithm}' (expected one of {', '.join(SUPPORTED_ALGORITHMS)})"
        )
    return hashlib.new(algorithm)



def _format(algorithm: str, digest: bytes) -> str:
    return f"{algorithm}-{base64.b64encode(digest).decode('ascii')}"



def parseIntegrity(integrity: str) -> tuple[str, bytes]:
    """
    Split a Subresource-Integrity style string into (algorithm, raw digest).

        "sha256-47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU=" -> ("sha256", b"...")
    """
    if not isinstance(integrity, str) or "-" not in integrity:
        raise IntegrityError(f"Malformed integrity string {integrity!r}")
    algorithm, _, encoded = integrity.strip().partition("-")
    algorithm = algorithm.lower()
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise IntegrityError(f"Unsupported integrity algorithm '{algorithm}' in {integrity!r}")
    try:
        digest = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as err:
        raise IntegrityError(f"Integrity digest in {integrity!r} is not valid base64") from err
    if len(digest) != hashlib.new(algorithm).digest_size:
        raise IntegrityError(f"Integrity digest in {integrity!r} has the wrong length for {algorithm}")
    return algorithm, digest



def computeIntegrity(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Returns the integrity string for an in-memory byte payload."""
    hasher = _newHasher(algorithm)
    hasher.update(data)
    return _format(algorithm, hasher.digest())



def _fileDigest(path: Path, algorithm: str) -> bytes:
    hasher = _newHasher(algorithm)
    try:
        with path.open("rb") as file:
            for chunk in iter(lambda: file.read(_CHUNK_SIZE), b""):
                hasher.update(chunk)
    except FileNotFoundError as err:
        raise NotFoundError(f"Cannot compute integrity, '{path}' does not exist") from err
    except OSError as err:
        raise PackageIOError(f"Unable to read '{path}' for integrity check: {err}") from err
    return hasher.digest()



def computeFileIntegrity(path: str | Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Returns the integrity string of a file's content, read in chunks."""
    path = Path(path)
    return _format(algorithm, _fileDigest(path, algorithm))



def verifyIntegrity(integrity: str | None, data: bytes) -> bool:
    """
    Checks `data` against a recorded integrity string.
    A missing integrity string means "not verified" and passes.
    """
    if not integrity:
        return True
    algorithm, expected = parseIntegrity(integrity)
    hasher = _newHasher(algorithm)
    hasher.update(data)
    return hmac.compare_digest(hasher.digest(), expected)



def verifyFileIntegrity(integrity: str | None, path: str | Path) -> bool:
    if not integrity:
        return True
    algorithm, expected = parseIntegrity(integrity)
    return hmac.compare_digest(_fileDigest(Path(path), algorithm), expected)
