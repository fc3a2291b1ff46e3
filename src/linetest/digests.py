"""Content digests used to detect source files that changed since a build.

Digests are SHA-256 hashes of the raw file bytes.  The side file stores them
as a JSON object of ``path -> hex digest`` with sorted keys so that it stays
human-diffable.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable

from .errors import IntegrityError, ParseError, PathError
from .model import PathDigestMap

DIGEST_SIZE = hashlib.sha256().digest_size


def hash_path_contents(path: Path | str) -> bytes:
    """Return the SHA-256 digest of the bytes stored at ``path``."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            digest.update(chunk)
    return digest.digest()


def hash_paths(paths: Iterable[str]) -> PathDigestMap:
    """Hash every path in ``paths`` and return them keyed by path."""
    digests: PathDigestMap = {}
    for path in sorted(set(paths)):
        try:
            digests[path] = hash_path_contents(path)
        except OSError as error:
            raise PathError(f"cannot hash covered file {path}: {error.strerror or error}") from error
    return digests


def dump_digests(digests: PathDigestMap, path: Path) -> None:
    """Replace ``path`` with the hex-encoded digest map.

    The payload goes to a sibling temporary file first, so readers see either
    the old side file or the complete new one.
    """
    payload: Dict[str, str] = {key: value.hex() for key, value in sorted(digests.items())}
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
    )
    try:
        with handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.write("\n")
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


def load_digests(path: Path) -> PathDigestMap:
    """Read a digest side file, validating every stored hash."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise ParseError(f"Malformed digest file {path}: {error}") from error
    except OSError as error:
        raise PathError(f"cannot read digest file {path}: {error.strerror or error}") from error

    if not isinstance(raw, dict):
        raise ParseError(f"Digest file {path} must contain a JSON object")

    digests: PathDigestMap = {}
    for key, value in raw.items():
        if not isinstance(value, str):
            raise ParseError(f"Digest for {key} is not a string: {value!r}")
        try:
            decoded = bytes.fromhex(value)
        except ValueError as error:
            raise ParseError(f"Digest for {key} is not valid hex: {value}") from error
        if len(decoded) != DIGEST_SIZE:
            raise IntegrityError(f"invalid digest: {value}")
        digests[str(key)] = decoded
    return digests


__all__ = ["DIGEST_SIZE", "dump_digests", "hash_path_contents", "hash_paths", "load_digests"]
