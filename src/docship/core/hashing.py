"""
Deterministic hashing for file trees.

Used for stage cache fingerprints, staged-tree manifests and for deciding
whether a publish run changed anything at all.

Examples:
    >>> compute_hash("1.0", "api") == compute_hash("1.0", "api")
    True
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

_CHUNK = 1024 * 64


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute a deterministic hash from values.

    Values are joined with ``|`` and hashed with SHA-256.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def file_digest(path: Path) -> str:
    """SHA-256 hex digest of a file's bytes."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def tree_manifest(root: Path) -> dict[str, str]:
    """Map every file under ``root`` (POSIX relative path) to its digest.

    Returns an empty mapping when ``root`` does not exist.
    """
    if not root.exists():
        return {}
    if root.is_file():
        return {root.name: file_digest(root)}
    return {
        path.relative_to(root).as_posix(): file_digest(path)
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def tree_digest(root: Path) -> str:
    """Single digest summarising paths and contents of a tree."""
    manifest = tree_manifest(root)
    return compute_hash(*(f"{rel}={digest}" for rel, digest in manifest.items()), length=64)


def paths_digest(paths: Iterable[Path]) -> str:
    """Fingerprint a set of input files/directories.

    Missing paths contribute a marker rather than being skipped, so that a
    path disappearing changes the fingerprint.
    """
    parts: list[str] = []
    for path in sorted({Path(p) for p in paths}, key=lambda p: p.as_posix()):
        if not path.exists():
            parts.append(f"{path.as_posix()}:<missing>")
            continue
        parts.append(f"{path.as_posix()}:{tree_digest(path)}")
    return compute_hash(*parts, length=64)


__all__ = ["compute_hash", "file_digest", "paths_digest", "tree_digest", "tree_manifest"]
