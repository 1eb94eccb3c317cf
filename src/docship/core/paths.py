"""Ant-style path patterns over POSIX relative paths.

``*`` and ``?`` stay within one path segment, ``**`` crosses segments and
``**/`` also matches no directory at all::

    >>> matches("user-guide/images/logo.png", "**/images/**/*.png")
    True
    >>> matches("images/logo.png", "**/images/**/*.png")
    True
    >>> matches("tocbot-4.12.0/tocbot.min.js", "tocbot-*/**")
    True
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def matches(rel: str, pattern: str) -> bool:
    return compile_pattern(pattern).fullmatch(rel) is not None


def match_files(root: Path, patterns: Sequence[str]) -> list[Path]:
    """Files under ``root`` whose relative path matches any pattern, sorted."""
    found: list[Path] = []
    for path in sorted(root.rglob("*"), key=lambda p: p.as_posix()):
        if path.is_file() and any(matches(path.relative_to(root).as_posix(), p) for p in patterns):
            found.append(path)
    return found


__all__ = ["compile_pattern", "match_files", "matches"]
