"""Subprocess invocation shared by every external-tool adapter.

Commands are always argv lists; nothing here builds shell strings. Output is
captured as bytes so callers that need exact stdout (fragments) get it
unmodified.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from docship.core.errors import ExecutionError
from docship.core.logging import get_logger

logger = get_logger(__name__)


def run_command(
    command: Sequence[str | os.PathLike[str]],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """Run ``command`` to completion and return the captured result.

    Args:
        command: Program and arguments.
        cwd: Working directory for the child process.
        env: Variables overlaid on the current environment.
        timeout: Seconds before the child is killed (``None``: wait forever).

    Raises:
        ExecutionError: The program could not be launched, timed out, or
            exited non-zero. ``stderr`` carries the tool's output verbatim.
    """
    argv = [os.fspath(part) for part in command]
    if not argv:
        raise ExecutionError("Empty command")

    child_env = None
    if env:
        child_env = {**os.environ, **env}

    logger.debug("process.start", command=argv, cwd=str(cwd) if cwd else None)
    started = time.monotonic()

    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            cwd=str(cwd) if cwd else None,
            env=child_env,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExecutionError(
            f"Cannot launch {argv[0]!r}: program not found", command=argv, cause=exc
        ) from exc
    except subprocess.TimeoutExpired as exc:
        stderr = _decode(exc.stderr)
        raise ExecutionError(
            f"{argv[0]!r} timed out after {timeout}s", command=argv, stderr=stderr, cause=exc
        ) from exc
    except OSError as exc:
        raise ExecutionError(f"Cannot launch {argv[0]!r}: {exc}", command=argv, cause=exc) from exc

    elapsed = time.monotonic() - started
    if result.returncode != 0:
        stderr = _decode(result.stderr)
        logger.error(
            "process.failed",
            command=argv,
            exit_code=result.returncode,
            duration_seconds=round(elapsed, 3),
        )
        raise ExecutionError(
            f"{argv[0]!r} exited with status {result.returncode}",
            command=argv,
            exit_code=result.returncode,
            stderr=stderr,
        )

    logger.debug("process.completed", command=argv, duration_seconds=round(elapsed, 3))
    return result


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


__all__ = ["run_command"]
