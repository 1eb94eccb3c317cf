"""Fragment generation: auxiliary program stdout captured into include files.

Fragments are regenerated on every build. Output is written byte-for-byte,
trailing whitespace included, and a failing program is fatal; there is no
fallback content.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from docship.adapters.process import run_command
from docship.core.errors import ExecutionError
from docship.core.logging import get_logger
from docship.models import FragmentSpec, GeneratedFragment

logger = get_logger(__name__)


class FragmentGenerator:
    """Runs fragment programs in declaration order."""

    def __init__(self, runner: Callable[..., Any] = run_command, timeout: float | None = None):
        self._run = runner
        self.timeout = timeout

    def generate(self, specs: Iterable[FragmentSpec]) -> list[GeneratedFragment]:
        return [self.generate_one(spec) for spec in specs]

    def generate_one(self, spec: FragmentSpec) -> GeneratedFragment:
        """Run one program and write its stdout to ``spec.output_path``.

        Raises:
            ExecutionError: The program could not be launched or exited
                non-zero; its stderr is carried verbatim.
        """
        try:
            result = self._run(
                list(spec.command),
                cwd=spec.cwd,
                env=dict(spec.env) or None,
                timeout=self.timeout,
            )
        except ExecutionError as exc:
            raise exc.with_context(fragment=spec.name)

        content: bytes = result.stdout
        write_atomic(spec.output_path, content)
        logger.info("fragment.written", fragment=spec.name, path=str(spec.output_path), size=len(content))
        return GeneratedFragment(name=spec.name, path=spec.output_path, content=content)


def write_atomic(path: Path, content: bytes) -> None:
    """Write ``content`` via a sibling temp file so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


__all__ = ["FragmentGenerator", "write_atomic"]
