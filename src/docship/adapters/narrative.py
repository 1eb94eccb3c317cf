"""Narrative doc renderer adapter (AsciiDoc-style command line).

Only files named ``<entry_name>.<extension>`` are render entry points; every
other file under the source root is included content. Rendering has two hard
preconditions:

- every file a ``*File`` attribute points at exists (generated fragments
  and hand-written entries alike); this is checked before the output
  directory is touched
- resource files (images, front-end assets) are already copied into the
  output directory; the renderer reads them by local path while it runs,
  so they are copied *before* the tool starts, never after
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from docship.adapters.process import run_command
from docship.config import BuildConfig, NarrativeToolConfig
from docship.core.errors import ConfigError, ExecutionError, MissingInputError
from docship.core.logging import get_logger
from docship.core.paths import match_files
from docship.models import FragmentSpec, NarrativeOutput

logger = get_logger(__name__)

Runner = Callable[..., object]

HTML = "html"
PDF = "pdf"
BACKENDS = (HTML, PDF)
FILE_SUFFIX = "File"


def fragment_attribute_name(fragment_name: str) -> str:
    """``console-launcher-options`` → ``consoleLauncherOptionsFile``."""
    parts = [p for p in fragment_name.replace("_", "-").split("-") if p]
    if not parts:
        raise ConfigError(f"Invalid fragment name: {fragment_name!r}")
    head, *tail = parts
    return head + "".join(p[:1].upper() + p[1:] for p in tail) + FILE_SUFFIX


def build_attributes(
    config: BuildConfig,
    fragments: Sequence[FragmentSpec],
    output_dir: Path,
) -> dict[str, str | bool | int]:
    """The flat key→value map handed to the renderer.

    Later entries win: fixed presentation settings, then per-component
    versions, then fragment paths, then free-form ``narrative.attributes``.
    """
    narrative = config.narrative
    attributes: dict[str, str | bool | int] = {
        "linkToPdf": config.pdf_output_enabled,
        "revnumber": config.project_version,
        "project-version": config.project_version,
        "docs-version": config.doc_version,
        "outdir": str(output_dir),
        "source-highlighter": narrative.source_highlighter,
        "tabsize": narrative.tabsize,
        "toc": narrative.toc,
        "icons": narrative.icons,
        "sectanchors": narrative.sectanchors,
        "idprefix": narrative.idprefix,
        "idseparator": narrative.idseparator,
    }
    if narrative.release_branch:
        attributes["release-branch"] = narrative.release_branch
    for name, version in sorted(config.dependency_versions.items()):
        attributes[f"{name}-version"] = version
    for fragment in fragments:
        attributes[fragment_attribute_name(fragment.name)] = str(fragment.output_path)
    attributes.update(narrative.attributes)
    return attributes


def included_files(attributes: Mapping[str, str | bool | int], base_dir: Path) -> list[Path]:
    """Files named by path-valued ``*File`` attributes.

    Relative values resolve against ``base_dir``, the renderer's working
    directory.
    """
    files: list[Path] = []
    for key, value in attributes.items():
        if key.endswith(FILE_SUFFIX) and isinstance(value, str) and value:
            path = Path(value)
            files.append(path if path.is_absolute() else base_dir / path)
    return files


def attribute_args(attributes: Mapping[str, str | bool | int]) -> list[str]:
    """Render attributes as ``-a`` options.

    ``True`` sets a bare attribute, ``False`` unsets it (``name!``).
    """
    args: list[str] = []
    for key, value in attributes.items():
        if value is True:
            args += ["-a", key]
        elif value is False:
            args += ["-a", f"{key}!"]
        else:
            args += ["-a", f"{key}={value}"]
    return args


def find_entry_points(source_dir: Path, entry_name: str, extension: str) -> list[Path]:
    return sorted(
        (p for p in source_dir.rglob(f"{entry_name}.{extension}") if p.is_file()),
        key=lambda p: p.as_posix(),
    )


class NarrativeRendererAdapter:
    """Runs the configured HTML/PDF renderer over the narrative sources."""

    def __init__(self, config: NarrativeToolConfig, runner: Runner = run_command):
        self.config = config
        self._run = runner

    def command_for(self, backend: str) -> list[str]:
        if backend == HTML:
            return list(self.config.html_command)
        if backend == PDF:
            return list(self.config.pdf_command)
        raise ConfigError(f"Unknown narrative backend: {backend!r}")

    def resource_patterns(self, backend: str) -> list[str]:
        patterns = list(self.config.resource_patterns)
        if backend == HTML:
            patterns += self.config.html_resource_patterns
        return patterns

    def render(
        self,
        backend: str,
        source_dir: Path,
        output_dir: Path,
        attributes: Mapping[str, str | bool | int],
        *,
        required_files: Sequence[Path] = (),
    ) -> NarrativeOutput:
        """Render every entry point under ``source_dir`` with ``backend``.

        Raises:
            MissingInputError: A required fragment, the source root, or any
                entry point is missing. Nothing is written in that case.
            ExecutionError: The renderer failed; the output directory is
                removed so no partial output survives.
        """
        command = self.command_for(backend)

        missing = [str(p) for p in required_files if not Path(p).is_file()]
        if missing:
            raise MissingInputError(
                f"Generated fragments missing before {backend} render: {', '.join(missing)}",
                missing=missing,
            )
        if not source_dir.is_dir():
            raise MissingInputError(
                f"Narrative source directory not found: {source_dir}", missing=[str(source_dir)]
            ).with_context(path=str(source_dir))

        entry_points = find_entry_points(source_dir, self.config.entry_name, self.config.extension)
        if not entry_points:
            raise MissingInputError(
                f"No {self.config.entry_name}.{self.config.extension} entry points under {source_dir}",
                missing=[str(source_dir / f"{self.config.entry_name}.{self.config.extension}")],
            )

        if output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True)

        try:
            resources = self._copy_resources(backend, source_dir, output_dir)
            argv = [
                *command,
                *attribute_args(attributes),
                "-B", str(source_dir),
                "-R", str(source_dir),
                "-D", str(output_dir),
                *(str(p) for p in entry_points),
            ]
            logger.info(
                "narrative.rendering",
                backend=backend,
                entry_points=[p.relative_to(source_dir).as_posix() for p in entry_points],
                resources=len(resources),
            )
            self._run(argv, cwd=source_dir, timeout=self.config.timeout)
        except (ExecutionError, OSError):
            shutil.rmtree(output_dir, ignore_errors=True)
            raise

        logger.info("narrative.rendered", backend=backend, output=str(output_dir))
        return NarrativeOutput(
            backend=backend,
            root=output_dir,
            entry_points=tuple(entry_points),
            resources=tuple(resources),
        )

    def _copy_resources(self, backend: str, source_dir: Path, output_dir: Path) -> list[Path]:
        copied: list[Path] = []
        for src in match_files(source_dir, self.resource_patterns(backend)):
            dest = output_dir / src.relative_to(source_dir)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
            copied.append(dest)
        return copied


__all__ = [
    "BACKENDS",
    "HTML",
    "PDF",
    "NarrativeRendererAdapter",
    "attribute_args",
    "build_attributes",
    "find_entry_points",
    "fragment_attribute_name",
    "included_files",
]
