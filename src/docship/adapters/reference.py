"""Reference doc generator adapter (javadoc-style command line).

Builds one typed argument list for the whole module set, runs the tool into a
freshly cleared output directory and then copies the element index to its
legacy name (``element-list`` → ``package-list``) so older consumers of the
output keep resolving links.

Repeat runs with unchanged inputs produce byte-identical trees: the output
directory is cleared first, source files are passed in sorted order and the
tool is asked not to stamp timestamps.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from docship.adapters.process import run_command
from docship.collect import missing_inputs
from docship.config import ReferenceToolConfig
from docship.core.errors import ExecutionError, MissingInputError
from docship.core.logging import get_logger
from docship.models import Module, ReferenceOutput

logger = get_logger(__name__)

Runner = Callable[..., object]


def documented_modules(modules: Sequence[Module]) -> list[Module]:
    """Modules that contribute symbols; aggregates would duplicate entries."""
    return [m for m in modules if not m.aggregate]


def collect_sources(modules: Sequence[Module], pattern: str) -> list[Path]:
    """Sorted source files matching ``pattern`` across all module source dirs."""
    files: set[Path] = set()
    for module in modules:
        for source_dir in module.source_dirs:
            files.update(p for p in source_dir.glob(pattern) if p.is_file())
    return sorted(files, key=lambda p: p.as_posix())


def build_classpath(modules: Sequence[Module], exclude: Sequence[str]) -> list[Path]:
    """Artefacts and compile classpaths, de-duplicated, minus excluded entries."""
    seen: dict[str, Path] = {}
    for module in modules:
        for entry in (module.artifact_path, *module.classpath):
            key = entry.as_posix()
            if any(token in key for token in exclude):
                continue
            seen.setdefault(key, entry)
    return list(seen.values())


def build_reference_command(
    config: ReferenceToolConfig,
    modules: Sequence[Module],
    output_dir: Path,
    *,
    title: str,
    header: str | None = None,
    link_values: Mapping[str, str] | None = None,
    argfile: Path | None = None,
) -> list[str]:
    """Assemble the reference tool's argv.

    Source files are passed through ``argfile`` (``@path``) when given, so
    large module sets do not hit argv length limits.
    """
    link_values = link_values or {}
    cmd: list[str] = [*config.command, "-locale", config.locale]
    cmd += ["-d", str(output_dir)]
    cmd += ["-doctitle", title, "-windowtitle", title]
    if header or config.header:
        cmd += ["-header", header or config.header or ""]
    cmd += ["-encoding", config.encoding, "-docencoding", config.encoding, "-charset", config.encoding]
    cmd += [f"-{config.member_level}", "-splitindex", "-use", "-notimestamp"]
    for tag in config.tags:
        cmd += ["-tag", tag]
    for link in config.links:
        cmd += ["-link", link.format(**link_values)]
    for group, patterns in config.groups.items():
        cmd += ["-group", group, ":".join(patterns)]
    if config.stylesheet is not None:
        cmd += ["--add-stylesheet", str(config.stylesheet)]

    classpath = build_classpath(modules, config.classpath_exclude)
    if classpath:
        cmd += ["-classpath", _join_paths(classpath)]
    source_roots = [d for m in modules for d in m.source_dirs]
    if source_roots:
        cmd += ["-sourcepath", _join_paths(source_roots)]

    cmd += list(config.extra_options)
    if argfile is not None:
        cmd.append(f"@{argfile}")
    return cmd


def _join_paths(paths: Sequence[Path]) -> str:
    return os.pathsep.join(str(p) for p in paths)


class ReferenceDocAdapter:
    """Runs the configured reference tool over the documented modules."""

    def __init__(self, config: ReferenceToolConfig, runner: Runner = run_command):
        self.config = config
        self._run = runner

    def generate(
        self,
        modules: Sequence[Module],
        output_dir: Path,
        *,
        title: str,
        header: str | None = None,
        link_values: Mapping[str, str] | None = None,
    ) -> ReferenceOutput:
        """Generate the reference tree into ``output_dir``.

        Raises:
            MissingInputError: A module artefact or source directory is absent,
                or the tool did not produce its element index
            ExecutionError: The tool failed
        """
        selected = documented_modules(modules)
        excluded = [m.name for m in modules if m.aggregate]
        if excluded:
            logger.info("reference.excluded_aggregates", modules=excluded)

        self._check_inputs(selected)
        sources = collect_sources(selected, self.config.source_pattern)

        if output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True)

        with tempfile.TemporaryDirectory(prefix="docship-reference-") as tmp:
            argfile = Path(tmp) / "sources.txt"
            argfile.write_text(
                "".join(f'"{p.as_posix()}"\n' for p in sources), encoding="utf-8"
            )
            command = build_reference_command(
                self.config,
                selected,
                output_dir,
                title=title,
                header=header,
                link_values=link_values,
                argfile=argfile,
            )
            logger.info(
                "reference.generating",
                modules=[m.name for m in selected],
                source_files=len(sources),
                output=str(output_dir),
            )
            try:
                self._run(command, timeout=self.config.timeout)
            except ExecutionError:
                shutil.rmtree(output_dir, ignore_errors=True)
                raise

        index = output_dir / self.config.index_file
        if not index.is_file():
            shutil.rmtree(output_dir, ignore_errors=True)
            raise MissingInputError(
                f"Reference tool did not produce {self.config.index_file}",
                missing=[str(index)],
            ).with_context(path=str(index))

        legacy = output_dir / self.config.legacy_index_file
        shutil.copyfile(index, legacy)
        logger.info("reference.generated", output=str(output_dir), legacy_index=legacy.name)

        return ReferenceOutput(
            root=output_dir,
            index_file=index,
            legacy_index_file=legacy,
            modules=tuple(m.name for m in selected),
        )

    def _check_inputs(self, modules: Sequence[Module]) -> None:
        missing = missing_inputs(modules)
        if missing:
            raise MissingInputError(
                f"Missing module inputs for reference docs: {', '.join(missing)}",
                missing=missing,
            )


__all__ = [
    "ReferenceDocAdapter",
    "build_classpath",
    "build_reference_command",
    "collect_sources",
    "documented_modules",
]
