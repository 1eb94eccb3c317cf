"""Immutable data model shared by every stage."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from docship.config import BuildConfig, FragmentConfig, ModuleConfig


@dataclass(frozen=True)
class Module:
    """A named unit of source with its own compiled artefact and sources."""

    name: str
    artifact_path: Path
    source_dirs: tuple[Path, ...] = ()
    classpath: tuple[Path, ...] = ()
    aggregate: bool = False

    @classmethod
    def from_config(cls, cfg: ModuleConfig) -> Module:
        return cls(
            name=cfg.name,
            artifact_path=cfg.artifact,
            source_dirs=tuple(cfg.sources),
            classpath=tuple(cfg.classpath),
            aggregate=cfg.aggregate,
        )


@dataclass(frozen=True)
class FragmentSpec:
    """An auxiliary program and the file its stdout is captured into."""

    name: str
    command: tuple[str, ...]
    output_path: Path
    cwd: Path | None = None
    env: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_config(cls, cfg: FragmentConfig) -> FragmentSpec:
        assert cfg.output is not None  # filled in by BuildConfig validation
        return cls(
            name=cfg.name,
            command=tuple(cfg.command),
            output_path=cfg.output,
            cwd=cfg.cwd,
            env=tuple(sorted(cfg.env.items())),
        )


@dataclass(frozen=True)
class GeneratedFragment:
    """Captured output of an auxiliary program; never mutated after creation."""

    name: str
    path: Path
    content: bytes


@dataclass(frozen=True)
class ReferenceOutput:
    """Directory tree produced by the reference doc generator."""

    root: Path
    index_file: Path
    legacy_index_file: Path
    modules: tuple[str, ...]


@dataclass(frozen=True)
class NarrativeOutput:
    """Output of one narrative renderer backend."""

    backend: str  # "html" or "pdf"
    root: Path
    entry_points: tuple[Path, ...]
    resources: tuple[Path, ...] = ()


@dataclass(frozen=True)
class StagedTree:
    """Version-addressed tree ready for publication."""

    root: Path
    version: str
    files: tuple[str, ...]


@dataclass(frozen=True)
class PublishOutcome:
    """What a publish run changed."""

    version: str
    changed: bool
    replaced_current: bool
    commit: str | None = None
    preserved_versions: tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildContext:
    """Everything a stage needs, constructed once at startup.

    ``modules`` is the explicit, ordered module list; nothing reads module
    state from anywhere else.
    """

    config: BuildConfig
    modules: tuple[Module, ...]
    fragments: tuple[FragmentSpec, ...]
    doc_version: str
    run_id: str = ""

    @property
    def documented_modules(self) -> tuple[Module, ...]:
        """Modules fed to the reference generator (aggregates excluded)."""
        return tuple(m for m in self.modules if not m.aggregate)


__all__ = [
    "BuildContext",
    "FragmentSpec",
    "GeneratedFragment",
    "Module",
    "NarrativeOutput",
    "PublishOutcome",
    "ReferenceOutput",
    "StagedTree",
]
