"""Typed interfaces for the external collaborators.

The orchestrator talks to the reference generator, the narrative renderer and
the publish target only through these protocols, one method per capability.
Concrete implementations live next to this module; tests substitute their own.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from docship.models import Module, NarrativeOutput, ReferenceOutput


@runtime_checkable
class ReferenceDocGenerator(Protocol):
    """Produces a cross-linked reference tree for a list of modules."""

    def generate(
        self,
        modules: Sequence[Module],
        output_dir: Path,
        *,
        title: str,
        header: str | None = None,
        link_values: Mapping[str, str] | None = None,
    ) -> ReferenceOutput: ...


@runtime_checkable
class NarrativeRenderer(Protocol):
    """Renders hand-written guide content with an attribute map."""

    def render(
        self,
        backend: str,
        source_dir: Path,
        output_dir: Path,
        attributes: Mapping[str, str | bool | int],
        *,
        required_files: Sequence[Path] = (),
    ) -> NarrativeOutput: ...


@runtime_checkable
class PublishTarget(Protocol):
    """A version-controlled, tree-structured store for the published site.

    ``checkout`` returns a private working copy of the current state. The
    caller edits it and then either ``commit``s (persisting it as one atomic
    change) or ``discard``s it. ``commit`` returns an identifier, or ``None``
    when the working copy does not differ from the published state.
    """

    def checkout(self) -> Path: ...

    def commit(self, workdir: Path, message: str) -> str | None: ...

    def discard(self, workdir: Path) -> None: ...


__all__ = ["NarrativeRenderer", "PublishTarget", "ReferenceDocGenerator"]
