"""Publish coordinator: merge a staged tree into the published site.

Preservation rule for ``<prefix>/`` (``docs/`` by default) in the site:

- ``<prefix>/<version>/`` is always replaced by the staged tree
- ``<prefix>/current/`` is replaced by a copy of it only when asked to
- everything else is left exactly as it was

The merge happens in a working copy handed out by the target and lands as
one commit; a failure at any point discards the working copy, leaving the
published site untouched.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from docship.adapters.base import PublishTarget
from docship.config import CURRENT_ALIAS
from docship.core.errors import MissingInputError
from docship.core.logging import get_logger
from docship.models import PublishOutcome, StagedTree

logger = get_logger(__name__)


class PublishCoordinator:
    """Applies the preservation rule through a :class:`PublishTarget`."""

    def __init__(self, target: PublishTarget, prefix: str = "docs"):
        self.target = target
        self.prefix = prefix

    def publish(
        self,
        staged: StagedTree,
        *,
        replace_current: bool = False,
        message: str = "",
    ) -> PublishOutcome:
        """Publish ``staged`` and report what changed.

        Raises:
            MissingInputError: The staged tree does not exist.
            PublishConflictError: The target diverged since checkout.
        """
        if not staged.root.is_dir():
            raise MissingInputError(
                f"Staged tree not found: {staged.root}", missing=[str(staged.root)]
            )

        message = message or f"Publish documentation {staged.version}"
        workdir = self.target.checkout()
        try:
            docs = workdir / self.prefix
            preserved = existing_versions(docs, exclude={staged.version, CURRENT_ALIAS})

            replace_tree(staged.root, docs / staged.version)
            if replace_current:
                replace_tree(staged.root, docs / CURRENT_ALIAS)

            commit = self.target.commit(workdir, message)
        finally:
            self.target.discard(workdir)

        outcome = PublishOutcome(
            version=staged.version,
            changed=commit is not None,
            replaced_current=replace_current,
            commit=commit,
            preserved_versions=tuple(preserved),
        )
        logger.info(
            "publish.completed",
            version=staged.version,
            changed=outcome.changed,
            replaced_current=replace_current,
            preserved=list(outcome.preserved_versions),
        )
        return outcome


def existing_versions(docs: Path, exclude: set[str]) -> list[str]:
    """Version directories already published, minus ``exclude``."""
    if not docs.is_dir():
        return []
    return sorted(p.name for p in docs.iterdir() if p.is_dir() and p.name not in exclude)


def replace_tree(source: Path, dest: Path) -> None:
    if dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(source, dest, copy_function=shutil.copyfile)


__all__ = ["PublishCoordinator", "existing_versions", "replace_tree"]
