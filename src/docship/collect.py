"""Artifact collection: the explicit, ordered module list for a build."""

from __future__ import annotations

from collections.abc import Sequence

from docship.config import BuildConfig
from docship.core.errors import MissingInputError
from docship.core.logging import get_logger
from docship.models import Module

logger = get_logger(__name__)


def collect_modules(config: BuildConfig) -> tuple[Module, ...]:
    """Modules in configuration order."""
    return tuple(Module.from_config(m) for m in config.modules)


def missing_inputs(modules: Sequence[Module]) -> list[str]:
    """Artefacts and source directories of documented modules that do not exist."""
    missing: list[str] = []
    for module in modules:
        if module.aggregate:
            continue
        if not module.artifact_path.exists():
            missing.append(str(module.artifact_path))
        missing.extend(str(d) for d in module.source_dirs if not d.is_dir())
    return missing


def verify_modules(modules: Sequence[Module]) -> tuple[Module, ...]:
    """Check every documented module's build outputs are present.

    Raises:
        MissingInputError: Listing every absent artefact or source directory.
    """
    missing = missing_inputs(modules)
    if missing:
        raise MissingInputError(
            f"Module build outputs missing: {', '.join(missing)}", missing=missing
        )
    logger.info(
        "collect.verified",
        modules=[m.name for m in modules],
        aggregates=[m.name for m in modules if m.aggregate],
    )
    return tuple(modules)


__all__ = ["collect_modules", "missing_inputs", "verify_modules"]
