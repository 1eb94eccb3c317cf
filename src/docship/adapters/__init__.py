"""Adapters for the external tools the build drives."""

from docship.adapters.base import NarrativeRenderer, PublishTarget, ReferenceDocGenerator
from docship.adapters.narrative import NarrativeRendererAdapter, build_attributes
from docship.adapters.process import run_command
from docship.adapters.reference import ReferenceDocAdapter
from docship.adapters.targets import GitSiteTarget, LocalSiteTarget, create_target

__all__ = [
    "GitSiteTarget",
    "LocalSiteTarget",
    "NarrativeRenderer",
    "NarrativeRendererAdapter",
    "PublishTarget",
    "ReferenceDocAdapter",
    "ReferenceDocGenerator",
    "build_attributes",
    "create_target",
    "run_command",
]
