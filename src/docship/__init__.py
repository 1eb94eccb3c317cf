"""
docship: a documentation build orchestrator for multi-module projects.

Generates API reference docs and the user guide (HTML and PDF), stages them
into a version-addressed tree and publishes that tree into a persistent,
history-preserving site.

    from docship import load_config, run_pipeline

    config = load_config(Path("docship.yaml"))
    run_pipeline(config, targets=["stage-docs"])
"""

from docship.config import BuildConfig, load_config
from docship.core.errors import (
    ConfigError,
    DocshipError,
    ExecutionError,
    MissingInputError,
    PublishConflictError,
    StageFailedError,
)
from docship.pipeline import PipelineState, Toolchain, run_pipeline

__version__ = "0.1.0"

__all__ = [
    "BuildConfig",
    "ConfigError",
    "DocshipError",
    "ExecutionError",
    "MissingInputError",
    "PipelineState",
    "PublishConflictError",
    "StageFailedError",
    "Toolchain",
    "__version__",
    "load_config",
    "run_pipeline",
]
