"""Staging: assemble rendered outputs into ``<output>/<doc version>/``.

Layout of a staged tree::

    <output>/<version>/
        published-checksum.txt      (optional marker)
        user-guide/**  release-notes/**  tocbot-*/**   (narrative HTML)
        **/*.pdf                    (when PDF output is enabled)
        api/**                      (reference tree, renamed from javadoc/)

Every HTML file of the reference tree gets the favicon ``<link>`` appended
right after the ``<head>`` tag on each line that starts with it. The version
directory is cleared first and empty directories are pruned last, so staging
the same inputs twice produces identical trees.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path, PurePosixPath

from docship.config import BuildConfig
from docship.core.errors import MissingInputError
from docship.core.logging import get_logger
from docship.core.paths import match_files
from docship.models import StagedTree

logger = get_logger(__name__)

HEAD_TAG = "<head>"
API_DIR = "api"
NARRATIVE_PATTERNS = ("user-guide/**", "release-notes/**", "tocbot-*/**")
PDF_PATTERNS = ("**/*.pdf",)
HTML_SUFFIXES = (".html", ".htm")


def favicon_tag(url: str) -> str:
    return f'<link rel="icon" type="image/png" href="{url}">'


def inject_favicon(text: str, url: str) -> str:
    """Insert the favicon link after ``<head>`` on lines that start with it.

    Line endings are preserved, and lines that merely contain ``<head>``
    further along are left alone.
    """
    tag = HEAD_TAG + favicon_tag(url)
    lines = text.splitlines(keepends=True)
    return "".join(
        line.replace(HEAD_TAG, tag, 1) if line.startswith(HEAD_TAG) else line for line in lines
    )


def inject_favicon_bytes(data: bytes, url: str) -> bytes:
    # surrogateescape keeps non-UTF-8 bytes intact through the round trip
    text = data.decode("utf-8", errors="surrogateescape")
    return inject_favicon(text, url).encode("utf-8", errors="surrogateescape")


def remap_reference_path(rel: str, source_segment: str, target_segment: str = API_DIR) -> str:
    """``javadoc/org/a.html`` → ``api/org/a.html``.

    Only the leading segment is rewritten; a path not under
    ``source_segment`` is returned unchanged.
    """
    parts = PurePosixPath(rel).parts
    if parts and parts[0] == source_segment:
        return PurePosixPath(target_segment, *parts[1:]).as_posix()
    return rel


def prune_empty_dirs(root: Path) -> int:
    """Remove empty directories below ``root`` (bottom-up); returns how many."""
    removed = 0
    for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
        path = Path(dirpath)
        if path == root:
            continue
        if not any(path.iterdir()):
            path.rmdir()
            removed += 1
    return removed


class StagingAssembler:
    """Builds the version-addressed tree from the build's output directories."""

    def __init__(self, config: BuildConfig):
        self.config = config

    @property
    def version_root(self) -> Path:
        return self.config.output_dir / self.config.doc_version

    def stage(self) -> StagedTree:
        """Clear the version directory and copy every staged file into it.

        Raises:
            MissingInputError: The reference tree, the narrative HTML output or
                (when enabled) the PDF output has not been produced.
        """
        cfg = self.config
        required = [cfg.reference_output_dir, cfg.html_output_dir]
        if cfg.pdf_output_enabled:
            required.append(cfg.pdf_output_dir)
        missing = [str(p) for p in required if not p.is_dir()]
        if missing:
            raise MissingInputError(
                f"Nothing to stage, outputs missing: {', '.join(missing)}", missing=missing
            )

        root = self.version_root
        if root.exists():
            shutil.rmtree(root)
        root.mkdir(parents=True)

        staged: list[str] = []
        if cfg.checksum_file is not None and cfg.checksum_file.is_file():
            staged.append(self._copy(cfg.checksum_file, root, cfg.checksum_file.name))
        else:
            logger.debug("staging.no_checksum", path=str(cfg.checksum_file))

        staged += self._copy_matching(cfg.html_output_dir, root, NARRATIVE_PATTERNS)
        if cfg.pdf_output_enabled:
            staged += self._copy_matching(cfg.pdf_output_dir, root, PDF_PATTERNS)
        staged += self._stage_reference(root)

        pruned = prune_empty_dirs(root)
        files = tuple(sorted(set(staged)))
        logger.info(
            "staging.completed",
            version=cfg.doc_version,
            root=str(root),
            files=len(files),
            pruned_dirs=pruned,
        )
        return StagedTree(root=root, version=cfg.doc_version, files=files)

    def staged_tree(self) -> StagedTree:
        """Describe the tree a previous :meth:`stage` left on disk."""
        root = self.version_root
        if not root.is_dir():
            raise MissingInputError(f"No staged tree at {root}", missing=[str(root)])
        files = tuple(p.relative_to(root).as_posix() for p in _files(root))
        return StagedTree(root=root, version=self.config.doc_version, files=files)

    def _stage_reference(self, root: Path) -> list[str]:
        ref_root = self.config.reference_output_dir
        segment = ref_root.name
        staged: list[str] = []
        for src in _files(ref_root):
            rel = PurePosixPath(segment, src.relative_to(ref_root).as_posix()).as_posix()
            dest_rel = remap_reference_path(rel, segment)
            if src.suffix.lower() in HTML_SUFFIXES:
                dest = root / dest_rel
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(inject_favicon_bytes(src.read_bytes(), self.config.favicon_url))
                staged.append(dest_rel)
            else:
                staged.append(self._copy(src, root, dest_rel))
        return staged

    def _copy_matching(self, source: Path, root: Path, patterns: Sequence[str]) -> list[str]:
        return [
            self._copy(src, root, src.relative_to(source).as_posix())
            for src in match_files(source, patterns)
        ]

    @staticmethod
    def _copy(src: Path, root: Path, rel: str) -> str:
        dest = root / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        return rel


def _files(root: Path) -> Iterable[Path]:
    return sorted((p for p in root.rglob("*") if p.is_file()), key=lambda p: p.as_posix())


__all__ = [
    "StagingAssembler",
    "favicon_tag",
    "inject_favicon",
    "inject_favicon_bytes",
    "prune_empty_dirs",
    "remap_reference_path",
]
