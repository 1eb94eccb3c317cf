"""Publish targets: where the versioned site lives between builds.

Both targets follow the same protocol: ``checkout`` hands out a private
working copy, the caller edits it, ``commit`` persists it as one change.
A target refuses to commit when the destination moved on since checkout.

- :class:`LocalSiteTarget` - a directory; the working copy replaces it by rename.
- :class:`GitSiteTarget` - a branch of a git repository, driven through the
  ``git`` CLI; the working copy is pushed as a single commit.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from docship.adapters.process import run_command
from docship.config import PublishConfig
from docship.core.errors import ExecutionError, PublishConflictError
from docship.core.hashing import tree_digest
from docship.core.logging import get_logger

logger = get_logger(__name__)

Runner = Callable[..., Any]

DEFAULT_AUTHOR_NAME = "docship"
DEFAULT_AUTHOR_EMAIL = "docship@localhost"

# Fragments of git's stderr that mean "the remote moved on"
_REJECTION_MARKERS = ("[rejected]", "non-fast-forward", "fetch first", "stale info")


class LocalSiteTarget:
    """A published site kept as a plain directory."""

    def __init__(self, path: Path):
        self.path = path
        self._checkouts: dict[Path, str] = {}
        self._lock = threading.Lock()

    def checkout(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix=f".{self.path.name}-work-", dir=self.path.parent))
        # mkdtemp creates 0700; the working copy becomes the site, so give it the site mode
        workdir.chmod(_site_mode(self.path))
        baseline = tree_digest(self.path)
        if self.path.is_dir():
            shutil.copytree(self.path, workdir, dirs_exist_ok=True, symlinks=True)
        with self._lock:
            self._checkouts[workdir] = baseline
        logger.debug("publish.local.checkout", site=str(self.path), workdir=str(workdir))
        return workdir

    def commit(self, workdir: Path, message: str) -> str | None:
        """Swap ``workdir`` in place of the site.

        Returns the new tree digest, or ``None`` when nothing changed.

        Raises:
            PublishConflictError: The site changed since ``checkout``.
        """
        with self._lock:
            baseline = self._checkouts.get(workdir)
        if baseline is None:
            raise PublishConflictError(f"Unknown working copy: {workdir}").with_context(
                path=str(workdir)
            )

        if tree_digest(self.path) != baseline:
            raise PublishConflictError(
                f"Published site {self.path} changed since checkout"
            ).with_context(path=str(self.path))

        new_digest = tree_digest(workdir)
        if new_digest == baseline:
            logger.info("publish.unchanged", site=str(self.path))
            return None

        backup = self.path.with_name(f".{self.path.name}-previous")
        if backup.exists():
            shutil.rmtree(backup)
        had_site = self.path.exists()
        if had_site:
            self.path.rename(backup)
        try:
            workdir.rename(self.path)
        except OSError:
            if had_site:
                backup.rename(self.path)
            raise
        if had_site:
            shutil.rmtree(backup, ignore_errors=True)

        with self._lock:
            self._checkouts.pop(workdir, None)
        logger.info("publish.committed", site=str(self.path), digest=new_digest[:12], message=message)
        return new_digest

    def discard(self, workdir: Path) -> None:
        with self._lock:
            self._checkouts.pop(workdir, None)
        if workdir.exists():
            shutil.rmtree(workdir, ignore_errors=True)


class GitSiteTarget:
    """A published site kept on a branch of a git repository."""

    def __init__(
        self,
        repo_uri: str,
        branch: str = "gh-pages",
        *,
        author_name: str | None = None,
        author_email: str | None = None,
        runner: Runner = run_command,
    ):
        self.repo_uri = repo_uri
        self.branch = branch
        self.author_name = author_name or DEFAULT_AUTHOR_NAME
        self.author_email = author_email or DEFAULT_AUTHOR_EMAIL
        self._run = runner
        self._checkouts: dict[Path, str | None] = {}
        self._lock = threading.Lock()

    def _git(self, args: Sequence[str], cwd: Path | None = None) -> str:
        result = self._run(["git", *args], cwd=cwd)
        return result.stdout.decode("utf-8", errors="replace").strip()

    def remote_head(self) -> str | None:
        """Commit id the branch points at on the remote, or ``None``."""
        out = self._git(["ls-remote", "--heads", self.repo_uri, f"refs/heads/{self.branch}"])
        return out.split()[0] if out else None

    def checkout(self) -> Path:
        head = self.remote_head()
        workdir = Path(tempfile.mkdtemp(prefix="docship-publish-"))
        try:
            if head is not None:
                self._git(
                    ["clone", "--quiet", "--single-branch", "--branch", self.branch,
                     self.repo_uri, str(workdir)]
                )
            else:
                # First publication: start an orphan branch with an empty index
                self._git(["clone", "--quiet", "--no-checkout", self.repo_uri, str(workdir)])
                self._git(["symbolic-ref", "HEAD", f"refs/heads/{self.branch}"], cwd=workdir)
                self._git(["read-tree", "--empty"], cwd=workdir)
        except ExecutionError:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        with self._lock:
            self._checkouts[workdir] = head
        logger.debug("publish.git.checkout", repo=self.repo_uri, branch=self.branch, head=head)
        return workdir

    def commit(self, workdir: Path, message: str) -> str | None:
        """Commit everything in ``workdir`` and push it as one commit.

        Raises:
            PublishConflictError: The branch moved since checkout, or the push
                was rejected as non-fast-forward.
        """
        with self._lock:
            baseline = self._checkouts.get(workdir)

        self._git(["add", "--all", "."], cwd=workdir)
        if not self._git(["status", "--porcelain"], cwd=workdir):
            logger.info("publish.unchanged", repo=self.repo_uri, branch=self.branch)
            return None

        if self.remote_head() != baseline:
            raise PublishConflictError(
                f"Branch {self.branch!r} of {self.repo_uri} moved since checkout"
            ).with_context(branch=self.branch)

        self._git(
            ["-c", f"user.name={self.author_name}", "-c", f"user.email={self.author_email}",
             "commit", "--quiet", "-m", message],
            cwd=workdir,
        )
        try:
            self._git(["push", "--quiet", "origin", f"HEAD:refs/heads/{self.branch}"], cwd=workdir)
        except ExecutionError as exc:
            if any(marker in exc.stderr for marker in _REJECTION_MARKERS):
                raise PublishConflictError(
                    f"Push to {self.branch!r} rejected: remote has diverged",
                    cause=exc,
                ).with_context(branch=self.branch) from exc
            raise

        commit = self._git(["rev-parse", "HEAD"], cwd=workdir)
        logger.info("publish.committed", repo=self.repo_uri, branch=self.branch, commit=commit)
        return commit

    def discard(self, workdir: Path) -> None:
        with self._lock:
            self._checkouts.pop(workdir, None)
        shutil.rmtree(workdir, ignore_errors=True)


def _site_mode(site: Path) -> int:
    """Permission bits of the existing site, or the umask default for a new one."""
    if site.is_dir():
        return stat.S_IMODE(site.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o777 & ~umask


def create_target(config: PublishConfig) -> LocalSiteTarget | GitSiteTarget:
    """Build the target selected by ``publish.target``."""
    if config.target == "git":
        assert config.repo_uri is not None  # enforced by PublishConfig
        return GitSiteTarget(
            config.repo_uri,
            config.branch,
            author_name=config.author_name,
            author_email=config.author_email,
        )
    return LocalSiteTarget(config.path)


__all__ = ["GitSiteTarget", "LocalSiteTarget", "create_target"]
