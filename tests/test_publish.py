"""Tests for the publish coordinator's preservation rule."""

from __future__ import annotations

from pathlib import Path

import pytest

from docship.adapters.targets import LocalSiteTarget
from docship.core.errors import MissingInputError, PublishConflictError
from docship.core.hashing import tree_manifest
from docship.models import StagedTree
from docship.publish import PublishCoordinator, existing_versions


def staged_tree(tmp_path: Path, write_file, version: str, marker: str = "") -> StagedTree:
    root = tmp_path / "build" / "ghpages-docs" / version
    write_file(root / "api" / "index.html", f"<html>{version}{marker}</html>\n")
    write_file(root / "user-guide" / "index.html", f"<p>guide {version}</p>\n")
    files = tuple(sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()))
    return StagedTree(root=root, version=version, files=files)


@pytest.fixture
def site(tmp_path, write_file) -> Path:
    site = tmp_path / "site"
    for version in ("1.0", "2.0", "current"):
        write_file(site / "docs" / version / "index.html", f"<p>{version}</p>\n")
    write_file(site / "index.html", "<p>landing</p>\n")
    write_file(site / "CNAME", "docs.example.org\n")
    return site


def test_new_version_preserves_everything_else(tmp_path, write_file, site):
    before = tree_manifest(site)
    staged = staged_tree(tmp_path, write_file, "3.0")

    outcome = PublishCoordinator(LocalSiteTarget(site)).publish(staged)

    after = tree_manifest(site)
    assert outcome.changed
    assert outcome.version == "3.0"
    assert outcome.preserved_versions == ("1.0", "2.0")
    assert not outcome.replaced_current
    assert {k: v for k, v in after.items() if not k.startswith("docs/3.0/")} == before
    assert (site / "docs" / "3.0" / "api" / "index.html").read_text() == "<html>3.0</html>\n"
    assert (site / "docs" / "current" / "index.html").read_text() == "<p>current</p>\n"


def test_replace_current_mirrors_version(tmp_path, write_file, site):
    staged = staged_tree(tmp_path, write_file, "3.0")

    outcome = PublishCoordinator(LocalSiteTarget(site)).publish(staged, replace_current=True)

    assert outcome.replaced_current
    assert tree_manifest(site / "docs" / "current") == tree_manifest(site / "docs" / "3.0")
    assert not (site / "docs" / "current" / "index.html").exists()
    assert (site / "docs" / "1.0" / "index.html").read_text() == "<p>1.0</p>\n"


def test_republishing_replaces_version_wholesale(tmp_path, write_file, site):
    write_file(site / "docs" / "2.0" / "obsolete.html", "<p>old</p>\n")
    staged = staged_tree(tmp_path, write_file, "2.0")

    PublishCoordinator(LocalSiteTarget(site)).publish(staged)

    assert not (site / "docs" / "2.0" / "obsolete.html").exists()
    assert set(tree_manifest(site / "docs" / "2.0")) == set(staged.files)


def test_identical_republish_is_unchanged(tmp_path, write_file, site):
    staged = staged_tree(tmp_path, write_file, "3.0")
    coordinator = PublishCoordinator(LocalSiteTarget(site))
    coordinator.publish(staged)
    snapshot = tree_manifest(site)

    outcome = coordinator.publish(staged)

    assert not outcome.changed
    assert outcome.commit is None
    assert tree_manifest(site) == snapshot


def test_first_publication_creates_site(tmp_path, write_file):
    site = tmp_path / "fresh-site"
    staged = staged_tree(tmp_path, write_file, "1.0")

    outcome = PublishCoordinator(LocalSiteTarget(site)).publish(staged, replace_current=True)

    assert outcome.changed
    assert outcome.preserved_versions == ()
    assert sorted(p.name for p in (site / "docs").iterdir()) == ["1.0", "current"]


def test_custom_prefix(tmp_path, write_file, site):
    staged = staged_tree(tmp_path, write_file, "3.0")
    PublishCoordinator(LocalSiteTarget(site), prefix="reference").publish(staged)
    assert (site / "reference" / "3.0" / "api" / "index.html").is_file()
    assert not (site / "docs" / "3.0").exists()


def test_missing_staged_tree(tmp_path, site):
    staged = StagedTree(root=tmp_path / "nowhere", version="3.0", files=())
    before = tree_manifest(site)
    with pytest.raises(MissingInputError):
        PublishCoordinator(LocalSiteTarget(site)).publish(staged)
    assert tree_manifest(site) == before


class _ConcurrentWriter(LocalSiteTarget):
    """Simulates another publisher landing between checkout and commit."""

    def commit(self, workdir, message):
        (self.path / "docs" / "2.0" / "index.html").write_text("<p>someone else</p>\n")
        return super().commit(workdir, message)


def test_conflict_leaves_site_and_removes_workdir(tmp_path, write_file, site):
    staged = staged_tree(tmp_path, write_file, "3.0")
    target = _ConcurrentWriter(site)

    with pytest.raises(PublishConflictError):
        PublishCoordinator(target).publish(staged, replace_current=True)

    assert not (site / "docs" / "3.0").exists()
    assert (site / "docs" / "current" / "index.html").read_text() == "<p>current</p>\n"
    assert not list(site.parent.glob(".site-work-*"))


def test_existing_versions(tmp_path, write_file):
    docs = tmp_path / "docs"
    write_file(docs / "1.0" / "a.html", "a")
    write_file(docs / "current" / "a.html", "a")
    write_file(docs / "robots.txt", "")
    assert existing_versions(docs, exclude={"current"}) == ["1.0"]
    assert existing_versions(tmp_path / "missing", exclude=set()) == []
