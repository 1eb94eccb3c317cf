"""Tests for docship.config: loading, validation, precedence and derived values."""

from __future__ import annotations

from pathlib import Path

import pytest

from docship.config import (
    BuildConfig,
    DocshipSettings,
    build_config,
    is_prerelease,
    load_config,
    resolve_doc_version,
)
from docship.core.errors import ConfigError


def no_env() -> DocshipSettings:
    return DocshipSettings(_env_file=None)


class TestDocVersion:
    @pytest.mark.parametrize(
        "version, expected",
        [
            ("5.4.0", "5.4.0"),
            ("5.5.0-SNAPSHOT", "snapshot"),
            ("1.3.0-snapshot", "snapshot"),
            ("5.4.0-M1", "5.4.0-M1"),
        ],
    )
    def test_resolve_doc_version(self, version, expected):
        assert resolve_doc_version(version) == expected

    def test_prerelease_is_case_insensitive(self):
        assert is_prerelease("1.0-Snapshot")
        assert not is_prerelease("1.0.0")

    def test_override_wins(self):
        cfg = build_config({"project_version": "1.0.0-SNAPSHOT", "doc_version_override": "nightly"})
        assert cfg.doc_version == "nightly"

    def test_current_is_reserved(self):
        with pytest.raises(ConfigError):
            build_config({"project_version": "1.0.0", "doc_version_override": "current"})


class TestPdfDefault:
    def test_enabled_for_release(self):
        assert build_config({"project_version": "1.0.0"}).pdf_output_enabled

    def test_disabled_for_prerelease(self):
        assert not build_config({"project_version": "1.1.0-SNAPSHOT"}).pdf_output_enabled

    def test_forced_for_prerelease(self):
        cfg = build_config({"project_version": "1.1.0-SNAPSHOT", "pdf_enabled": True})
        assert cfg.pdf_output_enabled


class TestValidation:
    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigError) as exc_info:
            build_config({"project_version": "1.0.0", "replace_curent": True})
        assert exc_info.value.field_name == "replace_curent"

    def test_blank_version_rejected(self):
        with pytest.raises(ConfigError):
            build_config({"project_version": "  "})

    def test_duplicate_modules_rejected(self):
        with pytest.raises(ConfigError, match="duplicate module"):
            build_config(
                {
                    "project_version": "1.0.0",
                    "modules": [
                        {"name": "core", "artifact": "a.jar"},
                        {"name": "core", "artifact": "b.jar"},
                    ],
                }
            )

    def test_empty_fragment_command_rejected(self):
        with pytest.raises(ConfigError):
            build_config({"project_version": "1.0.0", "fragments": [{"name": "x", "command": []}]})

    def test_unknown_link_version_rejected(self):
        with pytest.raises(ConfigError, match="unknown versions"):
            build_config(
                {
                    "project_version": "1.0.0",
                    "reference": {"links": ["https://example.org/{nope}/api/"]},
                }
            )

    def test_git_target_needs_repo(self):
        with pytest.raises(ConfigError):
            build_config({"project_version": "1.0.0", "publish": {"target": "git"}})


class TestPaths:
    def test_relative_paths_resolved_against_root(self, tmp_path: Path):
        cfg = build_config(
            {
                "root_dir": str(tmp_path),
                "project_version": "1.0.0",
                "modules": [{"name": "core", "artifact": "core/core.jar", "sources": ["core/src"]}],
            }
        )
        assert cfg.output_dir == tmp_path.resolve() / "build" / "ghpages-docs"
        assert cfg.modules[0].artifact == tmp_path.resolve() / "core" / "core.jar"
        assert cfg.reference_output_dir == tmp_path.resolve() / "build" / "docs" / "javadoc"

    def test_fragment_output_defaults_to_generated_dir(self, tmp_path: Path):
        cfg = build_config(
            {
                "root_dir": str(tmp_path),
                "project_version": "1.0.0",
                "fragments": [{"name": "console-launcher-options", "command": ["launcher", "--help"]}],
            }
        )
        assert cfg.fragments[0].output == cfg.generated_dir / "console-launcher-options.txt"

    def test_link_substitutions_use_doc_versions(self):
        cfg = build_config(
            {
                "project_version": "5.4.0",
                "dependency_versions": {"opentest4j": "1.3.0-SNAPSHOT", "junit4": "4.13.2"},
            }
        )
        assert cfg.link_substitutions() == {
            "opentest4j": "snapshot",
            "junit4": "4.13.2",
            "version": "5.4.0",
        }


class TestLoadConfig:
    def test_loads_yaml_with_root_at_config_dir(self, make_project):
        path = make_project()
        cfg = load_config(path, settings=no_env())
        assert isinstance(cfg, BuildConfig)
        assert cfg.root_dir == path.parent.resolve()
        assert [m.name for m in cfg.modules] == ["core", "api", "bom"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml", settings=no_env())

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "docship.yaml"
        path.write_text("project_version: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, settings=no_env())

    def test_top_level_must_be_mapping(self, tmp_path: Path):
        path = tmp_path / "docship.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, settings=no_env())

    def test_environment_overrides_file(self, make_project, monkeypatch):
        monkeypatch.setenv("DOCSHIP_REPLACE_CURRENT", "true")
        monkeypatch.setenv("DOCSHIP_PROJECT_VERSION", "2.0.0")
        cfg = load_config(make_project(), settings=DocshipSettings(_env_file=None))
        assert cfg.replace_current is True
        assert cfg.project_version == "2.0.0"

    def test_explicit_overrides_beat_environment(self, make_project, monkeypatch):
        monkeypatch.setenv("DOCSHIP_PROJECT_VERSION", "2.0.0")
        cfg = load_config(
            make_project(),
            overrides={"project_version": "3.0.0", "pdf_enabled": None},
            settings=DocshipSettings(_env_file=None),
        )
        assert cfg.project_version == "3.0.0"
        assert cfg.pdf_enabled is None
