"""Build configuration: one validated struct enumerating every option.

Configuration is assembled from three layers, lowest precedence first:

1. ``docship.yaml`` (or the file passed with ``--config``)
2. ``DOCSHIP_*`` environment variables and ``.env`` (:class:`DocshipSettings`)
3. explicit CLI overrides

The result is a :class:`BuildConfig`. It is validated eagerly: a bad value
raises :class:`~docship.core.errors.ConfigError` before any stage runs.
Relative paths are resolved against ``root_dir`` (the config file's
directory by default).

Example::

    config = load_config(Path("docship.yaml"), overrides={"replace_current": True})
    config.doc_version        # "snapshot" or "5.4.0"
    config.pdf_output_enabled # False for pre-releases unless forced
"""

from __future__ import annotations

import string
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docship.core.errors import ConfigError

DEFAULT_CONFIG_FILE = "docship.yaml"
DEFAULT_FAVICON_URL = "https://junit.org/junit5/assets/img/junit5-logo.png"
SNAPSHOT_MARKER = "SNAPSHOT"
SNAPSHOT_DOC_VERSION = "snapshot"
CURRENT_ALIAS = "current"


def is_prerelease(version: str) -> bool:
    """A version is a pre-release when it carries the snapshot marker."""
    return SNAPSHOT_MARKER in version.upper()


def resolve_doc_version(version: str) -> str:
    """Map a project or dependency version to its documentation directory name."""
    return SNAPSHOT_DOC_VERSION if is_prerelease(version) else version


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ModuleConfig(_Section):
    """One documented module."""

    name: str
    artifact: Path
    sources: list[Path] = Field(default_factory=list)
    classpath: list[Path] = Field(default_factory=list)
    aggregate: bool = False


class FragmentConfig(_Section):
    """An auxiliary program whose stdout becomes an include fragment."""

    name: str
    command: list[str]
    output: Path | None = None
    cwd: Path | None = None
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("fragment command must not be empty")
        return value


class ReferenceToolConfig(_Section):
    """Settings for the API-reference generator (javadoc-style CLI)."""

    command: list[str] = Field(default_factory=lambda: ["javadoc"])
    title: str | None = None
    header: str | None = None
    encoding: str = "UTF-8"
    locale: str = "en"
    member_level: Literal["public", "protected", "package", "private"] = "protected"
    stylesheet: Path | None = None
    links: list[str] = Field(default_factory=list)
    groups: dict[str, list[str]] = Field(default_factory=dict)
    tags: list[str] = Field(
        default_factory=lambda: ["apiNote:a:API Note:", "implNote:a:Implementation Note:"]
    )
    classpath_exclude: list[str] = Field(default_factory=list)
    source_pattern: str = "**/*.java"
    extra_options: list[str] = Field(default_factory=list)
    output_subdir: str = "javadoc"
    index_file: str = "element-list"
    legacy_index_file: str = "package-list"
    timeout: float | None = None


class NarrativeToolConfig(_Section):
    """Settings for the narrative (AsciiDoc-style) renderer."""

    html_command: list[str] = Field(default_factory=lambda: ["asciidoctor", "-b", "html5"])
    pdf_command: list[str] = Field(default_factory=lambda: ["asciidoctor-pdf"])
    source_dir: Path = Path("src/docs/asciidoc")
    entry_name: str = "index"
    extension: str = "adoc"
    resource_patterns: list[str] = Field(
        default_factory=lambda: ["**/images/**/*.png", "**/images/**/*.svg"]
    )
    html_resource_patterns: list[str] = Field(default_factory=lambda: ["tocbot-*/**"])
    source_highlighter: str = "coderay@"
    toc: str = "left"
    idprefix: str = ""
    idseparator: str = "-"
    icons: str = "font"
    tabsize: int = 4
    sectanchors: bool = True
    release_branch: str | None = None
    attributes: dict[str, str | bool | int] = Field(default_factory=dict)
    timeout: float | None = None


class PublishConfig(_Section):
    """Where and how the staged site is published."""

    target: Literal["local", "git"] = "local"
    path: Path = Path("build/published-site")
    repo_uri: str | None = None
    branch: str = "gh-pages"
    prefix: str = "docs"
    commit_message: str = "Publish {project} documentation {version}"
    author_name: str | None = None
    author_email: str | None = None

    @model_validator(mode="after")
    def _git_needs_repo(self) -> PublishConfig:
        if self.target == "git" and not self.repo_uri:
            raise ValueError("publish.repo_uri is required when publish.target is 'git'")
        return self


class BuildConfig(_Section):
    """Every recognised option of a documentation build and its effect.

    Fields
    ──────
    project_version   : version being documented; decides the doc version
    doc_version_override : force the output directory name
    pdf_enabled       : None → enabled unless building a pre-release
    replace_current   : also overwrite ``docs/current`` on publish
    dependency_versions : component → version, injected as ``<name>-version``
                        attributes and available to reference link templates
    """

    root_dir: Path = Path(".")
    project_name: str = "project"
    project_version: str
    doc_version_override: str | None = None
    pdf_enabled: bool | None = None
    replace_current: bool = False
    dependency_versions: dict[str, str] = Field(default_factory=dict)

    build_dir: Path = Path("build")
    output_dir: Path = Path("build/ghpages-docs")
    checksum_file: Path | None = Path("build/checksum/published-checksum.txt")
    favicon_url: str = DEFAULT_FAVICON_URL

    modules: list[ModuleConfig] = Field(default_factory=list)
    fragments: list[FragmentConfig] = Field(default_factory=list)
    reference: ReferenceToolConfig = Field(default_factory=ReferenceToolConfig)
    narrative: NarrativeToolConfig = Field(default_factory=NarrativeToolConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)

    max_workers: int = Field(default=4, ge=1)
    cache_enabled: bool = True

    @field_validator("project_version")
    @classmethod
    def _version_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("project_version must not be blank")
        return value.strip()

    @model_validator(mode="after")
    def _validate_and_resolve(self) -> BuildConfig:
        names = [m.name for m in self.modules]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate module names: {duplicates}")

        fragment_names = [f.name for f in self.fragments]
        duplicates = sorted({n for n in fragment_names if fragment_names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate fragment names: {duplicates}")

        if self.doc_version == CURRENT_ALIAS or "/" in self.doc_version:
            raise ValueError(f"{self.doc_version!r} cannot be used as a documentation version")

        known = set(self.link_substitutions())
        for link in self.reference.links:
            fields = {name for _, name, _, _ in string.Formatter().parse(link) if name}
            unknown = sorted(fields - known)
            if unknown:
                raise ValueError(f"reference link {link!r} uses unknown versions: {unknown}")

        self._resolve_paths()
        return self

    def _resolve_paths(self) -> None:
        root = self.root_dir.resolve()
        self.root_dir = root
        self.build_dir = self.resolve(self.build_dir)
        self.output_dir = self.resolve(self.output_dir)
        if self.checksum_file is not None:
            self.checksum_file = self.resolve(self.checksum_file)
        for module in self.modules:
            module.artifact = self.resolve(module.artifact)
            module.sources = [self.resolve(p) for p in module.sources]
            module.classpath = [self.resolve(p) for p in module.classpath]
        for fragment in self.fragments:
            if fragment.output is None:
                fragment.output = self.generated_dir / f"{fragment.name}.txt"
            fragment.output = self.resolve(fragment.output)
            if fragment.cwd is not None:
                fragment.cwd = self.resolve(fragment.cwd)
        if self.reference.stylesheet is not None:
            self.reference.stylesheet = self.resolve(self.reference.stylesheet)
        self.narrative.source_dir = self.resolve(self.narrative.source_dir)
        self.publish.path = self.resolve(self.publish.path)

    def resolve(self, path: Path) -> Path:
        """Resolve ``path`` against ``root_dir`` unless already absolute."""
        path = Path(path)
        return path if path.is_absolute() else (self.root_dir / path)

    # ── Derived properties ───────────────────────────────────────

    @property
    def is_prerelease(self) -> bool:
        return is_prerelease(self.project_version)

    @property
    def doc_version(self) -> str:
        return self.doc_version_override or resolve_doc_version(self.project_version)

    @property
    def pdf_output_enabled(self) -> bool:
        if self.pdf_enabled is None:
            return not self.is_prerelease
        return self.pdf_enabled

    @property
    def generated_dir(self) -> Path:
        return self.resolve(self.build_dir) / "generated" / "asciidoc"

    @property
    def reference_output_dir(self) -> Path:
        return self.build_dir / "docs" / self.reference.output_subdir

    @property
    def html_output_dir(self) -> Path:
        return self.build_dir / "docs" / "asciidoc"

    @property
    def pdf_output_dir(self) -> Path:
        return self.build_dir / "docs" / "asciidocPdf"

    def link_substitutions(self) -> dict[str, str]:
        """Doc-directory versions available to reference link templates."""
        values = {name: resolve_doc_version(v) for name, v in self.dependency_versions.items()}
        values["version"] = self.doc_version
        return values


class DocshipSettings(BaseSettings):
    """Environment overrides (``DOCSHIP_*`` variables and ``.env``)."""

    model_config = SettingsConfigDict(
        env_prefix="DOCSHIP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_file: Path = Path(DEFAULT_CONFIG_FILE)
    project_version: str | None = None
    replace_current: bool | None = None
    pdf_enabled: bool | None = None
    output_dir: Path | None = None
    max_workers: int | None = None

    log_level: str = "INFO"
    log_format: str = "console"

    def overrides(self) -> dict[str, Any]:
        """Only the fields that were actually set."""
        fields = ("project_version", "replace_current", "pdf_enabled", "output_dir", "max_workers")
        return {name: getattr(self, name) for name in fields if getattr(self, name) is not None}


def load_config(
    path: Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    settings: DocshipSettings | None = None,
) -> BuildConfig:
    """Load, merge and validate the build configuration.

    Args:
        path: YAML config file (default: ``settings.config_file``)
        overrides: Explicit values, highest precedence (``None`` values ignored)
        settings: Environment settings (default: read from the environment)

    Raises:
        ConfigError: If the file is missing, malformed, or fails validation
    """
    settings = settings or DocshipSettings()
    config_path = Path(path) if path is not None else settings.config_file

    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}").with_context(
            path=str(config_path)
        )

    try:
        with open(config_path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}", cause=exc) from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping at top level")

    data.setdefault("root_dir", str(config_path.resolve().parent))
    data.update(settings.overrides())
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return build_config(data)


def build_config(data: dict[str, Any]) -> BuildConfig:
    """Validate a raw mapping into a :class:`BuildConfig`."""
    try:
        return BuildConfig.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field_name = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ConfigError(
            f"Invalid configuration: {exc}", field_name=field_name, cause=exc
        ) from exc


__all__ = [
    "BuildConfig",
    "DocshipSettings",
    "FragmentConfig",
    "ModuleConfig",
    "NarrativeToolConfig",
    "PublishConfig",
    "ReferenceToolConfig",
    "build_config",
    "is_prerelease",
    "load_config",
    "resolve_doc_version",
]
