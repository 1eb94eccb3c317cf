"""
Shared pytest fixtures for docship tests.

This module provides:
- Fake external tools (reference generator, narrative renderer) written as
  small Python scripts and run through ``sys.executable``
- A complete sample project on disk plus its ``docship.yaml``
- Logging reset between tests

Usage:
    def test_something(make_project):
        config = load_config(make_project(project_version="2.0.0"))
"""

from __future__ import annotations

import copy
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from docship.config import BuildConfig, load_config
from docship.core.logging import configure_logging

PY = sys.executable

FAKE_REFERENCE_TOOL = textwrap.dedent(
    '''
    """Stand-in for a javadoc-style tool: deterministic tree from its argv."""
    import sys
    from pathlib import Path

    args = sys.argv[1:]
    if "--fail" in args:
        sys.stderr.write("error: package org.example does not exist\\n  import org.example.Missing;\\n")
        sys.exit(2)

    out = Path(args[args.index("-d") + 1])
    title = args[args.index("-doctitle") + 1]
    sources = []
    for arg in args:
        if arg.startswith("@"):
            for line in Path(arg[1:]).read_text(encoding="utf-8").splitlines():
                sources.append(Path(line.strip().strip('"')))

    out.mkdir(parents=True, exist_ok=True)
    (out / "element-list").write_text("org.example\\n", encoding="utf-8")
    (out / "index.html").write_text(
        "<!DOCTYPE html>\\n<html lang=\\"en\\">\\n<head>\\n<title>" + title + "</title>\\n"
        "</head>\\n<body>\\n<p>see <head> docs</p>\\n</body>\\n</html>\\n",
        encoding="utf-8",
    )
    package = out / "org" / "example"
    package.mkdir(parents=True, exist_ok=True)
    for source in sorted(sources, key=lambda p: p.name):
        (package / (source.stem + ".html")).write_text(
            "<head><meta charset=\\"utf-8\\">\\n<body>\\n  <head>\\n</body>\\n", encoding="utf-8"
        )
    (out / "stylesheet.css").write_text("body { margin: 0; }\\n", encoding="utf-8")
    (out / "resources" / "empty").mkdir(parents=True, exist_ok=True)
    '''
)

FAKE_RENDERER = textwrap.dedent(
    '''
    """Stand-in for an asciidoctor-style renderer."""
    import sys
    from pathlib import Path

    args = sys.argv[1:]
    pdf = "--pdf" in args
    base = Path(args[args.index("-B") + 1])
    out = Path(args[args.index("-D") + 1])

    attrs = {}
    entries = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "-a":
            key, _, value = args[i + 1].partition("=")
            attrs[key] = value
            i += 2
            continue
        if arg in ("-B", "-R", "-D", "-b"):
            i += 2
            continue
        if arg.endswith(".adoc"):
            entries.append(Path(arg))
        i += 1

    if "FAIL_RENDER" in attrs:
        sys.stderr.write("asciidoctor: FAILED: index.adoc: boom\\n")
        sys.exit(1)

    for key, value in attrs.items():
        if key.endswith("File") and not Path(value).is_file():
            sys.stderr.write("include file not found: " + value + "\\n")
            sys.exit(4)

    for image in base.rglob("*.png"):
        if not (out / image.relative_to(base)).is_file():
            sys.stderr.write("image not available: " + str(image.relative_to(base)) + "\\n")
            sys.exit(5)

    for entry in entries:
        rel = entry.relative_to(base)
        target = out / rel.with_suffix(".pdf" if pdf else ".html")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            "<html><head></head><body>" + rel.as_posix() + " " + attrs.get("docs-version", "")
            + "</body></html>\\n",
            encoding="utf-8",
        )
    '''
)

LAUNCHER_HELP = "Usage: launcher [OPTIONS]  \n\t--scan-classpath\t\n"


def deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _write(path: Path, content: str | bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _reset_logging():
    configure_logging(level="WARNING", force=True)
    yield
    configure_logging(level="WARNING", force=True)


@pytest.fixture
def tools_dir(tmp_path: Path) -> Path:
    tools = tmp_path / "tools"
    _write(tools / "fake_javadoc.py", FAKE_REFERENCE_TOOL)
    _write(tools / "fake_asciidoctor.py", FAKE_RENDERER)
    return tools


@pytest.fixture
def project_root(tmp_path: Path, tools_dir: Path) -> Path:
    """A multi-module project with built artefacts and narrative sources."""
    root = tmp_path / "project"
    _write(root / "core/build/libs/core-1.0.0.jar", b"PK\x03\x04core")
    _write(root / "core/src/main/java/org/example/Core.java", "package org.example;\nclass Core {}\n")
    _write(root / "core/src/main/java/org/example/Util.java", "package org.example;\nclass Util {}\n")
    _write(root / "api/build/libs/api-1.0.0.jar", b"PK\x03\x04api")
    _write(root / "api/src/main/java/org/example/Api.java", "package org.example;\ninterface Api {}\n")
    _write(root / "libs/opentest4j.jar", b"PK\x03\x04ot4j")
    _write(root / "libs/excluded/shadow.jar", b"PK\x03\x04shadow")

    docs = root / "src/docs/asciidoc"
    _write(docs / "user-guide/index.adoc", "= User Guide\ninclude::overview.adoc[]\n")
    _write(docs / "user-guide/overview.adoc", "== Overview\n")
    _write(docs / "user-guide/images/logo.png", b"\x89PNG\r\n\x1a\nlogo")
    _write(docs / "release-notes/index.adoc", "= Release Notes\n")
    _write(docs / "tocbot-4.12.0/tocbot.min.js", "/* tocbot */\n")

    _write(root / "build/checksum/published-checksum.txt", "4f2c9e\n")
    return root


@pytest.fixture
def base_config_data(project_root: Path, tools_dir: Path) -> dict[str, Any]:
    return {
        "project_name": "Example",
        "project_version": "1.0.0",
        "dependency_versions": {"junit4": "4.13.2", "opentest4j": "1.3.0-SNAPSHOT"},
        "modules": [
            {
                "name": "core",
                "artifact": "core/build/libs/core-1.0.0.jar",
                "sources": ["core/src/main/java"],
            },
            {
                "name": "api",
                "artifact": "api/build/libs/api-1.0.0.jar",
                "sources": ["api/src/main/java"],
                "classpath": ["libs/opentest4j.jar", "libs/excluded/shadow.jar"],
            },
            {"name": "bom", "artifact": "bom/build/libs/bom.jar", "aggregate": True},
        ],
        "fragments": [
            {
                "name": "console-launcher-options",
                "command": [PY, "-c", f"import sys; sys.stdout.write({LAUNCHER_HELP!r})"],
            },
        ],
        "reference": {
            "command": [PY, str(tools_dir / "fake_javadoc.py")],
            "links": [
                "https://docs.oracle.com/en/java/javase/17/docs/api/",
                "https://ota4j-team.github.io/opentest4j/docs/{opentest4j}/api/",
            ],
            "groups": {"Core": ["org.example*"]},
            "classpath_exclude": ["libs/excluded/"],
        },
        "narrative": {
            "html_command": [PY, str(tools_dir / "fake_asciidoctor.py"), "-b", "html5"],
            "pdf_command": [PY, str(tools_dir / "fake_asciidoctor.py"), "--pdf"],
            "release_branch": "releases/1.0.x",
        },
        "publish": {"target": "local", "path": "site"},
        "max_workers": 3,
    }


@pytest.fixture
def make_project(project_root: Path, base_config_data: dict[str, Any]) -> Callable[..., Path]:
    """Write ``docship.yaml`` (base settings deep-merged with overrides); return its path."""

    def _make(**overrides: Any) -> Path:
        data = deep_merge(base_config_data, overrides)
        path = project_root / "docship.yaml"
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def config(make_project: Callable[..., Path]) -> BuildConfig:
    from docship.config import DocshipSettings

    return load_config(make_project(), settings=DocshipSettings(_env_file=None))


@pytest.fixture
def write_file() -> Callable[[Path, str | bytes], Path]:
    return _write
