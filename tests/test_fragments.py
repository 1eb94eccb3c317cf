"""Tests for FragmentGenerator: exact capture and fatal failures."""

from __future__ import annotations

import sys

import pytest

from docship.adapters.process import run_command
from docship.core.errors import ExecutionError
from docship.fragments import FragmentGenerator, write_atomic
from docship.models import FragmentSpec

PY = sys.executable


def spec(tmp_path, name, code, **kwargs):
    return FragmentSpec(
        name=name,
        command=(PY, "-c", code),
        output_path=tmp_path / "generated" / "asciidoc" / f"{name}.txt",
        **kwargs,
    )


class TestGenerate:
    def test_stdout_captured_byte_for_byte(self, tmp_path):
        text = "Usage: launcher [OPTIONS]  \n\t--details=tree\t\n\n"
        fragment = spec(tmp_path, "console-launcher-options", f"import sys; sys.stdout.write({text!r})")

        [generated] = FragmentGenerator().generate([fragment])

        assert generated.content == text.encode()
        assert fragment.output_path.read_bytes() == text.encode()

    def test_non_utf8_output_preserved(self, tmp_path):
        fragment = spec(
            tmp_path, "binary", "import sys; sys.stdout.buffer.write(bytes([0xff, 0xfe, 0x0a]))"
        )
        FragmentGenerator().generate([fragment])
        assert fragment.output_path.read_bytes() == b"\xff\xfe\n"

    def test_env_and_cwd_passed(self, tmp_path):
        fragment = spec(
            tmp_path,
            "env",
            "import os, sys; sys.stdout.write(os.environ['TABLE_KIND'] + '|' + os.path.basename(os.getcwd()))",
            cwd=tmp_path,
            env=(("TABLE_KIND", "experimental"),),
        )
        FragmentGenerator().generate([fragment])
        assert fragment.output_path.read_text() == f"experimental|{tmp_path.name}"

    def test_regenerated_fresh_each_time(self, tmp_path, write_file):
        fragment = spec(tmp_path, "table", "print('new')")
        write_file(fragment.output_path, "stale content that is longer\n")
        FragmentGenerator().generate([fragment])
        assert fragment.output_path.read_text() == "new\n"


class TestFailure:
    def test_non_zero_exit_is_fatal(self, tmp_path):
        fragment = spec(
            tmp_path,
            "deprecated-apis-table",
            "import sys; sys.stderr.write('scan failed: no classpath\\n'); sys.exit(1)",
        )
        with pytest.raises(ExecutionError) as exc_info:
            FragmentGenerator().generate([fragment])

        err = exc_info.value
        assert err.exit_code == 1
        assert err.stderr == "scan failed: no classpath\n"
        assert err.context.metadata["fragment"] == "deprecated-apis-table"
        assert not fragment.output_path.exists()

    def test_missing_program(self, tmp_path):
        fragment = FragmentSpec(
            name="missing",
            command=("docship-no-such-program",),
            output_path=tmp_path / "missing.txt",
        )
        with pytest.raises(ExecutionError, match="program not found"):
            FragmentGenerator().generate([fragment])

    def test_later_fragments_not_run_after_failure(self, tmp_path):
        bad = spec(tmp_path, "bad", "import sys; sys.exit(3)")
        good = spec(tmp_path, "good", "print('ok')")
        with pytest.raises(ExecutionError):
            FragmentGenerator().generate([bad, good])
        assert not good.output_path.exists()


class TestRunCommand:
    def test_timeout(self):
        with pytest.raises(ExecutionError, match="timed out"):
            run_command([PY, "-c", "import time; time.sleep(5)"], timeout=0.2)

    def test_empty_command(self):
        with pytest.raises(ExecutionError):
            run_command([])


def test_write_atomic_creates_parents(tmp_path):
    target = tmp_path / "a" / "b" / "c.txt"
    write_atomic(target, b"x")
    assert target.read_bytes() == b"x"
    assert [p.name for p in target.parent.iterdir()] == ["c.txt"]
