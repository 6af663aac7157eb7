"""Shared fixtures: a scriptable stand-in for the ``silq`` compiler.

The fake compiler reads its target file as JSON and behaves accordingly:

- ``stderr``: text written to stderr (the diagnostics payload)
- ``stdout``: list of chunks written to stdout, only with ``--run``
- ``delay``: seconds to sleep before exiting
- ``echo``: when true, stdout also reports argv and cwd as JSON
"""

from __future__ import annotations

import json
import stat
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

_FAKE_COMPILER = textwrap.dedent(
    """
    import json
    import os
    import sys
    import time

    args = sys.argv[1:]
    if len(args) < 2 or args[0] != "--error-json":
        sys.stderr.write("usage: silq --error-json FILE [--run]")
        sys.exit(64)
    with open(args[1], encoding="utf-8") as handle:
        plan = json.load(handle)
    running = "--run" in args[2:]
    if running:
        for chunk in plan.get("stdout", []):
            sys.stdout.write(chunk)
            sys.stdout.flush()
        if plan.get("echo"):
            sys.stdout.write(json.dumps({"argv": args, "cwd": os.getcwd()}))
            sys.stdout.flush()
    time.sleep(plan.get("delay", 0))
    sys.stderr.write(plan.get("stderr", "[]"))
    sys.stderr.flush()
    sys.exit(plan.get("exit_code", 0))
    """
).lstrip()


@pytest.fixture
def fake_compiler(tmp_path: Path) -> Path:
    """Executable wrapper that runs the fake compiler with this interpreter."""

    if sys.platform == "win32":
        pytest.skip("fake compiler wrapper needs a POSIX shell")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "fake_silq.py"
    script.write_text(_FAKE_COMPILER, encoding="utf-8")
    wrapper = bin_dir / "silq"
    wrapper.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n',
        encoding="utf-8",
    )
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return wrapper


@pytest.fixture
def silq_source(tmp_path: Path) -> Callable[..., Path]:
    """Write a ``.slq`` file whose content scripts the fake compiler."""

    src_dir = tmp_path / "src"
    src_dir.mkdir(exist_ok=True)

    def _write(name: str = "prog.slq", **plan: object) -> Path:
        path = src_dir / name
        path.write_text(json.dumps(plan), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def error_payload() -> Callable[..., str]:
    """Build a one-error ``--error-json`` payload for a given source path."""

    def _payload(path: Path, *, line: int = 2, message: str = "type error") -> str:
        return json.dumps(
            [
                {
                    "source": str(path),
                    "start": {"line": line, "column": 0},
                    "end": {"line": line, "column": 3},
                    "message": message,
                    "severity": "error",
                    "relatedInformation": [],
                }
            ]
        )

    return _payload
