"""Module entrypoint for ``python -m silq_runner``."""

from __future__ import annotations

from silq_runner.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
