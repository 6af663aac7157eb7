"""
silq-runner: compiler process orchestration for Silq editor integrations.

Launches the ``silq`` compiler against a source file, translates its JSON
diagnostics into range-addressable diagnostics, and tracks at most one live
program run at a time while type checks run freely alongside it.

Import boundary: importing the package must not load configuration, start
logging, or spawn processes.
"""

from __future__ import annotations

__version__ = "0.3.0"

__all__ = ["__version__"]
