"""Resolve the compiler executable for the current platform."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

from silq_runner.constants import DEFAULT_BINARY_NAME, PLATFORM_BINARY_NAMES


def platform_binary_name(platform: str | None = None) -> str:
    """File name of the bundled compiler for ``platform`` (default: ``sys.platform``)."""

    return PLATFORM_BINARY_NAMES.get(platform or sys.platform, DEFAULT_BINARY_NAME)


class BundledBinaryLocator:
    """Lookup order: configured path, bundle ``bin`` directory, then ``PATH``."""

    def __init__(
        self,
        *,
        configured_path: str | None = None,
        bundle_dir: str | Path | None = None,
        platform: str | None = None,
        search_path: bool = True,
    ) -> None:
        self._configured_path = configured_path.strip() if configured_path else None
        self._bundle_dir = Path(bundle_dir) if bundle_dir else None
        self._platform = platform
        self._search_path = search_path

    def locate(self) -> str | None:
        if self._configured_path:
            return self._configured_path
        if self._bundle_dir is not None:
            return str(self._bundle_dir / "bin" / platform_binary_name(self._platform))
        if self._search_path:
            return shutil.which(DEFAULT_BINARY_NAME)
        return None


__all__ = ["BundledBinaryLocator", "platform_binary_name"]
