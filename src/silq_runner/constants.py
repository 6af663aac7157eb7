"""Stable constants shared by the compiler integration layers."""

from __future__ import annotations

from typing import Final

# Compiler command-line contract.
ERROR_JSON_FLAG: Final[str] = "--error-json"
RUN_FLAG: Final[str] = "--run"

# Document language tag and file suffixes handled by the integration.
LANGUAGE_ID: Final[str] = "silq"
SOURCE_SUFFIXES: Final[frozenset[str]] = frozenset({".slq", ".silq"})

# Output channel names.
LIVE_CHANNEL_NAME: Final[str] = "Silq"
HISTORY_CHANNEL_NAME: Final[str] = "Silq History"

# Platform-specific compiler file names inside a bundle's ``bin`` directory.
DEFAULT_BINARY_NAME: Final[str] = "silq"
PLATFORM_BINARY_NAMES: Final[dict[str, str]] = {
    "darwin": "silq-osx",
    "win32": "silq.exe",
}

CONFIG_SCHEMA_VERSION: Final[int] = 1
DEFAULT_CONFIG_FILE: Final[str] = "silq.toml"
ENV_PREFIX: Final[str] = "SILQ_"

CANNOT_START_MESSAGE: Final[str] = "Error: can't run silq. You may need to set silq.binaryPath."
PREEMPTED_MESSAGE: Final[str] = "Previous silq process killed."

__all__ = [
    "CANNOT_START_MESSAGE",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_BINARY_NAME",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ERROR_JSON_FLAG",
    "HISTORY_CHANNEL_NAME",
    "LANGUAGE_ID",
    "LIVE_CHANNEL_NAME",
    "PLATFORM_BINARY_NAMES",
    "PREEMPTED_MESSAGE",
    "RUN_FLAG",
    "SOURCE_SUFFIXES",
]
