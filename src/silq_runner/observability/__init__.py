"""Logging setup for the command-line harness."""

from silq_runner.observability.logging import (
    DEFAULT_LOGGER_NAME,
    JsonLineFormatter,
    LoggingConfig,
    get_active_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "JsonLineFormatter",
    "LoggingConfig",
    "get_active_logger",
    "setup_logging",
    "shutdown_logging",
]
