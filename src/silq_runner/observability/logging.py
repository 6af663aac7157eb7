"""JSON-lines logging for silq-runner, with structlog rendering through stdlib.

Components log through ``structlog.get_logger(__name__)``; :func:`setup_logging`
routes those events into the ``silq_runner`` stdlib logger, where each record
becomes one JSON object per line (on stderr, in a file, or both).
"""

from __future__ import annotations

import json
import logging
import math
import sys
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

DEFAULT_LOGGER_NAME: Final[str] = "silq_runner"
DEFAULT_LOG_FILENAME: Final[str] = "silq-runner.jsonl"

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_ACTIVE_LOCK = threading.Lock()
_ACTIVE_HANDLERS: list[logging.Handler] = []
_ACTIVE_LOGGER: logging.Logger | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how verbosely to write JSON-lines logs."""

    level: int | str = "WARNING"
    log_dir: Path | str | None = None
    log_to_stderr: bool = True
    logger_name: str = DEFAULT_LOGGER_NAME
    log_filename: str = DEFAULT_LOG_FILENAME

    @classmethod
    def from_observability(cls, observability: Mapping[str, object]) -> LoggingConfig:
        """Build from the ``[observability]`` config section."""
        raw_level = observability.get("log_level", "WARNING")
        raw_dir = observability.get("log_dir")
        return cls(
            level=raw_level if isinstance(raw_level, (int, str)) else "WARNING",
            log_dir=raw_dir if isinstance(raw_dir, (str, Path)) and raw_dir else None,
            log_to_stderr=bool(observability.get("log_to_stderr", True)),
        )

    @property
    def log_path(self) -> Path | None:
        if not self.log_dir:
            return None
        return Path(self.log_dir) / self.log_filename


class JsonLineFormatter(logging.Formatter):
    """Formatter that emits one canonical JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = extras
        if record.exc_info is not None:
            event["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            event["stack"] = str(record.stack_info)
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Install JSON-lines handlers and point structlog at stdlib.

    Calling this again replaces the handlers installed by the previous call.
    """

    cfg = config or LoggingConfig()
    level = _parse_log_level(cfg.level)
    formatter = JsonLineFormatter()

    handlers: list[logging.Handler] = []
    if cfg.log_to_stderr:
        handlers.append(logging.StreamHandler(sys.stderr))
    log_path = cfg.log_path
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if not handlers:
        handlers.append(logging.NullHandler())

    global _ACTIVE_LOGGER
    with _ACTIVE_LOCK:
        _remove_active_handlers()
        logger = logging.getLogger(cfg.logger_name)
        logger.setLevel(level)
        logger.propagate = False
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        _ACTIVE_HANDLERS.extend(handlers)
        _ACTIVE_LOGGER = logger

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    return logger


def shutdown_logging() -> None:
    """Flush and remove the handlers installed by :func:`setup_logging`."""

    global _ACTIVE_LOGGER
    with _ACTIVE_LOCK:
        _remove_active_handlers()
        _ACTIVE_LOGGER = None


def get_active_logger() -> logging.Logger | None:
    return _ACTIVE_LOGGER


def _remove_active_handlers() -> None:
    for handler in _ACTIVE_HANDLERS:
        if _ACTIVE_LOGGER is not None:
            _ACTIVE_LOGGER.removeHandler(handler)
        handler.flush()
        handler.close()
    _ACTIVE_HANDLERS.clear()


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {value!r}")
    return resolved


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, Path):
        return value.as_posix()
    return str(value)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "JsonLineFormatter",
    "LoggingConfig",
    "get_active_logger",
    "setup_logging",
    "shutdown_logging",
]
