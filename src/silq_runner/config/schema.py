"""
silq-runner configuration schema.

File: src/silq_runner/config/schema.py

Defines the built-in defaults, structured validation and deterministic merging
for ``silq.toml``. Validation never raises on the first problem: every issue is
collected with its dotted field path and reported together.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypeAlias

from silq_runner.constants import CONFIG_SCHEMA_VERSION

RunnerConfig: TypeAlias = dict[str, Any]

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("silq", "binary_path"),
    ("silq", "bundle_dir"),
    ("observability", "log_dir"),
)

DEFAULT_CONFIG: Final[RunnerConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "silq": {
        "auto_run": False,
        "binary_path": "",
        "bundle_dir": "",
    },
    "observability": {
        "log_level": "WARNING",
        "log_dir": "",
        "log_to_stderr": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: RunnerConfig | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> RunnerConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> RunnerConfig:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with dotted paths."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(config, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> RunnerConfig:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> RunnerConfig:
    _reject_unknown_keys(payload, {"meta", "silq", "observability"}, "", issues)
    out: RunnerConfig = {}

    meta = _section(payload, "meta", issues)
    if meta is not None:
        _reject_unknown_keys(meta, {"schema_version"}, "meta", issues)
        version = _as_int(meta.get("schema_version"), "meta.schema_version", issues)
        if version is not None and version != CONFIG_SCHEMA_VERSION:
            issues.add(
                "meta.schema_version",
                f"unsupported schema version {version}; expected {CONFIG_SCHEMA_VERSION}",
            )
        out["meta"] = {"schema_version": version}

    silq = _section(payload, "silq", issues)
    if silq is not None:
        _reject_unknown_keys(silq, {"auto_run", "binary_path", "bundle_dir"}, "silq", issues)
        out["silq"] = {
            "auto_run": _as_bool(silq.get("auto_run"), "silq.auto_run", issues),
            "binary_path": _as_path_text(silq.get("binary_path"), "silq.binary_path", issues),
            "bundle_dir": _as_path_text(silq.get("bundle_dir"), "silq.bundle_dir", issues),
        }

    observability = _section(payload, "observability", issues)
    if observability is not None:
        _reject_unknown_keys(
            observability, {"log_level", "log_dir", "log_to_stderr"}, "observability", issues
        )
        out["observability"] = {
            "log_level": _as_log_level(
                observability.get("log_level"), "observability.log_level", issues
            ),
            "log_dir": _as_path_text(
                observability.get("log_dir"), "observability.log_dir", issues
            ),
            "log_to_stderr": _as_bool(
                observability.get("log_to_stderr"), "observability.log_to_stderr", issues
            ),
        }

    return out


def _section(
    payload: Mapping[str, object], key: str, issues: _IssueCollector
) -> Mapping[str, object] | None:
    value = payload.get(key)
    if value is None:
        issues.add(key, "missing required section")
        return None
    if not isinstance(value, Mapping):
        issues.add(key, f"expected object, got {type(value).__name__}")
        return None
    return value


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(value: object, path: str, issues: _IssueCollector) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    return value


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    # Empty means "not set" for every path field.
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_log_level(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip().upper()
    if parsed not in LOG_LEVELS:
        expected = ", ".join(LOG_LEVELS)
        issues.add(path, f"invalid value {value!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(str(item) for item in payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


__all__ = [
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "RunnerConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
