"""Config loading (``silq.toml`` + ``SILQ_`` env overrides) and validation."""

from silq_runner.config.loader import (
    ConfigLoadError,
    RunnerSettings,
    dump_effective_config,
    env_name_for_path,
    load_config,
    load_settings,
    normalize_paths,
)
from silq_runner.config.schema import (
    DEFAULT_CONFIG,
    LOG_LEVELS,
    PATH_FIELDS,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    RunnerConfig,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "RunnerConfig",
    "RunnerSettings",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "env_name_for_path",
    "load_config",
    "load_settings",
    "merge_config",
    "normalize_paths",
    "validate_config",
]
