"""
inputgate config package public API.

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``inputgate.toml`` (or YAML) + ``INPUTGATE_`` env overrides.
- Fail fast with clear structured validation/load errors.

Non-functional requirements
- Keep import-time surface small and deterministic.
"""

from inputgate.config.loader import (
    ConfigLoadError,
    load_config,
    load_rule_set,
    rule_capabilities,
)
from inputgate.config.schema import (
    DEFAULT_CONFIG,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    InputGateConfig,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)
from inputgate.constants import DEFAULT_CONFIG_FILE, ENV_PREFIX

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "InputGateConfig",
    "assert_valid_config",
    "default_config",
    "load_config",
    "load_rule_set",
    "merge_config",
    "migration_guidance",
    "rule_capabilities",
    "validate_config",
]
