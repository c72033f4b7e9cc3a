"""
inputgate — configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Rule tables are checked for shape and ``kind`` here; their constraints are
  checked when the rule set is built.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from inputgate.codecs import CODEC_FACTORIES
from inputgate.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_CAPABILITY_TIMEOUT_SECONDS,
    DEFAULT_CODEC_NAMES,
    DEFAULT_MAX_ENCODING_DEPTH,
    MAX_ENCODING_DEPTH_LIMIT,
)
from inputgate.rules.base import RuleKind

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
FILE_SCANNER_NAMES: Final[tuple[str, ...]] = ("signature", "none")


class MetaConfig(TypedDict):
    schema_version: int


class CanonicalizationConfig(TypedDict):
    codecs: list[str]
    max_encoding_depth: int
    allow_multiple_encoding: bool


class ValidatorConfig(TypedDict):
    expose_offending_values: bool
    capability_timeout_seconds: float
    allowed_redirects: list[str]
    allow_relative_redirects: bool
    file_scanner: Literal["signature", "none"]


class InputGateConfig(TypedDict):
    meta: MetaConfig
    canonicalization: CanonicalizationConfig
    validator: ValidatorConfig
    rules: dict[str, dict[str, object]]


DEFAULT_CONFIG: Final[InputGateConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "canonicalization": {
        "codecs": list(DEFAULT_CODEC_NAMES),
        "max_encoding_depth": DEFAULT_MAX_ENCODING_DEPTH,
        "allow_multiple_encoding": False,
    },
    "validator": {
        "expose_offending_values": False,
        "capability_timeout_seconds": DEFAULT_CAPABILITY_TIMEOUT_SECONDS,
        "allowed_redirects": [],
        "allow_relative_redirects": False,
        "file_scanner": "signature",
    },
    "rules": {},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
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


def default_config() -> InputGateConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade the configuration file to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the inputgate package"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, {"meta", "canonicalization", "validator", "rules"}, "", issues)
    _require_keys(root, {"meta"}, "", issues)

    normalized: dict[str, Any] = {}
    for key, validator in (
        ("meta", _validate_meta),
        ("canonicalization", _validate_canonicalization),
        ("validator", _validate_validator),
        ("rules", _validate_rules),
    ):
        raw = root.get(key)
        if raw is None:
            continue
        section = _as_object(raw, key, issues)
        if section is not None:
            normalized[key] = validator(section, key, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_canonicalization(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {"codecs", "max_encoding_depth", "allow_multiple_encoding"}
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "codecs" in payload:
        codecs_path = _join(path, "codecs")
        names = _as_str_list(payload["codecs"], codecs_path, issues)
        if names is not None:
            lowered = [name.lower() for name in names]
            if not lowered:
                issues.add(codecs_path, "at least one codec is required")
            unknown = sorted(set(lowered) - set(CODEC_FACTORIES))
            if unknown:
                expected = ", ".join(sorted(CODEC_FACTORIES))
                issues.add(codecs_path, f"unknown codecs {unknown}; expected any of: {expected}")
            if len(set(lowered)) != len(lowered):
                issues.add(codecs_path, "codecs must not repeat")
            out["codecs"] = lowered
    if "max_encoding_depth" in payload:
        depth_path = _join(path, "max_encoding_depth")
        depth = _as_int(payload["max_encoding_depth"], depth_path, issues, minimum=1)
        if depth is not None:
            if depth > MAX_ENCODING_DEPTH_LIMIT:
                issues.add(depth_path, f"must be <= {MAX_ENCODING_DEPTH_LIMIT}")
            out["max_encoding_depth"] = depth
    if "allow_multiple_encoding" in payload:
        parsed = _as_bool(
            payload["allow_multiple_encoding"], _join(path, "allow_multiple_encoding"), issues
        )
        if parsed is not None:
            out["allow_multiple_encoding"] = parsed
    return out


def _validate_validator(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    allowed = {
        "expose_offending_values",
        "capability_timeout_seconds",
        "allowed_redirects",
        "allow_relative_redirects",
        "file_scanner",
    }
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in ("expose_offending_values", "allow_relative_redirects"):
        if key in payload:
            flag = _as_bool(payload[key], _join(path, key), issues)
            if flag is not None:
                out[key] = flag
    if "capability_timeout_seconds" in payload:
        timeout_path = _join(path, "capability_timeout_seconds")
        timeout = _as_float(payload["capability_timeout_seconds"], timeout_path, issues)
        if timeout is not None:
            if timeout <= 0:
                issues.add(timeout_path, "must be > 0")
            out["capability_timeout_seconds"] = timeout
    if "allowed_redirects" in payload:
        redirects_path = _join(path, "allowed_redirects")
        redirects = _as_str_list(payload["allowed_redirects"], redirects_path, issues)
        if redirects is not None:
            for index, entry in enumerate(redirects):
                if "://" not in entry:
                    issues.add(f"{redirects_path}[{index}]", "must be an absolute URI")
            out["allowed_redirects"] = redirects
    if "file_scanner" in payload:
        scanner = _as_enum(
            payload["file_scanner"],
            _join(path, "file_scanner"),
            issues,
            allowed_values=FILE_SCANNER_NAMES,
        )
        if scanner is not None:
            out["file_scanner"] = scanner
    return out


def _validate_rules(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    kinds = tuple(kind.value for kind in RuleKind)
    out: dict[str, Any] = {}
    for name in sorted(payload):
        rule_path = f'{path}."{name}"'
        if not name.strip():
            issues.add(path, "rule names must not be empty")
            continue
        definition = _as_object(payload[name], rule_path, issues)
        if definition is None:
            continue
        if "kind" not in definition:
            issues.add(_join(rule_path, "kind"), "missing required field")
            continue
        kind = _as_enum(definition["kind"], _join(rule_path, "kind"), issues, allowed_values=kinds)
        if kind is None:
            continue
        out[name] = {**_deep_copy_mapping(definition), "kind": kind}
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(value: object, path: str, issues: _IssueCollector) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    parsed = parsed.lower()
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


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
            elif isinstance(existing, Mapping):
                nested = _deep_copy_mapping(existing)
                _merge_into(nested, value)
                target[key] = nested
            else:
                nested_new: dict[str, Any] = {}
                _merge_into(nested_new, value)
                target[key] = nested_new
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key, item in value.items():
            if isinstance(key, str):
                out[key] = _deep_copy_value(item)
        return out
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


__all__ = [
    "DEFAULT_CONFIG",
    "FILE_SCANNER_NAMES",
    "CanonicalizationConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "InputGateConfig",
    "MetaConfig",
    "ValidatorConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
