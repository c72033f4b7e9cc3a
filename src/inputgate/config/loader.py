"""
inputgate — runtime config loader.

Purpose
- Load effective configuration from defaults, a TOML or YAML file, and
  environment variables, and build the rule set it describes.

What should be included in this file
- Precedence logic: env (INPUTGATE_) > file > defaults.
- TOML loading via ``tomllib``; YAML loading via ``yaml.safe_load``.
- Deterministic environment variable mapping and coercion.

Functional requirements
- Reject invalid config via schema validation before anything is built.
- Rule tables are never overridable from the environment.

Non-functional requirements
- Keep loading deterministic and reproducible.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

import yaml

from inputgate.capabilities.html import HtmlSanitizer
from inputgate.capabilities.scanning import FileScanner, NullScanner, SignatureScanner
from inputgate.config.schema import assert_valid_config, default_config, merge_config
from inputgate.constants import DEFAULT_CONFIG_FILE, ENV_PREFIX
from inputgate.registry import RuleSet
from inputgate.rules import RuleCapabilities

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})
_ENV_EXCLUDED_SECTIONS: Final[frozenset[str]] = frozenset({"meta", "rules"})


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: Literal["str", "int", "float", "bool"]


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: env > file > defaults."""

    resolved_path = _resolve_config_path(config_path)
    explicit_path = config_path is not None
    env_map = dict(os.environ if environ is None else environ)

    file_payload = _load_config_file(resolved_path, required=explicit_path)

    merged = merge_config(default_config(), file_payload)
    merged = assert_valid_config(merged)

    env_overrides = _collect_env_overrides(merged, env_map)
    merged = merge_config(merged, env_overrides)
    return assert_valid_config(merged)


def rule_capabilities(
    config: Mapping[str, Any],
    *,
    html_sanitizer: HtmlSanitizer | None = None,
    file_scanner: FileScanner | None = None,
) -> RuleCapabilities:
    """Capabilities handed to rules built from ``config``.

    Explicit arguments win over the ``[validator]`` settings.
    """

    settings = config.get("validator", {})
    if file_scanner is None:
        scanner_name = settings.get("file_scanner", "signature")
        file_scanner = NullScanner() if scanner_name == "none" else SignatureScanner()
    return RuleCapabilities(
        html_sanitizer=html_sanitizer,
        file_scanner=file_scanner,
        timeout_seconds=float(settings["capability_timeout_seconds"]),
    )


def load_rule_set(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    html_sanitizer: HtmlSanitizer | None = None,
    file_scanner: FileScanner | None = None,
) -> RuleSet:
    """Load config and build its ``[rules]`` tables into a ``RuleSet``."""

    config = load_config(config_path, environ=environ)
    capabilities = rule_capabilities(
        config, html_sanitizer=html_sanitizer, file_scanner=file_scanner
    )
    return RuleSet.from_definitions(config.get("rules", {}), capabilities=capabilities)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    if path.suffix.lower() in _YAML_SUFFIXES:
        parsed = _load_yaml(path)
    else:
        parsed = _load_toml(path)

    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be an object: {path}")
    return parsed


def _load_toml(path: Path) -> object:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _load_yaml(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc
    return {} if parsed is None else parsed


def _collect_env_overrides(
    config: Mapping[str, object], environ: Mapping[str, str]
) -> dict[str, Any]:
    bindings = _build_bindings(config)
    overrides: dict[str, Any] = {}
    for env_name in sorted(bindings):
        raw = environ.get(env_name)
        if raw is None:
            continue
        binding = bindings[env_name]
        value = _coerce_env(raw, binding.value_type, env_name, binding.path)
        _set_nested(overrides, binding.path, value)
    return overrides


def _build_bindings(config: Mapping[str, object]) -> dict[str, _Binding]:
    bindings: dict[str, _Binding] = {}
    for path, value in _iter_scalar_paths(config):
        if path and path[0] in _ENV_EXCLUDED_SECTIONS:
            continue
        kind = _kind_for_value(value)
        if kind is None:
            continue
        bindings[_env_name_for_path(path)] = _Binding(path=path, value_type=kind)
    return bindings


def _iter_scalar_paths(
    payload: Mapping[str, object],
    prefix: tuple[str, ...] = (),
) -> list[tuple[tuple[str, ...], object]]:
    pairs: list[tuple[tuple[str, ...], object]] = []
    for key in sorted(payload):
        value = payload[key]
        path = (*prefix, key)
        if isinstance(value, Mapping):
            pairs.extend(_iter_scalar_paths(value, path))
        else:
            pairs.append((path, value))
    return pairs


def _kind_for_value(value: object) -> Literal["str", "int", "float", "bool"] | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _coerce_env(
    raw: str,
    value_type: Literal["str", "int", "float", "bool"],
    env_name: str,
    path: tuple[str, ...],
) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {'.'.join(path)} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


__all__ = [
    "ConfigLoadError",
    "load_config",
    "load_rule_set",
    "rule_capabilities",
]
