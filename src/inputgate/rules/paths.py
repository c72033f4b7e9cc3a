"""Directory-path and filename rules."""

from __future__ import annotations

import dataclasses
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Final, Self

from inputgate.capabilities.timeouts import CapabilityTimeoutError, call_with_timeout
from inputgate.constants import DEFAULT_CAPABILITY_TIMEOUT_SECONDS, DEFAULT_FILENAME_MAX_LENGTH
from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleIntrusion,
    RuleKind,
    RuleViolation,
    check_max_length,
    require_text,
    tightened,
    validate_max_length,
)
from inputgate.utils.fs import PathEscapeError, is_relative_to, lexical_path, resolve_within

_FILENAME_FORBIDDEN: Final[re.Pattern[str]] = re.compile(r'[\x00-\x1f\x7f<>:"/\\|?*]')
_WINDOWS_DEVICE_NAMES: Final[frozenset[str]] = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{index}" for index in range(1, 10)}
    | {f"LPT{index}" for index in range(1, 10)}
)


@dataclass(frozen=True, slots=True, kw_only=True)
class DirectoryPathRule(Rule):
    """Directory that must stay inside ``root``.

    Escaping the root, lexically or through a symlink, is an intrusion and is
    detected before any existence check.
    """

    kind: ClassVar[RuleKind] = RuleKind.DIRECTORY_PATH

    root: str | os.PathLike[str]
    must_exist: bool = True
    timeout_seconds: float = DEFAULT_CAPABILITY_TIMEOUT_SECONDS
    name: str = "directory_path"

    def __post_init__(self) -> None:
        if not os.fspath(self.root):
            raise ValueError("root must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

    def apply(self, value: object) -> Path:
        text = require_text(value, "path")
        if "\x00" in text:
            raise RuleIntrusion("path contains a NUL byte")

        candidate, root = lexical_path(text, self.root)
        if not is_relative_to(candidate, root):
            raise RuleIntrusion("path escapes the allowed root")
        if not self.must_exist:
            return candidate

        try:
            return call_with_timeout(
                _existing_directory_within,
                candidate,
                root,
                timeout_seconds=self.timeout_seconds,
            )
        except CapabilityTimeoutError as exc:
            raise RuleViolation("path could not be checked in time") from exc

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        root = constraints.text("root", required=True)
        assert root is not None
        return cls(
            name=name,
            root=root,
            must_exist=constraints.flag("must_exist", True),
            timeout_seconds=capabilities.timeout_seconds,
        )


def _existing_directory_within(candidate: Path, root: Path) -> Path:
    try:
        resolved = resolve_within(candidate, root)
    except PathEscapeError as exc:
        raise RuleIntrusion("path escapes the allowed root through a link") from exc
    except FileNotFoundError as exc:
        raise RuleViolation("path does not exist") from exc
    except OSError as exc:
        raise RuleViolation("path could not be resolved") from exc
    if not resolved.is_dir():
        raise RuleViolation("path is not a directory")
    return resolved


@dataclass(frozen=True, slots=True, kw_only=True)
class FilenameRule(Rule):
    """Bare file name: no separators, reserved characters or device names."""

    kind: ClassVar[RuleKind] = RuleKind.FILENAME

    max_length: int | None = DEFAULT_FILENAME_MAX_LENGTH
    allowed_extensions: frozenset[str] = frozenset()
    name: str = "filename"

    def __post_init__(self) -> None:
        validate_max_length(self.max_length)
        if isinstance(self.allowed_extensions, str):
            raise ValueError("allowed_extensions must be a collection of extensions")
        object.__setattr__(
            self,
            "allowed_extensions",
            frozenset(_normalize_extension(ext) for ext in self.allowed_extensions),
        )

    def apply(self, value: object) -> str:
        text = require_text(value, "file name")
        check_max_length(text, self.max_length)
        if text in {".", ".."}:
            raise RuleViolation("must be a file name, not a directory reference")
        if _FILENAME_FORBIDDEN.search(text):
            raise RuleViolation("must not contain path separators, control or reserved characters")
        if text != text.strip() or text.endswith("."):
            raise RuleViolation("must not start or end with whitespace or end with a dot")
        stem = text.split(".", 1)[0]
        if stem.upper() in _WINDOWS_DEVICE_NAMES:
            raise RuleViolation("must not be a reserved device name")
        if self.allowed_extensions:
            suffix = Path(text).suffix.lower()
            if suffix not in self.allowed_extensions:
                allowed = ", ".join(sorted(self.allowed_extensions))
                raise RuleViolation(f"must have one of the extensions {allowed}")
        return text

    def limited_to(self, max_length: int | None) -> FilenameRule:
        return dataclasses.replace(self, max_length=tightened(self.max_length, max_length))

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        return cls(
            name=name,
            max_length=constraints.integer("max_length", DEFAULT_FILENAME_MAX_LENGTH),
            allowed_extensions=frozenset(constraints.strings("extensions")),
        )


def _normalize_extension(extension: str) -> str:
    cleaned = extension.strip().lower()
    if not cleaned or cleaned == ".":
        raise ValueError("extensions must not be empty")
    return cleaned if cleaned.startswith(".") else f".{cleaned}"


__all__ = ["DirectoryPathRule", "FilenameRule"]
