"""
inputgate — rule contract shared by every built-in validation type.

Purpose
- One generic ``apply`` entry point over a closed set of immutable variants.

Functional requirements
- Rules receive canonical, non-empty values; null policy is the validator's job.
- Ordinary failures raise ``RuleViolation``; manipulation raises ``RuleIntrusion``.
- Failure reasons describe the constraint, never the offending value.
- Constraint errors surface at construction time, never while validating.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar, Self

from inputgate.constants import DEFAULT_CAPABILITY_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from inputgate.capabilities.html import HtmlSanitizer
    from inputgate.capabilities.scanning import FileScanner


class RuleKind(StrEnum):
    """Closed set of supported validation types."""

    DATE = "date"
    NUMBER = "number"
    CREDIT_CARD = "credit_card"
    CHOICE = "choice"
    PRINTABLE = "printable"
    STRING = "string"
    URI = "uri"
    REDIRECT = "redirect"
    DIRECTORY_PATH = "directory_path"
    FILENAME = "filename"
    SAFE_HTML = "safe_html"
    FILE_CONTENT = "file_content"
    UPLOAD = "upload"
    HTTP_PARAMS = "http_params"


class RuleViolation(ValueError):
    """The canonical value does not satisfy the rule."""

    intrusion: ClassVar[bool] = False

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class RuleIntrusion(RuleViolation):
    """The value shows a manipulation pattern (traversal, forbidden scheme, ...)."""

    intrusion: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class RuleCapabilities:
    """External collaborators handed to rules built from configuration."""

    html_sanitizer: HtmlSanitizer | None = None
    file_scanner: FileScanner | None = None
    timeout_seconds: float = DEFAULT_CAPABILITY_TIMEOUT_SECONDS


class Rule(ABC):
    """Base class for rule variants; subclasses are frozen dataclasses."""

    __slots__ = ()

    kind: ClassVar[RuleKind]
    name: str

    @abstractmethod
    def apply(self, value: object) -> object:
        """Return the safe typed value or raise ``RuleViolation``."""

    def limited_to(self, max_length: int | None) -> Rule:
        """Return a rule whose length limit is at most ``max_length``."""

        return self

    @classmethod
    @abstractmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        """Build the rule from a configuration definition."""


@dataclass(slots=True)
class ConstraintReader:
    """Typed access to one rule definition, tracking which keys were consumed."""

    rule_name: str
    payload: Mapping[str, object]
    _consumed: set[str] = field(default_factory=lambda: {"kind"})

    def has(self, key: str) -> bool:
        return key in self.payload

    def text(self, key: str, default: str | None = None, *, required: bool = False) -> str | None:
        value = self._take(key, required=required)
        if value is None:
            return default
        if not isinstance(value, str):
            raise self._error(key, "must be a string")
        return value

    def integer(self, key: str, default: int | None = None, *, minimum: int = 0) -> int | None:
        value = self._take(key, required=False)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._error(key, "must be an integer")
        if value < minimum:
            raise self._error(key, f"must be >= {minimum}")
        return value

    def number(self, key: str, default: float | None = None) -> float | int | str | None:
        value = self._take(key, required=False)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise self._error(key, "must be a number")
        if isinstance(value, float) and not math.isfinite(value):
            raise self._error(key, "must be finite")
        return value

    def flag(self, key: str, default: bool) -> bool:
        value = self._take(key, required=False)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise self._error(key, "must be a boolean")
        return value

    def strings(self, key: str, default: Iterable[str] = ()) -> tuple[str, ...]:
        value = self._take(key, required=False)
        if value is None:
            return tuple(default)
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise self._error(key, "must be a list of strings")
        if not all(isinstance(item, str) for item in value):
            raise self._error(key, "must be a list of strings")
        return tuple(value)

    def raw(self, key: str, *, required: bool = False) -> object:
        return self._take(key, required=required)

    def assert_consumed(self) -> None:
        unknown = sorted(set(self.payload) - self._consumed)
        if unknown:
            raise ValueError(f"rule {self.rule_name!r}: unexpected constraints {unknown}")

    def _take(self, key: str, *, required: bool) -> object:
        self._consumed.add(key)
        if key not in self.payload:
            if required:
                raise self._error(key, "is required")
            return None
        return self.payload[key]

    def _error(self, key: str, message: str) -> ValueError:
        return ValueError(f"rule {self.rule_name!r}: {key} {message}")


def require_text(value: object, what: str = "value") -> str:
    if not isinstance(value, str):
        raise RuleViolation(f"{what} must be text")
    return value


def check_max_length(text: str, max_length: int | None) -> None:
    if max_length is not None and len(text) > max_length:
        raise RuleViolation(f"must be at most {max_length} characters")


def tightened(current: int | None, requested: int | None) -> int | None:
    """Combine two optional length limits, keeping the stricter one."""

    if requested is None:
        return current
    if requested < 0:
        raise ValueError("max_length must be >= 0")
    if current is None:
        return requested
    return min(current, requested)


def validate_max_length(max_length: int | None) -> None:
    if max_length is None:
        return
    if isinstance(max_length, bool) or not isinstance(max_length, int) or max_length < 0:
        raise ValueError("max_length must be a non-negative integer")


__all__ = [
    "ConstraintReader",
    "Rule",
    "RuleCapabilities",
    "RuleIntrusion",
    "RuleKind",
    "RuleViolation",
    "check_max_length",
    "require_text",
    "tightened",
    "validate_max_length",
]
