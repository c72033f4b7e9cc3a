"""Text whitelist rules: regex string, printable characters, choice from a set."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Self

from inputgate.constants import PRINTABLE_HIGH, PRINTABLE_LOW
from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleKind,
    RuleViolation,
    check_max_length,
    require_text,
    tightened,
    validate_max_length,
)


@dataclass(frozen=True, slots=True, kw_only=True)
class StringRule(Rule):
    """Whole-value match against a whitelist regular expression."""

    kind: ClassVar[RuleKind] = RuleKind.STRING

    pattern: str
    max_length: int | None = None
    ignore_case: bool = False
    name: str = "string"
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        validate_max_length(self.max_length)
        flags = re.IGNORECASE if self.ignore_case else 0
        try:
            compiled = re.compile(self.pattern, flags)
        except re.error as exc:
            raise ValueError(f"invalid whitelist pattern: {exc}") from exc
        object.__setattr__(self, "_compiled", compiled)

    def apply(self, value: object) -> str:
        text = require_text(value)
        check_max_length(text, self.max_length)
        if self._compiled.fullmatch(text) is None:
            raise RuleViolation("contains characters or structure outside the allowed pattern")
        return text

    def limited_to(self, max_length: int | None) -> StringRule:
        return dataclasses.replace(self, max_length=tightened(self.max_length, max_length))

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        pattern = constraints.text("pattern", required=True)
        assert pattern is not None
        return cls(
            name=name,
            pattern=pattern,
            max_length=constraints.integer("max_length"),
            ignore_case=constraints.flag("ignore_case", False),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class PrintableRule(Rule):
    """Every character within ``[low, high]``; control characters never qualify."""

    kind: ClassVar[RuleKind] = RuleKind.PRINTABLE

    max_length: int | None = None
    low: int = PRINTABLE_LOW
    high: int = PRINTABLE_HIGH
    name: str = "printable"

    def __post_init__(self) -> None:
        validate_max_length(self.max_length)
        if not 0x20 <= self.low <= self.high:
            raise ValueError("printable range must start at or above U+0020 and be ordered")

    def apply(self, value: object) -> str:
        text = require_text(value)
        check_max_length(text, self.max_length)
        for char in text:
            code_point = ord(char)
            if code_point < self.low or code_point > self.high or not char.isprintable():
                raise RuleViolation(
                    f"may only contain printable characters U+{self.low:04X}..U+{self.high:04X}"
                )
        return text

    def limited_to(self, max_length: int | None) -> PrintableRule:
        return dataclasses.replace(self, max_length=tightened(self.max_length, max_length))

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        low = constraints.integer("low", PRINTABLE_LOW)
        high = constraints.integer("high", PRINTABLE_HIGH)
        assert low is not None and high is not None
        return cls(
            name=name,
            max_length=constraints.integer("max_length"),
            low=low,
            high=high,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ChoiceRule(Rule):
    """Exact membership in a finite candidate set."""

    kind: ClassVar[RuleKind] = RuleKind.CHOICE

    choices: tuple[object, ...]
    name: str = "choice"

    def __post_init__(self) -> None:
        object.__setattr__(self, "choices", _as_candidates(self.choices))
        if not self.choices:
            raise ValueError("choices must not be empty")

    def apply(self, value: object) -> object:
        for candidate in self.choices:
            if _same_choice(candidate, value):
                return candidate
        raise RuleViolation(f"must be one of the {len(self.choices)} allowed values")

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        return cls(name=name, choices=constraints.strings("choices"))


def _as_candidates(candidates: object) -> tuple[object, ...]:
    if isinstance(candidates, type) and issubclass(candidates, Enum):
        return tuple(candidates)
    if isinstance(candidates, (set, frozenset)):
        return tuple(sorted(candidates, key=repr))
    if isinstance(candidates, (str, bytes)) or not isinstance(candidates, Sequence):
        raise ValueError("choices must be a sequence, set or Enum class")
    return tuple(candidates)


def _same_choice(candidate: object, value: object) -> bool:
    # Type-exact comparison so True never matches 1 and "1" never matches 1.
    if isinstance(candidate, Enum):
        if candidate is value:
            return True
        return type(candidate.value) is type(value) and candidate.value == value
    return type(candidate) is type(value) and candidate == value


__all__ = ["ChoiceRule", "PrintableRule", "StringRule"]
