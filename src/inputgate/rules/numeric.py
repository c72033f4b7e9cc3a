"""Number and payment-card rules."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import ClassVar, Final, Self, TypeAlias

from inputgate.constants import CREDIT_CARD_LENGTHS
from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleKind,
    RuleViolation,
    require_text,
)

NumberLike: TypeAlias = Decimal | int | float | str

_DECIMAL_TEXT: Final[re.Pattern[str]] = re.compile(
    r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$"
)
_CARD_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"[ -]")


def to_decimal(value: object) -> Decimal:
    """Parse ``value`` as a finite ``Decimal`` or raise ``ValueError``."""

    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("number must be finite")
        parsed = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip()
        if not _DECIMAL_TEXT.match(text):
            raise ValueError("not a decimal number")
        try:
            parsed = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError("not a decimal number") from exc
    else:
        raise ValueError(f"unsupported number type {type(value).__name__}")
    if not parsed.is_finite():
        raise ValueError("number must be finite")
    return parsed


@dataclass(frozen=True, slots=True, kw_only=True)
class NumberRule(Rule):
    """Decimal within a closed ``[minimum, maximum]`` interval."""

    kind: ClassVar[RuleKind] = RuleKind.NUMBER

    minimum: NumberLike | None = None
    maximum: NumberLike | None = None
    name: str = "number"

    def __post_init__(self) -> None:
        for attr in ("minimum", "maximum"):
            bound = getattr(self, attr)
            if bound is None:
                continue
            try:
                object.__setattr__(self, attr, to_decimal(bound))
            except ValueError as exc:
                raise ValueError(f"{attr} must be a finite number") from exc
        if (
            self.minimum is not None
            and self.maximum is not None
            and Decimal(self.minimum) > Decimal(self.maximum)
        ):
            raise ValueError("minimum must be <= maximum")

    def apply(self, value: object) -> Decimal:
        try:
            number = to_decimal(value)
        except ValueError as exc:
            raise RuleViolation("must be a number") from exc

        low = None if self.minimum is None else Decimal(self.minimum)
        high = None if self.maximum is None else Decimal(self.maximum)
        if (low is not None and number < low) or (high is not None and number > high):
            raise RuleViolation(_range_message(low, high))
        return number

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        return cls(
            name=name,
            minimum=constraints.number("min"),
            maximum=constraints.number("max"),
        )


def _range_message(low: Decimal | None, high: Decimal | None) -> str:
    if low is not None and high is not None:
        return f"must be between {low} and {high}"
    if low is not None:
        return f"must be at least {low}"
    return f"must be at most {high}"


def luhn_valid(digits: str) -> bool:
    """Return whether ``digits`` passes the Luhn check-digit algorithm."""

    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = ord(char) - 48
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


@dataclass(frozen=True, slots=True, kw_only=True)
class CreditCardRule(Rule):
    kind: ClassVar[RuleKind] = RuleKind.CREDIT_CARD

    name: str = "credit_card"
    allowed_lengths: frozenset[int] = CREDIT_CARD_LENGTHS

    def apply(self, value: object) -> str:
        text = require_text(value, "card number")
        digits = _CARD_SEPARATORS.sub("", text.strip())
        if not digits.isascii() or not digits.isdigit():
            raise RuleViolation("card number may only contain digits, spaces and dashes")
        if len(digits) not in self.allowed_lengths:
            lengths = ", ".join(str(length) for length in sorted(self.allowed_lengths))
            raise RuleViolation(f"card number must have {lengths} digits")
        if not luhn_valid(digits):
            raise RuleViolation("card number fails the check digit test")
        return digits

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        raw_lengths = constraints.raw("lengths")
        if raw_lengths is None:
            return cls(name=name)
        if not isinstance(raw_lengths, (list, tuple)) or not all(
            isinstance(item, int) and not isinstance(item, bool) and item > 0
            for item in raw_lengths
        ):
            raise ValueError(f"rule {name!r}: lengths must be a list of positive integers")
        return cls(name=name, allowed_lengths=frozenset(raw_lengths))


__all__ = ["CreditCardRule", "NumberRule", "luhn_valid", "to_decimal"]
