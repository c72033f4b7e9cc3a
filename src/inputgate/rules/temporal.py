"""Calendar date rule."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import ClassVar, Final, Self

from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleKind,
    RuleViolation,
    require_text,
)

_TOKENS: Final[tuple[tuple[str, str], ...]] = (
    ("YYYY", "%Y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("DD", "%d"),
    ("HH", "%H"),
    ("mm", "%M"),
    ("ss", "%S"),
)
_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile("|".join(token for token, _ in _TOKENS))
_TOKEN_MAP: Final[dict[str, str]] = dict(_TOKENS)
_TIME_DIRECTIVES: Final[tuple[str, ...]] = ("%H", "%I", "%M", "%S", "%f", "%p")
_YEAR_DIRECTIVE: Final[re.Pattern[str]] = re.compile(r"%[%Y]")


def to_strptime_format(date_format: str) -> str:
    """Translate ``YYYY-MM-DD`` style tokens; ``%`` formats pass through unchanged."""

    if "%" in date_format:
        return date_format
    return _TOKEN_PATTERN.sub(lambda match: _TOKEN_MAP[match.group(0)], date_format)


@dataclass(frozen=True, slots=True, kw_only=True)
class DateRule(Rule):
    """Strict date parsing: the value must round-trip through the format exactly.

    Out-of-range fields (month 13, February 30) fail instead of being clamped,
    and non-padded variants such as ``2010-3-2`` for ``YYYY-MM-DD`` fail too.
    """

    kind: ClassVar[RuleKind] = RuleKind.DATE

    date_format: str
    name: str = "date"
    _strptime_format: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.date_format, str) or not self.date_format.strip():
            raise ValueError("date_format must be a non-empty string")
        object.__setattr__(self, "_strptime_format", to_strptime_format(self.date_format))

    @property
    def has_time(self) -> bool:
        return any(directive in self._strptime_format for directive in _TIME_DIRECTIVES)

    def apply(self, value: object) -> date | datetime:
        if isinstance(value, datetime):
            return value if self.has_time else value.date()
        if isinstance(value, date):
            return value
        text = require_text(value).strip()
        try:
            parsed = datetime.strptime(text, self._strptime_format)
        except ValueError as exc:
            raise RuleViolation(f"must be a valid date in format {self.date_format}") from exc
        if _render(parsed, self._strptime_format) != text:
            raise RuleViolation(f"must be a valid date in format {self.date_format}")
        return parsed if self.has_time else parsed.date()

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        date_format = constraints.text("format", required=True)
        assert date_format is not None
        return cls(name=name, date_format=date_format)


def _render(parsed: datetime, strptime_format: str) -> str:
    """``strftime`` with ``%Y`` always four digits; platforms drop the padding below 1000."""

    year = f"{parsed.year:04d}"
    padded = _YEAR_DIRECTIVE.sub(
        lambda match: year if match.group(0) == "%Y" else "%%",
        strptime_format,
    )
    return parsed.strftime(padded)


__all__ = ["DateRule", "to_strptime_format"]
