"""Codec capability contract consumed by the canonicalizer."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, Protocol, runtime_checkable

_MAX_CODE_POINT: Final[int] = 0x10FFFF


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of stripping one encoding layer."""

    text: str
    changed: bool
    malformed: bool = False

    @classmethod
    def unchanged(cls, text: str) -> DecodeResult:
        return cls(text=text, changed=False)


@runtime_checkable
class Codec(Protocol):
    """One encoding scheme; ``decode`` removes exactly one layer."""

    name: str

    def decode(self, text: str) -> DecodeResult: ...


class MalformedSequence(ValueError):
    """Raised inside a codec when a sequence decodes to an illegal value."""


def code_point_to_text(code_point: int) -> str:
    """Return ``chr(code_point)`` or raise ``MalformedSequence`` for illegal points."""

    if code_point == 0 or code_point > _MAX_CODE_POINT:
        raise MalformedSequence(f"illegal code point U+{code_point:X}")
    if 0xD800 <= code_point <= 0xDFFF:
        raise MalformedSequence(f"surrogate code point U+{code_point:X}")
    return chr(code_point)


def substitute_once(
    pattern: re.Pattern[str],
    text: str,
    replace: Callable[[re.Match[str]], str],
) -> DecodeResult:
    """Apply ``replace`` to every match of ``pattern`` in a single left-to-right pass."""

    if not text:
        return DecodeResult.unchanged(text)
    try:
        decoded = pattern.sub(replace, text)
    except MalformedSequence:
        return DecodeResult(text=text, changed=False, malformed=True)
    return DecodeResult(text=decoded, changed=decoded != text)


__all__ = [
    "Codec",
    "DecodeResult",
    "MalformedSequence",
    "code_point_to_text",
    "substitute_once",
]
