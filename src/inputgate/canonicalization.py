"""
inputgate — canonicalization loop with encoding-attack classification.

Purpose
- Reduce a string to the form it had before any encoding was applied, however
  many layers were stacked on it, and classify how it was encoded.

Functional requirements
- Each pass applies every configured codec once, in order; a pass that changes
  nothing ends the loop.
- Stacked encodings of one scheme are ``multiple_identical``; two or more
  distinct schemes are ``multiple_mixed``; any illegal sequence aborts as
  ``malformed``.
- The number of changing passes is bounded; exceeding the bound is ``malformed``.

Non-functional requirements
- Stateless per call; a ``Canonicalizer`` is safe to share between threads.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from inputgate.codecs import Codec, codecs_by_name
from inputgate.constants import (
    DEFAULT_CODEC_NAMES,
    DEFAULT_MAX_ENCODING_DEPTH,
    MAX_ENCODING_DEPTH_LIMIT,
)


class EncodingPattern(StrEnum):
    """How the observed input was encoded."""

    NONE = "none"
    SINGLE = "single"
    MULTIPLE_IDENTICAL = "multiple_identical"
    MULTIPLE_MIXED = "multiple_mixed"
    MALFORMED = "malformed"


_ALWAYS_REJECTED: Final[frozenset[EncodingPattern]] = frozenset(
    {EncodingPattern.MULTIPLE_MIXED, EncodingPattern.MALFORMED}
)


@dataclass(frozen=True, slots=True)
class CanonicalizationResult:
    """Canonical form plus the evidence needed for audit."""

    canonical_form: str
    codecs_applied: tuple[str, ...]
    encoding_pattern: EncodingPattern
    detail: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.codecs_applied)


class EncodingAttackError(Exception):
    """Raised by ``Canonicalizer.canonicalize`` when policy rejects the pattern."""

    def __init__(self, result: CanonicalizationResult, reason: str) -> None:
        self.result = result
        self.reason = reason
        super().__init__(reason)


class Canonicalizer:
    """Iterative multi-codec decoder."""

    def __init__(
        self,
        codecs: Sequence[Codec],
        *,
        max_depth: int = DEFAULT_MAX_ENCODING_DEPTH,
    ) -> None:
        if not codecs:
            raise ValueError("at least one codec is required")
        names = [codec.name for codec in codecs]
        if len(set(names)) != len(names):
            raise ValueError(f"codec names must be unique, got {names}")
        if not isinstance(max_depth, int) or isinstance(max_depth, bool):
            raise ValueError("max_depth must be an integer")
        if not 1 <= max_depth <= MAX_ENCODING_DEPTH_LIMIT:
            raise ValueError(f"max_depth must be between 1 and {MAX_ENCODING_DEPTH_LIMIT}")
        self._codecs = tuple(codecs)
        self._max_depth = max_depth

    @classmethod
    def from_names(
        cls,
        names: Iterable[str] = DEFAULT_CODEC_NAMES,
        *,
        max_depth: int = DEFAULT_MAX_ENCODING_DEPTH,
    ) -> Canonicalizer:
        return cls(codecs_by_name(names), max_depth=max_depth)

    @property
    def codec_names(self) -> tuple[str, ...]:
        return tuple(codec.name for codec in self._codecs)

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def inspect(self, value: str) -> CanonicalizationResult:
        """Decode ``value`` to a fixed point and classify, without applying policy."""

        if not isinstance(value, str):
            raise TypeError(f"value must be a string, got {type(value).__name__}")

        current = value
        applied: list[str] = []
        changing_passes = 0

        while True:
            changed_this_pass = False
            for codec in self._codecs:
                result = codec.decode(current)
                if result.malformed:
                    return CanonicalizationResult(
                        canonical_form=value,
                        codecs_applied=tuple(applied),
                        encoding_pattern=EncodingPattern.MALFORMED,
                        detail=f"illegal {codec.name} sequence",
                    )
                if result.changed:
                    applied.append(codec.name)
                    current = result.text
                    changed_this_pass = True

            if not changed_this_pass:
                break
            changing_passes += 1
            if changing_passes > self._max_depth:
                return CanonicalizationResult(
                    canonical_form=value,
                    codecs_applied=tuple(applied),
                    encoding_pattern=EncodingPattern.MALFORMED,
                    detail=f"encoding depth exceeds {self._max_depth}",
                )

        return CanonicalizationResult(
            canonical_form=current,
            codecs_applied=tuple(applied),
            encoding_pattern=classify(applied),
        )

    def canonicalize(
        self,
        value: str,
        *,
        allow_multiple_encoding: bool = False,
    ) -> CanonicalizationResult:
        """Return the canonical form or raise ``EncodingAttackError``."""

        result = self.inspect(value)
        pattern = result.encoding_pattern
        if pattern in _ALWAYS_REJECTED:
            raise EncodingAttackError(result, _rejection_reason(result))
        if pattern is EncodingPattern.MULTIPLE_IDENTICAL and not allow_multiple_encoding:
            raise EncodingAttackError(result, _rejection_reason(result))
        return result


def classify(codecs_applied: Sequence[str]) -> EncodingPattern:
    """Classify a non-malformed run from the ordered list of codecs that fired."""

    if not codecs_applied:
        return EncodingPattern.NONE
    counts = Counter(codecs_applied)
    if len(counts) >= 2:
        return EncodingPattern.MULTIPLE_MIXED
    if max(counts.values()) >= 2:
        return EncodingPattern.MULTIPLE_IDENTICAL
    return EncodingPattern.SINGLE


def _rejection_reason(result: CanonicalizationResult) -> str:
    pattern = result.encoding_pattern
    if pattern is EncodingPattern.MALFORMED:
        detail = result.detail or "illegal encoded sequence"
        return f"input contains malformed encoding ({detail})"
    if pattern is EncodingPattern.MULTIPLE_MIXED:
        return "input uses mixed encoding schemes"
    return "input is encoded more than once"


__all__ = [
    "CanonicalizationResult",
    "Canonicalizer",
    "EncodingAttackError",
    "EncodingPattern",
    "classify",
]
