"""
inputgate — validation outcomes and public error types.

Purpose
- Model the two rejection kinds that callers must be able to tell apart:
  ordinary invalid input and detected manipulation.

Functional requirements
- ``IntrusionDetectedError`` is never a subclass of ``ValidationError`` so an
  ``except ValidationError`` handler cannot swallow a security event.
- Rejections never carry raw attacker-controlled text unless explicitly enabled,
  and even then only as an escaped, truncated preview.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeAlias, TypeVar

from inputgate.constants import OFFENDING_VALUE_PREVIEW_CHARS, REDACTED_VALUE

T = TypeVar("T")


class RejectionKind(StrEnum):
    """Top-level rejection classification."""

    VALIDATION_FAILURE = "validation_failure"
    INTRUSION_DETECTED = "intrusion_detected"


@dataclass(frozen=True, slots=True)
class Rejection:
    """Why a value was refused, safe to log and to show to operators."""

    context: str
    kind: RejectionKind
    reason: str
    offending_value: str = REDACTED_VALUE

    @property
    def is_intrusion(self) -> bool:
        return self.kind is RejectionKind.INTRUSION_DETECTED


@dataclass(frozen=True, slots=True)
class Accepted(Generic[T]):
    """Successful outcome holding the safe value (``None`` for an allowed null)."""

    value: T | None


ValidationOutcome: TypeAlias = Accepted[object] | Rejection


class InputRejectedError(Exception):
    """Base class for input rejections raised by ``get_valid_*`` calls."""

    def __init__(self, rejection: Rejection) -> None:
        self.rejection = rejection
        super().__init__(f"{rejection.context}: {rejection.reason}")

    @property
    def context(self) -> str:
        return self.rejection.context

    @property
    def reason(self) -> str:
        return self.rejection.reason


class ValidationError(InputRejectedError):
    """Ordinary invalid input; the caller may re-prompt."""


class IntrusionDetectedError(InputRejectedError):
    """Manipulation pattern detected; the caller should escalate, not re-prompt."""

    def __init__(
        self,
        rejection: Rejection,
        *,
        encoding_pattern: str | None = None,
        codecs_applied: tuple[str, ...] = (),
    ) -> None:
        super().__init__(rejection)
        self.encoding_pattern = encoding_pattern
        self.codecs_applied = codecs_applied


def error_for(
    rejection: Rejection,
    *,
    encoding_pattern: str | None = None,
    codecs_applied: tuple[str, ...] = (),
) -> InputRejectedError:
    """Return the public exception matching ``rejection.kind``."""

    if rejection.is_intrusion:
        return IntrusionDetectedError(
            rejection,
            encoding_pattern=encoding_pattern,
            codecs_applied=codecs_applied,
        )
    return ValidationError(rejection)


def preview_offending_value(value: object, *, expose: bool) -> str:
    """Return an escaped, truncated preview, or the redaction marker."""

    if not expose:
        return REDACTED_VALUE
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    rendered = ascii(value if isinstance(value, str) else str(value))[1:-1]
    if len(rendered) > OFFENDING_VALUE_PREVIEW_CHARS:
        rendered = rendered[:OFFENDING_VALUE_PREVIEW_CHARS] + "..."
    return html.escape(rendered, quote=True)


__all__ = [
    "Accepted",
    "InputRejectedError",
    "IntrusionDetectedError",
    "Rejection",
    "RejectionKind",
    "ValidationError",
    "ValidationOutcome",
    "error_for",
    "preview_offending_value",
]
