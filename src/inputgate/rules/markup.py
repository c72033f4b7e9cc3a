"""Safe-HTML rule delegating to an ``HtmlSanitizer`` capability."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import ClassVar, Self

import structlog

from inputgate.capabilities.html import (
    DEFAULT_ALLOWED_PROTOCOLS,
    BleachSanitizer,
    HtmlSanitizer,
    UnsafeContentError,
    normalize_attribute_whitelist,
    normalize_tag_whitelist,
)
from inputgate.capabilities.timeouts import CapabilityTimeoutError, call_with_timeout
from inputgate.constants import (
    DEFAULT_CAPABILITY_TIMEOUT_SECONDS,
    DEFAULT_SAFE_HTML_MAX_INPUT_LENGTH,
    SAFE_HTML_INPUT_FACTOR,
)
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

_logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class SafeHtmlRule(Rule):
    """Markup reduced to a tag/attribute whitelist.

    The returned value is the sanitizer's output; ``max_length`` applies to that
    output. Raw input longer than ``max_input_length`` (by default a multiple of
    ``max_length``) is refused before sanitizing, and the sanitizer runs under
    ``timeout_seconds``. Sanitizer crashes and timeouts fail closed.
    """

    kind: ClassVar[RuleKind] = RuleKind.SAFE_HTML

    max_length: int | None = None
    allowed_tags: Iterable[str] | None = None
    allowed_attributes: Mapping[str, Iterable[str]] | None = None
    allowed_protocols: Iterable[str] = DEFAULT_ALLOWED_PROTOCOLS
    sanitizer: HtmlSanitizer | None = None
    max_input_length: int | None = None
    timeout_seconds: float = DEFAULT_CAPABILITY_TIMEOUT_SECONDS
    name: str = "safe_html"

    def __post_init__(self) -> None:
        validate_max_length(self.max_length)
        validate_max_length(self.max_input_length)
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        object.__setattr__(self, "allowed_tags", normalize_tag_whitelist(self.allowed_tags))
        object.__setattr__(
            self,
            "allowed_attributes",
            normalize_attribute_whitelist(self.allowed_attributes),
        )
        protocols = frozenset(protocol.strip().lower() for protocol in self.allowed_protocols)
        if "javascript" in protocols or "vbscript" in protocols or "data" in protocols:
            raise ValueError("script-capable protocols cannot be whitelisted")
        object.__setattr__(self, "allowed_protocols", protocols)
        if self.sanitizer is None:
            object.__setattr__(self, "sanitizer", BleachSanitizer())

    def apply(self, value: object) -> str:
        text = require_text(value, "HTML")
        input_limit = self.input_limit
        if len(text) > input_limit:
            raise RuleViolation(f"must be at most {input_limit} characters before sanitizing")
        sanitizer = self.sanitizer
        assert sanitizer is not None
        try:
            cleaned = call_with_timeout(
                sanitizer.sanitize,
                text,
                timeout_seconds=self.timeout_seconds,
                allowed_tags=frozenset(self.allowed_tags or ()),
                allowed_attributes=dict(self.allowed_attributes or {}),
                allowed_protocols=frozenset(self.allowed_protocols),
            )
        except UnsafeContentError as exc:
            raise RuleViolation("contains markup that cannot be made safe") from exc
        except CapabilityTimeoutError as exc:
            raise RuleViolation("markup could not be sanitized in time") from exc
        except Exception as exc:  # noqa: BLE001
            _logger.warning(
                "html_sanitizer_failed",
                rule=self.name,
                error_type=type(exc).__name__,
            )
            raise RuleViolation("markup could not be sanitized") from exc
        check_max_length(cleaned, self.max_length)
        return cleaned

    @property
    def input_limit(self) -> int:
        if self.max_input_length is not None:
            return self.max_input_length
        if self.max_length is not None:
            return self.max_length * SAFE_HTML_INPUT_FACTOR
        return DEFAULT_SAFE_HTML_MAX_INPUT_LENGTH

    def limited_to(self, max_length: int | None) -> SafeHtmlRule:
        return dataclasses.replace(self, max_length=tightened(self.max_length, max_length))

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        tags = constraints.strings("tags") if constraints.has("tags") else None
        attributes = constraints.raw("attributes")
        if attributes is not None and not isinstance(attributes, Mapping):
            raise ValueError(f"rule {name!r}: attributes must map tag names to attribute lists")
        return cls(
            name=name,
            max_length=constraints.integer("max_length"),
            allowed_tags=tags,
            allowed_attributes=attributes,
            allowed_protocols=constraints.strings("protocols", DEFAULT_ALLOWED_PROTOCOLS),
            sanitizer=capabilities.html_sanitizer,
            max_input_length=constraints.integer("max_input_length"),
            timeout_seconds=capabilities.timeout_seconds,
        )


__all__ = ["SafeHtmlRule"]
