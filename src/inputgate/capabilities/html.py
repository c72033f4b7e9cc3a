"""
inputgate — safe-HTML capability.

Purpose
- Whitelist tags, attributes and URL protocols in untrusted markup.

Functional requirements
- Script, style and embedding elements are removed together with their content.
- Event-handler and ``style`` attributes can never be whitelisted.
- Markup that cannot be made safe raises ``UnsafeContentError``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Final, Protocol, TypeAlias, runtime_checkable

import bleach

AttributeWhitelist: TypeAlias = Mapping[str, Iterable[str]]

DEFAULT_ALLOWED_TAGS: Final[frozenset[str]] = frozenset(
    {
        "b",
        "blockquote",
        "br",
        "code",
        "em",
        "i",
        "li",
        "ol",
        "p",
        "pre",
        "span",
        "strong",
        "u",
        "ul",
    }
)
DEFAULT_ALLOWED_PROTOCOLS: Final[frozenset[str]] = frozenset({"http", "https", "mailto"})

_EXECUTABLE_ELEMENTS: Final[tuple[str, ...]] = (
    "script",
    "style",
    "iframe",
    "object",
    "embed",
    "template",
    "noscript",
    "xml",
)
_ELEMENT_ALTERNATION: Final[str] = "|".join(_EXECUTABLE_ELEMENTS)
_EXECUTABLE_OPEN: Final[re.Pattern[str]] = re.compile(
    rf"<\s*({_ELEMENT_ALTERNATION})\b",
    re.IGNORECASE,
)
_EXECUTABLE_CLOSE: Final[dict[str, re.Pattern[str]]] = {
    element: re.compile(rf"<\s*/\s*{element}\s*>", re.IGNORECASE)
    for element in _EXECUTABLE_ELEMENTS
}
_FORBIDDEN_ATTRIBUTE: Final[re.Pattern[str]] = re.compile(r"^(on.*|style|formaction|srcdoc)$", re.I)


class UnsafeContentError(ValueError):
    """Raised when markup contains content the sanitizer cannot neutralize."""


@runtime_checkable
class HtmlSanitizer(Protocol):
    def sanitize(
        self,
        html: str,
        *,
        allowed_tags: frozenset[str],
        allowed_attributes: Mapping[str, frozenset[str]],
        allowed_protocols: frozenset[str],
    ) -> str: ...


class BleachSanitizer:
    """``HtmlSanitizer`` backed by ``bleach.clean``."""

    def sanitize(
        self,
        html: str,
        *,
        allowed_tags: frozenset[str],
        allowed_attributes: Mapping[str, frozenset[str]],
        allowed_protocols: frozenset[str],
    ) -> str:
        return bleach.clean(
            strip_executable_blocks(html),
            tags=allowed_tags,
            attributes={tag: sorted(names) for tag, names in allowed_attributes.items()},
            protocols=allowed_protocols,
            strip=True,
            strip_comments=True,
        )


def strip_executable_blocks(html: str) -> str:
    """Remove executable elements together with their content in one forward pass.

    Raises ``UnsafeContentError`` for an opening tag without its closing tag.
    """

    pieces: list[str] = []
    position = 0
    while True:
        opening = _EXECUTABLE_OPEN.search(html, position)
        if opening is None:
            pieces.append(html[position:])
            return "".join(pieces)
        element = opening.group(1).lower()
        tag_end = html.find(">", opening.end())
        closing = None if tag_end < 0 else _EXECUTABLE_CLOSE[element].search(html, tag_end + 1)
        if closing is None:
            raise UnsafeContentError(f"unterminated <{element}> element")
        pieces.append(html[position : opening.start()])
        position = closing.end()


def normalize_attribute_whitelist(
    attributes: AttributeWhitelist | None,
) -> dict[str, frozenset[str]]:
    """Lower-case and freeze an attribute whitelist, refusing executable attributes."""

    normalized: dict[str, frozenset[str]] = {}
    for tag, names in (attributes or {}).items():
        if isinstance(names, str):
            raise TypeError(f"attributes for {tag!r} must be a list of names")
        cleaned = frozenset(name.strip().lower() for name in names if name.strip())
        forbidden = sorted(name for name in cleaned if _FORBIDDEN_ATTRIBUTE.match(name))
        if forbidden:
            raise ValueError(f"attributes {forbidden} on <{tag}> cannot be whitelisted")
        normalized[tag.strip().lower()] = cleaned
    return normalized


def normalize_tag_whitelist(tags: Iterable[str] | None) -> frozenset[str]:
    if tags is None:
        return DEFAULT_ALLOWED_TAGS
    cleaned = frozenset(tag.strip().lower() for tag in tags if tag.strip())
    executable = sorted(cleaned.intersection(_EXECUTABLE_ELEMENTS))
    if executable:
        raise ValueError(f"tags {executable} cannot be whitelisted")
    return cleaned


__all__ = [
    "DEFAULT_ALLOWED_PROTOCOLS",
    "DEFAULT_ALLOWED_TAGS",
    "BleachSanitizer",
    "HtmlSanitizer",
    "UnsafeContentError",
    "normalize_attribute_whitelist",
    "normalize_tag_whitelist",
    "strip_executable_blocks",
]
