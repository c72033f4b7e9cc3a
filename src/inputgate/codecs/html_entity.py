"""HTML character reference codec."""

from __future__ import annotations

import re
from html.entities import html5
from typing import Final

from inputgate.codecs.base import DecodeResult, code_point_to_text, substitute_once

_REFERENCE: Final[re.Pattern[str]] = re.compile(
    r"&(?:#[xX](?P<hex>[0-9A-Fa-f]{1,8});?"
    r"|#(?P<dec>[0-9]{1,10});?"
    r"|(?P<name>[A-Za-z][A-Za-z0-9]{1,31});)"
)


class HtmlEntityCodec:
    """Decode named (``&lt;``), decimal (``&#60;``) and hex (``&#x3c;``) references.

    Named references require the terminating semicolon, numeric ones do not.
    Unknown names are left untouched.
    """

    name = "html"

    def decode(self, text: str) -> DecodeResult:
        if "&" not in text:
            return DecodeResult.unchanged(text)
        return substitute_once(_REFERENCE, text, _decode_reference)


def _decode_reference(match: re.Match[str]) -> str:
    hex_digits = match.group("hex")
    if hex_digits is not None:
        return code_point_to_text(int(hex_digits, 16))
    decimal_digits = match.group("dec")
    if decimal_digits is not None:
        return code_point_to_text(int(decimal_digits, 10))
    entity = match.group("name")
    replacement = html5.get(f"{entity};")
    if replacement is None:
        return match.group(0)
    return replacement


__all__ = ["HtmlEntityCodec"]
