"""CSS backslash-escape codec."""

from __future__ import annotations

import re
from typing import Final

from inputgate.codecs.base import DecodeResult, code_point_to_text, substitute_once

_ESCAPE: Final[re.Pattern[str]] = re.compile(
    r"\\(?:(?P<hex>[0-9A-Fa-f]{1,6})(?:\r\n|[ \t\r\n\f])?|(?P<char>[^0-9A-Fa-f\r\n\f]))"
)


class CssCodec:
    name = "css"

    def decode(self, text: str) -> DecodeResult:
        if "\\" not in text:
            return DecodeResult.unchanged(text)
        return substitute_once(_ESCAPE, text, _decode_escape)


def _decode_escape(match: re.Match[str]) -> str:
    hex_digits = match.group("hex")
    if hex_digits is not None:
        return code_point_to_text(int(hex_digits, 16))
    return match.group("char")


__all__ = ["CssCodec"]
