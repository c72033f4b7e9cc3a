"""JavaScript string-literal escape codec."""

from __future__ import annotations

import re
from typing import Final

from inputgate.codecs.base import DecodeResult, MalformedSequence, code_point_to_text

_ESCAPE: Final[re.Pattern[str]] = re.compile(
    r"\\(?:x(?P<hex2>[0-9A-Fa-f]{2})"
    r"|u\{(?P<braced>[0-9A-Fa-f]{1,6})\}"
    r"|u(?P<hex4>[0-9A-Fa-f]{4})"
    r"|(?P<single>[btnvfr0'\"\\/]))"
)

_SINGLE_ESCAPES: Final[dict[str, str]] = {
    "b": "\b",
    "t": "\t",
    "n": "\n",
    "v": "\v",
    "f": "\f",
    "r": "\r",
    "0": "\x00",
    "'": "'",
    '"': '"',
    "\\": "\\",
    "/": "/",
}


class JavaScriptCodec:
    """Decode ``\\xHH``, ``\\uHHHH``, ``\\u{H..}`` and single-character escapes.

    ``\\uD83D\\uDE00`` style surrogate pairs are joined; lone surrogates and
    ``\\0`` are malformed. Unknown escapes are left untouched.
    """

    name = "javascript"

    def decode(self, text: str) -> DecodeResult:
        if "\\" not in text:
            return DecodeResult.unchanged(text)
        try:
            decoded = _ESCAPE.sub(_decode_escape, text)
            decoded = _join_surrogates(decoded)
        except MalformedSequence:
            return DecodeResult(text=text, changed=False, malformed=True)
        return DecodeResult(text=decoded, changed=decoded != text)


def _decode_escape(match: re.Match[str]) -> str:
    single = match.group("single")
    if single is not None:
        value = _SINGLE_ESCAPES[single]
        if value == "\x00":
            raise MalformedSequence("NUL escape")
        return value
    digits = match.group("hex2") or match.group("braced")
    if digits is not None:
        return code_point_to_text(int(digits, 16))
    code_point = int(match.group("hex4"), 16)
    if 0xD800 <= code_point <= 0xDFFF:
        # Paired up in _join_surrogates.
        return chr(code_point)
    return code_point_to_text(code_point)


def _join_surrogates(text: str) -> str:
    if not any(0xD800 <= ord(char) <= 0xDFFF for char in text):
        return text
    try:
        return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")
    except UnicodeDecodeError as exc:
        raise MalformedSequence("unpaired surrogate escape") from exc


__all__ = ["JavaScriptCodec"]
