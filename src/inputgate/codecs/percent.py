"""URL percent-encoding codec."""

from __future__ import annotations

import re
from typing import Final

from inputgate.codecs.base import DecodeResult, MalformedSequence, substitute_once

# Consecutive escapes are decoded together so multi-byte UTF-8 stays intact.
_ESCAPE_RUN: Final[re.Pattern[str]] = re.compile(r"(?:%[0-9A-Fa-f]{2})+")


class PercentCodec:
    """Decode ``%XX`` runs as UTF-8.

    Invalid UTF-8 (including overlong forms such as ``%c0%af``) and decoded NUL
    bytes are malformed. A ``%`` that is not followed by two hex digits is left
    as a literal.
    """

    name = "percent"

    def decode(self, text: str) -> DecodeResult:
        if "%" not in text:
            return DecodeResult.unchanged(text)
        return substitute_once(_ESCAPE_RUN, text, _decode_run)


def _decode_run(match: re.Match[str]) -> str:
    raw = bytes.fromhex(match.group(0).replace("%", ""))
    if b"\x00" in raw:
        raise MalformedSequence("percent-encoded NUL byte")
    try:
        return raw.decode("utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise MalformedSequence("percent escapes are not valid UTF-8") from exc


__all__ = ["PercentCodec"]
