"""
inputgate codecs — pluggable decoders for each supported encoding scheme.

The canonicalizer only depends on the ``Codec`` protocol; the classes below are
the reference implementations selected by name from configuration.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Final

from inputgate.codecs.base import Codec, DecodeResult, MalformedSequence
from inputgate.codecs.css import CssCodec
from inputgate.codecs.html_entity import HtmlEntityCodec
from inputgate.codecs.javascript import JavaScriptCodec
from inputgate.codecs.percent import PercentCodec

CODEC_FACTORIES: Final[dict[str, Callable[[], Codec]]] = {
    "css": CssCodec,
    "html": HtmlEntityCodec,
    "javascript": JavaScriptCodec,
    "percent": PercentCodec,
}


def codec_by_name(name: str) -> Codec:
    """Instantiate the reference codec registered under ``name``."""

    normalized = name.strip().lower()
    factory = CODEC_FACTORIES.get(normalized)
    if factory is None:
        raise ValueError(
            f"unknown codec {name!r}; expected one of {sorted(CODEC_FACTORIES)}"
        )
    return factory()


def codecs_by_name(names: Iterable[str]) -> tuple[Codec, ...]:
    """Instantiate codecs in order, rejecting duplicates."""

    seen: set[str] = set()
    codecs: list[Codec] = []
    for name in names:
        codec = codec_by_name(name)
        if codec.name in seen:
            raise ValueError(f"codec {codec.name!r} configured more than once")
        seen.add(codec.name)
        codecs.append(codec)
    return tuple(codecs)


__all__ = [
    "CODEC_FACTORIES",
    "Codec",
    "CssCodec",
    "DecodeResult",
    "HtmlEntityCodec",
    "JavaScriptCodec",
    "MalformedSequence",
    "PercentCodec",
    "codec_by_name",
    "codecs_by_name",
]
