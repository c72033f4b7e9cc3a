"""Stable constants shared across the canonicalization and validation layers."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

DEFAULT_CONFIG_FILE: Final[str] = "inputgate.toml"
ENV_PREFIX: Final[str] = "INPUTGATE_"

# Canonicalization limits.
DEFAULT_CODEC_NAMES: Final[tuple[str, ...]] = ("html", "percent")
DEFAULT_MAX_ENCODING_DEPTH: Final[int] = 4
MAX_ENCODING_DEPTH_LIMIT: Final[int] = 32

# External capability calls (file scan, path resolution).
DEFAULT_CAPABILITY_TIMEOUT_SECONDS: Final[float] = 5.0

REDACTED_VALUE: Final[str] = "***REDACTED***"
OFFENDING_VALUE_PREVIEW_CHARS: Final[int] = 64

DEFAULT_URI_SCHEMES: Final[tuple[str, ...]] = ("http", "https")
DEFAULT_URI_MAX_LENGTH: Final[int] = 2048
DEFAULT_FILENAME_MAX_LENGTH: Final[int] = 255

# Raw markup is bounded before sanitizing; with a max_length the bound is a multiple of it.
SAFE_HTML_INPUT_FACTOR: Final[int] = 4
DEFAULT_SAFE_HTML_MAX_INPUT_LENGTH: Final[int] = 256 * 1024
CREDIT_CARD_LENGTHS: Final[frozenset[int]] = frozenset({13, 14, 15, 16, 19})

PRINTABLE_LOW: Final[int] = 0x20
PRINTABLE_HIGH: Final[int] = 0x7E

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "CREDIT_CARD_LENGTHS",
    "DEFAULT_CAPABILITY_TIMEOUT_SECONDS",
    "DEFAULT_CODEC_NAMES",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_FILENAME_MAX_LENGTH",
    "DEFAULT_MAX_ENCODING_DEPTH",
    "DEFAULT_SAFE_HTML_MAX_INPUT_LENGTH",
    "DEFAULT_URI_MAX_LENGTH",
    "DEFAULT_URI_SCHEMES",
    "ENV_PREFIX",
    "MAX_ENCODING_DEPTH_LIMIT",
    "OFFENDING_VALUE_PREVIEW_CHARS",
    "PRINTABLE_HIGH",
    "PRINTABLE_LOW",
    "REDACTED_VALUE",
    "SAFE_HTML_INPUT_FACTOR",
]
