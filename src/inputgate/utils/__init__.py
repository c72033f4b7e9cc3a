"""
inputgate utilities.

Purpose
- Small shared helpers with no dependency on the rule or validator layers.
"""

from inputgate.utils.fs import PathEscapeError, is_relative_to, lexical_path, resolve_within

__all__ = [
    "PathEscapeError",
    "is_relative_to",
    "lexical_path",
    "resolve_within",
]
