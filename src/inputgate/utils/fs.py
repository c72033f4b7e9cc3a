"""
inputgate — filesystem containment helpers

Purpose
- Decide whether a path stays inside a root, first lexically and then after
  symlink resolution.

Functional requirements
- Lexical checks never touch the filesystem, so traversal is caught even for
  paths that do not exist.
- Resolution follows symlinks and re-checks containment against the resolved root.
"""

from __future__ import annotations

import os
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "PathEscapeError",
    "is_relative_to",
    "lexical_path",
    "resolve_within",
]


class PathEscapeError(ValueError):
    """Raised when a resolved path leaves its root."""


def lexical_path(path: PathLike, root: PathLike) -> tuple[Path, Path]:
    """Return ``(candidate, root)`` as absolute, normalized paths without I/O.

    Relative ``path`` values are anchored at ``root``; ``..`` segments are
    collapsed before any comparison.
    """

    resolved_root = Path(os.path.normpath(os.path.abspath(os.fspath(root))))
    candidate = Path(os.fspath(path))
    if not candidate.is_absolute():
        candidate = resolved_root / candidate
    return Path(os.path.normpath(candidate)), resolved_root


def resolve_within(path: PathLike, root: PathLike) -> Path:
    """
    Resolve ``path`` (following symlinks) and require it to stay within ``root``.

    Raises ``FileNotFoundError`` when either side does not exist and
    ``PathEscapeError`` when the resolved path leaves the resolved root.
    """

    resolved_root = Path(root).resolve(strict=True)
    resolved = Path(path).resolve(strict=True)
    if not is_relative_to(resolved, resolved_root):
        raise PathEscapeError(f"{resolved!s} is outside {resolved_root!s}")
    return resolved


def is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True
