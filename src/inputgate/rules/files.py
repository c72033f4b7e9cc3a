"""
inputgate — file content and upload rules.

Functional requirements
- Declared MIME type must match a whitelist entry (``image/*`` wildcards allowed).
- Size must not exceed the configured maximum.
- The scanning capability runs under a deadline; infected, error and timeout
  verdicts all reject the file.
- Uploads check the file name, then the destination directory, then the
  content, and stop at the first failure.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import ClassVar, Self

import structlog

from inputgate.capabilities.scanning import FileScanner, ScanVerdict, SignatureScanner, scan_bytes
from inputgate.capabilities.timeouts import CapabilityTimeoutError, call_with_timeout
from inputgate.constants import DEFAULT_CAPABILITY_TIMEOUT_SECONDS, DEFAULT_FILENAME_MAX_LENGTH
from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleKind,
    RuleViolation,
)
from inputgate.rules.paths import DirectoryPathRule, FilenameRule

_logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FileContent:
    """Uploaded bytes with the MIME type the client declared."""

    data: bytes
    mime_type: str
    filename: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def media_type(self) -> str:
        return self.mime_type.split(";", 1)[0].strip().lower()


@dataclass(frozen=True, slots=True)
class UploadRequest:
    filename: str
    directory: str
    content: FileContent


@dataclass(frozen=True, slots=True)
class ValidatedUpload:
    filename: str
    directory: Path
    content: FileContent

    @property
    def destination(self) -> Path:
        return self.directory / self.filename


@dataclass(frozen=True, slots=True, kw_only=True)
class FileContentRule(Rule):
    kind: ClassVar[RuleKind] = RuleKind.FILE_CONTENT

    allowed_mime_types: tuple[str, ...]
    max_bytes: int
    scanner: FileScanner = field(default_factory=SignatureScanner)
    timeout_seconds: float = DEFAULT_CAPABILITY_TIMEOUT_SECONDS
    name: str = "file_content"

    def __post_init__(self) -> None:
        if isinstance(self.allowed_mime_types, str):
            raise ValueError("allowed_mime_types must be a collection of MIME patterns")
        patterns = tuple(pattern.strip().lower() for pattern in self.allowed_mime_types)
        if not patterns or any("/" not in pattern for pattern in patterns):
            raise ValueError("allowed_mime_types must contain type/subtype patterns")
        object.__setattr__(self, "allowed_mime_types", patterns)
        if isinstance(self.max_bytes, bool) or not isinstance(self.max_bytes, int):
            raise ValueError("max_bytes must be an integer")
        if self.max_bytes < 0:
            raise ValueError("max_bytes must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

    def apply(self, value: object) -> FileContent:
        if not isinstance(value, FileContent):
            raise RuleViolation("must be uploaded file content")
        if not mime_allowed(value.media_type, self.allowed_mime_types):
            raise RuleViolation("declared content type is not allowed")
        if value.size > self.max_bytes:
            raise RuleViolation(f"must be at most {self.max_bytes} bytes")

        try:
            verdict = call_with_timeout(
                scan_bytes,
                self.scanner,
                value.data,
                timeout_seconds=self.timeout_seconds,
            )
        except CapabilityTimeoutError as exc:
            raise RuleViolation("content scan did not finish in time") from exc
        except Exception as exc:  # noqa: BLE001
            _logger.warning("file_scan_failed", rule=self.name, error_type=type(exc).__name__)
            raise RuleViolation("content scan failed") from exc

        if verdict is ScanVerdict.INFECTED:
            raise RuleViolation("content scan reported a detection")
        if verdict is not ScanVerdict.CLEAN:
            raise RuleViolation("content scan failed")
        return value

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        max_bytes = constraints.integer("max_bytes")
        if max_bytes is None:
            raise ValueError(f"rule {name!r}: max_bytes is required")
        return cls(
            name=name,
            allowed_mime_types=constraints.strings("mime_types"),
            max_bytes=max_bytes,
            scanner=capabilities.file_scanner or SignatureScanner(),
            timeout_seconds=capabilities.timeout_seconds,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class UploadRule(Rule):
    """Filename, then destination directory, then content."""

    kind: ClassVar[RuleKind] = RuleKind.UPLOAD

    filename_rule: FilenameRule
    directory_rule: DirectoryPathRule
    content_rule: FileContentRule
    name: str = "upload"

    def apply(self, value: object) -> ValidatedUpload:
        if not isinstance(value, UploadRequest):
            raise RuleViolation("must be an upload request")
        filename = self.filename_rule.apply(value.filename)
        directory = self.directory_rule.apply(value.directory)
        content = self.content_rule.apply(value.content)
        return ValidatedUpload(filename=filename, directory=directory, content=content)

    def limited_to(self, max_length: int | None) -> UploadRule:
        return UploadRule(
            name=self.name,
            filename_rule=self.filename_rule.limited_to(max_length),
            directory_rule=self.directory_rule,
            content_rule=self.content_rule,
        )

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        root = constraints.text("root", required=True)
        max_bytes = constraints.integer("max_bytes")
        if root is None or max_bytes is None:
            raise ValueError(f"rule {name!r}: root and max_bytes are required")
        return cls(
            name=name,
            filename_rule=FilenameRule(
                name=name,
                max_length=constraints.integer("filename_max_length", DEFAULT_FILENAME_MAX_LENGTH),
                allowed_extensions=frozenset(constraints.strings("extensions")),
            ),
            directory_rule=DirectoryPathRule(
                name=name,
                root=root,
                timeout_seconds=capabilities.timeout_seconds,
            ),
            content_rule=FileContentRule(
                name=name,
                allowed_mime_types=constraints.strings("mime_types"),
                max_bytes=max_bytes,
                scanner=capabilities.file_scanner or SignatureScanner(),
                timeout_seconds=capabilities.timeout_seconds,
            ),
        )


def mime_allowed(media_type: str, patterns: Iterable[str]) -> bool:
    if not media_type or "/" not in media_type:
        return False
    return any(fnmatchcase(media_type, pattern) for pattern in patterns)


__all__ = [
    "FileContent",
    "FileContentRule",
    "UploadRequest",
    "UploadRule",
    "ValidatedUpload",
    "mime_allowed",
]
