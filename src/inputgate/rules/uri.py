"""
inputgate — URI and redirect-target rules.

Functional requirements
- Scheme must be whitelisted; a scheme outside the whitelist is treated as an
  intrusion (``javascript:``, ``data:``, ...).
- The canonical value must already be a minimal, safe representation: no
  whitespace, control characters, ``%`` escapes, quotes or angle brackets.
- Redirect targets must fall inside a configured allowed set.
"""

from __future__ import annotations

import dataclasses
import ipaddress
import re
from dataclasses import dataclass, field
from typing import ClassVar, Final, Self
from urllib.parse import SplitResult, urlsplit

from inputgate.constants import DEFAULT_URI_MAX_LENGTH, DEFAULT_URI_SCHEMES
from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleIntrusion,
    RuleKind,
    RuleViolation,
    check_max_length,
    require_text,
    tightened,
    validate_max_length,
)

_SCHEME: Final[re.Pattern[str]] = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*):")
_HIERARCHICAL_SCHEMES: Final[frozenset[str]] = frozenset(
    {"http", "https", "ftp", "ftps", "ws", "wss", "sftp"}
)
_DEFAULT_PORTS: Final[dict[str, int]] = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}

_UNRESERVED: Final[str] = r"A-Za-z0-9._~\-"
_SUB_DELIMS: Final[str] = "!$&()*+,;="
_PATH_CHARS: Final[re.Pattern[str]] = re.compile(rf"^[{_UNRESERVED}{_SUB_DELIMS}:@/]*$")
_QUERY_CHARS: Final[re.Pattern[str]] = re.compile(rf"^[{_UNRESERVED}{_SUB_DELIMS}:@/?]*$")
_DNS_LABEL: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_DOTTED_NUMERIC: Final[re.Pattern[str]] = re.compile(r"^[0-9.]+$")
_PROTOCOL_RELATIVE: Final[tuple[str, ...]] = ("//", "\\\\", "/\\", "\\/")


@dataclass(frozen=True, slots=True, kw_only=True)
class UriRule(Rule):
    kind: ClassVar[RuleKind] = RuleKind.URI

    allowed_schemes: frozenset[str] = frozenset(DEFAULT_URI_SCHEMES)
    max_length: int | None = DEFAULT_URI_MAX_LENGTH
    allow_userinfo: bool = False
    name: str = "uri"

    def __post_init__(self) -> None:
        validate_max_length(self.max_length)
        schemes = frozenset(scheme.strip().lower() for scheme in self.allowed_schemes)
        if not schemes:
            raise ValueError("allowed_schemes must not be empty")
        invalid = sorted(scheme for scheme in schemes if not _SCHEME.match(f"{scheme}:"))
        if invalid:
            raise ValueError(f"invalid schemes {invalid}")
        object.__setattr__(self, "allowed_schemes", schemes)

    def apply(self, value: object) -> str:
        text = require_text(value, "URI")
        check_max_length(text, self.max_length)
        check_uri_characters(text)

        match = _SCHEME.match(text)
        if match is None:
            raise RuleViolation("must be an absolute URI with a scheme")
        scheme = match.group(1).lower()
        if scheme not in self.allowed_schemes:
            raise RuleIntrusion("uses a URI scheme outside the allowed set")

        parts = split_uri(text)
        if scheme in _HIERARCHICAL_SCHEMES or parts.netloc:
            self._check_authority(parts)
        check_components(parts)
        return text

    def limited_to(self, max_length: int | None) -> UriRule:
        return dataclasses.replace(self, max_length=tightened(self.max_length, max_length))

    def _check_authority(self, parts: SplitResult) -> None:
        if not parts.netloc:
            raise RuleViolation("must include a host")
        if (parts.username is not None or parts.password is not None) and not self.allow_userinfo:
            raise RuleViolation("must not embed credentials")
        try:
            port = parts.port
        except ValueError as exc:
            raise RuleViolation("has an invalid port") from exc
        if port == 0:
            raise RuleViolation("has an invalid port")
        host = parts.hostname
        if not host or not is_valid_host(host, bracketed="[" in parts.netloc):
            raise RuleViolation("has an invalid host")

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        return cls(
            name=name,
            allowed_schemes=frozenset(constraints.strings("schemes", DEFAULT_URI_SCHEMES)),
            max_length=constraints.integer("max_length", DEFAULT_URI_MAX_LENGTH),
            allow_userinfo=constraints.flag("allow_userinfo", False),
        )


@dataclass(frozen=True, slots=True)
class _RedirectTarget:
    scheme: str
    host: str
    port: int | None
    path: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RedirectRule(Rule):
    """URI check plus membership of an allowed redirect set.

    Absolute targets must share scheme, host and port with an allowed entry and
    sit under its path on a segment boundary. Relative targets (single leading
    ``/``) are accepted only when ``allow_relative`` is set.
    """

    kind: ClassVar[RuleKind] = RuleKind.REDIRECT

    allowed_targets: tuple[str, ...] = ()
    allow_relative: bool = False
    uri: UriRule = field(default_factory=UriRule)
    name: str = "redirect"
    _targets: tuple[_RedirectTarget, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.allowed_targets, str):
            raise ValueError("allowed_targets must be a sequence of URIs")
        object.__setattr__(self, "allowed_targets", tuple(self.allowed_targets))
        object.__setattr__(
            self, "_targets", tuple(_parse_target(entry) for entry in self.allowed_targets)
        )

    def apply(self, value: object) -> str:
        text = require_text(value, "redirect target")
        if text.startswith(_PROTOCOL_RELATIVE):
            raise RuleIntrusion("protocol-relative redirect targets are not allowed")

        if text.startswith("/"):
            if not self.allow_relative:
                raise RuleViolation("must be an absolute URI in the allowed redirect set")
            check_max_length(text, self.uri.max_length)
            check_uri_characters(text)
            relative = split_uri(text)
            check_components(relative)
            _reject_dot_segments(relative.path)
            return text

        safe = self.uri.apply(text)
        parts = split_uri(safe)
        _reject_dot_segments(parts.path)
        scheme = parts.scheme.lower()
        host = (parts.hostname or "").lower()
        port = parts.port if parts.port is not None else _DEFAULT_PORTS.get(scheme)
        path = parts.path or "/"
        for target in self._targets:
            if (target.scheme, target.host, target.port) != (scheme, host, port):
                continue
            if _path_within(path, target.path):
                return safe
        raise RuleViolation("is not an allowed redirect target")

    def limited_to(self, max_length: int | None) -> RedirectRule:
        return dataclasses.replace(self, uri=self.uri.limited_to(max_length))

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        uri = UriRule(
            name=name,
            allowed_schemes=frozenset(constraints.strings("schemes", DEFAULT_URI_SCHEMES)),
            max_length=constraints.integer("max_length", DEFAULT_URI_MAX_LENGTH),
        )
        return cls(
            name=name,
            allowed_targets=constraints.strings("targets"),
            allow_relative=constraints.flag("allow_relative", False),
            uri=uri,
        )


def split_uri(text: str) -> SplitResult:
    try:
        return urlsplit(text)
    except ValueError as exc:
        raise RuleViolation("is not a well-formed URI") from exc


def check_uri_characters(text: str) -> None:
    if not text.isascii():
        raise RuleViolation("must be ASCII; internationalized hosts must use punycode")
    if any(char.isspace() or not char.isprintable() for char in text):
        raise RuleViolation("must not contain whitespace or control characters")
    if "\\" in text:
        raise RuleViolation("must not contain backslashes")


def check_components(parts: SplitResult) -> None:
    if not _PATH_CHARS.match(parts.path):
        raise RuleViolation("path contains characters that require encoding")
    if not _QUERY_CHARS.match(parts.query):
        raise RuleViolation("query contains characters that require encoding")
    if not _QUERY_CHARS.match(parts.fragment):
        raise RuleViolation("fragment contains characters that require encoding")


def is_valid_host(host: str, *, bracketed: bool = False) -> bool:
    """Return whether ``host`` is a DNS name, dotted IPv4 address or bracketed IPv6."""

    if bracketed:
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            return False
        return True
    if _DOTTED_NUMERIC.match(host):
        try:
            ipaddress.IPv4Address(host)
        except ValueError:
            return False
        return True
    name = host[:-1] if host.endswith(".") else host
    if not name or len(name) > 253:
        return False
    labels = name.split(".")
    if not all(_DNS_LABEL.match(label) for label in labels):
        return False
    # An all-numeric last label is an obfuscated address, not a TLD.
    return not labels[-1].isdigit()


def _reject_dot_segments(path: str) -> None:
    if any(segment in {".", ".."} for segment in path.split("/")):
        raise RuleIntrusion("redirect path contains dot segments")


def _parse_target(entry: str) -> _RedirectTarget:
    parts = urlsplit(entry)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"allowed redirect target must be an absolute URI: {entry!r}")
    scheme = parts.scheme.lower()
    port = parts.port if parts.port is not None else _DEFAULT_PORTS.get(scheme)
    return _RedirectTarget(
        scheme=scheme,
        host=parts.hostname.lower(),
        port=port,
        path=parts.path or "/",
    )


def _path_within(path: str, base: str) -> bool:
    if base == "/" or path == base:
        return True
    if base.endswith("/"):
        return path.startswith(base)
    return path.startswith(f"{base}/")


__all__ = [
    "RedirectRule",
    "UriRule",
    "check_components",
    "check_uri_characters",
    "is_valid_host",
    "split_uri",
]
