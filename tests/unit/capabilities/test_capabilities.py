"""
inputgate — unit tests for external capabilities

File: tests/unit/capabilities/test_capabilities.py

Purpose
- Validate the deadline wrapper, the signature scanner and the bleach-backed sanitizer.

What this test file should cover
- Deadline expiry, argument validation and exception propagation.
- Signatures split across read chunks are still found; read errors report ERROR.
- Whitelist normalization refuses executable tags and attributes.

Non-functional requirements
- Timeout checks use short deadlines and release blocked workers before returning.
"""

from __future__ import annotations

import io
import threading

import pytest

from inputgate.capabilities import (
    EICAR_SIGNATURE,
    BleachSanitizer,
    CapabilityTimeoutError,
    HtmlSanitizer,
    NullScanner,
    ScanVerdict,
    SignatureScanner,
    UnsafeContentError,
    call_with_timeout,
)
from inputgate.capabilities.html import (
    DEFAULT_ALLOWED_PROTOCOLS,
    DEFAULT_ALLOWED_TAGS,
    normalize_attribute_whitelist,
    normalize_tag_whitelist,
    strip_executable_blocks,
)
from inputgate.capabilities.scanning import FileScanner, scan_bytes


class _BrokenStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        raise OSError("device unplugged")


def test_call_with_timeout_returns_the_result() -> None:
    assert call_with_timeout(pow, 2, 10, timeout_seconds=1.0) == 1024
    assert call_with_timeout(sorted, [3, 1], timeout_seconds=1.0, reverse=True) == [3, 1]


def test_call_with_timeout_expires() -> None:
    release = threading.Event()

    with pytest.raises(CapabilityTimeoutError, match="timed out after 0.05 seconds"):
        call_with_timeout(release.wait, 5, timeout_seconds=0.05)
    release.set()

    assert issubclass(CapabilityTimeoutError, TimeoutError)


def test_call_with_timeout_propagates_errors() -> None:
    def explode() -> None:
        raise LookupError("missing")

    with pytest.raises(LookupError, match="missing"):
        call_with_timeout(explode, timeout_seconds=1.0)


@pytest.mark.parametrize("timeout", [0, -1.0])
def test_call_with_timeout_needs_a_positive_deadline(timeout: float) -> None:
    with pytest.raises(ValueError, match="timeout_seconds must be > 0"):
        call_with_timeout(int, timeout_seconds=timeout)


def test_signature_scanner_finds_eicar() -> None:
    scanner = SignatureScanner()

    assert scan_bytes(scanner, b"prefix " + EICAR_SIGNATURE + b" suffix") is ScanVerdict.INFECTED
    assert scan_bytes(scanner, b"plain text") is ScanVerdict.CLEAN
    assert scan_bytes(scanner, b"") is ScanVerdict.CLEAN


def test_signature_split_across_chunks_is_found() -> None:
    data = b"A" * (64 * 1024 - 10) + EICAR_SIGNATURE

    assert scan_bytes(SignatureScanner(), data) is ScanVerdict.INFECTED


def test_custom_signatures() -> None:
    scanner = SignatureScanner({"marker": b"\xde\xad\xbe\xef"})

    assert scan_bytes(scanner, b"..\xde\xad\xbe\xef..") is ScanVerdict.INFECTED
    assert scan_bytes(scanner, EICAR_SIGNATURE) is ScanVerdict.CLEAN


def test_empty_signatures_are_refused() -> None:
    with pytest.raises(ValueError, match="non-empty bytes"):
        SignatureScanner({"blank": b""})


def test_read_errors_are_reported_not_raised() -> None:
    assert SignatureScanner().scan(_BrokenStream()) is ScanVerdict.ERROR


def test_null_scanner_reports_clean() -> None:
    assert scan_bytes(NullScanner(), EICAR_SIGNATURE) is ScanVerdict.CLEAN
    assert isinstance(NullScanner(), FileScanner)


def _sanitize(markup: str, **overrides: object) -> str:
    options: dict[str, object] = {
        "allowed_tags": DEFAULT_ALLOWED_TAGS,
        "allowed_attributes": {},
        "allowed_protocols": DEFAULT_ALLOWED_PROTOCOLS,
    }
    options.update(overrides)
    return BleachSanitizer().sanitize(markup, **options)  # type: ignore[arg-type]


def test_bleach_sanitizer_strips_scripts_with_content() -> None:
    assert isinstance(BleachSanitizer(), HtmlSanitizer)
    assert _sanitize("<p>a<script>alert(1)</script>b</p>") == "<p>ab</p>"
    assert _sanitize("<STYLE type='x'>body{}</style ><em>x</em>") == "<em>x</em>"


def test_bleach_sanitizer_filters_attributes_and_protocols() -> None:
    markup = '<a href="javascript:alert(1)" title="t">x</a><a href="https://e.com">y</a>'

    cleaned = _sanitize(
        markup,
        allowed_tags=frozenset({"a"}),
        allowed_attributes={"a": frozenset({"href"})},
    )

    assert cleaned == '<a>x</a><a href="https://e.com">y</a>'


def test_unterminated_executable_element_is_unsafe() -> None:
    with pytest.raises(UnsafeContentError, match="unterminated <script> element"):
        _sanitize("<b>x</b><script>alert(1)")


def test_strip_executable_blocks_removes_each_block_once() -> None:
    markup = "a<script>1</script>b<STYLE x=1>c</style >d<script>e</script>"

    assert strip_executable_blocks(markup) == "abd"
    assert strip_executable_blocks("<b>plain</b>") == "<b>plain</b>"
    assert strip_executable_blocks("<scripted>x") == "<scripted>x"


def test_strip_executable_blocks_stops_at_first_unclosed_opener() -> None:
    with pytest.raises(UnsafeContentError, match="unterminated <style> element"):
        strip_executable_blocks("<style>" * 50_000)
    with pytest.raises(UnsafeContentError, match="unterminated <script> element"):
        strip_executable_blocks("<script")


def test_tag_whitelist_normalization() -> None:
    assert normalize_tag_whitelist(None) is DEFAULT_ALLOWED_TAGS
    assert normalize_tag_whitelist([" B ", "i", ""]) == frozenset({"b", "i"})
    with pytest.raises(ValueError, match=r"\['script'\]"):
        normalize_tag_whitelist(["b", "SCRIPT"])


def test_attribute_whitelist_normalization() -> None:
    assert normalize_attribute_whitelist(None) == {}
    assert normalize_attribute_whitelist({"A": ["HREF", " title "]}) == {
        "a": frozenset({"href", "title"})
    }
    with pytest.raises(ValueError, match="onclick"):
        normalize_attribute_whitelist({"a": ["href", "onclick"]})
    with pytest.raises(ValueError, match="style"):
        normalize_attribute_whitelist({"p": ["style"]})
    with pytest.raises(TypeError, match="list of names"):
        normalize_attribute_whitelist({"a": "href"})
