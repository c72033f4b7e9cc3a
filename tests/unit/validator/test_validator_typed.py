"""
inputgate — unit tests for the typed validator entry points

File: tests/unit/validator/test_validator_typed.py

Purpose
- Exercise every ``is_valid_*`` / ``get_valid_*`` pair end to end.

What this test file should cover
- Reference examples: dates, numbers, cards, params, paths, uploads.
- ``allow_null`` semantics are identical for every input kind.
- Path traversal surfaces as ``IntrusionDetectedError`` from ``is_valid_*``.

Functional requirements
- Filesystem use limited to ``tmp_path``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

import pytest

from inputgate import IntrusionDetectedError, ValidationError, Validator
from inputgate.audit import MemoryAuditSink
from inputgate.capabilities.scanning import EICAR_SIGNATURE
from inputgate.registry import RuleSet
from inputgate.rules import FileContent, StringRule, UploadRequest, ValidatedUpload


class Size(Enum):
    SMALL = "s"
    LARGE = "l"


@pytest.fixture
def sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
def validator(sink: MemoryAuditSink) -> Validator:
    return Validator(
        RuleSet([StringRule(name="Name", pattern="[a-z]+")]),
        audit_sink=sink,
        allowed_redirects=["https://example.com/app"],
        allow_relative_redirects=True,
    )


def test_date(validator: Validator) -> None:
    assert validator.get_valid_date("dob", "2010-03-02", "YYYY-MM-DD") == date(2010, 3, 2)
    assert validator.is_valid_date("dob", "2010-13-02", "YYYY-MM-DD") is False
    with pytest.raises(ValidationError, match="YYYY-MM-DD"):
        validator.get_valid_date("dob", "2010-02-30", "YYYY-MM-DD")


def test_number(validator: Validator) -> None:
    assert validator.is_valid_number("qty", 100, 0, 100) is True
    assert validator.is_valid_number("qty", "100.0001", 0, 100) is False
    assert validator.get_valid_number("qty", " 7.5 ", 0, 10) == Decimal("7.5")


def test_credit_card(validator: Validator) -> None:
    assert validator.is_valid_credit_card("cc", "4111111111111111") is True
    assert validator.is_valid_credit_card("cc", "4111111111111112") is False
    assert validator.get_valid_credit_card("cc", "4111 1111 1111 1111") == "4111111111111111"


def test_http_params(validator: Validator) -> None:
    parameters = {"name": "required", "date": "required", "age": "optional"}

    assert validator.is_valid_http_params("form", {"name": "a", "age": "3"}, parameters) is False
    assert (
        validator.is_valid_http_params(
            "form", {"name": "a", "date": "b", "age": "3", "x": "y"}, parameters
        )
        is False
    )
    assert validator.get_valid_http_params(
        "form", {"name": "Ada%20L", "date": "2020-01-01"}, parameters
    ) == {"name": "Ada L", "date": "2020-01-01"}


def test_uri(validator: Validator) -> None:
    assert validator.is_valid_uri("link", "https://example.com/a") is True
    assert validator.is_valid_uri("link", "https://example.com/%3Cscript%3E") is False
    with pytest.raises(IntrusionDetectedError):
        validator.is_valid_uri("link", "javascript:alert(1)")
    with pytest.raises(IntrusionDetectedError):
        validator.get_valid_uri("link", "javascript%3Aalert(1)")


def test_safe_html(validator: Validator) -> None:
    cleaned = validator.get_valid_safe_html("bio", "<b>hi</b><script>x()</script>", 100)

    assert cleaned == "<b>hi</b>"
    assert validator.is_valid_safe_html("bio", "<b>" + "x" * 200 + "</b>", 100) is False
    assert validator.get_valid_safe_html("bio", "&lt;i&gt;ok&lt;/i&gt;", 100) == "<i>ok</i>"


def test_directory_traversal_is_an_intrusion(
    validator: Validator, sink: MemoryAuditSink
) -> None:
    with pytest.raises(IntrusionDetectedError):
        validator.is_valid_directory("dir", "/my/../etc/passwd", "/my")

    event = sink.events[-1]
    assert event.rule_kind == "directory_path"
    assert event.encoding_pattern == "none"


def test_encoded_directory_traversal_is_an_intrusion(
    validator: Validator, tmp_path: Path
) -> None:
    with pytest.raises(IntrusionDetectedError):
        validator.get_valid_directory("dir", "..%2F..%2Fetc", tmp_path)


def test_directory(validator: Validator, tmp_path: Path) -> None:
    (tmp_path / "docs").mkdir()

    assert validator.get_valid_directory("dir", "docs", tmp_path) == (tmp_path / "docs").resolve()
    assert validator.is_valid_directory("dir", "missing", tmp_path) is False
    assert validator.is_valid_directory("dir", "missing", tmp_path, must_exist=False) is True


def test_filename(validator: Validator) -> None:
    assert validator.get_valid_filename("file", "report.pdf", allowed_extensions=["pdf"]) == (
        "report.pdf"
    )
    assert validator.is_valid_filename("file", "report.exe", allowed_extensions=["pdf"]) is False
    assert validator.is_valid_filename("file", "a" * 20, max_length=10) is False


def test_file_contents(validator: Validator) -> None:
    clean = FileContent(data=b"hello", mime_type="text/plain")
    infected = FileContent(data=EICAR_SIGNATURE, mime_type="text/plain")

    assert (
        validator.get_valid_file_contents(
            "upload", clean, allowed_mime_types=["text/*"], max_bytes=100
        )
        is clean
    )
    assert (
        validator.is_valid_file_contents(
            "upload", infected, allowed_mime_types=["text/*"], max_bytes=100
        )
        is False
    )
    assert (
        validator.is_valid_file_contents(
            "upload", clean, allowed_mime_types=["image/*"], max_bytes=100
        )
        is False
    )


def test_upload(validator: Validator, tmp_path: Path) -> None:
    (tmp_path / "incoming").mkdir()
    options: dict[str, Any] = {
        "root": tmp_path,
        "allowed_extensions": [".txt"],
        "allowed_mime_types": ["text/plain"],
        "max_bytes": 100,
    }
    content = FileContent(data=b"notes", mime_type="text/plain")

    accepted = validator.get_valid_upload(
        "upload", UploadRequest("notes%2Etxt", "incoming", content), **options
    )
    assert isinstance(accepted, ValidatedUpload)
    assert accepted.filename == "notes.txt"
    assert accepted.destination == (tmp_path / "incoming").resolve() / "notes.txt"

    assert (
        validator.is_valid_upload(
            "upload", UploadRequest("notes.exe", "incoming", content), **options
        )
        is False
    )
    with pytest.raises(IntrusionDetectedError):
        validator.is_valid_upload(
            "upload", UploadRequest("notes.txt", "../../outside", content), **options
        )


def test_choice(validator: Validator) -> None:
    assert validator.get_valid_choice("color", "red", ["red", "green"]) == "red"
    assert validator.is_valid_choice("color", "blue", ["red", "green"]) is False
    assert validator.get_valid_choice("size", "l", Size) is Size.LARGE
    assert validator.get_valid_choice("size", "s", (member.value for member in Size)) == "s"


def test_printable(validator: Validator) -> None:
    assert validator.get_valid_printable("note", "Hello!", 10) == "Hello!"
    assert validator.is_valid_printable("note", "bell\x07", 10) is False
    assert validator.is_valid_printable("note", "x" * 11, 10) is False


def test_redirection(validator: Validator) -> None:
    assert validator.get_valid_redirection("next", "https://example.com/app/home") == (
        "https://example.com/app/home"
    )
    assert validator.get_valid_redirection("next", "/dashboard") == "/dashboard"
    assert validator.is_valid_redirection("next", "https://evil.example/app") is False
    with pytest.raises(IntrusionDetectedError):
        validator.is_valid_redirection("next", "//evil.example/")


NullableCall = Callable[[Validator, Path, object, bool], object]

NULLABLE_CALLS: dict[str, NullableCall] = {
    "input": lambda v, root, value, allow: v.get_valid_input(
        "f", value, "Name", allow_null=allow
    ),
    "date": lambda v, root, value, allow: v.get_valid_date(
        "f", value, "YYYY-MM-DD", allow_null=allow
    ),
    "credit_card": lambda v, root, value, allow: v.get_valid_credit_card(
        "f", value, allow_null=allow
    ),
    "http_params": lambda v, root, value, allow: v.get_valid_http_params(
        "f", value, {"q": "required"}, allow_null=allow
    ),
    "uri": lambda v, root, value, allow: v.get_valid_uri("f", value, allow_null=allow),
    "safe_html": lambda v, root, value, allow: v.get_valid_safe_html(
        "f", value, 100, allow_null=allow
    ),
    "directory": lambda v, root, value, allow: v.get_valid_directory(
        "f", value, root, allow_null=allow
    ),
    "filename": lambda v, root, value, allow: v.get_valid_filename("f", value, allow_null=allow),
    "number": lambda v, root, value, allow: v.get_valid_number(
        "f", value, 0, 10, allow_null=allow
    ),
    "file_contents": lambda v, root, value, allow: v.get_valid_file_contents(
        "f", value, allowed_mime_types=["text/plain"], max_bytes=10, allow_null=allow
    ),
    "upload": lambda v, root, value, allow: v.get_valid_upload(
        "f",
        value,
        root=root,
        allowed_extensions=[".txt"],
        allowed_mime_types=["text/plain"],
        max_bytes=10,
        allow_null=allow,
    ),
    "choice": lambda v, root, value, allow: v.get_valid_choice(
        "f", value, ["a"], allow_null=allow
    ),
    "printable": lambda v, root, value, allow: v.get_valid_printable(
        "f", value, 10, allow_null=allow
    ),
    "redirection": lambda v, root, value, allow: v.get_valid_redirection(
        "f", value, allow_null=allow
    ),
}


@pytest.mark.parametrize("kind", sorted(NULLABLE_CALLS))
@pytest.mark.parametrize("empty", [None, "", "  "])
def test_allow_null_is_uniform_across_kinds(
    validator: Validator, tmp_path: Path, kind: str, empty: object
) -> None:
    call = NULLABLE_CALLS[kind]

    assert call(validator, tmp_path, empty, True) is None
    with pytest.raises(ValidationError, match="a value is required"):
        call(validator, tmp_path, empty, False)
