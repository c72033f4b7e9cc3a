"""
inputgate — unit tests for URI and redirect rules

File: tests/unit/rules/test_uri_rules.py

Purpose
- Validate scheme whitelisting, authority checks and redirect allow-listing.

What this test file should cover
- Forbidden schemes are intrusions; malformed URIs are ordinary failures.
- Components must already be in minimal form (no escapes, quotes or brackets).
- Redirect targets match on scheme, host, port and path segment boundary.
- Protocol-relative and dot-segment redirects are intrusions.

Functional requirements
- Offline; no DNS lookups.
"""

from __future__ import annotations

import pytest

from inputgate.rules import RedirectRule, RuleIntrusion, RuleViolation, UriRule
from inputgate.rules.uri import is_valid_host


@pytest.mark.parametrize(
    "uri",
    [
        "https://example.com/path?q=1#frag",
        "http://example.com",
        "https://sub.example.co.uk:8443/a/b;c=d",
        "https://[::1]/",
        "http://127.0.0.1/x",
    ],
)
def test_uri_rule_accepts_well_formed_uris(uri: str) -> None:
    assert UriRule().apply(uri) == uri


def test_uri_rule_allows_every_unreserved_and_sub_delim_character() -> None:
    uri = "https://example.com/my-page~v2/a_b.c!$&()*+,;=:@?k=a-b~c!$&()*+,;=/?"

    assert UriRule().apply(uri) == uri
    with pytest.raises(RuleViolation, match="path contains"):
        UriRule().apply('https://example.com/a"b')


@pytest.mark.parametrize(
    "uri",
    ["javascript:alert(1)", "JAVASCRIPT:alert(1)", "data:text/html,x", "file:///etc/passwd"],
)
def test_uri_rule_treats_foreign_schemes_as_intrusion(uri: str) -> None:
    with pytest.raises(RuleIntrusion, match="scheme outside the allowed set"):
        UriRule().apply(uri)


@pytest.mark.parametrize(
    ("uri", "message"),
    [
        ("https://exa mple.com", "whitespace"),
        ("https://example.com/<script>", "path contains"),
        ("https://example.com/a%20b", "path contains"),
        ("https://example.com/?q='x'", "query contains"),
        ("https://user:pw@example.com/", "credentials"),
        ("https://example.com:99999/", "invalid port"),
        ("https://256.1.1.1/", "invalid host"),
        ("https://-bad-.com/", "invalid host"),
        ("https:///path", "must include a host"),
        ("example.com/path", "absolute URI"),
        ("https://exämple.com/", "ASCII"),
        ("https:\\\\example.com", "backslashes"),
    ],
)
def test_uri_rule_rejects_malformed_uris(uri: str, message: str) -> None:
    with pytest.raises(RuleViolation, match=message) as excinfo:
        UriRule().apply(uri)
    assert not isinstance(excinfo.value, RuleIntrusion)


def test_uri_rule_scheme_whitelist_is_configurable() -> None:
    rule = UriRule(allowed_schemes=frozenset({"MAILTO"}))

    assert rule.apply("mailto:someone@example.com") == "mailto:someone@example.com"
    with pytest.raises(RuleIntrusion):
        rule.apply("https://example.com/")


def test_uri_rule_userinfo_opt_in() -> None:
    rule = UriRule(allow_userinfo=True)

    assert rule.apply("https://user@example.com/") == "https://user@example.com/"


def test_uri_rule_max_length() -> None:
    with pytest.raises(RuleViolation, match="at most 20"):
        UriRule(max_length=20).apply("https://example.com/long/path")
    assert UriRule().limited_to(10).max_length == 10


def test_uri_rule_rejects_empty_scheme_list() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        UriRule(allowed_schemes=frozenset())


@pytest.mark.parametrize(
    ("host", "bracketed", "expected"),
    [
        ("example.com", False, True),
        ("example.com.", False, True),
        ("localhost", False, True),
        ("10.0.0.1", False, True),
        ("999.0.0.1", False, False),
        ("example.123", False, False),
        ("under_score.com", False, False),
        ("::1", True, True),
        ("not-ipv6", True, False),
    ],
)
def test_is_valid_host(host: str, bracketed: bool, expected: bool) -> None:
    assert is_valid_host(host, bracketed=bracketed) is expected


def _redirects(allow_relative: bool = True) -> RedirectRule:
    return RedirectRule(
        allowed_targets=("https://example.com/app", "http://partner.test/"),
        allow_relative=allow_relative,
    )


@pytest.mark.parametrize(
    "target",
    [
        "https://example.com/app",
        "https://example.com/app/home?tab=1",
        "https://EXAMPLE.com:443/app/x",
        "http://partner.test/anything",
        "/local/page",
    ],
)
def test_redirect_rule_accepts_allowed_targets(target: str) -> None:
    assert _redirects().apply(target) == target


@pytest.mark.parametrize(
    "target",
    [
        "https://example.com/apple",
        "https://example.com/",
        "http://example.com/app",
        "https://example.com:8443/app",
        "https://evil.com/app",
    ],
)
def test_redirect_rule_rejects_targets_outside_allowed_set(target: str) -> None:
    with pytest.raises(RuleViolation, match="not an allowed redirect target"):
        _redirects().apply(target)


@pytest.mark.parametrize(
    "target",
    [
        "//evil.com/",
        "/\\evil.com",
        "/a/../b",
        "https://example.com/app/../admin",
        "javascript:alert(1)",
    ],
)
def test_redirect_rule_flags_manipulation_as_intrusion(target: str) -> None:
    with pytest.raises(RuleIntrusion):
        _redirects().apply(target)


def test_redirect_rule_relative_targets_require_opt_in() -> None:
    with pytest.raises(RuleViolation, match="absolute URI"):
        _redirects(allow_relative=False).apply("/local/page")


def test_redirect_rule_rejects_relative_allowed_targets() -> None:
    with pytest.raises(ValueError, match="absolute URI"):
        RedirectRule(allowed_targets=("/relative",))
    with pytest.raises(ValueError, match="sequence of URIs"):
        RedirectRule(allowed_targets="https://example.com/")  # type: ignore[arg-type]


def test_redirect_rule_without_targets_rejects_everything_absolute() -> None:
    with pytest.raises(RuleViolation):
        RedirectRule().apply("https://example.com/")
