"""
inputgate — unit tests for scalar rules

File: tests/unit/rules/test_scalar_rules.py

Purpose
- Validate date, number, credit card, string, printable and choice rules in isolation.

What this test file should cover
- Strict date round-tripping, including out-of-range fields.
- Closed numeric intervals and rejection of non-finite values.
- Luhn check-digit handling and separator stripping.
- Whitelist regex, printable ranges and exact-type choice matching.
- ``limited_to`` only ever tightens length limits.

Functional requirements
- Offline.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from inputgate.rules import (
    ChoiceRule,
    CreditCardRule,
    DateRule,
    NumberRule,
    PrintableRule,
    RuleViolation,
    StringRule,
)
from inputgate.rules.numeric import luhn_valid
from inputgate.rules.temporal import to_strptime_format


class Color(Enum):
    RED = "red"
    GREEN = "green"


def test_date_format_tokens_translate_to_strptime() -> None:
    assert to_strptime_format("YYYY-MM-DD") == "%Y-%m-%d"
    assert to_strptime_format("DD/MM/YY HH:mm:ss") == "%d/%m/%y %H:%M:%S"
    assert to_strptime_format("%Y%m%d") == "%Y%m%d"


def test_date_rule_parses_exact_dates() -> None:
    rule = DateRule(date_format="YYYY-MM-DD")

    assert rule.apply("2010-03-02") == date(2010, 3, 2)
    assert rule.apply(" 2024-02-29 ") == date(2024, 2, 29)


def test_date_rule_accepts_years_before_1000() -> None:
    assert DateRule(date_format="YYYY-MM-DD").apply("0999-01-01") == date(999, 1, 1)
    assert DateRule(date_format="%d%%%Y").apply("05%0042") == date(42, 1, 5)
    with pytest.raises(RuleViolation):
        DateRule(date_format="YYYY-MM-DD").apply("999-01-01")


@pytest.mark.parametrize("text", ["2010-13-02", "2010-02-30", "2023-02-29", "2010-3-2", "nope"])
def test_date_rule_rejects_invalid_or_non_canonical_dates(text: str) -> None:
    with pytest.raises(RuleViolation, match="valid date in format YYYY-MM-DD"):
        DateRule(date_format="YYYY-MM-DD").apply(text)


def test_date_rule_with_time_returns_datetime() -> None:
    rule = DateRule(date_format="YYYY-MM-DD HH:mm")

    assert rule.has_time is True
    assert rule.apply("2020-01-05 13:45") == datetime(2020, 1, 5, 13, 45)


def test_date_rule_accepts_date_objects() -> None:
    rule = DateRule(date_format="YYYY-MM-DD")

    assert rule.apply(date(2001, 1, 1)) == date(2001, 1, 1)
    assert rule.apply(datetime(2001, 1, 1, 10, 0)) == date(2001, 1, 1)


def test_date_rule_requires_format() -> None:
    with pytest.raises(ValueError, match="date_format"):
        DateRule(date_format="  ")


def test_number_rule_uses_closed_interval() -> None:
    rule = NumberRule(minimum=0, maximum=100)

    assert rule.apply("100") == Decimal("100")
    assert rule.apply(0) == Decimal("0")
    assert rule.apply("1e2") == Decimal("100")
    assert rule.apply(Decimal("99.999")) == Decimal("99.999")


@pytest.mark.parametrize("value", ["100.0001", "-0.5", 101, 100.0001])
def test_number_rule_rejects_out_of_range(value: object) -> None:
    with pytest.raises(RuleViolation, match="must be between 0 and 100"):
        NumberRule(minimum=0, maximum=100).apply(value)


@pytest.mark.parametrize("value", ["NaN", "inf", "12abc", "0x10", True, float("inf"), [1]])
def test_number_rule_rejects_non_numbers(value: object) -> None:
    with pytest.raises(RuleViolation, match="must be a number"):
        NumberRule(minimum=0, maximum=100).apply(value)


def test_number_rule_open_bounds() -> None:
    assert NumberRule(minimum=5).apply("1000000") == Decimal("1000000")
    with pytest.raises(RuleViolation, match="at least 5"):
        NumberRule(minimum=5).apply("4")
    with pytest.raises(RuleViolation, match="at most 5"):
        NumberRule(maximum=5).apply("6")


def test_number_rule_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError, match="minimum must be <= maximum"):
        NumberRule(minimum=10, maximum=1)


@settings(max_examples=25, derandomize=True, deadline=None)
@given(st.integers(min_value=-1000, max_value=1000))
def test_number_rule_matches_interval_membership(value: int) -> None:
    rule = NumberRule(minimum=-10, maximum=10)
    if -10 <= value <= 10:
        assert rule.apply(str(value)) == Decimal(value)
    else:
        with pytest.raises(RuleViolation):
            rule.apply(str(value))


def test_luhn_reference_numbers() -> None:
    assert luhn_valid("79927398713") is True
    assert luhn_valid("79927398710") is False


def test_credit_card_rule_strips_separators() -> None:
    rule = CreditCardRule()

    assert rule.apply("4111111111111111") == "4111111111111111"
    assert rule.apply("4111 1111 1111 1111") == "4111111111111111"
    assert rule.apply("4111-1111-1111-1111") == "4111111111111111"


@pytest.mark.parametrize(
    ("value", "message"),
    [
        ("4111111111111112", "check digit"),
        ("4111-1111", "must have"),
        ("4111x11111111111", "only contain digits"),
        ("４１１１１１１１１１１１１１１１", "only contain digits"),
    ],
)
def test_credit_card_rule_rejects_invalid_numbers(value: str, message: str) -> None:
    with pytest.raises(RuleViolation, match=message):
        CreditCardRule().apply(value)


def test_string_rule_matches_whole_value() -> None:
    rule = StringRule(pattern=r"[a-z]+", max_length=5)

    assert rule.apply("abc") == "abc"
    with pytest.raises(RuleViolation, match="allowed pattern"):
        rule.apply("ab1")
    with pytest.raises(RuleViolation, match="at most 5"):
        rule.apply("abcdef")


def test_string_rule_ignore_case() -> None:
    assert StringRule(pattern="[a-z]+", ignore_case=True).apply("AbC") == "AbC"


def test_string_rule_rejects_bad_pattern() -> None:
    with pytest.raises(ValueError, match="invalid whitelist pattern"):
        StringRule(pattern="[a-")


def test_limited_to_only_tightens() -> None:
    rule = StringRule(pattern=".*", max_length=5)

    assert rule.limited_to(3).max_length == 3
    assert rule.limited_to(10).max_length == 5
    assert rule.limited_to(None).max_length == 5
    assert StringRule(pattern=".*").limited_to(7).max_length == 7
    with pytest.raises(ValueError):
        rule.limited_to(-1)


def test_printable_rule_accepts_ascii_printable() -> None:
    assert PrintableRule(max_length=20).apply("Hello, World! ~") == "Hello, World! ~"


@pytest.mark.parametrize("value", ["tab\there", "line\n", "café", "bell\x07"])
def test_printable_rule_rejects_outside_range(value: str) -> None:
    with pytest.raises(RuleViolation, match="printable characters"):
        PrintableRule().apply(value)


def test_printable_rule_range_validation() -> None:
    with pytest.raises(ValueError):
        PrintableRule(low=0x09)
    assert PrintableRule(high=0xFF).apply("café") == "café"


def test_choice_rule_returns_candidate() -> None:
    rule = ChoiceRule(choices=("red", "green"))

    assert rule.apply("green") == "green"
    with pytest.raises(RuleViolation, match="one of the 2 allowed values"):
        rule.apply("blue")


def test_choice_rule_comparison_is_type_exact() -> None:
    with pytest.raises(RuleViolation):
        ChoiceRule(choices=(1, 2)).apply("1")
    with pytest.raises(RuleViolation):
        ChoiceRule(choices=(1, 2)).apply(True)
    assert ChoiceRule(choices=(1, 2)).apply(2) == 2


def test_choice_rule_accepts_enum_members_and_values() -> None:
    rule = ChoiceRule(choices=Color)  # type: ignore[arg-type]

    assert rule.apply("red") is Color.RED
    assert rule.apply(Color.GREEN) is Color.GREEN
    with pytest.raises(RuleViolation):
        rule.apply("RED")


def test_choice_rule_rejects_empty_or_string_choices() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        ChoiceRule(choices=())
    with pytest.raises(ValueError, match="sequence, set or Enum"):
        ChoiceRule(choices="abc")  # type: ignore[arg-type]
