"""
inputgate rules — the closed set of validation rule variants.

Purpose
- Export every rule type and build rules from configuration definitions.

Functional requirements
- ``build_rule`` rejects unknown kinds and unexpected constraint keys so a typo
  in configuration never silently loosens a rule.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleIntrusion,
    RuleKind,
    RuleViolation,
)
from inputgate.rules.files import (
    FileContent,
    FileContentRule,
    UploadRequest,
    UploadRule,
    ValidatedUpload,
)
from inputgate.rules.markup import SafeHtmlRule
from inputgate.rules.numeric import CreditCardRule, NumberRule
from inputgate.rules.params import HttpParamsRule, ParamRequirement
from inputgate.rules.paths import DirectoryPathRule, FilenameRule
from inputgate.rules.temporal import DateRule
from inputgate.rules.text import ChoiceRule, PrintableRule, StringRule
from inputgate.rules.uri import RedirectRule, UriRule

RULE_TYPES: Final[Mapping[RuleKind, type[Rule]]] = {
    RuleKind.DATE: DateRule,
    RuleKind.NUMBER: NumberRule,
    RuleKind.CREDIT_CARD: CreditCardRule,
    RuleKind.CHOICE: ChoiceRule,
    RuleKind.PRINTABLE: PrintableRule,
    RuleKind.STRING: StringRule,
    RuleKind.URI: UriRule,
    RuleKind.REDIRECT: RedirectRule,
    RuleKind.DIRECTORY_PATH: DirectoryPathRule,
    RuleKind.FILENAME: FilenameRule,
    RuleKind.SAFE_HTML: SafeHtmlRule,
    RuleKind.FILE_CONTENT: FileContentRule,
    RuleKind.UPLOAD: UploadRule,
    RuleKind.HTTP_PARAMS: HttpParamsRule,
}


def build_rule(
    name: str,
    definition: Mapping[str, object],
    capabilities: RuleCapabilities | None = None,
) -> Rule:
    """Construct the rule described by ``definition`` (a table with a ``kind`` key)."""

    if not isinstance(name, str) or not name.strip():
        raise ValueError("rule name must be a non-empty string")
    if not isinstance(definition, Mapping):
        raise ValueError(f"rule {name!r}: definition must be a table")

    raw_kind = definition.get("kind")
    if not isinstance(raw_kind, str):
        raise ValueError(f"rule {name!r}: kind is required")
    try:
        kind = RuleKind(raw_kind.strip().lower())
    except ValueError as exc:
        expected = ", ".join(sorted(RULE_TYPES))
        raise ValueError(
            f"rule {name!r}: unknown kind {raw_kind!r}; expected one of {expected}"
        ) from exc

    reader = ConstraintReader(rule_name=name, payload=definition)
    rule = RULE_TYPES[kind].from_constraints(name, reader, capabilities or RuleCapabilities())
    reader.assert_consumed()
    return rule


__all__ = [
    "RULE_TYPES",
    "ChoiceRule",
    "ConstraintReader",
    "CreditCardRule",
    "DateRule",
    "DirectoryPathRule",
    "FileContent",
    "FileContentRule",
    "FilenameRule",
    "HttpParamsRule",
    "ParamRequirement",
    "PrintableRule",
    "RedirectRule",
    "Rule",
    "RuleCapabilities",
    "RuleIntrusion",
    "RuleKind",
    "RuleViolation",
    "SafeHtmlRule",
    "StringRule",
    "UploadRequest",
    "UploadRule",
    "UriRule",
    "ValidatedUpload",
    "build_rule",
]
