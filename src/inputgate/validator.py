"""
inputgate — validator facade.

Purpose
- Route every untrusted value through null policy, canonicalization and one
  rule, and hand back either the safe typed value or a typed rejection.

Functional requirements
- ``is_valid_*`` returns ``False`` for ordinary failures but lets
  ``IntrusionDetectedError`` propagate; ``get_valid_*`` returns the safe value
  or raises.
- Named rules are looked up in one rule-set snapshot per call, so a concurrent
  reload is never observed half-way.
- Every intrusion is reported to the audit sink before the caller sees it.
- Capability and codec failures fail closed as validation failures.

Non-functional requirements
- No per-call shared mutable state; a single instance serves many threads.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Final

import structlog

from inputgate.audit import AuditSink, IntrusionEvent, emit_audit_event, log_intrusion_event
from inputgate.canonicalization import Canonicalizer, EncodingAttackError, EncodingPattern
from inputgate.capabilities.html import DEFAULT_ALLOWED_TAGS, BleachSanitizer, HtmlSanitizer
from inputgate.capabilities.scanning import FileScanner, SignatureScanner
from inputgate.constants import (
    DEFAULT_CAPABILITY_TIMEOUT_SECONDS,
    DEFAULT_FILENAME_MAX_LENGTH,
    DEFAULT_URI_MAX_LENGTH,
    DEFAULT_URI_SCHEMES,
)
from inputgate.errors import (
    Accepted,
    IntrusionDetectedError,
    Rejection,
    RejectionKind,
    ValidationOutcome,
    error_for,
    preview_offending_value,
)
from inputgate.registry import RuleSet, RuleSetHolder
from inputgate.rules import (
    ChoiceRule,
    CreditCardRule,
    DateRule,
    DirectoryPathRule,
    FileContent,
    FileContentRule,
    FilenameRule,
    HttpParamsRule,
    NumberRule,
    ParamRequirement,
    PrintableRule,
    RedirectRule,
    Rule,
    RuleIntrusion,
    RuleViolation,
    SafeHtmlRule,
    UploadRequest,
    UploadRule,
    UriRule,
    ValidatedUpload,
)

_REQUIRED_REASON: Final[str] = "a value is required"
_PATTERN_SEVERITY: Final[tuple[EncodingPattern, ...]] = (
    EncodingPattern.NONE,
    EncodingPattern.SINGLE,
    EncodingPattern.MULTIPLE_IDENTICAL,
)


@dataclass(frozen=True, slots=True)
class _Evaluation:
    outcome: ValidationOutcome
    encoding_pattern: EncodingPattern = EncodingPattern.NONE
    codecs_applied: tuple[str, ...] = ()


@dataclass(slots=True)
class _Evidence:
    pattern: EncodingPattern = EncodingPattern.NONE
    codecs: tuple[str, ...] = ()

    def record(self, pattern: EncodingPattern, codecs: tuple[str, ...]) -> None:
        if _PATTERN_SEVERITY.index(pattern) > _PATTERN_SEVERITY.index(self.pattern):
            self.pattern = pattern
        self.codecs = (*self.codecs, *codecs)


class _CanonicalizationRejected(Exception):
    def __init__(self, rejection_kind: RejectionKind, reason: str, evidence: _Evidence) -> None:
        super().__init__(reason)
        self.rejection_kind = rejection_kind
        self.reason = reason
        self.evidence = evidence


class Validator:
    """Canonicalize, then apply one rule, with typed wrappers per input class."""

    def __init__(
        self,
        rules: RuleSet | RuleSetHolder | None = None,
        *,
        canonicalizer: Canonicalizer | None = None,
        allow_multiple_encoding: bool = False,
        audit_sink: AuditSink | None = None,
        expose_offending_values: bool = False,
        allowed_redirects: Iterable[str] = (),
        allow_relative_redirects: bool = False,
        html_sanitizer: HtmlSanitizer | None = None,
        file_scanner: FileScanner | None = None,
        capability_timeout_seconds: float = DEFAULT_CAPABILITY_TIMEOUT_SECONDS,
        logger: Any | None = None,
    ) -> None:
        if capability_timeout_seconds <= 0:
            raise ValueError("capability_timeout_seconds must be > 0")
        if isinstance(rules, RuleSetHolder):
            self._holder = rules
        else:
            self._holder = RuleSetHolder(rules if rules is not None else RuleSet())
        self._canonicalizer = (
            canonicalizer if canonicalizer is not None else Canonicalizer.from_names()
        )
        self._allow_multiple_encoding = allow_multiple_encoding
        self._audit_sink = audit_sink if audit_sink is not None else log_intrusion_event
        self._expose_offending_values = expose_offending_values
        self._html_sanitizer = html_sanitizer if html_sanitizer is not None else BleachSanitizer()
        self._file_scanner = file_scanner if file_scanner is not None else SignatureScanner()
        self._timeout_seconds = float(capability_timeout_seconds)
        self._redirect_rule = RedirectRule(
            allowed_targets=tuple(allowed_redirects),
            allow_relative=allow_relative_redirects,
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        audit_sink: AuditSink | None = None,
        html_sanitizer: HtmlSanitizer | None = None,
        file_scanner: FileScanner | None = None,
    ) -> Validator:
        """Build a validator and its rule set from a loaded, validated config."""

        from inputgate.config.loader import rule_capabilities

        canonicalization = config["canonicalization"]
        settings = config["validator"]
        capabilities = rule_capabilities(
            config, html_sanitizer=html_sanitizer, file_scanner=file_scanner
        )
        rule_set = RuleSet.from_definitions(config.get("rules", {}), capabilities=capabilities)
        return cls(
            rule_set,
            canonicalizer=Canonicalizer.from_names(
                canonicalization["codecs"],
                max_depth=canonicalization["max_encoding_depth"],
            ),
            allow_multiple_encoding=canonicalization["allow_multiple_encoding"],
            audit_sink=audit_sink,
            expose_offending_values=settings["expose_offending_values"],
            allowed_redirects=settings["allowed_redirects"],
            allow_relative_redirects=settings["allow_relative_redirects"],
            html_sanitizer=html_sanitizer,
            file_scanner=capabilities.file_scanner,
            capability_timeout_seconds=capabilities.timeout_seconds,
        )

    @classmethod
    def from_config_file(
        cls,
        config_path: str | Path | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        audit_sink: AuditSink | None = None,
    ) -> Validator:
        from inputgate.config.loader import load_config

        return cls.from_config(load_config(config_path, environ=environ), audit_sink=audit_sink)

    @property
    def rule_set(self) -> RuleSet:
        return self._holder.snapshot()

    @property
    def canonicalizer(self) -> Canonicalizer:
        return self._canonicalizer

    def reload(self, rule_set: RuleSet) -> RuleSet:
        """Atomically install ``rule_set``; in-flight calls keep their snapshot."""

        return self._holder.replace(rule_set)

    # -- generic core -------------------------------------------------------

    def evaluate(
        self,
        context: str,
        value: object,
        rule: Rule,
        *,
        allow_null: bool = False,
        canonicalize: bool = True,
    ) -> ValidationOutcome:
        """Return ``Accepted`` or ``Rejection``; intrusions are audited, not raised."""

        return self._evaluate(context, value, rule, allow_null, canonicalize).outcome

    def apply(
        self,
        context: str,
        value: object,
        rule: Rule,
        *,
        allow_null: bool = False,
        canonicalize: bool = True,
    ) -> Any:
        """Return the safe value or raise ``ValidationError``/``IntrusionDetectedError``."""

        evaluation = self._evaluate(context, value, rule, allow_null, canonicalize)
        outcome = evaluation.outcome
        if isinstance(outcome, Accepted):
            return outcome.value
        raise error_for(
            outcome,
            encoding_pattern=evaluation.encoding_pattern.value,
            codecs_applied=evaluation.codecs_applied,
        )

    def check(
        self,
        context: str,
        value: object,
        rule: Rule,
        *,
        allow_null: bool = False,
        canonicalize: bool = True,
    ) -> bool:
        """``True``/``False`` for ordinary outcomes; intrusions still raise."""

        evaluation = self._evaluate(context, value, rule, allow_null, canonicalize)
        outcome = evaluation.outcome
        if isinstance(outcome, Accepted):
            return True
        if outcome.is_intrusion:
            raise IntrusionDetectedError(
                outcome,
                encoding_pattern=evaluation.encoding_pattern.value,
                codecs_applied=evaluation.codecs_applied,
            )
        return False

    # -- named rules ----------------------------------------------------------

    def get_valid_input(
        self,
        context: str,
        value: object,
        rule_name: str,
        max_length: int | None = None,
        allow_null: bool = False,
        canonicalize: bool = True,
    ) -> Any:
        rule = self._named_rule(rule_name, max_length)
        return self.apply(context, value, rule, allow_null=allow_null, canonicalize=canonicalize)

    def is_valid_input(
        self,
        context: str,
        value: object,
        rule_name: str,
        max_length: int | None = None,
        allow_null: bool = False,
        canonicalize: bool = True,
    ) -> bool:
        rule = self._named_rule(rule_name, max_length)
        return self.check(context, value, rule, allow_null=allow_null, canonicalize=canonicalize)

    # -- typed wrappers -------------------------------------------------------

    def get_valid_date(
        self, context: str, value: object, date_format: str, *, allow_null: bool = False
    ) -> date | datetime | None:
        return self.apply(context, value, DateRule(date_format=date_format), allow_null=allow_null)

    def is_valid_date(
        self, context: str, value: object, date_format: str, *, allow_null: bool = False
    ) -> bool:
        return self.check(context, value, DateRule(date_format=date_format), allow_null=allow_null)

    def get_valid_credit_card(
        self, context: str, value: object, *, allow_null: bool = False
    ) -> str | None:
        return self.apply(context, value, CreditCardRule(), allow_null=allow_null)

    def is_valid_credit_card(
        self, context: str, value: object, *, allow_null: bool = False
    ) -> bool:
        return self.check(context, value, CreditCardRule(), allow_null=allow_null)

    def get_valid_http_params(
        self,
        context: str,
        params: object,
        parameters: Mapping[str, ParamRequirement | str],
        *,
        allow_null: bool = False,
    ) -> dict[str, object] | None:
        rule = HttpParamsRule(parameters=parameters)
        return self.apply(context, params, rule, allow_null=allow_null)

    def is_valid_http_params(
        self,
        context: str,
        params: object,
        parameters: Mapping[str, ParamRequirement | str],
        *,
        allow_null: bool = False,
    ) -> bool:
        rule = HttpParamsRule(parameters=parameters)
        return self.check(context, params, rule, allow_null=allow_null)

    def get_valid_uri(
        self,
        context: str,
        value: object,
        *,
        max_length: int | None = DEFAULT_URI_MAX_LENGTH,
        allowed_schemes: Iterable[str] = DEFAULT_URI_SCHEMES,
        allow_null: bool = False,
    ) -> str | None:
        rule = UriRule(allowed_schemes=frozenset(allowed_schemes), max_length=max_length)
        return self.apply(context, value, rule, allow_null=allow_null)

    def is_valid_uri(
        self,
        context: str,
        value: object,
        *,
        max_length: int | None = DEFAULT_URI_MAX_LENGTH,
        allowed_schemes: Iterable[str] = DEFAULT_URI_SCHEMES,
        allow_null: bool = False,
    ) -> bool:
        rule = UriRule(allowed_schemes=frozenset(allowed_schemes), max_length=max_length)
        return self.check(context, value, rule, allow_null=allow_null)

    def get_valid_safe_html(
        self,
        context: str,
        value: object,
        max_length: int | None,
        *,
        allowed_tags: Iterable[str] = DEFAULT_ALLOWED_TAGS,
        allow_null: bool = False,
    ) -> str | None:
        rule = self._safe_html_rule(max_length, allowed_tags)
        return self.apply(context, value, rule, allow_null=allow_null)

    def is_valid_safe_html(
        self,
        context: str,
        value: object,
        max_length: int | None,
        *,
        allowed_tags: Iterable[str] = DEFAULT_ALLOWED_TAGS,
        allow_null: bool = False,
    ) -> bool:
        rule = self._safe_html_rule(max_length, allowed_tags)
        return self.check(context, value, rule, allow_null=allow_null)

    def get_valid_directory(
        self,
        context: str,
        value: object,
        root: str | Path,
        *,
        must_exist: bool = True,
        allow_null: bool = False,
    ) -> Path | None:
        rule = self._directory_rule(root, must_exist)
        return self.apply(context, value, rule, allow_null=allow_null)

    def is_valid_directory(
        self,
        context: str,
        value: object,
        root: str | Path,
        *,
        must_exist: bool = True,
        allow_null: bool = False,
    ) -> bool:
        rule = self._directory_rule(root, must_exist)
        return self.check(context, value, rule, allow_null=allow_null)

    def get_valid_filename(
        self,
        context: str,
        value: object,
        *,
        allowed_extensions: Iterable[str] = (),
        max_length: int | None = DEFAULT_FILENAME_MAX_LENGTH,
        allow_null: bool = False,
    ) -> str | None:
        rule = FilenameRule(max_length=max_length, allowed_extensions=frozenset(allowed_extensions))
        return self.apply(context, value, rule, allow_null=allow_null)

    def is_valid_filename(
        self,
        context: str,
        value: object,
        *,
        allowed_extensions: Iterable[str] = (),
        max_length: int | None = DEFAULT_FILENAME_MAX_LENGTH,
        allow_null: bool = False,
    ) -> bool:
        rule = FilenameRule(max_length=max_length, allowed_extensions=frozenset(allowed_extensions))
        return self.check(context, value, rule, allow_null=allow_null)

    def get_valid_number(
        self,
        context: str,
        value: object,
        minimum: Decimal | int | float | str | None,
        maximum: Decimal | int | float | str | None,
        *,
        allow_null: bool = False,
    ) -> Decimal | None:
        rule = NumberRule(minimum=minimum, maximum=maximum)
        return self.apply(context, value, rule, allow_null=allow_null)

    def is_valid_number(
        self,
        context: str,
        value: object,
        minimum: Decimal | int | float | str | None,
        maximum: Decimal | int | float | str | None,
        *,
        allow_null: bool = False,
    ) -> bool:
        rule = NumberRule(minimum=minimum, maximum=maximum)
        return self.check(context, value, rule, allow_null=allow_null)

    def get_valid_file_contents(
        self,
        context: str,
        content: object,
        *,
        allowed_mime_types: Iterable[str],
        max_bytes: int,
        allow_null: bool = False,
    ) -> FileContent | None:
        rule = self._file_content_rule(allowed_mime_types, max_bytes)
        return self.apply(context, content, rule, allow_null=allow_null)

    def is_valid_file_contents(
        self,
        context: str,
        content: object,
        *,
        allowed_mime_types: Iterable[str],
        max_bytes: int,
        allow_null: bool = False,
    ) -> bool:
        rule = self._file_content_rule(allowed_mime_types, max_bytes)
        return self.check(context, content, rule, allow_null=allow_null)

    def get_valid_upload(
        self,
        context: str,
        upload: object,
        *,
        root: str | Path,
        allowed_extensions: Iterable[str],
        allowed_mime_types: Iterable[str],
        max_bytes: int,
        allow_null: bool = False,
    ) -> ValidatedUpload | None:
        rule = self._upload_rule(root, allowed_extensions, allowed_mime_types, max_bytes)
        return self.apply(context, upload, rule, allow_null=allow_null)

    def is_valid_upload(
        self,
        context: str,
        upload: object,
        *,
        root: str | Path,
        allowed_extensions: Iterable[str],
        allowed_mime_types: Iterable[str],
        max_bytes: int,
        allow_null: bool = False,
    ) -> bool:
        rule = self._upload_rule(root, allowed_extensions, allowed_mime_types, max_bytes)
        return self.check(context, upload, rule, allow_null=allow_null)

    def get_valid_choice(
        self,
        context: str,
        value: object,
        choices: Iterable[object] | type[Enum],
        *,
        allow_null: bool = False,
    ) -> Any:
        return self.apply(context, value, _choice_rule(choices), allow_null=allow_null)

    def is_valid_choice(
        self,
        context: str,
        value: object,
        choices: Iterable[object] | type[Enum],
        *,
        allow_null: bool = False,
    ) -> bool:
        return self.check(context, value, _choice_rule(choices), allow_null=allow_null)

    def get_valid_printable(
        self, context: str, value: object, max_length: int | None, *, allow_null: bool = False
    ) -> str | None:
        rule = PrintableRule(max_length=max_length)
        return self.apply(context, value, rule, allow_null=allow_null)

    def is_valid_printable(
        self, context: str, value: object, max_length: int | None, *, allow_null: bool = False
    ) -> bool:
        rule = PrintableRule(max_length=max_length)
        return self.check(context, value, rule, allow_null=allow_null)

    def get_valid_redirection(
        self, context: str, value: object, *, allow_null: bool = False
    ) -> str | None:
        return self.apply(context, value, self._redirect_rule, allow_null=allow_null)

    def is_valid_redirection(
        self, context: str, value: object, *, allow_null: bool = False
    ) -> bool:
        return self.check(context, value, self._redirect_rule, allow_null=allow_null)

    # -- internals --------------------------------------------------------------

    def _named_rule(self, rule_name: str, max_length: int | None) -> Rule:
        snapshot = self._holder.snapshot()
        return snapshot[rule_name].limited_to(max_length)

    def _safe_html_rule(self, max_length: int | None, allowed_tags: Iterable[str]) -> SafeHtmlRule:
        return SafeHtmlRule(
            max_length=max_length,
            allowed_tags=allowed_tags,
            sanitizer=self._html_sanitizer,
            timeout_seconds=self._timeout_seconds,
        )

    def _directory_rule(self, root: str | Path, must_exist: bool) -> DirectoryPathRule:
        return DirectoryPathRule(
            root=root,
            must_exist=must_exist,
            timeout_seconds=self._timeout_seconds,
        )

    def _file_content_rule(
        self, allowed_mime_types: Iterable[str], max_bytes: int
    ) -> FileContentRule:
        return FileContentRule(
            allowed_mime_types=tuple(allowed_mime_types),
            max_bytes=max_bytes,
            scanner=self._file_scanner,
            timeout_seconds=self._timeout_seconds,
        )

    def _upload_rule(
        self,
        root: str | Path,
        allowed_extensions: Iterable[str],
        allowed_mime_types: Iterable[str],
        max_bytes: int,
    ) -> UploadRule:
        return UploadRule(
            filename_rule=FilenameRule(allowed_extensions=frozenset(allowed_extensions)),
            directory_rule=self._directory_rule(root, True),
            content_rule=self._file_content_rule(allowed_mime_types, max_bytes),
        )

    def _evaluate(
        self,
        context: str,
        value: object,
        rule: Rule,
        allow_null: bool,
        canonicalize: bool,
    ) -> _Evaluation:
        if _is_empty(value):
            return self._null_outcome(context, value, rule, allow_null)

        evidence = _Evidence()
        candidate = value
        if canonicalize:
            try:
                candidate = self._canonical(value, evidence)
            except _CanonicalizationRejected as exc:
                return self._reject(
                    context, value, rule, exc.rejection_kind, exc.reason, exc.evidence
                )
            if _is_empty(candidate):
                return self._null_outcome(context, value, rule, allow_null)

        try:
            safe = rule.apply(candidate)
        except RuleIntrusion as exc:
            return self._reject(
                context, value, rule, RejectionKind.INTRUSION_DETECTED, exc.reason, evidence
            )
        except RuleViolation as exc:
            return self._reject(
                context, value, rule, RejectionKind.VALIDATION_FAILURE, exc.reason, evidence
            )
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "rule_evaluation_failed",
                context=context,
                rule_name=rule.name,
                error_type=type(exc).__name__,
            )
            return self._reject(
                context,
                value,
                rule,
                RejectionKind.VALIDATION_FAILURE,
                "input could not be validated",
                evidence,
            )
        return _Evaluation(
            outcome=Accepted(safe),
            encoding_pattern=evidence.pattern,
            codecs_applied=evidence.codecs,
        )

    def _null_outcome(
        self, context: str, value: object, rule: Rule, allow_null: bool
    ) -> _Evaluation:
        if allow_null:
            return _Evaluation(outcome=Accepted(None))
        return self._reject(
            context, value, rule, RejectionKind.VALIDATION_FAILURE, _REQUIRED_REASON, _Evidence()
        )

    def _canonical(self, value: object, evidence: _Evidence) -> object:
        if isinstance(value, str):
            return self._canonical_text(value, evidence)
        if isinstance(value, UploadRequest):
            return dataclasses.replace(
                value,
                filename=self._canonical_text(value.filename, evidence),
                directory=self._canonical_text(value.directory, evidence),
            )
        if isinstance(value, Mapping):
            return {key: self._canonical_item(item, evidence) for key, item in value.items()}
        return value

    def _canonical_item(self, item: object, evidence: _Evidence) -> object:
        if isinstance(item, str):
            return self._canonical_text(item, evidence)
        if isinstance(item, (list, tuple)):
            return type(item)(self._canonical_item(element, evidence) for element in item)
        return item

    def _canonical_text(self, text: str, evidence: _Evidence) -> str:
        try:
            result = self._canonicalizer.canonicalize(
                text, allow_multiple_encoding=self._allow_multiple_encoding
            )
        except EncodingAttackError as exc:
            evidence.pattern = exc.result.encoding_pattern
            evidence.codecs = (*evidence.codecs, *exc.result.codecs_applied)
            raise _CanonicalizationRejected(
                RejectionKind.INTRUSION_DETECTED, exc.reason, evidence
            ) from exc
        except Exception as exc:  # noqa: BLE001
            self._logger.error("canonicalization_failed", error_type=type(exc).__name__)
            raise _CanonicalizationRejected(
                RejectionKind.VALIDATION_FAILURE, "input could not be canonicalized", evidence
            ) from exc
        evidence.record(result.encoding_pattern, result.codecs_applied)
        return result.canonical_form

    def _reject(
        self,
        context: str,
        value: object,
        rule: Rule,
        kind: RejectionKind,
        reason: str,
        evidence: _Evidence,
    ) -> _Evaluation:
        rejection = Rejection(
            context=context,
            kind=kind,
            reason=reason,
            offending_value=preview_offending_value(
                value, expose=self._expose_offending_values
            ),
        )
        if kind is RejectionKind.INTRUSION_DETECTED:
            emit_audit_event(
                self._audit_sink,
                IntrusionEvent(
                    context=context,
                    reason=reason,
                    encoding_pattern=evidence.pattern.value,
                    codecs_applied=evidence.codecs,
                    rule_kind=rule.kind.value,
                    rule_name=rule.name,
                ),
            )
        else:
            self._logger.debug(
                "input_rejected",
                context=context,
                rule_kind=rule.kind.value,
                reason=reason,
            )
        return _Evaluation(
            outcome=rejection,
            encoding_pattern=evidence.pattern,
            codecs_applied=evidence.codecs,
        )


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (bytes, bytearray, Mapping)):
        return len(value) == 0
    return False


def _choice_rule(choices: Iterable[object] | type[Enum]) -> ChoiceRule:
    if isinstance(choices, (type, set, frozenset, Sequence)):
        return ChoiceRule(choices=choices)  # type: ignore[arg-type]
    return ChoiceRule(choices=tuple(choices))


__all__ = ["Validator"]
