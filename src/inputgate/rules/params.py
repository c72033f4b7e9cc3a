"""HTTP parameter-set shape rule."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import ClassVar, Self

from inputgate.rules.base import (
    ConstraintReader,
    Rule,
    RuleCapabilities,
    RuleKind,
    RuleViolation,
)


class ParamRequirement(StrEnum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True, slots=True, kw_only=True)
class HttpParamsRule(Rule):
    """Strict whitelist of parameter names with required/optional markers.

    Values are only checked structurally (present and non-empty); type checks
    belong to separate calls on the individual values.
    """

    kind: ClassVar[RuleKind] = RuleKind.HTTP_PARAMS

    parameters: Mapping[str, ParamRequirement | str]
    name: str = "http_params"

    def __post_init__(self) -> None:
        if not isinstance(self.parameters, Mapping):
            raise ValueError("parameters must map names to 'required' or 'optional'")
        normalized: dict[str, ParamRequirement] = {}
        for key, requirement in self.parameters.items():
            param = str(key)
            try:
                normalized[param] = ParamRequirement(str(requirement).strip().lower())
            except ValueError as exc:
                raise ValueError(
                    f"parameter {param!r} must be 'required' or 'optional'"
                ) from exc
        object.__setattr__(self, "parameters", MappingProxyType(normalized))

    @property
    def required(self) -> frozenset[str]:
        return frozenset(
            key for key, value in self.parameters.items() if value is ParamRequirement.REQUIRED
        )

    def apply(self, value: object) -> dict[str, object]:
        if not isinstance(value, Mapping):
            raise RuleViolation("must be a set of named parameters")
        received = {str(key): item for key, item in value.items()}

        missing = sorted(self.required - received.keys())
        if missing:
            raise RuleViolation(f"missing required parameters: {', '.join(missing)}")
        unexpected = received.keys() - self.parameters.keys()
        if unexpected:
            raise RuleViolation(f"contains {len(unexpected)} parameter(s) that are not accepted")
        empty = sorted(key for key, item in received.items() if _is_blank(item))
        if empty:
            raise RuleViolation(f"parameters must not be empty: {', '.join(empty)}")
        return received

    @classmethod
    def from_constraints(
        cls,
        name: str,
        constraints: ConstraintReader,
        capabilities: RuleCapabilities,
    ) -> Self:
        parameters = constraints.raw("parameters", required=True)
        if not isinstance(parameters, Mapping):
            raise ValueError(f"rule {name!r}: parameters must be a table of name = requirement")
        return cls(name=name, parameters=parameters)


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (bytes, Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


__all__ = ["HttpParamsRule", "ParamRequirement"]
