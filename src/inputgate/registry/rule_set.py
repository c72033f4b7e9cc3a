"""
inputgate — named rule registry with atomic replacement.

Purpose
- Hold the immutable mapping of rule names to rules used by the validator.

Functional requirements
- Names are unique; lookups of unknown names raise ``UnknownRuleError``, a
  configuration error rather than a validation failure.
- Building from definitions reports every broken rule at once.
- ``RuleSetHolder.replace`` swaps the whole set; readers take one snapshot per
  call and never observe a partially built set.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping, Sequence

import structlog

from inputgate.rules import Rule, RuleCapabilities, build_rule

_logger = structlog.get_logger(__name__)


class UnknownRuleError(KeyError):
    """Raised when a validation call names a rule the active set does not define."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"no rule named {self.name!r} is configured"


class RuleDefinitionError(ValueError):
    """Raised when one or more rule definitions cannot be built."""

    def __init__(self, problems: Sequence[tuple[str, str]]) -> None:
        self.problems = tuple(problems)
        rendered = "\n".join(f"- {name}: {message}" for name, message in self.problems)
        super().__init__(f"invalid rule definitions:\n{rendered}")

    @property
    def rule_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.problems)


class RuleSet(Mapping[str, Rule]):
    """Immutable name -> rule mapping."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Mapping[str, Rule] | Iterable[Rule] = ()) -> None:
        collected: dict[str, Rule] = {}
        items: Iterable[tuple[str, Rule]]
        if isinstance(rules, Mapping):
            items = rules.items()
        else:
            items = ((rule.name, rule) for rule in rules)
        for name, rule in items:
            if not isinstance(rule, Rule):
                raise TypeError(f"rule {name!r} is not a Rule instance")
            if name in collected:
                raise ValueError(f"rule name {name!r} is defined more than once")
            collected[name] = rule
        self._rules = collected

    @classmethod
    def from_definitions(
        cls,
        definitions: Mapping[str, Mapping[str, object]],
        *,
        capabilities: RuleCapabilities | None = None,
    ) -> RuleSet:
        """Build every rule, collecting failures into one ``RuleDefinitionError``."""

        built: dict[str, Rule] = {}
        problems: list[tuple[str, str]] = []
        for name in sorted(definitions):
            try:
                built[name] = build_rule(name, definitions[name], capabilities)
            except (TypeError, ValueError) as exc:
                problems.append((name, str(exc)))
        if problems:
            raise RuleDefinitionError(problems)
        return cls(built)

    def __getitem__(self, name: str) -> Rule:
        try:
            return self._rules[name]
        except KeyError:
            raise UnknownRuleError(name) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet({sorted(self._rules)!r})"


class RuleSetHolder:
    """Current rule set plus a generation counter, swapped under a writer lock."""

    __slots__ = ("_current", "_generation", "_lock")

    def __init__(self, initial: RuleSet | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial if initial is not None else RuleSet()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> RuleSet:
        # A single reference read; the set itself is immutable.
        return self._current

    def replace(self, new: RuleSet) -> RuleSet:
        """Install ``new`` and return the set it replaced."""

        if not isinstance(new, RuleSet):
            raise TypeError("replacement must be a RuleSet")
        with self._lock:
            previous = self._current
            self._current = new
            self._generation += 1
            generation = self._generation
        _logger.info("rule_set_replaced", generation=generation, rule_count=len(new))
        return previous


__all__ = ["RuleDefinitionError", "RuleSet", "RuleSetHolder", "UnknownRuleError"]
