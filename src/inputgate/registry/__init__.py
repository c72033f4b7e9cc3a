"""Rule registry: immutable rule sets and the holder used for hot reload."""

from inputgate.registry.rule_set import (
    RuleDefinitionError,
    RuleSet,
    RuleSetHolder,
    UnknownRuleError,
)

__all__ = ["RuleDefinitionError", "RuleSet", "RuleSetHolder", "UnknownRuleError"]
