"""Map DSL error text to human-readable fix suggestions.

The matcher is a static, ordered list of cheap substring predicates. The first
rule whose predicate accepts ``(message, context)`` wins; when none does the
fallback suggestion is returned, so :meth:`SuggestionMatcher.suggest` never
fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence, Tuple

from structurizr_dsl_mcp.diagnostics import Suggestion

Predicate = Callable[[str, str], bool]


@dataclass(frozen=True)
class SuggestionRule:
    name: str
    predicate: Predicate
    suggestion: Suggestion

    def matches(self, message: str, context: str) -> bool:
        return bool(self.predicate(message, context))


DYNAMIC_VIEW_SUGGESTION = Suggestion(
    issue=(
        "The dynamic view syntax is incorrect. It needs a container/component "
        "identifier AND key."
    ),
    fix=(
        "Correct syntax: 'dynamic ContainerName ErrorHandlingFlow {'\n"
        "Alternatively: 'dynamic ComponentName ErrorHandlingFlow {'"
    ),
)

RELATIONSHIP_SUGGESTION = Suggestion(
    issue=(
        "There's a relationship defined between elements that doesn't exist "
        "or has incorrect syntax"
    ),
    fix=(
        "Check the relationship syntax and ensure both elements exist: "
        "source -> destination \"description\""
    ),
)

GENERIC_SUGGESTION = Suggestion(
    issue="Syntax error in the DSL file",
    fix="Check the documentation at https://docs.structurizr.com/dsl for correct syntax",
)


def _is_dynamic_view_error(message: str, context: str) -> bool:
    return "Unexpected tokens" in message and "dynamic" in context


def _is_relationship_error(message: str, context: str) -> bool:
    return (
        "Unknown relationship" in message
        or "relationship" in message
        or "relationship" in context
    )


DEFAULT_RULES: Tuple[SuggestionRule, ...] = (
    SuggestionRule("dynamic-view", _is_dynamic_view_error, DYNAMIC_VIEW_SUGGESTION),
    SuggestionRule("relationship", _is_relationship_error, RELATIONSHIP_SUGGESTION),
)


class SuggestionMatcher:
    """Ordered first-match classifier over DSL error text."""

    def __init__(
        self,
        rules: Iterable[SuggestionRule] = DEFAULT_RULES,
        fallback: Suggestion = GENERIC_SUGGESTION,
    ) -> None:
        self._rules: Tuple[SuggestionRule, ...] = tuple(rules)
        self._fallback = fallback

    @property
    def rules(self) -> Sequence[SuggestionRule]:
        return self._rules

    @property
    def fallback(self) -> Suggestion:
        return self._fallback

    def with_rule(self, rule: SuggestionRule, *, index: int | None = None) -> "SuggestionMatcher":
        """Return a new matcher with ``rule`` inserted (appended before the fallback by default)."""

        rules = list(self._rules)
        if index is None:
            rules.append(rule)
        else:
            rules.insert(index, rule)
        return SuggestionMatcher(rules, self._fallback)

    def suggest(self, message: str, context: str) -> Suggestion:
        message = message or ""
        context = context or ""
        for rule in self._rules:
            if rule.matches(message, context):
                return rule.suggestion
        return self._fallback


_default_matcher = SuggestionMatcher()


def suggest(message: str, context: str) -> Suggestion:
    """Return the suggestion the default rule table gives for an error."""

    return _default_matcher.suggest(message, context)


__all__ = [
    "DEFAULT_RULES",
    "DYNAMIC_VIEW_SUGGESTION",
    "GENERIC_SUGGESTION",
    "RELATIONSHIP_SUGGESTION",
    "SuggestionMatcher",
    "SuggestionRule",
    "suggest",
]
