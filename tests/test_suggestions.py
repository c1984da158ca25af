from __future__ import annotations

import pytest

from structurizr_dsl_mcp.diagnostics import Suggestion
from structurizr_dsl_mcp.suggestions import (
    DEFAULT_RULES,
    DYNAMIC_VIEW_SUGGESTION,
    GENERIC_SUGGESTION,
    RELATIONSHIP_SUGGESTION,
    SuggestionMatcher,
    SuggestionRule,
    suggest,
)


def test_unexpected_tokens_in_dynamic_view():
    result = suggest("Unexpected tokens (expected: include)", 'dynamic "Flow" {')

    assert result is DYNAMIC_VIEW_SUGGESTION
    assert "identifier AND key" in result.issue
    assert "dynamic ContainerName ErrorHandlingFlow {" in result.fix


@pytest.mark.parametrize(
    "message,context",
    [
        ("Unknown relationship type", ""),
        ("The relationship is invalid", "foo"),
        ("Bad token", "a relationship between a and b"),
    ],
)
def test_relationship_errors(message, context):
    result = suggest(message, context)

    assert result is RELATIONSHIP_SUGGESTION
    assert "source -> destination" in result.fix


def test_unexpected_tokens_outside_dynamic_view_falls_back():
    assert suggest("Unexpected tokens", "views {") is GENERIC_SUGGESTION


def test_dynamic_rule_wins_over_relationship_rule():
    result = suggest("Unexpected tokens", "dynamic relationship {")

    assert result is DYNAMIC_VIEW_SUGGESTION


@pytest.mark.parametrize(
    "message,context",
    [("", ""), ("anything", ""), ("", "anything"), (None, None)],
)
def test_suggest_is_total(message, context):
    result = suggest(message, context)

    assert isinstance(result, Suggestion)
    assert result.issue
    assert result.fix


def test_generic_suggestion_links_docs():
    assert GENERIC_SUGGESTION.issue == "Syntax error in the DSL file"
    assert "https://docs.structurizr.com/dsl" in GENERIC_SUGGESTION.fix


def test_default_rule_order():
    assert [rule.name for rule in DEFAULT_RULES] == ["dynamic-view", "relationship"]


def test_with_rule_appends_before_fallback():
    custom = Suggestion(issue="Missing brace", fix="Close the block with }")
    rule = SuggestionRule("brace", lambda message, context: "brace" in message, custom)
    matcher = SuggestionMatcher().with_rule(rule)

    assert matcher.suggest("Missing closing brace", "") is custom
    # earlier rules still take precedence
    assert matcher.suggest("relationship brace", "") is RELATIONSHIP_SUGGESTION
    assert matcher.suggest("other", "") is GENERIC_SUGGESTION


def test_with_rule_returns_new_matcher():
    base = SuggestionMatcher()
    custom = Suggestion(issue="x", fix="y")
    extended = base.with_rule(SuggestionRule("x", lambda m, c: True, custom), index=0)

    assert len(extended.rules) == len(base.rules) + 1
    assert base.suggest("anything", "") is GENERIC_SUGGESTION
    assert extended.suggest("Unknown relationship", "") is custom


def test_custom_fallback():
    fallback = Suggestion(issue="No idea", fix="Read the docs")
    matcher = SuggestionMatcher(rules=(), fallback=fallback)

    assert matcher.suggest("Unknown relationship", "") is fallback
    assert matcher.fallback is fallback
