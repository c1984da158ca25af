from __future__ import annotations

import pytest

from conftest import DYNAMIC_VIEW_ERROR, RELATIONSHIP_ERROR, make_error_line

from structurizr_dsl_mcp import extractor
from structurizr_dsl_mcp.diagnostics import Diagnostic, Suggestion
from structurizr_dsl_mcp.suggestions import (
    DYNAMIC_VIEW_SUGGESTION,
    GENERIC_SUGGESTION,
    SuggestionMatcher,
    SuggestionRule,
)


def test_extracts_dynamic_view_error():
    result = extractor.extract(DYNAMIC_VIEW_ERROR)

    assert isinstance(result, Diagnostic)
    assert result.line == 776
    assert result.column == 1
    assert result.file == "/usr/local/structurizr/workspace.dsl"
    assert result.message.startswith("Unexpected tokens")
    assert result.message.endswith("properties)")
    assert result.context == 'dynamic "ErrorHandlingFlow" {'
    assert "dynamic view syntax is incorrect" in result.suggestion.issue
    assert result.source == "Structurizr DSL"
    assert result.severity == "Error"
    assert result.code == "dsl-syntax"


def test_extracts_relationship_error_with_relationship_fix():
    result = extractor.extract(RELATIONSHIP_ERROR)

    assert isinstance(result, Diagnostic)
    assert result.line == 42
    assert "source -> destination" in result.suggestion.fix


def test_finds_error_inside_surrounding_console_text():
    text = "Error: " + make_error_line("Expected a closing brace", 7) + "\n    at parse"

    result = extractor.extract(text)

    assert isinstance(result, Diagnostic)
    assert result.line == 7
    assert result.message == "Expected a closing brace"


@pytest.mark.parametrize(
    "text",
    [
        "some random non-matching text",
        "",
        "workspace.dsl: something went wrong",
        "workspace.dsl: broken at line abc of /w/workspace.dsl: x",
    ],
)
def test_non_matching_text_returns_parse_failure(text):
    result = extractor.extract(text)

    assert isinstance(result, extractor.ParseFailure)
    assert not result
    assert result.raw_text == text
    assert result.reason


def test_parse_failure_mentions_workspace_marker():
    result = extractor.extract("workspace.dsl: something went wrong")

    assert isinstance(result, extractor.ParseFailure)
    assert "workspace.dsl" in result.reason


def test_line_zero_is_rejected():
    result = extractor.extract(make_error_line("Unexpected tokens", 0))

    assert isinstance(result, extractor.ParseFailure)
    assert "positive" in result.reason


def test_blank_message_is_rejected():
    result = extractor.extract("workspace.dsl:   at line 3 of /w/workspace.dsl: x")

    assert isinstance(result, extractor.ParseFailure)


def test_fields_are_trimmed():
    result = extractor.extract("workspace.dsl:  Bad token   at line 12 of  /w/workspace.dsl :   foo  ")

    assert isinstance(result, Diagnostic)
    assert result.message == "Bad token"
    assert result.file == "/w/workspace.dsl"
    assert result.context == "foo"


def test_empty_context_is_allowed():
    result = extractor.extract("workspace.dsl: Bad token at line 3 of /w/workspace.dsl:")

    assert isinstance(result, Diagnostic)
    assert result.context == ""
    assert result.suggestion == GENERIC_SUGGESTION


def test_uses_injected_matcher_and_clock():
    custom = Suggestion(issue="custom", fix="custom fix")
    matcher = SuggestionMatcher().with_rule(
        SuggestionRule("always", lambda message, context: True, custom), index=0
    )
    custom_extractor = extractor.RegexDslErrorExtractor(matcher, clock=lambda: "2026-01-01T00:00:00.000Z")

    result = custom_extractor.extract(DYNAMIC_VIEW_ERROR)

    assert isinstance(result, Diagnostic)
    assert result.suggestion is custom
    assert result.timestamp == "2026-01-01T00:00:00.000Z"
    assert custom_extractor.matcher is matcher


def test_default_suggestion_matches_matcher():
    result = extractor.extract(DYNAMIC_VIEW_ERROR)

    assert result.suggestion == DYNAMIC_VIEW_SUGGESTION


def test_timestamp_is_utc_iso8601():
    result = extractor.extract(DYNAMIC_VIEW_ERROR)

    assert result.timestamp.endswith("Z")
    assert "T" in result.timestamp
