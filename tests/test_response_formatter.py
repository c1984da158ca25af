from __future__ import annotations

import pytest

from conftest import DYNAMIC_VIEW_ERROR

from structurizr_dsl_mcp import response_formatter
from structurizr_dsl_mcp.extractor import extract
from structurizr_dsl_mcp.utils import (
    format_diagnostic,
    format_diagnostic_summary,
    format_fix_advice,
    sanitize_path_label,
)


@pytest.mark.parametrize(
    "value,expected",
    [("json", "json"), (" JSON ", "json"), ("markdown", "markdown"), (None, "markdown"), ("xml", "markdown")],
)
def test_normalize_response_format(value, expected):
    assert response_formatter.normalize_response_format(value) == expected


def test_mcp_result_requires_content():
    with pytest.raises(ValueError):
        response_formatter.mcp_result(content=[])


def test_mcp_result_shape():
    result = response_formatter.mcp_result(
        content=[{"type": "text", "text": "hi"}], structured={"a": 1}, is_error=True
    )

    assert result == {
        "content": [{"type": "text", "text": "hi"}],
        "isError": True,
        "structuredContent": {"a": 1},
    }


def test_build_markdown_summary_skips_blank_details():
    summary = response_formatter.build_markdown_summary("Done", ["one", " ", "two"])

    assert summary == "**Summary:** Done\n- one\n- two"


def test_apply_character_limit_leaves_small_payloads_alone():
    items = [{"type": "text", "text": "short"}]

    processed, truncated, sections = response_formatter.apply_character_limit(items)

    assert processed == items
    assert truncated is False
    assert sections == []


def test_apply_character_limit_trims_from_the_tail():
    items = [
        {"type": "text", "text": "summary"},
        {"type": "text", "text": "x" * 500},
    ]

    processed, truncated, sections = response_formatter.apply_character_limit(items, limit=300)

    assert truncated is True
    assert processed[0]["text"] == "summary"
    assert len(processed[1]["text"]) < 500
    assert "truncated" in processed[-1]["text"]
    assert sections == ["text[1]"]
    total = sum(len(item["text"]) for item in processed)
    assert total <= 300


def test_extend_structured_with_truncation_adds_meta():
    payload = response_formatter.extend_structured_with_truncation(
        {"errors": []}, truncated=True, truncated_sections=["text[1]"]
    )

    assert payload["_meta"]["truncated"] is True
    assert payload["_meta"]["character_limit"] == response_formatter.CHARACTER_LIMIT
    assert payload["_meta"]["truncated_sections"] == ["text[1]"]


def test_extend_structured_without_truncation_is_a_copy():
    original = {"errors": [1]}

    payload = response_formatter.extend_structured_with_truncation(
        original, truncated=False, truncated_sections=[]
    )

    assert payload == original
    assert payload is not original
    assert response_formatter.extend_structured_with_truncation(
        None, truncated=False, truncated_sections=[]
    ) is None


def test_format_diagnostic_includes_location_and_suggestion():
    diagnostic = extract(DYNAMIC_VIEW_ERROR)

    text = format_diagnostic(diagnostic)

    lines = text.splitlines()
    assert lines[0] == (
        "[Error] /usr/local/structurizr/workspace.dsl:776:1 (Structurizr DSL#dsl-syntax)"
    )
    assert lines[1].startswith("Unexpected tokens")
    assert '  Context: dynamic "ErrorHandlingFlow" {' in lines
    assert any(line.startswith("Suggestion: The dynamic view syntax") for line in lines)
    assert any(line.startswith("Fix: Correct syntax") for line in lines)


def test_format_diagnostic_summary_numbers_entries():
    diagnostic = extract(DYNAMIC_VIEW_ERROR)

    lines = format_diagnostic_summary([diagnostic, diagnostic])

    assert lines[0].startswith("1. Unexpected tokens")
    assert lines[1].endswith("(Line 776 in /usr/local/structurizr/workspace.dsl)")


def test_format_fix_advice_is_advisory():
    advice = format_fix_advice(12, "dynamic api Flow {")

    assert advice.startswith("Suggested fix for line 12: dynamic api Flow {")
    assert "edit the workspace.dsl file manually" in advice


def test_sanitize_path_label_prefers_relative(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert sanitize_path_label(str(tmp_path.resolve() / "logs" / "errors.json")) == "logs/errors.json"
    assert sanitize_path_label("") == ""
