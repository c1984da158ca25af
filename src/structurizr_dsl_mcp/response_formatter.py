"""Build MCP tool results with Markdown summaries and a shared size cap."""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

CHARACTER_LIMIT = 25_000
DEFAULT_RESPONSE_FORMAT = "markdown"
JSON_RESPONSE_FORMAT = "json"
_VALID_RESPONSE_FORMATS = {DEFAULT_RESPONSE_FORMAT, JSON_RESPONSE_FORMAT}

_TRUNCATION_MARKDOWN = (
    "_Note: Output truncated to {limit:,} characters. Request fewer errors "
    "(lower `count`) or clear the log to see the rest._"
)
_TRUNCATION_PLAIN = (
    "Output truncated to {limit:,} characters. Request fewer errors "
    "(lower `count`) or clear the log to see the rest."
)


def normalize_response_format(value: Optional[str]) -> str:
    """Return ``markdown`` or ``json``; anything unknown falls back to Markdown."""

    normalized = (value or "").strip().lower()
    if normalized in _VALID_RESPONSE_FORMATS:
        return normalized
    return DEFAULT_RESPONSE_FORMAT


def mcp_result(
    *,
    content: Iterable[Mapping[str, Any]],
    structured: Optional[Mapping[str, Any]] = None,
    is_error: bool = False,
) -> Dict[str, Any]:
    """Return a CallToolResult-compatible payload.

    ``content`` may be any iterable of MCP content blocks and must not be
    empty; error results should lead with a human-readable text item.
    """

    content_list = [dict(item) for item in content]
    if not content_list:
        raise ValueError("mcp_result requires at least one content item")

    result: Dict[str, Any] = {"content": content_list, "isError": bool(is_error)}
    if structured is not None:
        result["structuredContent"] = dict(structured)
    return result


def build_markdown_summary(summary: str, details: Sequence[str] | None = None) -> str:
    headline = summary.strip() or "(no summary provided)"
    lines = [f"**Summary:** {headline}"]
    for detail in details or ():
        detail_text = (detail or "").strip()
        if detail_text:
            lines.append(f"- {detail_text}")
    return "\n".join(lines)


def _text_holders(items: List[Dict[str, Any]]) -> List[Tuple[MutableMapping[str, Any], str]]:
    """Locate every human-readable text field together with a label for it."""

    holders: List[Tuple[MutableMapping[str, Any], str]] = []
    for index, item in enumerate(items):
        if item.get("type") == "text" and isinstance(item.get("text"), str):
            label = "summary" if not holders else f"text[{index}]"
            holders.append((item, label))
        elif item.get("type") == "resource":
            resource = item.get("resource")
            if (
                isinstance(resource, MutableMapping)
                and isinstance(resource.get("text"), str)
                and resource.get("mimeType") != "application/json"
            ):
                holders.append((resource, str(resource.get("uri") or f"resource[{index}]")))
    return holders


def apply_character_limit(
    items: Sequence[Dict[str, Any]],
    *,
    limit: int = CHARACTER_LIMIT,
) -> Tuple[List[Dict[str, Any]], bool, List[str]]:
    """Trim text from the tail so the combined text stays within ``limit``.

    Returns the processed items, whether anything was cut, and the labels of
    the sections that were shortened.
    """

    processed = [copy.deepcopy(item) for item in items]
    holders = _text_holders(processed)
    total = sum(len(holder["text"]) for holder, _ in holders)
    if total <= limit:
        return processed, False, []

    note = _TRUNCATION_MARKDOWN.format(limit=limit)
    overflow = total - max(0, limit - len(note))

    cut: List[str] = []
    for holder, label in reversed(holders):
        if overflow <= 0:
            break
        text = holder["text"]
        if not text:
            continue
        remove = min(len(text), overflow)
        holder["text"] = text[: len(text) - remove].rstrip()
        overflow -= remove
        cut.append(label)

    processed.append({"type": "text", "text": note})
    return processed, True, list(reversed(cut))


def extend_structured_with_truncation(
    structured: Optional[Mapping[str, Any]],
    *,
    truncated: bool,
    truncated_sections: Sequence[str],
    limit: int = CHARACTER_LIMIT,
) -> Optional[Dict[str, Any]]:
    """Return a copy of ``structured`` carrying ``_meta`` truncation details."""

    if structured is None and not truncated:
        return None

    payload: Dict[str, Any] = copy.deepcopy(dict(structured or {}))
    if truncated:
        meta = payload.setdefault("_meta", {})
        meta["truncated"] = True
        meta["character_limit"] = limit
        meta["truncation_hint"] = _TRUNCATION_PLAIN.format(limit=limit)
        if truncated_sections:
            meta["truncated_sections"] = list(truncated_sections)
    return payload


__all__ = [
    "CHARACTER_LIMIT",
    "DEFAULT_RESPONSE_FORMAT",
    "JSON_RESPONSE_FORMAT",
    "apply_character_limit",
    "build_markdown_summary",
    "extend_structured_with_truncation",
    "mcp_result",
    "normalize_response_format",
]
