"""Typed response primitives for the Structurizr DSL MCP server."""

from __future__ import annotations

from typing import List, TypedDict

# ----- Error codes ---------------------------------------------------------
ERROR_BAD_REQUEST = "bad_request"
ERROR_PARSE_FAILURE = "parse_failure"
ERROR_IO_FAILURE = "io_failure"
ERROR_CLIENT_NOT_READY = "client_not_ready"
ERROR_BROWSER_NOT_FOUND = "browser_not_found"


# ----- Persisted diagnostics -----------------------------------------------
class SuggestionPayload(TypedDict):
    issue: str
    fix: str


class RelatedInformation(TypedDict):
    message: str
    file: str
    line: int
    column: int


class DiagnosticRecord(TypedDict):
    source: str
    severity: str
    code: str
    message: str
    file: str
    line: int
    column: int
    context: str
    relatedInformation: List[RelatedInformation]
    suggestion: SuggestionPayload
    timestamp: str


class ErrorLogSummary(TypedDict, total=False):
    count: int
    requested: int
    unique: bool
    log_file: str
    warning: str


class BrowserSessionInfo(TypedDict, total=False):
    mode: str
    url: str
    debug_url: str
    monitoring: bool


__all__ = [
    "BrowserSessionInfo",
    "DiagnosticRecord",
    "ErrorLogSummary",
    "RelatedInformation",
    "SuggestionPayload",
    "ERROR_BAD_REQUEST",
    "ERROR_BROWSER_NOT_FOUND",
    "ERROR_CLIENT_NOT_READY",
    "ERROR_IO_FAILURE",
    "ERROR_PARSE_FAILURE",
]
