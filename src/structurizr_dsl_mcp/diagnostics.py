"""Structured records for parsed Structurizr DSL errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from structurizr_dsl_mcp.schema_types import DiagnosticRecord, SuggestionPayload

DIAGNOSTIC_SOURCE = "Structurizr DSL"
DIAGNOSTIC_SEVERITY = "Error"
DIAGNOSTIC_CODE = "dsl-syntax"
DEFAULT_COLUMN = 1


def utc_timestamp() -> str:
    """Return the current time as an ISO-8601 string with millisecond precision."""

    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Suggestion:
    issue: str
    fix: str

    def to_payload(self) -> SuggestionPayload:
        return {"issue": self.issue, "fix": self.fix}


@dataclass(frozen=True)
class Diagnostic:
    """One parsed DSL syntax error.

    Instances are only built by an extractor from text that matched the
    expected error shape, or rehydrated from the persisted log.
    """

    message: str
    file: str
    line: int
    context: str
    suggestion: Suggestion
    timestamp: str = field(default_factory=utc_timestamp)
    column: int = DEFAULT_COLUMN
    source: str = DIAGNOSTIC_SOURCE
    severity: str = DIAGNOSTIC_SEVERITY
    code: str = DIAGNOSTIC_CODE

    def __post_init__(self) -> None:
        if isinstance(self.line, bool) or not isinstance(self.line, int) or self.line < 1:
            raise ValueError(f"line must be a positive integer, got {self.line!r}")
        if isinstance(self.column, bool) or not isinstance(self.column, int) or self.column < 1:
            raise ValueError(f"column must be a positive integer, got {self.column!r}")

    @property
    def key(self) -> tuple[str, int, str]:
        """Identity used when collapsing repeated reports of the same error."""

        return (self.file, self.line, self.message)

    def to_record(self) -> DiagnosticRecord:
        """Return the JSON-serialisable shape written to the error log."""

        return {
            "source": self.source,
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "context": self.context,
            "relatedInformation": [
                {
                    "message": f"Context: {self.context}",
                    "file": self.file,
                    "line": self.line,
                    "column": self.column,
                }
            ],
            "suggestion": self.suggestion.to_payload(),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Diagnostic":
        """Rebuild a diagnostic from a persisted record.

        Raises ``ValueError`` when the record lacks the fields a diagnostic needs.
        """

        if not isinstance(record, Mapping):
            raise ValueError("diagnostic record must be a JSON object")

        try:
            message = record["message"]
            file_path = record["file"]
            line = record["line"]
        except KeyError as exc:
            raise ValueError(f"diagnostic record is missing {exc.args[0]!r}") from exc

        if not isinstance(message, str) or not isinstance(file_path, str):
            raise ValueError("diagnostic record has non-string message or file")

        context = record.get("context")
        if not isinstance(context, str):
            context = _context_from_related(record.get("relatedInformation"))

        suggestion_raw = record.get("suggestion")
        if not isinstance(suggestion_raw, Mapping):
            raise ValueError("diagnostic record is missing a suggestion")
        suggestion = Suggestion(
            issue=str(suggestion_raw.get("issue", "")),
            fix=str(suggestion_raw.get("fix", "")),
        )

        kwargs: Dict[str, Any] = {
            "message": message,
            "file": file_path,
            "line": line,
            "context": context,
            "suggestion": suggestion,
            "column": record.get("column", DEFAULT_COLUMN),
        }
        timestamp = record.get("timestamp")
        if isinstance(timestamp, str):
            kwargs["timestamp"] = timestamp
        return cls(**kwargs)


def _context_from_related(related: Any) -> str:
    if isinstance(related, list) and related:
        first = related[0]
        if isinstance(first, Mapping):
            text = first.get("message")
            if isinstance(text, str):
                return text.removeprefix("Context: ")
    return ""


__all__ = [
    "DEFAULT_COLUMN",
    "DIAGNOSTIC_CODE",
    "DIAGNOSTIC_SEVERITY",
    "DIAGNOSTIC_SOURCE",
    "Diagnostic",
    "Suggestion",
    "utc_timestamp",
]
