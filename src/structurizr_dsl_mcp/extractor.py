"""Turn Structurizr console error lines into :class:`Diagnostic` records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Protocol, Union

from structurizr_dsl_mcp.diagnostics import DEFAULT_COLUMN, Diagnostic, utc_timestamp
from structurizr_dsl_mcp.suggestions import SuggestionMatcher

# workspace.dsl: <message> at line <N> of <filePath>:<context>
DSL_ERROR_PATTERN = re.compile(
    r"workspace\.dsl: (.*?) at line (\d+) of ([^:]+):(.*)", re.ASCII
)

DSL_ERROR_MARKER = "workspace.dsl"


@dataclass(frozen=True)
class ParseFailure:
    """Extraction result for text that is not a recognised DSL syntax error."""

    reason: str
    raw_text: str

    def __bool__(self) -> bool:
        return False


ExtractResult = Union[Diagnostic, ParseFailure]


class DslErrorExtractor(Protocol):
    def extract(self, raw_text: str) -> ExtractResult: ...


class RegexDslErrorExtractor:
    """Extract diagnostics with a single regular expression.

    Only the exact ``workspace.dsl: ... at line N of path:context`` shape is
    accepted; other Structurizr errors produce a :class:`ParseFailure`.
    """

    def __init__(
        self,
        matcher: SuggestionMatcher | None = None,
        *,
        pattern: re.Pattern[str] = DSL_ERROR_PATTERN,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._matcher = matcher or SuggestionMatcher()
        self._pattern = pattern
        self._clock = clock

    @property
    def matcher(self) -> SuggestionMatcher:
        return self._matcher

    def extract(self, raw_text: str) -> ExtractResult:
        if not isinstance(raw_text, str) or not raw_text:
            return ParseFailure("empty error text", raw_text or "")

        match = self._pattern.search(raw_text)
        if match is None:
            if DSL_ERROR_MARKER in raw_text:
                reason = "text mentions workspace.dsl but is not a DSL syntax error"
            else:
                reason = "text does not match the DSL error format"
            return ParseFailure(reason, raw_text)

        raw_message, raw_line, raw_file, raw_context = match.groups()
        message = raw_message.strip()
        file_path = raw_file.strip()
        context = raw_context.strip()

        if not raw_line.isdigit():
            return ParseFailure(f"non-numeric line number {raw_line!r}", raw_text)
        line = int(raw_line, 10)
        if line < 1:
            return ParseFailure("line number must be positive", raw_text)
        if not message:
            return ParseFailure("error message is empty", raw_text)
        if not file_path:
            return ParseFailure("file path is empty", raw_text)

        return Diagnostic(
            message=message,
            file=file_path,
            line=line,
            column=DEFAULT_COLUMN,
            context=context,
            suggestion=self._matcher.suggest(message, context),
            timestamp=self._clock(),
        )


_default_extractor = RegexDslErrorExtractor()


def extract(raw_text: str) -> ExtractResult:
    """Parse ``raw_text`` with the default regex extractor."""

    return _default_extractor.extract(raw_text)


__all__ = [
    "DSL_ERROR_MARKER",
    "DSL_ERROR_PATTERN",
    "DslErrorExtractor",
    "ExtractResult",
    "ParseFailure",
    "RegexDslErrorExtractor",
    "extract",
]
