from __future__ import annotations

from typing import Optional

from mcp.server.fastmcp.utilities.logging import get_logger

from structurizr_dsl_mcp.error_log import DiagnosticLog, DiagnosticLogWriteError
from structurizr_dsl_mcp.extractor import (
    DSL_ERROR_MARKER,
    DslErrorExtractor,
    ExtractResult,
    ParseFailure,
    RegexDslErrorExtractor,
)

logger = get_logger(__name__)


class DslErrorProcessor:
    """Extract DSL errors and record the ones that parse."""

    def __init__(
        self,
        error_log: DiagnosticLog,
        extractor: Optional[DslErrorExtractor] = None,
    ) -> None:
        self.error_log = error_log
        self.extractor = extractor or RegexDslErrorExtractor()

    def process(self, error_text: str) -> ExtractResult:
        """Parse ``error_text`` and append the diagnostic to the log.

        Returns the :class:`ParseFailure` untouched when the text is not a DSL
        syntax error; the log is only written on success.

        Raises:
            DiagnosticLogWriteError: If the diagnostic could not be persisted.
        """
        result = self.extractor.extract(error_text)
        if isinstance(result, ParseFailure):
            logger.info("Could not parse DSL error format: %s", result.reason)
            return result

        self.error_log.append(result)
        logger.info(
            "Recorded DSL error at %s:%d: %s", result.file, result.line, result.message
        )
        return result

    def handle_console_message(self, level: str, text: str) -> Optional[ExtractResult]:
        """Browser console hook; only ``error`` lines mentioning workspace.dsl are processed."""
        if level != "error" or not text or DSL_ERROR_MARKER not in text:
            return None
        try:
            return self.process(text)
        except DiagnosticLogWriteError as exc:
            logger.error("Dropping captured DSL error: %s", exc)
            return None


__all__ = ["DslErrorProcessor"]
