import os
import textwrap
from typing import List, Sequence

from mcp.server.auth.provider import AccessToken, TokenVerifier

from structurizr_dsl_mcp.diagnostics import Diagnostic


def sanitize_path_label(path: str) -> str:
    """Prefer a cwd-relative label; fall back to the basename outside the cwd."""
    if not path:
        return path
    try:
        rel = os.path.relpath(path, os.getcwd())
        if not rel.startswith(".."):
            return rel.replace(os.sep, "/")
    except ValueError:  # pragma: no cover - handles different drive on Windows
        pass
    basename = os.path.basename(path)
    return basename if basename else path


def format_diagnostic_summary(diagnostics: Sequence[Diagnostic]) -> List[str]:
    """Numbered one-line listing: ``1. message (Line 12 in /path/workspace.dsl)``."""

    return [
        f"{index}. {diag.message} (Line {diag.line} in {diag.file})"
        for index, diag in enumerate(diagnostics, start=1)
    ]


def format_diagnostic(diag: Diagnostic) -> str:
    """Render a diagnostic the way IDE problem panes show them.

    Args:
        diag (Diagnostic): The diagnostic to render.

    Returns:
        str: Header line with severity, location and provenance followed by the
            message, the offending context and the suggestion.
    """
    header = (
        f"[{diag.severity}] {diag.file}:{diag.line}:{diag.column} "
        f"({diag.source}#{diag.code})"
    )
    lines = [header, diag.message]
    if diag.context:
        lines.append(textwrap.indent(f"Context: {diag.context}", "  "))
    lines.append(f"Suggestion: {diag.suggestion.issue}")
    lines.append(f"Fix: {diag.suggestion.fix}")
    return "\n".join(lines)


def format_fix_advice(line: int, fix: str) -> str:
    return (
        f"Suggested fix for line {line}: {fix}\n\n"
        "Note: This is a suggestion only. To apply the fix, edit the "
        "workspace.dsl file manually."
    )


class OptionalTokenVerifier(TokenVerifier):
    def __init__(self, expected_token: str):
        self.expected_token = expected_token

    async def verify_token(self, token: str) -> AccessToken | None:
        if token == self.expected_token:
            return AccessToken(token=token, client_id="structurizr-dsl-mcp", scopes=["user"])
        return None
