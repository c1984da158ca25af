from __future__ import annotations

import json
import os
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from mcp.server.auth.settings import AuthSettings
from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger
from mcp.types import ToolAnnotations

from structurizr_dsl_mcp.browser import (
    BrowserPageNotFoundError,
    BrowserSession,
    connect_to_browser,
    launch_browser,
)
from structurizr_dsl_mcp.config import ENV_AUTH_TOKEN, Settings
from structurizr_dsl_mcp.error_log import DiagnosticLog, DiagnosticLogWriteError
from structurizr_dsl_mcp.extractor import ParseFailure
from structurizr_dsl_mcp.instructions import INSTRUCTIONS
from structurizr_dsl_mcp.playwright_provider import (
    PlaywrightNotInstalledError,
    is_playwright_available,
)
from structurizr_dsl_mcp.processor import DslErrorProcessor
from structurizr_dsl_mcp.response_formatter import (
    JSON_RESPONSE_FORMAT,
    apply_character_limit,
    build_markdown_summary,
    extend_structured_with_truncation,
    mcp_result,
    normalize_response_format,
)
from structurizr_dsl_mcp.schema_types import (
    ERROR_BAD_REQUEST,
    ERROR_BROWSER_NOT_FOUND,
    ERROR_CLIENT_NOT_READY,
    ERROR_IO_FAILURE,
    ERROR_PARSE_FAILURE,
    ErrorLogSummary,
)
from structurizr_dsl_mcp.tool_inputs import (
    BrowserStatusInput,
    ClearDslErrorsInput,
    ConnectToBrowserInput,
    FixDslErrorInput,
    GetDslErrorsInput,
    LaunchBrowserInput,
    ProcessDslErrorInput,
    ToolSpecInput,
)
from structurizr_dsl_mcp.tool_spec import (
    TOOL_ANNOTATIONS,
    TOOL_DESCRIPTIONS,
    TOOL_SPEC_VERSION,
    build_tool_spec,
)
from structurizr_dsl_mcp.utils import (
    OptionalTokenVerifier,
    format_diagnostic,
    format_diagnostic_summary,
    format_fix_advice,
    sanitize_path_label,
)


logger = get_logger(__name__)


TOOL_SPEC_RESOURCE_URI = f"tool-spec://structurizr_dsl_mcp/{TOOL_SPEC_VERSION}.json"


# Server and context
class AppContext:
    settings: Settings
    error_log: DiagnosticLog
    processor: DslErrorProcessor
    browser_session: BrowserSession | None

    def __init__(
        self,
        *,
        settings: Settings,
        error_log: DiagnosticLog,
        processor: DslErrorProcessor,
        browser_session: BrowserSession | None = None,
    ) -> None:
        self.settings = settings
        self.error_log = error_log
        self.processor = processor
        self.browser_session = browser_session


def build_app_context(settings: Settings) -> AppContext:
    """Wire the error log and processor for ``settings``."""
    error_log = DiagnosticLog(settings.log_file, max_recent=settings.max_errors)
    try:
        error_log.ensure_exists()
    except DiagnosticLogWriteError as exc:
        # Tools surface the write failure on first use.
        logger.warning("Could not initialise DSL error log: %s", exc)
    return AppContext(
        settings=settings,
        error_log=error_log,
        processor=DslErrorProcessor(error_log),
    )


async def _close_browser_session(lifespan: AppContext) -> None:
    session = getattr(lifespan, "browser_session", None)
    if session is None:
        return
    lifespan.browser_session = None
    try:
        await session.close()
    except Exception as exc:
        logger.warning("Closing %s browser session failed: %s", session.mode, exc)


async def _auto_connect(context: AppContext) -> None:
    settings = context.settings
    try:
        context.browser_session = await connect_to_browser(
            context.processor,
            debug_port=settings.debug_port,
            structurizr_port=settings.structurizr_port,
        )
    except Exception as exc:  # start-up attach is best effort
        logger.warning(
            "Auto-connect to %s failed: %s; call connectToBrowser once Chrome is running",
            settings.debug_url,
            exc,
        )


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    context = build_app_context(Settings.from_env())
    logger.info("Recording Structurizr DSL errors to %s", context.settings.log_file)
    if context.settings.auto_connect:
        await _auto_connect(context)
    try:
        yield context
    finally:
        await _close_browser_session(context)


mcp_kwargs: Dict[str, Any] = dict(
    name="structurizr_dsl_mcp",
    instructions=INSTRUCTIONS,
    lifespan=app_lifespan,
)
if is_playwright_available():
    mcp_kwargs["dependencies"] = ["playwright"]

auth_token = os.environ.get(ENV_AUTH_TOKEN)
if auth_token:
    mcp_kwargs["auth"] = AuthSettings(
        issuer_url="http://localhost/dummy-issuer",
        resource_server_url="http://localhost/dummy-resource",
    )
    mcp_kwargs["token_verifier"] = OptionalTokenVerifier(auth_token)

mcp = FastMCP(**mcp_kwargs)


def _annotations(name: str) -> ToolAnnotations:
    return ToolAnnotations(**TOOL_ANNOTATIONS[name])


def _set_response_format_hint(ctx: Context | None, response_format: Optional[str]) -> None:
    """Stash the caller's preferred response format on the request context."""

    if ctx is None:
        return

    request_context = getattr(ctx, "request_context", None)
    if request_context is not None:
        setattr(request_context, "_response_format_hint", response_format)


def _response_format_from_ctx(ctx: Context | None) -> Optional[str]:
    request_context = getattr(ctx, "request_context", None) if ctx is not None else None
    if request_context is None:
        return None
    return getattr(request_context, "_response_format_hint", None)


def _text_item(text: str) -> Dict[str, str]:
    return {"type": "text", "text": text}


def _resource_item(uri: str, text: str, mime_type: str = "text/plain") -> Dict[str, Any]:
    return {
        "type": "resource",
        "resource": {"uri": uri, "mimeType": mime_type, "text": text},
    }


def _json_item(structured: Dict[str, Any]) -> Dict[str, Any]:
    """Return a JSON resource content item mirroring structuredContent.

    Placed first in the content array so generic MCP clients can read the
    machine-readable result without special handling.
    """
    try:
        json_text = json.dumps(structured, ensure_ascii=False)
    except (TypeError, ValueError):
        json_text = "{}"
    return _resource_item(
        f"file:///_mcp_structured_{uuid.uuid4().hex}.json",
        json_text,
        mime_type="application/json",
    )


def _split_summary(items: List[Dict[str, Any]]) -> tuple[Dict[str, Any] | None, List[Dict[str, Any]]]:
    summary_item: Dict[str, Any] | None = None
    remaining: List[Dict[str, Any]] = []
    for item in items:
        if summary_item is None and item.get("type") == "text":
            summary_item = item
            continue
        remaining.append(item)
    return summary_item, remaining


def success_result(
    *,
    summary: str,
    structured: Dict[str, Any] | None,
    start_time: float,
    ctx: Context | None = None,
    content: List[Dict[str, Any]] | None = None,
    response_format: str | None = None,
) -> Dict[str, Any]:
    # Avoid double-reporting the summary when callers include it in `content`.
    additional_items = list(content or [])
    if additional_items:
        first = additional_items[0]
        if first.get("type") == "text" and first.get("text") == summary:
            additional_items = additional_items[1:]

    if response_format is None:
        response_format = _response_format_from_ctx(ctx)

    summary_markdown = build_markdown_summary(summary)
    limited_items, truncated, truncated_sections = apply_character_limit(
        [_text_item(summary_markdown), *additional_items]
    )
    structured_payload = extend_structured_with_truncation(
        structured,
        truncated=truncated,
        truncated_sections=truncated_sections,
    )
    summary_item, remaining_items = _split_summary(limited_items)

    if normalize_response_format(response_format) == JSON_RESPONSE_FORMAT:
        if structured_payload is not None:
            structured_payload.setdefault("_meta", {}).setdefault("summary", summary)
            structured_for_json = structured_payload
        else:
            structured_for_json = {"summary": summary}
        return mcp_result(
            content=[_json_item(structured_for_json), *remaining_items],
            structured=structured_for_json,
        )

    return mcp_result(
        content=[summary_item or _text_item(summary_markdown), *remaining_items],
        structured=structured_payload,
    )


def _derive_error_hints(
    *,
    code: str | None,
    details: Dict[str, Any] | None,
    ctx: Context | None,
) -> List[str]:
    hints: List[str] = []

    def _append(text: str | None) -> None:
        candidate = (text or "").strip()
        if candidate and candidate not in hints:
            hints.append(candidate)

    lifespan = None
    if ctx is not None:
        lifespan = getattr(ctx.request_context, "lifespan_context", None)
    settings: Settings | None = getattr(lifespan, "settings", None) if lifespan else None
    detail_keys = details.keys() if isinstance(details, dict) else []

    if code == ERROR_PARSE_FAILURE:
        _append(
            "Pass the full console line, starting at `workspace.dsl:` and including "
            "`at line <N> of <file>:`."
        )
        _append("Errors in any other format are not Structurizr DSL syntax errors and are not recorded.")

    if code == ERROR_CLIENT_NOT_READY:
        if "dependency" in detail_keys:
            _append(
                "Install browser support with `pip install 'structurizr-dsl-mcp[browser]'` "
                "and run `playwright install chromium`."
            )
        else:
            debug_port = settings.debug_port if settings else 9222
            _append(
                f"Start Chrome with `--remote-debugging-port={debug_port}` or call "
                "`launchBrowser` to open one."
            )

    if code == ERROR_BROWSER_NOT_FOUND:
        port = (details or {}).get("structurizr_port") or (
            settings.structurizr_port if settings else 8080
        )
        _append(
            f"Open the Structurizr UI (http://localhost:{port}) in the debugged browser, "
            "or pass `structurizrPort` matching the port it is served on."
        )

    if code == ERROR_IO_FAILURE:
        _append(
            "Check that the DSL error log location is writable, or point "
            "`STRUCTURIZR_DSL_LOG_FILE` somewhere else and restart the server."
        )

    if code == ERROR_BAD_REQUEST:
        _append("Call `getToolSpec` to review required parameters and defaults for this tool.")

    if not hints:
        _append("If the problem persists, restart the MCP server and try again.")

    return hints


def error_result(
    *,
    message: str,
    start_time: float,
    ctx: Context | None = None,
    code: str | None = None,
    category: str | None = None,
    details: Dict[str, Any] | None = None,
    hints: List[str] | None = None,
    response_format: str | None = None,
) -> Dict[str, Any]:
    structured: Dict[str, Any] = {"message": message}
    if code:
        structured["code"] = code
    if category:
        structured["category"] = category
    if details:
        structured["details"] = details

    combined_hints: List[str] = []
    for source in (hints or [], _derive_error_hints(code=code, details=details, ctx=ctx)):
        for hint in source:
            if hint not in combined_hints:
                combined_hints.append(hint)
    if combined_hints:
        structured["hints"] = combined_hints

    detail_bullets: List[str] = []
    if code:
        detail_bullets.append(f"Code: `{code}`")
    if category:
        detail_bullets.append(f"Category: {category}")
    detail_bullets.extend(f"Hint: {hint}" for hint in combined_hints)

    if response_format is None:
        response_format = _response_format_from_ctx(ctx)

    summary_markdown = build_markdown_summary(f"Error: {message}", detail_bullets)
    limited_items, truncated, truncated_sections = apply_character_limit(
        [_text_item(summary_markdown)]
    )
    structured_payload = extend_structured_with_truncation(
        structured,
        truncated=truncated,
        truncated_sections=truncated_sections,
    ) or {}
    summary_item, other_items = _split_summary(limited_items)

    if normalize_response_format(response_format) == JSON_RESPONSE_FORMAT:
        structured_payload.setdefault("_meta", {}).setdefault("summary", f"Error: {message}")
        return mcp_result(
            content=[_json_item(structured_payload), *other_items],
            structured=structured_payload,
            is_error=True,
        )

    return mcp_result(
        content=[summary_item or _text_item(summary_markdown), *other_items],
        structured=structured_payload,
        is_error=True,
    )


def _log_label(lifespan: AppContext) -> str:
    return sanitize_path_label(str(lifespan.error_log.path))


def _write_failure(exc: DiagnosticLogWriteError, lifespan: AppContext, **kwargs: Any) -> Dict[str, Any]:
    return error_result(
        message=str(exc),
        code=ERROR_IO_FAILURE,
        details={"log_file": _log_label(lifespan), "error": str(exc.cause)},
        **kwargs,
    )


# DSL error tools
@mcp.tool(
    "processDslError",
    description=TOOL_DESCRIPTIONS["processDslError"],
    annotations=_annotations("processDslError"),
)
def process_dsl_error(ctx: Context, params: ProcessDslErrorInput) -> Any:
    """Parse a Structurizr DSL error line and record it in the error log.

    Parameters
    ----------
    params : ProcessDslErrorInput
        - ``error_text`` (str, alias ``errorText``): Raw console line of the form
          ``workspace.dsl: <message> at line <N> of <file>:<context>``.
        - ``response_format`` (Optional[str]): ``markdown`` (default) or ``json``.

    Returns
    -------
    Diagnostic
        ``structuredContent.diagnostic`` holds the persisted record (message,
        file, 1-based line, column 1, context, suggestion, timestamp and the
        constant ``source``/``severity``/``code`` tags).

    Error handling
    --------------
    - Text in any other shape returns ``parse_failure``; the log is untouched.
    - A log that cannot be written returns ``io_failure``.
    """
    started = time.perf_counter()
    response_format = params.response_format
    _set_response_format_hint(ctx, response_format)
    lifespan: AppContext = ctx.request_context.lifespan_context

    try:
        result = lifespan.processor.process(params.error_text)
    except DiagnosticLogWriteError as exc:
        return _write_failure(exc, lifespan, start_time=started, ctx=ctx)

    if isinstance(result, ParseFailure):
        return error_result(
            message=(
                "Failed to parse DSL error format. Please ensure the error text follows "
                "the expected Structurizr DSL error format."
            ),
            code=ERROR_PARSE_FAILURE,
            details={"reason": result.reason},
            start_time=started,
            ctx=ctx,
        )

    structured: Dict[str, Any] = {"diagnostic": result.to_record()}
    if lifespan.error_log.last_warning:
        structured["warning"] = lifespan.error_log.last_warning

    summary = f"DSL error processed: line {result.line} of {result.file}"
    return success_result(
        summary=summary,
        structured=structured,
        start_time=started,
        ctx=ctx,
        content=[_text_item(format_diagnostic(result))],
    )


@mcp.tool(
    "getDslErrors",
    description=TOOL_DESCRIPTIONS["getDslErrors"],
    annotations=_annotations("getDslErrors"),
)
def get_dsl_errors(ctx: Context, params: GetDslErrorsInput) -> Any:
    """Return the newest recorded DSL errors, oldest first.

    ``count`` is clamped to the configured maximum; with ``unique`` the
    listing keeps only the newest report of each file/line/message.
    Unreadable or corrupt logs are reported as empty with a ``warning``.
    """
    started = time.perf_counter()
    response_format = params.response_format
    _set_response_format_hint(ctx, response_format)
    lifespan: AppContext = ctx.request_context.lifespan_context
    error_log = lifespan.error_log

    try:
        if params.unique:
            diagnostics = error_log.unique_recent(params.count)
        else:
            diagnostics = error_log.recent(params.count)
    except (TypeError, ValueError) as exc:
        return error_result(
            message=str(exc),
            code=ERROR_BAD_REQUEST,
            details={"count": params.count},
            start_time=started,
            ctx=ctx,
        )

    summary_meta: ErrorLogSummary = {
        "count": len(diagnostics),
        "requested": params.count,
        "unique": params.unique,
        "log_file": _log_label(lifespan),
    }
    if error_log.last_warning:
        summary_meta["warning"] = error_log.last_warning

    structured: Dict[str, Any] = {
        "summary": summary_meta,
        "errors": [diag.to_record() for diag in diagnostics],
    }

    if not diagnostics:
        return success_result(
            summary="No DSL errors found in the log",
            structured=structured,
            start_time=started,
            ctx=ctx,
        )

    listing = "\n".join(format_diagnostic_summary(diagnostics))
    details = "\n\n".join(format_diagnostic(diag) for diag in diagnostics)
    return success_result(
        summary=f"Found {len(diagnostics)} recent DSL errors",
        structured=structured,
        start_time=started,
        ctx=ctx,
        content=[_text_item(listing), _text_item(details)],
    )


@mcp.tool(
    "clearDslErrors",
    description=TOOL_DESCRIPTIONS["clearDslErrors"],
    annotations=_annotations("clearDslErrors"),
)
def clear_dsl_errors(ctx: Context, params: ClearDslErrorsInput) -> Any:
    """Empty the DSL error log."""
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)
    lifespan: AppContext = ctx.request_context.lifespan_context

    try:
        lifespan.error_log.clear()
    except DiagnosticLogWriteError as exc:
        return _write_failure(exc, lifespan, start_time=started, ctx=ctx)

    return success_result(
        summary="DSL error log cleared successfully",
        structured={"cleared": True, "log_file": _log_label(lifespan)},
        start_time=started,
        ctx=ctx,
    )


@mcp.tool(
    "fixDslError",
    description=TOOL_DESCRIPTIONS["fixDslError"],
    annotations=_annotations("fixDslError"),
)
def fix_dsl_error(ctx: Context, params: FixDslErrorInput) -> Any:
    """Return advisory text for a fix; edits to workspace.dsl stay manual."""
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)
    advice = format_fix_advice(params.line, params.fix)
    return success_result(
        summary=f"Suggested fix for line {params.line}",
        structured={"line": params.line, "fix": params.fix, "applied": False},
        start_time=started,
        ctx=ctx,
        content=[_text_item(advice)],
    )


# Browser tools
@mcp.tool(
    "launchBrowser",
    description=TOOL_DESCRIPTIONS["launchBrowser"],
    annotations=_annotations("launchBrowser"),
)
async def launch_browser_tool(ctx: Context, params: LaunchBrowserInput) -> Any:
    """Launch Chromium on the Structurizr UI and capture its DSL errors.

    Any session opened earlier by this server is closed first, since the new
    browser reuses the same remote-debugging port and profile directory.
    """
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)
    lifespan: AppContext = ctx.request_context.lifespan_context
    settings = lifespan.settings
    structurizr_port = params.structurizr_port or settings.structurizr_port
    url = params.url or f"http://localhost:{structurizr_port}"

    await _close_browser_session(lifespan)
    try:
        session = await launch_browser(
            lifespan.processor,
            url=url,
            debug_port=settings.debug_port,
            user_data_dir=settings.browser_user_data_dir,
            headless=params.headless,
        )
    except PlaywrightNotInstalledError as exc:
        return error_result(
            message=str(exc),
            code=ERROR_CLIENT_NOT_READY,
            details={"dependency": "playwright"},
            start_time=started,
            ctx=ctx,
        )
    except Exception as exc:
        logger.error("Error launching browser: %s", exc)
        return error_result(
            message=f"Failed to launch browser: {exc}",
            code=ERROR_CLIENT_NOT_READY,
            details={"url": url, "debug_port": settings.debug_port},
            start_time=started,
            ctx=ctx,
        )

    lifespan.browser_session = session
    text = (
        f"Browser launched and navigated to {url}\n"
        "Note: Error monitoring has been set up for Structurizr DSL errors"
    )
    return success_result(
        summary=f"Browser launched and navigated to {url}",
        structured={"session": session.describe()},
        start_time=started,
        ctx=ctx,
        content=[_text_item(text)],
    )


@mcp.tool(
    "connectToBrowser",
    description=TOOL_DESCRIPTIONS["connectToBrowser"],
    annotations=_annotations("connectToBrowser"),
)
async def connect_to_browser_tool(ctx: Context, params: ConnectToBrowserInput) -> Any:
    """Attach to a running browser and capture DSL errors from its Structurizr page.

    The previous session is only replaced once the new one is attached.
    """
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)
    lifespan: AppContext = ctx.request_context.lifespan_context
    structurizr_port = params.structurizr_port or lifespan.settings.structurizr_port

    try:
        session = await connect_to_browser(
            lifespan.processor,
            debug_port=params.debug_port,
            structurizr_port=structurizr_port,
        )
    except PlaywrightNotInstalledError as exc:
        return error_result(
            message=str(exc),
            code=ERROR_CLIENT_NOT_READY,
            details={"dependency": "playwright"},
            start_time=started,
            ctx=ctx,
        )
    except BrowserPageNotFoundError as exc:
        return error_result(
            message=str(exc),
            code=ERROR_BROWSER_NOT_FOUND,
            details={
                "structurizr_port": structurizr_port,
                "available_pages": exc.available_urls,
            },
            start_time=started,
            ctx=ctx,
        )
    except Exception as exc:
        logger.error("Error connecting to browser: %s", exc)
        return error_result(
            message=f"Failed to connect to browser: {exc}",
            code=ERROR_CLIENT_NOT_READY,
            details={"debug_url": f"http://localhost:{params.debug_port}"},
            start_time=started,
            ctx=ctx,
        )

    await _close_browser_session(lifespan)
    lifespan.browser_session = session
    text = (
        f"Connected to Structurizr page at {session.url}\n"
        "Note: Error monitoring has been set up for DSL errors"
    )
    return success_result(
        summary=f"Connected to Structurizr page at {session.url}",
        structured={"session": session.describe()},
        start_time=started,
        ctx=ctx,
        content=[_text_item(text)],
    )


@mcp.tool(
    "checkBrowserStatus",
    description=TOOL_DESCRIPTIONS["checkBrowserStatus"],
    annotations=_annotations("checkBrowserStatus"),
)
def check_browser_status(ctx: Context, params: BrowserStatusInput) -> Any:
    """Report whether a browser page is being monitored for DSL errors."""
    started = time.perf_counter()
    _set_response_format_hint(ctx, params.response_format)
    lifespan: AppContext = ctx.request_context.lifespan_context
    settings = lifespan.settings
    session = lifespan.browser_session
    playwright_available = is_playwright_available()

    structured: Dict[str, Any] = {
        "connected": session is not None,
        "session": session.describe() if session is not None else None,
        "playwright_available": playwright_available,
        "structurizr_url": settings.structurizr_url,
        "debug_url": settings.debug_url,
    }

    if session is not None:
        summary = f"Monitoring {session.url} ({session.mode})"
        text = f"Browser session: {session.mode}\nPage: {session.url}\nDebugger: {session.debug_url}"
    else:
        summary = "No browser session is being monitored"
        if playwright_available:
            text = "Call `connectToBrowser` or `launchBrowser` to start capturing DSL errors."
        else:
            text = (
                "Browser monitoring needs `pip install 'structurizr-dsl-mcp[browser]'` "
                "and `playwright install chromium`."
            )
    return success_result(
        summary=summary,
        structured=structured,
        start_time=started,
        ctx=ctx,
        content=[_text_item(text)],
    )


def _render_tool_spec_payload() -> tuple[Dict[str, Any], str]:
    spec = build_tool_spec()
    spec_json = json.dumps(spec, indent=2, ensure_ascii=False)
    return spec, spec_json


@mcp.tool(
    "getToolSpec",
    description=TOOL_DESCRIPTIONS["getToolSpec"],
    annotations=_annotations("getToolSpec"),
)
def tool_spec(ctx: Context, params: ToolSpecInput) -> Any:
    """Return the published tool specification with a JSON resource attached."""
    _set_response_format_hint(ctx, params.response_format)
    started = time.perf_counter()
    spec, spec_json = _render_tool_spec_payload()
    summary = "Structurizr DSL MCP tool specification ready."
    content_items = [
        _text_item(summary),
        _resource_item(TOOL_SPEC_RESOURCE_URI, spec_json, mime_type="application/json"),
    ]
    return success_result(
        summary=summary,
        structured=spec,
        content=content_items,
        start_time=started,
        ctx=ctx,
    )


@mcp.resource(
    TOOL_SPEC_RESOURCE_URI,
    name="tool_spec",
    description="Structured metadata for all Structurizr DSL MCP tools, including schemas and annotations.",
    mime_type="application/json",
)
def tool_spec_resource() -> str:
    _, spec_json = _render_tool_spec_payload()
    return spec_json


if __name__ == "__main__":
    mcp.run()
