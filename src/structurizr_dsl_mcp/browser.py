"""Launch or attach to a Chromium instance showing the Structurizr UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from mcp.server.fastmcp.utilities.logging import get_logger

from structurizr_dsl_mcp.playwright_provider import ensure_playwright_available
from structurizr_dsl_mcp.processor import DslErrorProcessor
from structurizr_dsl_mcp.schema_types import BrowserSessionInfo

logger = get_logger(__name__)

# Structurizr renders parse failures into `.error` elements; re-emit the ones
# naming workspace.dsl as console errors so the console hook sees them.
DOM_ERROR_OBSERVER_SCRIPT = """
() => {
  if (window.__structurizrDslObserver) {
    return false;
  }
  const seen = new Set();
  const observer = new MutationObserver((mutations) => {
    for (const mutation of mutations) {
      if (mutation.type !== 'childList') {
        continue;
      }
      document.querySelectorAll('.error').forEach((element) => {
        const text = element.textContent;
        if (text && text.includes('workspace.dsl') && !seen.has(text)) {
          seen.add(text);
          console.error(text.trim());
        }
      });
    }
  });
  observer.observe(document.body, { childList: true, subtree: true });
  window.__structurizrDslObserver = observer;
  console.log('Structurizr DSL error monitor initialized');
  return true;
}
"""


class BrowserPageNotFoundError(LookupError):
    """No page in the attached browser shows the Structurizr UI."""

    def __init__(self, message: str, available_urls: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.available_urls = list(available_urls or [])


@dataclass
class BrowserSession:
    playwright: Any
    page: Any
    mode: str
    debug_url: str
    browser: Any = None
    context: Any = None
    closed: bool = field(default=False, init=False)

    @property
    def url(self) -> str:
        return str(getattr(self.page, "url", ""))

    def describe(self) -> BrowserSessionInfo:
        return {
            "mode": self.mode,
            "url": self.url,
            "debug_url": self.debug_url,
            "monitoring": not self.closed,
        }

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            if self.context is not None:
                await self.context.close()
            elif self.browser is not None:
                await self.browser.close()
        finally:
            await self.playwright.stop()
        logger.info("Closed %s browser session", self.mode)


def attach_console_monitor(page: Any, processor: DslErrorProcessor) -> None:
    """Forward the page's console messages to ``processor``."""

    def _on_console(message: Any) -> None:
        processor.handle_console_message(message.type, message.text)

    page.on("console", _on_console)


async def launch_browser(
    processor: DslErrorProcessor,
    *,
    url: str,
    debug_port: int,
    user_data_dir: Path,
    headless: bool = False,
) -> BrowserSession:
    """Start Chromium with remote debugging enabled and monitor its first page."""

    async_playwright = ensure_playwright_available()
    playwright = await async_playwright().start()
    try:
        user_data_dir.mkdir(parents=True, exist_ok=True)
        context = await playwright.chromium.launch_persistent_context(
            str(user_data_dir),
            headless=headless,
            args=[f"--remote-debugging-port={debug_port}"],
        )
        page = context.pages[0] if context.pages else await context.new_page()
        attach_console_monitor(page, processor)
        await page.goto(url, wait_until="networkidle")
        await page.evaluate(DOM_ERROR_OBSERVER_SCRIPT)
    except BaseException:
        await playwright.stop()
        raise

    logger.info("Browser launched and navigated to %s", url)
    return BrowserSession(
        playwright=playwright,
        page=page,
        mode="launched",
        debug_url=f"http://localhost:{debug_port}",
        context=context,
    )


async def connect_to_browser(
    processor: DslErrorProcessor,
    *,
    debug_port: int,
    structurizr_port: int,
) -> BrowserSession:
    """Attach over CDP and monitor the page served from ``localhost:<structurizr_port>``.

    Raises:
        BrowserPageNotFoundError: If the browser has no pages or none of them
            shows the Structurizr UI.
    """

    async_playwright = ensure_playwright_available()
    debug_url = f"http://localhost:{debug_port}"
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.connect_over_cdp(debug_url)
        pages = [page for context in browser.contexts for page in context.pages]
        if not pages:
            raise BrowserPageNotFoundError("No pages found in the browser")

        target = f"localhost:{structurizr_port}"
        page = next((candidate for candidate in pages if target in candidate.url), None)
        if page is None:
            raise BrowserPageNotFoundError(
                f"Structurizr page not found on port {structurizr_port}",
                [candidate.url for candidate in pages],
            )
        attach_console_monitor(page, processor)
        await page.evaluate(DOM_ERROR_OBSERVER_SCRIPT)
    except BaseException:
        await playwright.stop()
        raise

    logger.info("Connected to Structurizr page at %s", page.url)
    return BrowserSession(
        playwright=playwright,
        page=page,
        mode="connected",
        debug_url=debug_url,
        browser=browser,
    )


__all__ = [
    "BrowserPageNotFoundError",
    "BrowserSession",
    "DOM_ERROR_OBSERVER_SCRIPT",
    "attach_console_monitor",
    "connect_to_browser",
    "launch_browser",
]
