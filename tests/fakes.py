"""In-memory stand-ins for the playwright async objects the browser layer touches."""

from __future__ import annotations

from types import SimpleNamespace


class FakePage:
    def __init__(self, url: str = "about:blank") -> None:
        self.url = url
        self.handlers: dict[str, list] = {}
        self.evaluated: list[str] = []
        self.goto_calls: list[tuple[str, str]] = []

    def on(self, event, callback):
        self.handlers.setdefault(event, []).append(callback)

    def emit_console(self, level: str, text: str) -> None:
        message = SimpleNamespace(type=level, text=text)
        for callback in self.handlers.get("console", []):
            callback(message)

    async def goto(self, url, wait_until=None):
        self.goto_calls.append((url, wait_until))
        self.url = url

    async def evaluate(self, script):
        self.evaluated.append(script)
        return True


class FakeContext:
    def __init__(self, pages=None) -> None:
        self.pages = list(pages or [])
        self.closed = False

    async def new_page(self):
        page = FakePage()
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, contexts) -> None:
        self.contexts = list(contexts)
        self.closed = False

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, *, context=None, browser=None, error=None) -> None:
        self.context = context or FakeContext()
        self.browser = browser
        self.error = error
        self.launch_calls: list[dict] = []
        self.connect_calls: list[str] = []

    async def launch_persistent_context(self, user_data_dir, **kwargs):
        self.launch_calls.append({"user_data_dir": user_data_dir, **kwargs})
        if self.error is not None:
            raise self.error
        return self.context

    async def connect_over_cdp(self, endpoint_url):
        self.connect_calls.append(endpoint_url)
        if self.error is not None:
            raise self.error
        return self.browser


class FakePlaywright:
    def __init__(self, chromium: FakeChromium) -> None:
        self.chromium = chromium
        self.stopped = False

    async def start(self):
        return self

    async def stop(self):
        self.stopped = True


def install_fake_playwright(monkeypatch, chromium: FakeChromium) -> FakePlaywright:
    """Point the browser module at a fake ``async_playwright`` factory."""
    from structurizr_dsl_mcp import browser

    playwright = FakePlaywright(chromium)
    monkeypatch.setattr(browser, "ensure_playwright_available", lambda: (lambda: playwright))
    return playwright
