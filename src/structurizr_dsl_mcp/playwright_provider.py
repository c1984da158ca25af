from __future__ import annotations

"""Helpers for working with the optional `playwright` dependency."""

from typing import Any, Callable


class PlaywrightNotInstalledError(RuntimeError):
    """Raised when browser tooling is used without `playwright` installed."""

    def __init__(self, message: str | None = None) -> None:
        if message is None:
            message = (
                "`playwright` is not installed. Install it with "
                "`pip install 'structurizr-dsl-mcp[browser]'` and run "
                "`playwright install chromium` to enable browser monitoring."
            )
        super().__init__(message)


try:  # pragma: no cover - import guarded for missing optional dependency
    from playwright.async_api import async_playwright as _async_playwright
except ModuleNotFoundError as exc:  # pragma: no cover - runtime fallback when missing
    _PLAYWRIGHT_IMPORT_ERROR: ModuleNotFoundError | None = exc
    _async_playwright = None  # type: ignore[assignment]
else:  # pragma: no cover - exercised in environments with playwright installed
    _PLAYWRIGHT_IMPORT_ERROR = None


def is_playwright_available() -> bool:
    return _PLAYWRIGHT_IMPORT_ERROR is None


def ensure_playwright_available() -> Callable[[], Any]:
    """Return ``playwright.async_api.async_playwright`` or raise if it is missing."""

    if _PLAYWRIGHT_IMPORT_ERROR is not None or _async_playwright is None:
        raise PlaywrightNotInstalledError() from _PLAYWRIGHT_IMPORT_ERROR
    return _async_playwright


__all__ = [
    "PlaywrightNotInstalledError",
    "ensure_playwright_available",
    "is_playwright_available",
]
