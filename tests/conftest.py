from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

DYNAMIC_VIEW_ERROR = (
    "workspace.dsl: Unexpected tokens (expected: include, exclude, autolayout, "
    "default, animation, title, description, properties) at line 776 of "
    '/usr/local/structurizr/workspace.dsl: dynamic "ErrorHandlingFlow" {'
)

RELATIONSHIP_ERROR = (
    "workspace.dsl: Unknown relationship type at line 42 of "
    "/usr/local/structurizr/workspace.dsl: api -> db Reads"
)


def make_error_line(message: str, line: int, file: str = "/w/workspace.dsl", context: str = "x") -> str:
    return f"workspace.dsl: {message} at line {line} of {file}: {context}"


def make_settings(tmp_path: Path, **overrides):
    from structurizr_dsl_mcp.config import Settings

    values = {
        "log_file": tmp_path / "logs" / "structurizr-dsl-errors.json",
        "browser_user_data_dir": tmp_path / "chrome-data",
    }
    values.update(overrides)
    return Settings(**values)


def make_ctx(lifespan) -> SimpleNamespace:
    request_context = SimpleNamespace(lifespan_context=lifespan)
    return SimpleNamespace(request_context=request_context)


__all__ = [
    "DYNAMIC_VIEW_ERROR",
    "RELATIONSHIP_ERROR",
    "make_ctx",
    "make_error_line",
    "make_settings",
]
