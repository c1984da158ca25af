"""Environment-driven settings for the Structurizr DSL MCP server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_LOG_FILE_NAME = "structurizr-dsl-errors.json"
DEFAULT_STRUCTURIZR_PORT = 8080
DEFAULT_DEBUG_PORT = 9222
DEFAULT_MAX_ERRORS = 100

ENV_LOG_DIR = "STRUCTURIZR_DSL_LOG_DIR"
ENV_LOG_FILE = "STRUCTURIZR_DSL_LOG_FILE"
ENV_STRUCTURIZR_PORT = "STRUCTURIZR_PORT"
ENV_DEBUG_PORT = "STRUCTURIZR_DEBUG_PORT"
ENV_BROWSER_DATA_DIR = "STRUCTURIZR_BROWSER_DATA_DIR"
ENV_MAX_ERRORS = "STRUCTURIZR_DSL_MAX_ERRORS"
ENV_AUTH_TOKEN = "STRUCTURIZR_DSL_MCP_TOKEN"
ENV_AUTO_CONNECT = "STRUCTURIZR_AUTO_CONNECT"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    log_file: Path
    browser_user_data_dir: Path
    structurizr_port: int = DEFAULT_STRUCTURIZR_PORT
    debug_port: int = DEFAULT_DEBUG_PORT
    max_errors: int = DEFAULT_MAX_ERRORS
    auto_connect: bool = False

    @property
    def structurizr_url(self) -> str:
        return f"http://localhost:{self.structurizr_port}"

    @property
    def debug_url(self) -> str:
        return f"http://localhost:{self.debug_port}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        log_dir = Path(_env_str(env, ENV_LOG_DIR) or "logs").expanduser().resolve()
        log_file_value = _env_str(env, ENV_LOG_FILE)
        log_file = (
            Path(log_file_value).expanduser().resolve()
            if log_file_value
            else log_dir / DEFAULT_LOG_FILE_NAME
        )
        data_dir_value = _env_str(env, ENV_BROWSER_DATA_DIR)
        data_dir = (
            Path(data_dir_value).expanduser().resolve()
            if data_dir_value
            else log_dir.parent / "chrome-data"
        )

        return cls(
            log_file=log_file,
            browser_user_data_dir=data_dir,
            structurizr_port=_env_int(env, ENV_STRUCTURIZR_PORT, DEFAULT_STRUCTURIZR_PORT),
            debug_port=_env_int(env, ENV_DEBUG_PORT, DEFAULT_DEBUG_PORT),
            max_errors=_env_int(env, ENV_MAX_ERRORS, DEFAULT_MAX_ERRORS),
            auto_connect=(_env_str(env, ENV_AUTO_CONNECT) or "").lower() in _TRUE_VALUES,
        )


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name, "").strip()
    return value or None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _env_str(env, name)
    if raw is None:
        return default
    try:
        value = int(raw, 10)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


__all__ = [
    "DEFAULT_DEBUG_PORT",
    "DEFAULT_LOG_FILE_NAME",
    "DEFAULT_MAX_ERRORS",
    "DEFAULT_STRUCTURIZR_PORT",
    "ENV_AUTH_TOKEN",
    "ENV_AUTO_CONNECT",
    "ENV_BROWSER_DATA_DIR",
    "ENV_DEBUG_PORT",
    "ENV_LOG_DIR",
    "ENV_LOG_FILE",
    "ENV_MAX_ERRORS",
    "ENV_STRUCTURIZR_PORT",
    "Settings",
]
