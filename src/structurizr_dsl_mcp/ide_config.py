"""Register the server in the Cursor IDE configuration."""

from __future__ import annotations

import json
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

SERVER_KEY = "structurizr-dsl-debugger"


def cursor_config_path(
    *,
    platform: Optional[str] = None,
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Return where Cursor keeps its ``config.json`` on this platform."""

    platform = platform or sys.platform
    home = home or Path.home()
    env = os.environ if environ is None else environ

    if platform == "darwin":
        return home / "Library" / "Application Support" / "Cursor" / "config.json"
    if platform == "win32":
        appdata = env.get("APPDATA")
        base = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return base / "Cursor" / "config.json"
    return home / ".config" / "Cursor" / "config.json"


def server_entry(python_executable: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "command",
        "command": python_executable or sys.executable,
        "args": ["-m", "structurizr_dsl_mcp"],
    }


def mcp_servers_config(python_executable: Optional[str] = None) -> Dict[str, Any]:
    return {"mcpServers": {SERVER_KEY: server_entry(python_executable)}}


def merge_server_config(
    existing: Mapping[str, Any], python_executable: Optional[str] = None
) -> Dict[str, Any]:
    """Return ``existing`` with our ``mcpServers`` entry added or replaced."""

    merged = dict(existing)
    servers = existing.get("mcpServers")
    merged_servers = dict(servers) if isinstance(servers, Mapping) else {}
    merged_servers[SERVER_KEY] = server_entry(python_executable)
    merged["mcpServers"] = merged_servers
    return merged


def install_cursor_config(
    config_path: Path, python_executable: Optional[str] = None
) -> Path:
    """Merge the server entry into ``config_path`` and return the backup path.

    Raises:
        FileNotFoundError: If the Cursor config file does not exist.
        ValueError: If the config file is not a JSON object.
    """

    if not config_path.is_file():
        raise FileNotFoundError(f"Cursor config not found at {config_path}")

    existing = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(existing, dict):
        raise ValueError(f"Cursor config at {config_path} is not a JSON object")

    backup_path = config_path.with_name(
        f"{config_path.name}.backup-{int(time.time() * 1000)}"
    )
    backup_path.write_text(json.dumps(existing, indent=2), encoding="utf-8")

    merged = merge_server_config(existing, python_executable)
    config_path.write_text(json.dumps(merged, indent=2), encoding="utf-8")
    return backup_path


__all__ = [
    "SERVER_KEY",
    "cursor_config_path",
    "install_cursor_config",
    "mcp_servers_config",
    "merge_server_config",
    "server_entry",
]
