import argparse
import json
import os
import sys
from pathlib import Path

from structurizr_dsl_mcp.config import (
    ENV_AUTO_CONNECT,
    ENV_DEBUG_PORT,
    ENV_LOG_FILE,
    ENV_STRUCTURIZR_PORT,
)
from structurizr_dsl_mcp.ide_config import (
    cursor_config_path,
    install_cursor_config,
    mcp_servers_config,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="structurizr_dsl_mcp server")
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "sse", "http", "streamable-http", "streamable_http"],
        default="stdio",
        help=(
            "Transport method for the server. Accepts 'stdio', 'sse', 'http', "
            "or 'streamable-http' (with 'streamable_http' alias). Default is 'stdio'."
        ),
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host address for transport",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Host port for transport",
    )
    parser.add_argument(
        "--structurizr-port",
        type=int,
        default=None,
        help="Port the Structurizr UI is served on (default 8080)",
    )
    parser.add_argument(
        "--debug-port",
        type=int,
        default=None,
        help="Chrome remote-debugging port (default 9222)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Path of the JSON file DSL errors are recorded in",
    )
    parser.add_argument(
        "--auto-connect",
        action="store_true",
        help="Attach to the Chrome remote-debugging port on start-up and monitor the Structurizr page",
    )
    parser.add_argument(
        "--print-cursor-config",
        action="store_true",
        help="Print the Cursor mcpServers entry for this server and exit",
    )
    parser.add_argument(
        "--install-cursor-config",
        action="store_true",
        help="Add this server to the Cursor config (a backup is written first) and exit",
    )
    parser.add_argument(
        "--cursor-config",
        type=str,
        default=None,
        help="Cursor config.json to install into (defaults to the platform location)",
    )
    return parser


def apply_env_overrides(args: argparse.Namespace, environ=None) -> None:
    """Export CLI overrides so the server lifespan picks them up."""
    env = os.environ if environ is None else environ
    if args.structurizr_port is not None:
        env[ENV_STRUCTURIZR_PORT] = str(args.structurizr_port)
    if args.debug_port is not None:
        env[ENV_DEBUG_PORT] = str(args.debug_port)
    if args.log_file:
        env[ENV_LOG_FILE] = args.log_file
    if args.auto_connect:
        env[ENV_AUTO_CONNECT] = "1"


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.print_cursor_config:
        print(json.dumps(mcp_servers_config(), indent=2))
        return 0

    if args.install_cursor_config:
        config_path = (
            Path(args.cursor_config).expanduser()
            if args.cursor_config
            else cursor_config_path()
        )
        try:
            backup_path = install_cursor_config(config_path)
        except (OSError, ValueError) as exc:
            print(f"Failed to update Cursor configuration: {exc}", file=sys.stderr)
            print("Add this entry to your Cursor config manually:", file=sys.stderr)
            print(json.dumps(mcp_servers_config(), indent=2), file=sys.stderr)
            return 1
        print(f"Cursor configuration updated: {config_path}")
        print(f"Backup saved to: {backup_path}")
        return 0

    apply_env_overrides(args)

    from structurizr_dsl_mcp.server import mcp

    mcp.settings.host = args.host
    mcp.settings.port = args.port

    # Normalize transport aliases for FastMCP
    transport = args.transport
    if transport in {"http", "streamable_http"}:
        transport = "streamable-http"

    mcp.run(transport=transport)
    return 0
