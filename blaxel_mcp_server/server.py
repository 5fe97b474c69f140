#!/usr/bin/env python3
"""Blaxel MCP Server — tool endpoint for the Blaxel management API.

Exposes workspace resources (agents, MCP servers, model APIs, sandboxes, jobs,
integrations, users, service accounts) as MCP tools, plus local tools that
drive the ``bl`` CLI for project scaffolding and deployment.

Transport: stdio. Stdout carries the MCP protocol, so logs go to
``$LOG_DIR/mcp-server.log`` unless ``--log-stderr`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import json
import logging
import os
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import anyio.to_thread
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Resource, ResourceTemplate, Tool

from blaxel_mcp_server import (
    __version__,
    agents,
    integrations,
    jobs,
    local,
    mcpservers,
    modelapis,
    sandboxes,
    serviceaccounts,
    users,
)
from blaxel_mcp_server.client import new_sdk_client
from blaxel_mcp_server.config import TOOLSETS, Config, load_config
from blaxel_mcp_server.errors import ClientConfigError
from blaxel_mcp_server.resources import (
    RESOURCE_KINDS,
    list_resource_entries,
    read_resource_text,
)
from blaxel_mcp_server.tooling import ToolContext, ToolRegistry

logger = logging.getLogger("blaxel_mcp_server")

SERVER_NAME = "blaxel-mcp-server"
LOG_FILE_NAME = "mcp-server.log"

DOMAIN_MODULES = {
    "agents": agents,
    "modelapis": modelapis,
    "mcpservers": mcpservers,
    "sandboxes": sandboxes,
    "jobs": jobs,
    "integrations": integrations,
    "users": users,
    "serviceaccounts": serviceaccounts,
    "local": local,
}

app = Server(SERVER_NAME)

_registry = ToolRegistry()
_context = ToolContext(config=Config())


def _now_z() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def configure_logging(config: Config, to_file: bool = True) -> Optional[str]:
    """Route logs to ``LOG_DIR/mcp-server.log`` (or stderr). Returns the file path."""
    level = logging.DEBUG if config.debug else logging.INFO
    log_path = None
    if to_file:
        log_dir = config.log_dir or os.path.join(os.path.expanduser("~"), ".blaxel")
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, LOG_FILE_NAME)
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[handler],
        force=True,
    )
    return log_path


def create_client(config: Config) -> Any:
    try:
        return new_sdk_client(config)
    except ClientConfigError as exc:
        logger.warning("Failed to initialize SDK client: %s", exc)
        return None


def build_registry(config: Config) -> ToolRegistry:
    registry = ToolRegistry()
    unknown = sorted(t for t in config.toolsets if t != "all" and t not in DOMAIN_MODULES)
    if unknown:
        logger.warning("ignoring unknown toolsets: %s", ", ".join(unknown))
    for name in TOOLSETS:
        if config.toolset_enabled(name):
            DOMAIN_MODULES[name].register_tools(registry, config)
    return registry


def setup(config: Config, client: Any = None) -> ToolRegistry:
    """Install the registry and handler context used by the MCP callbacks."""
    global _registry, _context
    _registry = build_registry(config)
    _context = ToolContext(config=config, client=client)
    return _registry


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


def _tool_input_hash(arguments: Dict[str, Any]) -> str:
    payload = json.dumps(arguments or {}, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _audit_tool_invocation(
    name: str,
    arguments: Dict[str, Any],
    status: str,
    *,
    latency_ms: int = 0,
    error_code: str = "",
) -> None:
    payload = {
        "invocation_id": f"mcpi-{uuid.uuid4().hex[:20]}",
        "tool_name": name,
        "input_hash": _tool_input_hash(arguments),
        "result_status": status,
        "latency_ms": int(max(0, latency_ms)),
        "error_code": str(error_code or ""),
        "timestamp": _now_z(),
    }
    logger.info("[AUDIT] %s", json.dumps(payload, sort_keys=True))


# ---------------------------------------------------------------------------
# RESOURCES
# ---------------------------------------------------------------------------


@app.list_resources()
async def list_resources() -> list[Resource]:
    entries = await anyio.to_thread.run_sync(list_resource_entries, _context.client)
    return [
        Resource(uri=entry["uri"], name=entry["name"], mimeType="application/json")
        for entry in entries
    ]


@app.list_resource_templates()
async def list_resource_templates() -> list[ResourceTemplate]:
    return [
        ResourceTemplate(
            uriTemplate=f"blaxel://{kind}/{{name}}",
            name=f"{meta.label} by name",
            description=f"Fetch a {meta.label.lower()} record as JSON.",
            mimeType="application/json",
        )
        for kind, meta in RESOURCE_KINDS.items()
    ]


@app.read_resource()
async def read_resource(uri) -> List[ReadResourceContents]:
    text = await anyio.to_thread.run_sync(read_resource_text, _context.client, str(uri))
    mime_type = "text/plain" if text.startswith("# ") else "application/json"
    return [ReadResourceContents(content=text, mime_type=mime_type)]


# ---------------------------------------------------------------------------
# TOOLS
# ---------------------------------------------------------------------------


@app.list_tools()
async def list_tools() -> list[Tool]:
    return _registry.list_tools()


# Arguments are validated by the registry so handler-level messages survive.
@app.call_tool(validate_input=False)
async def call_tool(name: str, arguments: dict) -> CallToolResult:
    args = arguments or {}
    started = time.perf_counter()
    result, error_code = await _registry.invoke(name, args, _context)
    _audit_tool_invocation(
        name,
        args,
        "error" if result.isError else "success",
        latency_ms=int((time.perf_counter() - started) * 1000),
        error_code=error_code,
    )
    return result


# ===================================================================
# ENTRY POINT
# ===================================================================


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="MCP server exposing Blaxel workspace management tools over stdio.",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Register only read tools (same as BL_READ_ONLY=true)",
    )
    parser.add_argument(
        "--toolsets",
        default=None,
        help=f"Comma-separated toolsets to enable: all, {', '.join(TOOLSETS)}",
    )
    parser.add_argument(
        "--log-stderr",
        action="store_true",
        help="Log to stderr instead of the log file",
    )
    return parser.parse_args(argv)


async def serve() -> None:
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.version:
        print(f"{SERVER_NAME} {__version__}")
        return 0

    config = load_config().with_overrides(read_only=args.read_only, toolsets=args.toolsets)
    log_path = configure_logging(config, to_file=not args.log_stderr)
    logger.info(
        "[START] Blaxel MCP Server v%s (workspace=%s, env=%s, read_only=%s, log=%s)",
        __version__,
        config.workspace or "-",
        config.env,
        config.read_only,
        log_path or "stderr",
    )

    registry = setup(config, create_client(config))
    logger.info("registered %d tools", len(registry))
    asyncio.run(serve())
    return 0


if __name__ == "__main__":
    sys.exit(main())
