"""MCP servers, stored remotely as ``functions``.

``create_mcp_server`` either references an existing integration connection or
creates one inline named ``<server>-<type>-integration`` first.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import NotFoundError, RemoteStatusError, ToolValidationError
from blaxel_mcp_server.tooling import (
    FILTER_PROPERTY,
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    as_list,
    contains_ignore_case,
    filter_and_marshal,
    metadata_name,
    object_schema,
    optional_str,
    require_client,
    require_str,
    status_error,
    string_map,
)

logger = logging.getLogger(__name__)

FILTER_MATCH = contains_ignore_case


def inline_integration_name(server_name: str, integration_type: str) -> str:
    return f"{server_name}-{integration_type}-integration"


def _list_mcp_servers(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_functions()
    if not resp.ok:
        raise status_error("list MCP servers", resp.status_code)
    return filter_and_marshal(
        as_list(resp.json200),
        optional_str(args, "filter"),
        metadata_name,
        FILTER_MATCH,
        envelope="mcp_servers",
    )


def _get_mcp_server(ctx: ToolContext, args: dict) -> Any:
    name = require_str(args, "name", "MCP server name is required")
    client = require_client(ctx)
    resp = client.get_function(name)
    if not resp.ok:
        raise status_error("get MCP server", resp.status_code)
    if resp.json200 is None:
        raise NotFoundError("no MCP server found")
    return resp.json200


def _create_mcp_server(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "MCP server name is required")
    client = require_client(ctx)
    existing = optional_str(args, "integrationConnectionName")
    integration_type = optional_str(args, "integrationType")

    if existing and integration_type:
        raise ToolValidationError(
            "specify either integrationConnectionName or integrationType, not both"
        )
    if not existing and not integration_type:
        raise ToolValidationError(
            "must provide either integrationConnectionName to reference an existing "
            "integration or integrationType to create a new one"
        )

    if existing:
        integration_name = existing
    else:
        integration_name = inline_integration_name(name, integration_type)
        spec: Dict[str, Any] = {"integration": integration_type}
        secret = string_map(args, "secret")
        if secret:
            spec["secret"] = secret
        config = string_map(args, "config")
        if config:
            spec["config"] = config
        integration_resp = client.create_integration_connection(
            {"metadata": {"name": integration_name}, "spec": spec}
        )
        if integration_resp.status_code == 409:
            logger.info(
                "Integration '%s' already exists, will attempt to use it", integration_name
            )
        elif not integration_resp.ok:
            raise status_error("create integration", integration_resp.status_code)

    body = {
        "metadata": {"name": name},
        "spec": {
            "runtime": {"type": "mcp"},
            "integrationConnections": [integration_name],
        },
    }
    resp = client.create_function(body)
    if not resp.ok:
        if resp.status_code == 409:
            raise RemoteStatusError(f"MCP server with name '{name}' already exists", 409)
        raise status_error("create MCP server", resp.status_code)

    server: Dict[str, Any] = {"name": name, "integrationConnection": integration_name}
    message = f"MCP server '{name}' created successfully"
    if integration_type:
        server["integrationType"] = integration_type
        message += f" with inline integration '{integration_name}'"
    return {"success": True, "message": message, "mcp_server": server}


def _delete_mcp_server(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "MCP server name is required")
    client = require_client(ctx)
    resp = client.delete_function(name)
    if not resp.ok:
        raise status_error("delete MCP server", resp.status_code)
    return {"success": True, "message": f"MCP server '{name}' deletion initiated successfully"}


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_mcp_servers",
            description="List all MCP servers (functions) in the workspace",
            input_schema=object_schema({"filter": FILTER_PROPERTY}),
            handler=_list_mcp_servers,
        ),
        ToolDescriptor(
            name="get_mcp_server",
            description="Get details of a specific MCP server (function)",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the MCP server"}},
                required=["name"],
            ),
            handler=_get_mcp_server,
        ),
        ToolDescriptor(
            name="create_mcp_server",
            description="Create an MCP server (function) with flexible integration options",
            input_schema=object_schema(
                {
                    "name": {"type": "string", "description": "Name for the MCP server"},
                    "integrationConnectionName": {
                        "type": "string",
                        "description": "Existing integration to use",
                    },
                    "integrationType": {
                        "type": "string",
                        "description": "Type for new integration (e.g., github)",
                    },
                    "secret": {"type": "object", "description": "Secrets for new integration"},
                    "config": {"type": "object", "description": "Config for new integration"},
                },
                required=["name"],
            ),
            handler=_create_mcp_server,
            mutating=True,
        ),
        ToolDescriptor(
            name="delete_mcp_server",
            description="Delete an MCP server (function) by name",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the MCP server to delete"}},
                required=["name"],
            ),
            handler=_delete_mcp_server,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
