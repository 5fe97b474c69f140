"""Sandboxes: list, inspect, create and delete."""

from __future__ import annotations

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
)

FILTER_MATCH = contains_ignore_case

DEFAULT_PORT_PROTOCOL = "TCP"


def parse_ports(raw: str) -> List[Dict[str, Any]]:
    """``"8080, 8081"`` -> ``[{"target": 8080, "protocol": "TCP"}, ...]``."""
    ports = []
    for part in str(raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            target = int(part)
        except ValueError:
            raise ToolValidationError(f"invalid port '{part}'") from None
        if not 0 < target < 65536:
            raise ToolValidationError(f"invalid port '{part}'")
        ports.append({"target": target, "protocol": DEFAULT_PORT_PROTOCOL})
    return ports


def parse_env(raw: str) -> List[Dict[str, str]]:
    """``"A=1,B=2"`` -> ``[{"name": "A", "value": "1"}, ...]``."""
    envs = []
    for pair in str(raw or "").split(","):
        if not pair.strip():
            continue
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ToolValidationError(
                f"invalid environment variable '{pair.strip()}' (expected NAME=VALUE)"
            )
        envs.append({"name": name, "value": value})
    return envs


def _list_sandboxes(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_sandboxes()
    if not resp.ok:
        raise status_error("list sandboxes", resp.status_code)
    return filter_and_marshal(
        as_list(resp.json200),
        optional_str(args, "filter"),
        metadata_name,
        FILTER_MATCH,
        envelope="sandboxes",
    )


def _get_sandbox(ctx: ToolContext, args: dict) -> Any:
    name = require_str(args, "name", "sandbox name is required")
    client = require_client(ctx)
    resp = client.get_sandbox(name)
    if not resp.ok:
        raise status_error("get sandbox", resp.status_code)
    if resp.json200 is None:
        raise NotFoundError("no sandbox found")
    return resp.json200


def _create_sandbox(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "sandbox name is required")
    client = require_client(ctx)

    runtime: Dict[str, Any] = {}
    image = optional_str(args, "image")
    if image:
        runtime["image"] = image
    memory = args.get("memory")
    if isinstance(memory, (int, float)) and not isinstance(memory, bool) and memory > 0:
        runtime["memory"] = int(memory)
    ports = parse_ports(optional_str(args, "ports"))
    if ports:
        runtime["ports"] = ports
    envs = parse_env(optional_str(args, "env"))
    if envs:
        runtime["envs"] = envs

    resp = client.create_sandbox({"metadata": {"name": name}, "spec": {"runtime": runtime}})
    if not resp.ok:
        if resp.status_code == 409:
            raise RemoteStatusError(f"sandbox with name '{name}' already exists", 409)
        raise status_error("create sandbox", resp.status_code)

    sandbox: Dict[str, Any] = {"name": name}
    created = resp.json200 if isinstance(resp.json200, dict) else {}
    if created.get("status"):
        sandbox["status"] = created["status"]
    return {
        "success": True,
        "message": f"Sandbox '{name}' created successfully",
        "sandbox": sandbox,
    }


def _delete_sandbox(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "sandbox name is required")
    client = require_client(ctx)
    resp = client.delete_sandbox(name)
    if not resp.ok:
        raise status_error("delete sandbox", resp.status_code)
    return {"success": True, "message": f"Sandbox '{name}' deleted successfully"}


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_sandboxes",
            description="List all sandboxes in the workspace",
            input_schema=object_schema({"filter": FILTER_PROPERTY}),
            handler=_list_sandboxes,
        ),
        ToolDescriptor(
            name="get_sandbox",
            description="Get details of a specific sandbox",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the sandbox to retrieve"}},
                required=["name"],
            ),
            handler=_get_sandbox,
        ),
        ToolDescriptor(
            name="create_sandbox",
            description="Create a new sandbox",
            input_schema=object_schema(
                {
                    "name": {"type": "string", "description": "Name for the sandbox"},
                    "image": {
                        "type": "string",
                        "description": "Docker image to use for the sandbox",
                    },
                    "memory": {"type": "number", "description": "Memory in MB (default: 512)"},
                    "ports": {
                        "type": "string",
                        "description": (
                            "Ports to expose from the sandbox, separated by commas (eg. 8080,8081)"
                        ),
                    },
                    "env": {
                        "type": "string",
                        "description": (
                            "Environment variables to set in the sandbox, separated by commas "
                            "(eg. FOO=bar,BAR=baz)"
                        ),
                    },
                },
                required=["name"],
            ),
            handler=_create_sandbox,
            mutating=True,
        ),
        ToolDescriptor(
            name="delete_sandbox",
            description="Delete a sandbox by name",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the sandbox to delete"}},
                required=["name"],
            ),
            handler=_delete_sandbox,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
