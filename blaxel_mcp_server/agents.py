"""Deployed agents."""

from __future__ import annotations

from typing import Any, Dict, List

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import NotFoundError
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


def _summary(agent: Any) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"name": metadata_name(agent)}
    if isinstance(agent, dict) and agent.get("status"):
        summary["status"] = agent["status"]
    return summary


def _list_agents(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_agents()
    if not resp.ok:
        raise status_error("list agents", resp.status_code)
    return filter_and_marshal(
        [_summary(a) for a in as_list(resp.json200)],
        optional_str(args, "filter"),
        lambda s: s["name"],
        FILTER_MATCH,
        envelope="agents",
    )


def _get_agent(ctx: ToolContext, args: dict) -> Any:
    name = require_str(args, "name", "agent name is required")
    client = require_client(ctx)
    resp = client.get_agent(name)
    if not resp.ok:
        raise status_error("get agent", resp.status_code)
    if resp.json200 is None:
        raise NotFoundError("agent not found")
    return resp.json200


def _delete_agent(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "agent name is required")
    client = require_client(ctx)
    resp = client.delete_agent(name)
    if not resp.ok:
        raise status_error("delete agent", resp.status_code)
    return {"success": True, "message": f"Agent '{name}' deleted successfully"}


def build_tools() -> List[ToolDescriptor]:
    name_schema = object_schema(
        {"name": {"type": "string", "description": "Name of the agent"}},
        required=["name"],
    )
    return [
        ToolDescriptor(
            name="list_agents",
            description="List all agents in the workspace",
            input_schema=object_schema({"filter": FILTER_PROPERTY}),
            handler=_list_agents,
        ),
        ToolDescriptor(
            name="get_agent",
            description="Get details of a specific agent",
            input_schema=name_schema,
            handler=_get_agent,
        ),
        ToolDescriptor(
            name="delete_agent",
            description="Delete an agent from the workspace",
            input_schema=name_schema,
            handler=_delete_agent,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
