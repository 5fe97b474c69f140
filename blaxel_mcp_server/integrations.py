"""Integration connections and the MCP Hub catalog."""

from __future__ import annotations

from typing import Any, Dict, List

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import NotFoundError, RemoteStatusError
from blaxel_mcp_server.tooling import (
    FILTER_PROPERTY,
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    as_list,
    contains_ignore_case,
    filter_and_marshal,
    filter_records,
    metadata_name,
    object_schema,
    optional_str,
    require_client,
    require_str,
    status_error,
    string_map,
)

FILTER_MATCH = contains_ignore_case


def _any_field_contains(fields: List[str], query: str) -> bool:
    return any(FILTER_MATCH(field, query) for field in fields)


def _text_fields(record: Any, *keys: str) -> List[str]:
    if not isinstance(record, dict):
        return []
    return [str(record[key]) for key in keys if record.get(key)]


def _format_model(index: int, model: Any) -> str:
    m = model if isinstance(model, dict) else {}
    model_id = m.get("id") or m.get("modelId") or m.get("name") or f"#{index + 1}"
    label = m.get("displayName") or m.get("name") or ""
    provider = m.get("provider") or m.get("integration") or ""
    caps = m.get("capabilities") or []

    line = f"- {model_id}"
    if label and label != model_id:
        line += f" ({label})"
    if provider:
        line += f" [{provider}]"
    if isinstance(caps, list) and caps:
        line += f" caps=[{', '.join(str(c) for c in caps)}]"
    return line


def _format_form_fields(fields: Any) -> str:
    if not isinstance(fields, dict):
        return ""
    lines = []
    for key, value in fields.items():
        value = value if isinstance(value, dict) else {}
        required = value.get("required")
        rendered = str(required).lower() if isinstance(required, bool) else str(required)
        lines.append(f"\t- {key}: description={value.get('description')}, required={rendered}")
    return "\n".join(lines)


def format_definition_summary(definition: Dict[str, Any]) -> str:
    """One MCP Hub entry with its required secrets and config keys."""
    name = (
        definition.get("displayName")
        or definition.get("name")
        or definition.get("integration")
        or "unknown"
    )
    ident = definition.get("integration") or definition.get("name") or ""
    description = definition.get("description") or definition.get("longDescription") or ""
    form = definition.get("form") if isinstance(definition.get("form"), dict) else {}
    secrets = _format_form_fields(form.get("secrets"))
    configs = _format_form_fields(form.get("config"))

    text = f"- {name}"
    if ident:
        text += f" ({ident})"
    text += f"\n  Description: {description}"
    if secrets:
        text += f"\n  Secrets:\n{secrets}"
    if configs:
        text += f"\n  Config keys:\n{configs}"
    return text


def _hub_fields(definition: Any) -> List[str]:
    return _text_fields(definition, "integration", "name", "displayName")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _list_integrations(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_integration_connections()
    if not resp.ok:
        raise status_error("list integrations", resp.status_code)
    return filter_and_marshal(
        as_list(resp.json200),
        optional_str(args, "filter"),
        metadata_name,
        FILTER_MATCH,
        envelope="integrations",
    )


def _get_integration(ctx: ToolContext, args: dict) -> Any:
    name = require_str(args, "name", "integration name is required")
    client = require_client(ctx)
    resp = client.get_integration_connection(name)
    if not resp.ok:
        raise status_error("get integration", resp.status_code)
    if resp.json200 is None:
        raise NotFoundError("no integration found")
    return resp.json200


def _list_integration_models(ctx: ToolContext, args: dict) -> str:
    connection = require_str(args, "connectionName", "Integration connection name is required")
    query = optional_str(args, "filter")
    client = require_client(ctx)
    resp = client.list_integration_connection_models(connection)
    if not resp.ok:
        raise status_error("list integration models", resp.status_code)

    models = filter_records(
        as_list(resp.json200),
        query,
        lambda m: _text_fields(m, "id", "modelId", "name", "displayName"),
        _any_field_contains,
    )
    if not models:
        if query:
            return f'No models found for connection "{connection}" matching: {query}'
        return f'No models found for connection "{connection}"'
    summary = "\n".join(_format_model(i, m) for i, m in enumerate(models))
    return f'Models for connection "{connection}":\n{summary}'


def _list_mcp_integrations(ctx: ToolContext, args: dict) -> str:
    query = optional_str(args, "filter")
    client = require_client(ctx)
    resp = client.list_mcp_hub_definitions()
    if not resp.ok:
        raise status_error("list MCP Hub definitions", resp.status_code)

    available = [
        d for d in as_list(resp.json200) if isinstance(d, dict) and d.get("coming_soon") is not True
    ]
    definitions = filter_records(available, query, _hub_fields, _any_field_contains)
    if not definitions:
        if query:
            return f"No MCP definition matched filter: {query}"
        return "No MCP definition found"
    return "\n\n".join(format_definition_summary(d) for d in definitions)


def _get_mcp_integration(ctx: ToolContext, args: dict) -> str:
    name = require_str(args, "name", "MCP Hub name is required")
    client = require_client(ctx)
    resp = client.list_mcp_hub_definitions()
    if not resp.ok:
        raise status_error("retrieve MCP Hub definition", resp.status_code)

    definitions = [d for d in as_list(resp.json200) if isinstance(d, dict)]
    query = name.lower()
    match = next(
        (d for d in definitions if any(f.lower() == query for f in _hub_fields(d))),
        None,
    )
    if match is None:
        match = next((d for d in definitions if _any_field_contains(_hub_fields(d), name)), None)
    if match is None:
        return f"No MCP Hub integration found for: {name}"
    return format_definition_summary(match)


def _create_integration(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "integration name is required")
    integration_type = require_str(args, "integrationType", "integrationType is required")
    client = require_client(ctx)

    spec: Dict[str, Any] = {"integration": integration_type}
    secret = string_map(args, "secret")
    if secret:
        spec["secret"] = secret
    config = string_map(args, "config")
    if config:
        spec["config"] = config

    resp = client.create_integration_connection({"metadata": {"name": name}, "spec": spec})
    if not resp.ok:
        if resp.status_code == 409:
            raise RemoteStatusError(f"integration with name '{name}' already exists", 409)
        raise status_error("create integration", resp.status_code)

    return {
        "success": True,
        "message": f"Integration '{name}' created successfully",
        "integration": {"name": name, "type": integration_type},
    }


def _delete_integration(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "integration name is required")
    client = require_client(ctx)
    resp = client.delete_integration_connection(name)
    if not resp.ok:
        raise status_error("delete integration", resp.status_code)
    return {"success": True, "message": f"Integration '{name}' deleted successfully"}


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_integrations",
            description="List all integration connections in the workspace",
            input_schema=object_schema({"filter": FILTER_PROPERTY}),
            handler=_list_integrations,
        ),
        ToolDescriptor(
            name="get_integration",
            description="Get details of a specific integration connection",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the integration"}},
                required=["name"],
            ),
            handler=_get_integration,
        ),
        ToolDescriptor(
            name="list_integration_models",
            description="List available models for a specific integration connection",
            input_schema=object_schema(
                {
                    "connectionName": {
                        "type": "string",
                        "description": "Name of the integration connection to query",
                    },
                    "filter": {
                        "type": "string",
                        "description": "Optional case-insensitive substring to filter model id/name",
                    },
                },
                required=["connectionName"],
            ),
            handler=_list_integration_models,
        ),
        ToolDescriptor(
            name="list_mcp_integrations",
            description="List available MCP Hub integrations and show required secrets and config keys",
            input_schema=object_schema(
                {
                    "filter": {
                        "type": "string",
                        "description": (
                            "Optional filter: substring to match against integration "
                            "identifier, name, or displayName"
                        ),
                    }
                }
            ),
            handler=_list_mcp_integrations,
        ),
        ToolDescriptor(
            name="get_mcp_integration",
            description=(
                "Get details for a specific MCP Hub integration, including required "
                "secrets and config schema"
            ),
            input_schema=object_schema(
                {"name": {"type": "string", "description": "MCP Hub name, or display name to lookup"}},
                required=["name"],
            ),
            handler=_get_mcp_integration,
        ),
        ToolDescriptor(
            name="create_integration",
            description="Create a new integration connection",
            input_schema=object_schema(
                {
                    "name": {"type": "string", "description": "Name for the integration connection"},
                    "integrationType": {
                        "type": "string",
                        "description": "Type of integration (e.g., github, slack, etc.)",
                    },
                    "secret": {
                        "type": "object",
                        "description": "Secret credentials for the integration",
                    },
                    "config": {
                        "type": "object",
                        "description": "Configuration parameters for the integration",
                    },
                },
                required=["name", "integrationType"],
            ),
            handler=_create_integration,
            mutating=True,
        ),
        ToolDescriptor(
            name="delete_integration",
            description="Delete an integration connection by name",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the integration to delete"}},
                required=["name"],
            ),
            handler=_delete_integration,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
