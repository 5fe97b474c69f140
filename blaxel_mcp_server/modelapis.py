"""Model APIs, stored remotely as ``models``."""

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


def _list_model_apis(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_models()
    if not resp.ok:
        raise status_error("list model APIs", resp.status_code)
    return filter_and_marshal(
        [{"name": metadata_name(m)} for m in as_list(resp.json200)],
        optional_str(args, "filter"),
        lambda s: s["name"],
        FILTER_MATCH,
        envelope="model_apis",
    )


def _get_model_api(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "model API name is required")
    client = require_client(ctx)
    resp = client.get_model(name)
    if not resp.ok:
        raise status_error("get model API", resp.status_code)
    if resp.json200 is None:
        raise NotFoundError("no model API found")
    return {"model_api": resp.json200}


def _create_model_api(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "model API name is required")
    client = require_client(ctx)
    existing = optional_str(args, "integrationConnectionName")
    provider = optional_str(args, "provider")

    if not existing:
        if provider:
            if not optional_str(args, "apiKey"):
                raise ToolValidationError("api key is required when specifying provider")
            raise ToolValidationError(
                "inline integration creation is not supported. Please create the "
                "integration first using 'create_integration', then reference it by name"
            )
        raise ToolValidationError(
            "must provide integrationConnectionName to reference an existing integration"
        )

    spec: Dict[str, Any] = {"integrationConnections": [existing]}
    model = optional_str(args, "model")
    endpoint = optional_str(args, "endpoint")
    runtime: Dict[str, Any] = {}
    if model:
        runtime["model"] = model
    if endpoint:
        runtime["endpoint"] = endpoint
    if runtime:
        spec["runtime"] = runtime
    config = args.get("config")
    if isinstance(config, dict) and config:
        spec["config"] = config

    resp = client.create_model({"metadata": {"name": name}, "spec": spec})
    if not resp.ok:
        if resp.status_code == 409:
            raise RemoteStatusError(f"model API with name '{name}' already exists", 409)
        raise status_error("create model API", resp.status_code)

    model_api: Dict[str, Any] = {"name": name, "integrationConnection": existing}
    if model:
        model_api["model"] = model
    return {
        "success": True,
        "message": f"Model API '{name}' created successfully",
        "model_api": model_api,
    }


def _delete_model_api(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "model API name is required")
    client = require_client(ctx)
    resp = client.delete_model(name)
    if not resp.ok:
        raise status_error("delete model API", resp.status_code)
    return {"success": True, "message": f"Model API '{name}' deleted successfully"}


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_model_apis",
            description="List all model APIs in the workspace",
            input_schema=object_schema({"filter": FILTER_PROPERTY}),
            handler=_list_model_apis,
        ),
        ToolDescriptor(
            name="get_model_api",
            description="Get details of a specific model API",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the model API"}},
                required=["name"],
            ),
            handler=_get_model_api,
        ),
        ToolDescriptor(
            name="create_model_api",
            description="Create a model API with flexible integration options",
            input_schema=object_schema(
                {
                    "name": {"type": "string", "description": "Name for the model API"},
                    "integrationConnectionName": {
                        "type": "string",
                        "description": "Existing integration to use",
                    },
                    "provider": {
                        "type": "string",
                        "description": "Provider for new integration (e.g., openai)",
                    },
                    "apiKey": {"type": "string", "description": "API key for new integration"},
                    "model": {"type": "string", "description": "Model identifier"},
                    "endpoint": {"type": "string", "description": "Optional endpoint URL"},
                    "config": {"type": "object", "description": "Additional configuration"},
                },
                required=["name"],
            ),
            handler=_create_model_api,
            mutating=True,
        ),
        ToolDescriptor(
            name="delete_model_api",
            description="Delete a model API by name",
            input_schema=object_schema(
                {"name": {"type": "string", "description": "Name of the model API to delete"}},
                required=["name"],
            ),
            handler=_delete_model_api,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
