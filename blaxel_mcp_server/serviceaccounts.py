"""Workspace service accounts."""

from __future__ import annotations

from typing import Any, Dict, List

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import NotFoundError, RemoteStatusError
from blaxel_mcp_server.tooling import (
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    as_list,
    contains_ignore_case,
    filter_and_marshal,
    object_schema,
    optional_str,
    require_client,
    require_str,
    status_error,
)

FILTER_MATCH = contains_ignore_case


def _account_name(account: Any) -> str:
    if not isinstance(account, dict):
        return ""
    return str(account.get("name") or "")


def _list_service_accounts(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_service_accounts()
    if not resp.ok:
        raise status_error("list service accounts", resp.status_code)
    return filter_and_marshal(
        as_list(resp.json200),
        optional_str(args, "filter"),
        _account_name,
        FILTER_MATCH,
        envelope="service_accounts",
    )


def _get_service_account(ctx: ToolContext, args: dict) -> Any:
    client_id = require_str(args, "clientId", "client ID is required")
    client = require_client(ctx)
    # No single-account endpoint; scan the workspace listing.
    resp = client.list_service_accounts()
    if not resp.ok:
        raise status_error("get service account", resp.status_code)
    for account in as_list(resp.json200):
        if isinstance(account, dict) and account.get("client_id") == client_id:
            return account
    raise NotFoundError(f"service account with client ID '{client_id}' not found")


def _create_service_account(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    name = require_str(args, "name", "service account name is required")
    client = require_client(ctx)

    body: Dict[str, Any] = {"name": name}
    description = optional_str(args, "description")
    if description:
        body["description"] = description

    resp = client.create_service_account(body)
    if not resp.ok:
        if resp.status_code == 409:
            raise RemoteStatusError(f"service account with name '{name}' already exists", 409)
        raise status_error("create service account", resp.status_code)

    created = resp.json200 if isinstance(resp.json200, dict) else {}
    account: Dict[str, Any] = {"name": name, "client_id": created.get("client_id") or ""}
    message = f"Service account '{name}' created successfully"
    if created.get("client_id") and created.get("client_secret"):
        account["client_secret"] = created["client_secret"]
        message += ". Save the client_secret as it won't be shown again."
    return {"success": True, "message": message, "service_account": account}


def _update_service_account(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    client_id = require_str(args, "clientId", "clientId is required")
    name = require_str(args, "name", "service account name is required")
    client = require_client(ctx)

    body: Dict[str, Any] = {"name": name}
    description = optional_str(args, "description")
    if description:
        body["description"] = description

    resp = client.update_service_account(client_id, body)
    if not resp.ok:
        raise status_error("update service account", resp.status_code)
    return {
        "success": True,
        "message": f"Service account '{client_id}' updated successfully",
        "service_account": {"clientId": client_id, "name": name},
    }


def _delete_service_account(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    client_id = require_str(args, "clientId", "client ID is required")
    client = require_client(ctx)
    resp = client.delete_service_account(client_id)
    if not resp.ok:
        raise status_error("delete service account", resp.status_code)
    return {
        "success": True,
        "message": f"Service account with client ID '{client_id}' deleted successfully",
    }


def build_tools() -> List[ToolDescriptor]:
    client_id_prop = {"type": "string", "description": "Client ID of the service account"}
    return [
        ToolDescriptor(
            name="list_service_accounts",
            description="List all service accounts in the workspace",
            input_schema=object_schema(
                {
                    "filter": {
                        "type": "string",
                        "description": "Optional filter to match service account names",
                    }
                }
            ),
            handler=_list_service_accounts,
        ),
        ToolDescriptor(
            name="get_service_account",
            description="Get details of a service account by client ID",
            input_schema=object_schema({"clientId": client_id_prop}, required=["clientId"]),
            handler=_get_service_account,
        ),
        ToolDescriptor(
            name="create_service_account",
            description="Create a new service account",
            input_schema=object_schema(
                {
                    "name": {"type": "string", "description": "Display name for the service account"},
                    "description": {"type": "string", "description": "Optional description"},
                },
                required=["name"],
            ),
            handler=_create_service_account,
            mutating=True,
        ),
        ToolDescriptor(
            name="update_service_account",
            description="Update a service account's name",
            input_schema=object_schema(
                {
                    "clientId": client_id_prop,
                    "name": {"type": "string", "description": "New name for the service account"},
                    "description": {"type": "string", "description": "Optional new description"},
                },
                required=["clientId", "name"],
            ),
            handler=_update_service_account,
            mutating=True,
        ),
        ToolDescriptor(
            name="delete_service_account",
            description="Delete a service account by client ID",
            input_schema=object_schema({"clientId": client_id_prop}, required=["clientId"]),
            handler=_delete_service_account,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
