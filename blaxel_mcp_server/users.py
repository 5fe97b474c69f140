"""Workspace users and invitations.

The remote listing carries ``given_name``/``family_name`` separately; tools
surface a flattened ``UserInfo`` record with a single display ``name``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import NotFoundError, RemoteStatusError
from blaxel_mcp_server.tooling import (
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    as_list,
    contains_ignore_case,
    filter_records,
    object_schema,
    optional_str,
    require_client,
    require_str,
    status_error,
)

FILTER_MATCH = contains_ignore_case


@dataclass
class UserInfo:
    email: str = ""
    sub: str = ""
    name: str = ""
    role: str = ""
    accepted: bool = False
    email_verified: bool = False

    @classmethod
    def from_record(cls, record: Any) -> "UserInfo":
        if not isinstance(record, dict):
            return cls()
        name = " ".join(
            part for part in (record.get("given_name"), record.get("family_name")) if part
        )
        return cls(
            email=str(record.get("email") or ""),
            sub=str(record.get("sub") or ""),
            name=name,
            role=str(record.get("role") or ""),
            accepted=bool(record.get("accepted")),
            email_verified=bool(record.get("email_verified")),
        )


def _email_or_name(user: UserInfo, query: str) -> bool:
    return FILTER_MATCH(user.email, query) or FILTER_MATCH(user.name, query)


def _list_workspace_users(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    client = require_client(ctx)
    resp = client.list_workspace_users()
    if not resp.ok:
        raise status_error("list workspace users", resp.status_code)

    users = [UserInfo.from_record(r) for r in as_list(resp.json200)]
    matched = filter_records(
        users,
        optional_str(args, "filter"),
        lambda user: user,
        _email_or_name,
    )
    return {"users": [asdict(u) for u in matched], "count": len(matched)}


def _get_workspace_user(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    email = require_str(args, "email", "email is required")
    client = require_client(ctx)
    resp = client.list_workspace_users()
    if not resp.ok:
        raise status_error("list workspace users", resp.status_code)

    wanted = email.lower()
    for record in as_list(resp.json200):
        user = UserInfo.from_record(record)
        if user.email and user.email.lower() == wanted:
            return {"user": asdict(user)}
    raise NotFoundError(f"user with email '{email}' not found in workspace")


def _invite_workspace_user(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    email = require_str(args, "email", "email is required")
    role = optional_str(args, "role")
    client = require_client(ctx)

    resp = client.invite_workspace_user({"email": email})
    if resp.status_code == 409:
        raise RemoteStatusError(
            f"user '{email}' is already in the workspace or has a pending invitation", 409
        )
    if not resp.ok:
        raise status_error("invite user", resp.status_code)

    message = f"Successfully invited user '{email}' to the workspace"
    if role:
        # The invite endpoint takes no role.
        message += (
            f". Role '{role}' can be set using update_workspace_user_role "
            "after the user accepts the invitation"
        )
    return {"success": True, "message": message}


def _update_workspace_user_role(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    email = require_str(args, "email", "email is required")
    role = require_str(args, "role", "role is required")
    client = require_client(ctx)

    resp = client.update_workspace_user_role(email, {"role": role})
    if resp.status_code == 404:
        raise NotFoundError(f"user '{email}' not found in workspace")
    if not resp.ok:
        raise status_error("update user role", resp.status_code)
    return {
        "success": True,
        "message": f"Successfully updated role for user '{email}' to '{role}'",
    }


def _remove_workspace_user(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    email = require_str(args, "email", "email is required")
    client = require_client(ctx)

    resp = client.remove_workspace_user(email)
    if resp.status_code == 404:
        raise NotFoundError(f"user '{email}' not found in workspace")
    if not resp.ok:
        raise status_error("remove user", resp.status_code)
    return {"success": True, "message": f"Successfully removed user '{email}' from the workspace"}


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_workspace_users",
            description="List all users in the workspace",
            input_schema=object_schema(
                {
                    "filter": {
                        "type": "string",
                        "description": "Optional filter to match user names or emails",
                    }
                }
            ),
            handler=_list_workspace_users,
        ),
        ToolDescriptor(
            name="get_workspace_user",
            description="Get details of a workspace user by email",
            input_schema=object_schema(
                {"email": {"type": "string", "description": "Email address of the user to retrieve"}},
                required=["email"],
            ),
            handler=_get_workspace_user,
        ),
        ToolDescriptor(
            name="invite_workspace_user",
            description="Invite a user to join the workspace",
            input_schema=object_schema(
                {
                    "email": {"type": "string", "description": "Email address of the user to invite"},
                    "role": {
                        "type": "string",
                        "description": "Role to apply once the invitation is accepted",
                    },
                },
                required=["email"],
            ),
            handler=_invite_workspace_user,
            mutating=True,
        ),
        ToolDescriptor(
            name="update_workspace_user_role",
            description="Update a workspace user's role",
            input_schema=object_schema(
                {
                    "email": {"type": "string", "description": "Email address of the user"},
                    "role": {
                        "type": "string",
                        "description": "New role for the user (e.g., admin, member, viewer)",
                    },
                },
                required=["email", "role"],
            ),
            handler=_update_workspace_user_role,
            mutating=True,
        ),
        ToolDescriptor(
            name="remove_workspace_user",
            description="Remove a user from the workspace",
            input_schema=object_schema(
                {"email": {"type": "string", "description": "Email address of the user to remove"}},
                required=["email"],
            ),
            handler=_remove_workspace_user,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
