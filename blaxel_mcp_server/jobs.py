"""Batch jobs. Listing filters on job status rather than name."""

from __future__ import annotations

from typing import Any, Dict, List

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import NotFoundError
from blaxel_mcp_server.tooling import (
    ToolContext,
    ToolDescriptor,
    ToolRegistry,
    as_list,
    equals_ignore_case,
    filter_and_marshal,
    object_schema,
    optional_str,
    require_client,
    require_str,
    status_error,
)

FILTER_MATCH = equals_ignore_case


def _job_status(job: Any) -> str:
    if not isinstance(job, dict):
        return ""
    return str(job.get("status") or "")


def _list_jobs(ctx: ToolContext, args: dict) -> str:
    client = require_client(ctx)
    resp = client.list_jobs()
    if not resp.ok:
        raise status_error("list jobs", resp.status_code)
    return filter_and_marshal(
        as_list(resp.json200),
        optional_str(args, "status"),
        _job_status,
        FILTER_MATCH,
        envelope="jobs",
    )


def _get_job(ctx: ToolContext, args: dict) -> Any:
    job_id = require_str(args, "id", "job ID is required")
    client = require_client(ctx)
    resp = client.get_job(job_id)
    if not resp.ok:
        raise status_error("get job", resp.status_code)
    if resp.json200 is None:
        raise NotFoundError("job not found")
    return resp.json200


def _delete_job(ctx: ToolContext, args: dict) -> Dict[str, Any]:
    job_id = require_str(args, "id", "job ID is required")
    client = require_client(ctx)
    resp = client.delete_job(job_id)
    if not resp.ok:
        raise status_error("delete job", resp.status_code)
    return {"success": True, "message": f"Job '{job_id}' deleted successfully"}


def build_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="list_jobs",
            description="List all jobs in the workspace",
            input_schema=object_schema(
                {"status": {"type": "string", "description": "Optional filter by job status"}}
            ),
            handler=_list_jobs,
        ),
        ToolDescriptor(
            name="get_job",
            description="Get details of a specific job",
            input_schema=object_schema(
                {"id": {"type": "string", "description": "ID of the job to retrieve"}},
                required=["id"],
            ),
            handler=_get_job,
        ),
        ToolDescriptor(
            name="delete_job",
            description="Delete a job from the workspace",
            input_schema=object_schema(
                {"id": {"type": "string", "description": "ID of the job to delete"}},
                required=["id"],
            ),
            handler=_delete_job,
            mutating=True,
        ),
    ]


def register_tools(registry: ToolRegistry, config: Config) -> None:
    registry.register_all(build_tools(), read_only=config.read_only)
