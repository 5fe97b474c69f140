"""Read-only MCP resources: ``blaxel://<kind>/<name>`` for workspace records."""

from __future__ import annotations

import json
import logging
import urllib.parse
from typing import Any, Dict, List, NamedTuple, Optional

from blaxel_mcp_server.errors import ToolError
from blaxel_mcp_server.tooling import as_list, metadata_name

logger = logging.getLogger(__name__)

URI_SCHEME = "blaxel://"


class ResourceKind(NamedTuple):
    label: str
    list_method: str
    get_method: str


RESOURCE_KINDS: Dict[str, ResourceKind] = {
    "agents": ResourceKind("Agent", "list_agents", "get_agent"),
    "sandboxes": ResourceKind("Sandbox", "list_sandboxes", "get_sandbox"),
    "jobs": ResourceKind("Job", "list_jobs", "get_job"),
    "mcp-servers": ResourceKind("MCP server", "list_functions", "get_function"),
    "model-apis": ResourceKind("Model API", "list_models", "get_model"),
    "integrations": ResourceKind(
        "Integration", "list_integration_connections", "get_integration_connection"
    ),
}


def resource_uri(kind: str, name: str) -> str:
    return f"{URI_SCHEME}{kind}/{urllib.parse.quote(name, safe='')}"


def parse_resource_uri(uri: str) -> Optional[tuple]:
    """``blaxel://agents/foo`` -> ``("agents", "foo")``; ``None`` if malformed."""
    if not uri.startswith(URI_SCHEME):
        return None
    kind, _, name = uri[len(URI_SCHEME):].partition("/")
    if kind not in RESOURCE_KINDS or not name:
        return None
    return kind, urllib.parse.unquote(name)


def list_resource_entries(client: Any) -> List[Dict[str, str]]:
    """Enumerate every named record per kind; a failing kind is skipped."""
    if client is None:
        return []
    entries: List[Dict[str, str]] = []
    for kind, meta in RESOURCE_KINDS.items():
        try:
            resp = getattr(client, meta.list_method)()
        except ToolError as exc:
            logger.warning("listing %s resources failed: %s", kind, exc)
            continue
        if not resp.ok:
            logger.warning("listing %s resources failed with status %s", kind, resp.status_code)
            continue
        for record in as_list(resp.json200):
            name = metadata_name(record)
            if name:
                entries.append(
                    {"uri": resource_uri(kind, name), "name": f"{meta.label}: {name}"}
                )
    return entries


def read_resource_text(client: Any, uri: str) -> str:
    parsed = parse_resource_uri(uri)
    if parsed is None:
        return f"# Unknown resource URI: {uri}"
    if client is None:
        return f"# Failed to fetch {uri}: SDK client not initialized"
    kind, name = parsed
    try:
        resp = getattr(client, RESOURCE_KINDS[kind].get_method)(name)
    except ToolError as exc:
        return f"# Failed to fetch {uri}: {exc}"
    if not resp.ok or resp.json200 is None:
        return f"# Failed to fetch {uri}: status {resp.status_code}"
    return json.dumps(resp.json200, indent=2, default=str)
