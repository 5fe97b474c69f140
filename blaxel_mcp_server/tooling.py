"""Tool descriptors, registry dispatch, and list filtering.

Every resource module builds ``ToolDescriptor`` objects and hands them to a
``ToolRegistry``. The registry owns the read-only gate (mutating tools are
never registered in read-only mode), validates arguments at the boundary, and
turns handler outcomes into ``CallToolResult`` values one-to-one.

List handlers share ``filter_and_marshal``: an optional query is matched
against a per-record key with a per-domain match policy, and the surviving
records are serialized as indented JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Sequence,
)

import anyio.to_thread
from jsonschema import Draft202012Validator
from mcp.types import CallToolResult, TextContent, Tool

from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import (
    ClientUnavailableError,
    RemoteStatusError,
    ToolError,
    ToolValidationError,
)

logger = logging.getLogger(__name__)

Handler = Callable[["ToolContext", Dict[str, Any]], Any]
MatchPolicy = Callable[[str, str], bool]


# ---------------------------------------------------------------------------
# Match policies
# ---------------------------------------------------------------------------


def contains_ignore_case(key: str, query: str) -> bool:
    return str(query).lower() in str(key or "").lower()


def equals_ignore_case(key: str, query: str) -> bool:
    return str(key or "").lower() == str(query).lower()


# ---------------------------------------------------------------------------
# Filter-and-marshal
# ---------------------------------------------------------------------------


def filter_records(
    items: Optional[Iterable[Any]],
    query: Optional[str],
    key_of: Callable[[Any], str],
    match: MatchPolicy = contains_ignore_case,
) -> List[Any]:
    """Return the order-preserving subsequence of ``items`` matching ``query``.

    An empty query matches everything. ``None`` items yield an empty list.
    """
    if items is None:
        return []
    query = query or ""
    if not query:
        return list(items)
    return [item for item in items if match(key_of(item), query)]


def filter_and_marshal(
    items: Optional[Iterable[Any]],
    query: Optional[str],
    key_of: Callable[[Any], str],
    match: MatchPolicy = contains_ignore_case,
    envelope: Optional[str] = None,
) -> str:
    """Filter ``items`` and serialize them as JSON indented by two spaces.

    Without ``envelope`` the result is a JSON array. With an envelope name the
    result is ``{envelope: [...], "count": N}`` where ``N`` counts the records
    that survived filtering.
    """
    filtered = filter_records(items, query, key_of, match)
    payload: Any = filtered if envelope is None else {envelope: filtered, "count": len(filtered)}
    try:
        return json.dumps(payload, indent=2, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise ToolError(f"failed to marshal {envelope or 'records'}: {exc}") from exc


def metadata_name(record: Any) -> str:
    """``record.metadata.name`` or ``""`` when any level is missing."""
    if not isinstance(record, dict):
        return ""
    metadata = record.get("metadata")
    if not isinstance(metadata, dict):
        return ""
    return str(metadata.get("name") or "")


def as_list(body: Any) -> List[Any]:
    if isinstance(body, list):
        return body
    return []


# ---------------------------------------------------------------------------
# Handler helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolContext:
    config: Config
    client: Any = None


def require_client(ctx: ToolContext) -> Any:
    if ctx.client is None:
        raise ClientUnavailableError()
    return ctx.client


def require_str(args: Dict[str, Any], key: str, message: Optional[str] = None) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        raise ToolValidationError(message or f"{key} is required")
    return value


def optional_str(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    return value if isinstance(value, str) else ""


def string_map(args: Dict[str, Any], key: str) -> Dict[str, str]:
    """Coerce an optional object argument into a ``str -> str`` mapping."""
    value = args.get(key)
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def status_error(action: str, status_code: int) -> RemoteStatusError:
    return RemoteStatusError(f"failed to {action} with status {status_code}", status_code)


# ---------------------------------------------------------------------------
# Descriptors and registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: Handler
    mutating: bool = False

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, inputSchema=self.input_schema)


def object_schema(
    properties: Optional[Dict[str, Any]] = None,
    required: Sequence[str] = (),
) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": dict(properties or {})}
    if required:
        schema["required"] = list(required)
    return schema


FILTER_PROPERTY = {"type": "string", "description": "Optional filter string"}


def _result_text(data: Any) -> list:
    """Format a result as TextContent for MCP tool response."""
    if isinstance(data, str):
        return [TextContent(type="text", text=data)]
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


def error_result(msg: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=msg)], isError=True)


def validate_arguments(schema: Dict[str, Any], arguments: Dict[str, Any]) -> None:
    """Check required fields, then the full schema (Draft 2020-12)."""
    for field in schema.get("required") or []:
        if arguments.get(field) is None:
            raise ToolValidationError(f"{field} is required")

    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(arguments), key=lambda err: list(err.path))
    if errors:
        messages = "; ".join(
            f"{'/'.join(map(str, err.path)) or '<root>'}: {err.message}" for err in errors[:5]
        )
        raise ToolValidationError(f"invalid arguments: {messages}")


UNKNOWN_TOOL_CODE = "unknown_tool"
TOOL_EXCEPTION_CODE = "tool_exception"


class Invocation(NamedTuple):
    result: CallToolResult
    error_code: str = ""


class ToolRegistry:
    """Immutable-after-startup set of tools keyed by name."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise ValueError(f"duplicate tool name: {descriptor.name}")
        self._tools[descriptor.name] = descriptor

    def register_all(self, tools: Iterable[ToolDescriptor], *, read_only: bool) -> None:
        for descriptor in tools:
            if read_only and descriptor.mutating:
                logger.debug("read-only mode: skipping %s", descriptor.name)
                continue
            self.register(descriptor)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        return [descriptor.to_tool() for descriptor in self._tools.values()]

    async def invoke(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        context: ToolContext,
    ) -> Invocation:
        """Run one tool call and report its result with a stable error code.

        Handlers block (HTTP, ``bl`` subprocess), so they run on a worker
        thread; a slow call only holds up its own invocation.
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            return Invocation(error_result(f"Unknown tool: {name}"), UNKNOWN_TOOL_CODE)

        # JSON null is treated as an absent argument.
        args = {key: value for key, value in (arguments or {}).items() if value is not None}
        try:
            validate_arguments(descriptor.input_schema, args)
            payload = await anyio.to_thread.run_sync(descriptor.handler, context, args)
        except ToolError as exc:
            return Invocation(error_result(exc.message), exc.code)
        except Exception as exc:
            logger.exception("tool call failed: %s", name)
            return Invocation(error_result(f"Tool '{name}' failed: {exc}"), TOOL_EXCEPTION_CODE)
        return Invocation(CallToolResult(content=_result_text(payload), isError=False))

    async def dispatch(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        context: ToolContext,
    ) -> CallToolResult:
        return (await self.invoke(name, arguments, context)).result
