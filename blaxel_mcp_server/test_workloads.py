"""Tests for agents, jobs, MCP servers and model APIs tools."""

import asyncio
import json

from blaxel_mcp_server import agents, jobs, mcpservers, modelapis
from blaxel_mcp_server.client import ApiResponse
from blaxel_mcp_server.config import Config
from blaxel_mcp_server.tooling import ToolContext, ToolRegistry


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _FakeClient:
    def __init__(self, **responses):
        self.responses = responses
        self.calls = []

    def __getattr__(self, name):
        if name not in self.responses:
            raise AttributeError(name)

        def call(*args):
            self.calls.append((name, args))
            return self.responses[name]

        return call


def _call(module, name, args, client):
    registry = ToolRegistry()
    module.register_tools(registry, Config())
    result = _run(registry.dispatch(name, args, ToolContext(config=Config(), client=client)))
    return result.isError, result.content[0].text


# --- agents ---


def test_list_agents_returns_name_and_status_summaries():
    records = [
        {"metadata": {"name": "support-bot"}, "status": "DEPLOYED", "spec": {"big": True}},
        {"metadata": {"name": "triage"}},
    ]
    client = _FakeClient(list_agents=ApiResponse(200, records))
    _, text = _call(agents, "list_agents", {}, client)
    assert json.loads(text) == {
        "agents": [{"name": "support-bot", "status": "DEPLOYED"}, {"name": "triage"}],
        "count": 2,
    }


def test_get_agent_empty_body_is_not_found():
    client = _FakeClient(get_agent=ApiResponse(200, None))
    is_error, text = _call(agents, "get_agent", {"name": "ghost"}, client)
    assert is_error
    assert text == "agent not found"


def test_delete_agent_status_failure():
    client = _FakeClient(delete_agent=ApiResponse(500))
    is_error, text = _call(agents, "delete_agent", {"name": "a"}, client)
    assert is_error
    assert text == "failed to delete agent with status 500"


# --- jobs ---


JOBS = [
    {"metadata": {"name": "nightly"}, "status": "RUNNING"},
    {"metadata": {"name": "weekly"}, "status": "running-late"},
    {"metadata": {"name": "hourly"}, "status": "FAILED"},
]


def test_list_jobs_filters_on_exact_status():
    client = _FakeClient(list_jobs=ApiResponse(200, JOBS))
    _, text = _call(jobs, "list_jobs", {"status": "running"}, client)
    data = json.loads(text)
    assert data["count"] == 1
    assert data["jobs"][0]["metadata"]["name"] == "nightly"


def test_get_job_requires_non_empty_id():
    client = _FakeClient(get_job=ApiResponse(200, {}))
    is_error, text = _call(jobs, "get_job", {"id": ""}, client)
    assert is_error
    assert text == "job ID is required"
    assert client.calls == []


# --- MCP servers ---


def test_create_mcp_server_rejects_both_integration_options():
    client = _FakeClient(create_function=ApiResponse(200, {}))
    is_error, text = _call(
        mcpservers,
        "create_mcp_server",
        {"name": "s", "integrationConnectionName": "gh", "integrationType": "github"},
        client,
    )
    assert is_error
    assert text == "specify either integrationConnectionName or integrationType, not both"
    assert client.calls == []


def test_create_mcp_server_requires_one_integration_option():
    is_error, text = _call(mcpservers, "create_mcp_server", {"name": "s"}, _FakeClient())
    assert is_error
    assert text.startswith("must provide either integrationConnectionName")


def test_create_mcp_server_references_existing_integration():
    client = _FakeClient(create_function=ApiResponse(200, {}))
    is_error, text = _call(
        mcpservers, "create_mcp_server", {"name": "s", "integrationConnectionName": "gh"}, client
    )
    assert not is_error
    assert client.calls == [
        (
            "create_function",
            (
                {
                    "metadata": {"name": "s"},
                    "spec": {"runtime": {"type": "mcp"}, "integrationConnections": ["gh"]},
                },
            ),
        )
    ]
    assert json.loads(text)["mcp_server"] == {"name": "s", "integrationConnection": "gh"}


def test_create_mcp_server_tolerates_existing_inline_integration():
    client = _FakeClient(
        create_integration_connection=ApiResponse(409),
        create_function=ApiResponse(200, {}),
    )
    is_error, text = _call(
        mcpservers,
        "create_mcp_server",
        {"name": "s", "integrationType": "github", "secret": {"token": "t"}},
        client,
    )
    assert not is_error
    integration_body = client.calls[0][1][0]
    assert integration_body == {
        "metadata": {"name": "s-github-integration"},
        "spec": {"integration": "github", "secret": {"token": "t"}},
    }
    function_body = client.calls[1][1][0]
    assert function_body["spec"]["integrationConnections"] == ["s-github-integration"]
    data = json.loads(text)
    assert data["message"] == (
        "MCP server 's' created successfully with inline integration 's-github-integration'"
    )
    assert data["mcp_server"]["integrationType"] == "github"


def test_create_mcp_server_inline_integration_failure_stops():
    client = _FakeClient(
        create_integration_connection=ApiResponse(400),
        create_function=ApiResponse(200, {}),
    )
    is_error, text = _call(
        mcpservers, "create_mcp_server", {"name": "s", "integrationType": "github"}, client
    )
    assert is_error
    assert text == "failed to create integration with status 400"
    assert [c[0] for c in client.calls] == ["create_integration_connection"]


def test_create_mcp_server_conflict():
    client = _FakeClient(create_function=ApiResponse(409))
    is_error, text = _call(
        mcpservers, "create_mcp_server", {"name": "s", "integrationConnectionName": "gh"}, client
    )
    assert is_error
    assert text == "MCP server with name 's' already exists"


def test_delete_mcp_server_reports_initiated():
    client = _FakeClient(delete_function=ApiResponse(200))
    _, text = _call(mcpservers, "delete_mcp_server", {"name": "s"}, client)
    assert json.loads(text)["message"] == "MCP server 's' deletion initiated successfully"


# --- model APIs ---


def test_list_model_apis_returns_name_summaries():
    records = [{"metadata": {"name": "gpt"}, "spec": {}}, {"metadata": {"name": "claude"}}]
    client = _FakeClient(list_models=ApiResponse(200, records))
    _, text = _call(modelapis, "list_model_apis", {"filter": "cla"}, client)
    assert json.loads(text) == {"model_apis": [{"name": "claude"}], "count": 1}


def test_create_model_api_provider_without_key():
    is_error, text = _call(
        modelapis, "create_model_api", {"name": "m", "provider": "openai"}, _FakeClient()
    )
    assert is_error
    assert text == "api key is required when specifying provider"


def test_create_model_api_provider_with_key_points_to_create_integration():
    is_error, text = _call(
        modelapis,
        "create_model_api",
        {"name": "m", "provider": "openai", "apiKey": "sk"},
        _FakeClient(),
    )
    assert is_error
    assert text.startswith("inline integration creation is not supported.")
    assert "'create_integration'" in text


def test_create_model_api_without_integration():
    is_error, text = _call(modelapis, "create_model_api", {"name": "m"}, _FakeClient())
    assert is_error
    assert text == "must provide integrationConnectionName to reference an existing integration"


def test_create_model_api_body_and_conflict():
    client = _FakeClient(create_model=ApiResponse(409))
    is_error, text = _call(
        modelapis,
        "create_model_api",
        {"name": "m", "integrationConnectionName": "oa", "model": "gpt-4o"},
        client,
    )
    assert is_error
    assert text == "model API with name 'm' already exists"
    assert client.calls[0][1][0] == {
        "metadata": {"name": "m"},
        "spec": {"integrationConnections": ["oa"], "runtime": {"model": "gpt-4o"}},
    }


def test_get_model_api_wraps_record():
    client = _FakeClient(get_model=ApiResponse(200, {"metadata": {"name": "m"}}))
    _, text = _call(modelapis, "get_model_api", {"name": "m"}, client)
    assert json.loads(text) == {"model_api": {"metadata": {"name": "m"}}}
